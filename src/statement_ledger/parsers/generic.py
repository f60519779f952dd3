"""Fallback parser for statements from institutions without a dedicated parser."""

import logging
import re
from datetime import date
from typing import List, Optional, Tuple

from .base import (
    StatementParser,
    ExtractionContext,
    Strategy,
    AMOUNT_REGEX,
    DEFAULT_DESCRIPTION,
    split_lines,
)
from ..models.core import AccountInfo, Transaction, UNKNOWN_INSTITUTION


logger = logging.getLogger(__name__)


DATE_PATTERNS = [
    # 2024-05-14 14:37:43, 2024/05/14
    re.compile(r'(?P<date>\d{4}[-/]\d{2}[-/]\d{2})\s*(?P<time>\d{2}:\d{2}:\d{2})?'),
    # 05/14/2024 14:37:43, 14-05-2024
    re.compile(r'(?P<date>\d{2}[-/]\d{2}[-/]\d{4})\s*(?P<time>\d{2}:\d{2}:\d{2})?'),
]


class GenericParser(StatementParser):
    """Line-oriented best effort extraction: a date, then amount and balance"""

    institution_id = UNKNOWN_INSTITUTION
    institution_name = "未知银行"

    def detect(self, text: str) -> bool:
        return True

    def strategies(self) -> List[Tuple[str, Strategy]]:
        return [("lines", self.parse_lines)]

    def extract_account_info(self, text: str) -> AccountInfo:
        return AccountInfo()

    def parse_lines(self, text: str, context: ExtractionContext) -> List[Transaction]:
        transactions = []

        for line_number, line in enumerate(split_lines(text), 1):
            for pattern in DATE_PATTERNS:
                match = pattern.search(line)
                if not match:
                    continue

                try:
                    transaction = self._parse_line(line, match, context)
                except Exception as e:
                    context.line_error(line, e, line_number)
                    transaction = None

                if transaction is not None:
                    transactions.append(transaction)
                break

        return transactions

    def _parse_line(self, line: str, match, context: ExtractionContext) -> Optional[Transaction]:
        amounts = []
        for amount_match in AMOUNT_REGEX.finditer(line, match.end()):
            value = self.transformer.parse_amount_token(amount_match.group())
            if value is not None:
                amounts.append((amount_match, value))

        if not amounts:
            return None

        amount_match, value = amounts[0]
        balance = amounts[1][1] if len(amounts) > 1 else None
        token = amount_match.group()
        is_income = token.startswith('+') or value > 0

        description = self.transformer.clean_description(line[match.end():amount_match.start()])

        return context.build_transaction(
            date_value=self._parse_date(match.group('date')),
            time_value=self.transformer.normalize_time(match.group('time')),
            amount=value,
            is_income=is_income,
            raw_line=line,
            description=description or DEFAULT_DESCRIPTION,
            balance=balance,
        )

    def _parse_date(self, date_str: str) -> date:
        """Year-first dates as written; NN/NN/YYYY month-first unless the first field exceeds 12"""
        parts = re.split(r'[-/]', date_str)
        if len(parts[0]) == 4:
            return date(int(parts[0]), int(parts[1]), int(parts[2]))

        first, second, year = int(parts[0]), int(parts[1]), int(parts[2])
        if first > 12:
            return date(year, second, first)
        return date(year, first, second)
