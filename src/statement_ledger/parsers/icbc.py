"""Parser for ICBC debit account history statements (借记账户历史明细).

The electronic ICBC statement renders its table as field columns: once the
page is regrouped into text lines, all dates of a page land on one line,
all times on another, then descriptions, counterparties and balances. The
column strategy collects those parallel arrays and zips them back together
by index, deriving each amount from consecutive balances. Statements that
do render one transaction per line fall through to the row strategy.
"""

import logging
import re
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from .base import (
    StatementParser,
    ExtractionContext,
    RowExtractor,
    RowLayout,
    Strategy,
    DEFAULT_DESCRIPTION,
    split_lines,
)
from ..models.core import AccountInfo, Transaction, TableRegionMarkers


logger = logging.getLogger(__name__)


ICBC_MARKERS = TableRegionMarkers(
    start_markers=("交易日期",),
    start_inclusive=True,
    end_markers=("本页支出算术合计",),
    end_inclusive=False,
)

ICBC_ROW_LAYOUT = RowLayout(
    datetime_pattern=r'(?P<date>\d{4}-\d{2}-\d{2})\s+(?P<time>\d{2}:\d{2}:\d{2})',
    header_patterns=(
        '中国工商银行', '借记账户历史明细', '电子版', '交易日期', '收入/支出金额',
        '对方户名', '对方账号', '渠道', '起止日期', r'第.*页', r'共.*页', '请扫描二维码',
    ),
    date_formats=("%Y-%m-%d",),
)

# Token patterns. Lookarounds instead of \b: CJK characters are word
# characters, so \b never fires between 日期 and 2024.
DATE_TOKEN = re.compile(r'(?<!\d)\d{4}-\d{2}-\d{2}(?!\d)')
TIME_TOKEN = re.compile(r'(?<!\d)\d{2}:\d{2}:\d{2}(?!\d)')
UNSIGNED_AMOUNT = re.compile(r'(?<![+\-\d,.])\d[\d,]*\.\d{2}(?!\d)')
SIGNED_AMOUNT = re.compile(r'(?<![\d,.])[+-]\d[\d,]*\.\d{2}(?!\d)')

PAGE_TOTAL_LABELS = ("本页收入算术合计", "本页支出算术合计")
EMPTY_PLACEHOLDER = "（空）"

# A line needs this many tokens to count as a field column
MIN_COLUMN_TOKENS = 3


class ICBCParser(StatementParser):
    """ICBC debit card history: column reconstruction, then row lines"""

    institution_id = "icbc"
    institution_name = "中国工商银行"
    detect_patterns = ("中国工商银行", "工商银行", "借记账户历史明细", "ICBC")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.row_extractor = RowExtractor(ICBC_ROW_LAYOUT, self.transformer)

    def strategies(self) -> List[Tuple[str, Strategy]]:
        return [
            ("columns", self.parse_by_columns),
            ("rows", self.row_extractor.extract),
        ]

    def extract_account_info(self, text: str) -> AccountInfo:
        info = AccountInfo()

        number = self._search(r'卡号[：:\s]*(\d{16,19})', text)
        if number:
            info.account_number = number

        name = self._search(r'户名[：:\s]*([^\s]+)', text)
        if name:
            info.account_name = name

        info.period_start, info.period_end = self._parse_period(
            r'起止日期[：:\s]*(\d{4}-\d{2}-\d{2})\s*[-—~至]\s*(\d{4}-\d{2}-\d{2})',
            text,
            ["%Y-%m-%d"],
        )
        return info

    def collect_columns(self, text: str) -> Dict[str, List[str]]:
        """Gather the parallel field arrays from regrouped statement text"""
        lines = split_lines(text)
        return {
            'dates': self._column_tokens(lines, DATE_TOKEN),
            'times': self._column_tokens(lines, TIME_TOKEN),
            'descriptions': self._descriptions(lines),
            'counterparties': self._counterparties(lines),
            'balances': self._balances(lines),
            'signed_amounts': self._signed_amounts(lines),
        }

    def parse_by_columns(self, text: str, context: ExtractionContext) -> List[Transaction]:
        columns = self.collect_columns(text)
        dates, times, balances = columns['dates'], columns['times'], columns['balances']
        descriptions, counterparties = columns['descriptions'], columns['counterparties']

        count = min(len(dates), len(times), len(balances))
        logger.debug(
            "icbc columns: " + ", ".join(f"{name}={len(values)}" for name, values in columns.items())
        )
        if count == 0:
            return []

        self._check_alignment(columns, count, context)

        transactions = []
        previous = Decimal(0)
        for i in range(count):
            current = self.transformer.parse_amount_token(balances[i])
            if current is None:
                current = previous
            delta = self.calculator.subtract(current, previous)
            previous = current

            try:
                transaction = context.build_transaction(
                    date_value=self.transformer.normalize_date(dates[i], ["%Y-%m-%d"]),
                    time_value=self.transformer.normalize_time(times[i]),
                    amount=self.calculator.abs(delta),
                    is_income=delta >= 0,
                    description=descriptions[i] if i < len(descriptions) and descriptions[i] else DEFAULT_DESCRIPTION,
                    counterparty=counterparties[i] if i < len(counterparties) else "",
                    balance=self.calculator.round(current),
                )
            except Exception as e:
                context.line_error(f"{dates[i]} {times[i]} {balances[i]}", e)
                continue

            transactions.append(transaction)

        return transactions

    def _check_alignment(self, columns: Dict[str, List[str]], count: int, context: ExtractionContext):
        """Flag parallel arrays whose length disagrees with the synthesized count"""
        mismatched = {
            name: len(values) for name, values in columns.items()
            if values and len(values) != count
        }
        if not mismatched:
            return

        sizes = ", ".join(f"{name}={len(values)}" for name, values in columns.items())
        context.add_diagnostic(
            f"Column count mismatch ({sizes}); synthesized {count} transactions by index, "
            f"fields may be misattributed",
            "COLUMN_COUNT_MISMATCH",
        )

    def _column_tokens(self, lines: List[str], pattern) -> List[str]:
        tokens = []
        for line in lines:
            found = pattern.findall(line)
            if len(found) >= MIN_COLUMN_TOKENS:
                tokens.extend(found)
        return tokens

    def _descriptions(self, lines: List[str]) -> List[str]:
        descriptions = []
        for line in lines:
            if line.startswith("摘要"):
                descriptions.extend(p for p in line.split() if p and p != "摘要")
        return descriptions

    def _counterparties(self, lines: List[str]) -> List[str]:
        counterparties = []
        in_section = False

        for line in lines:
            if line.startswith("对方户名"):
                in_section = True
                parts = [p for p in line.split() if p != "对方户名"]
                counterparties.extend(self._placeholder(p) for p in parts)
                continue

            if line.startswith("余额") or line.startswith("对方账号"):
                in_section = False
                continue

            if in_section:
                for part in line.split():
                    if (DATE_TOKEN.fullmatch(part) or TIME_TOKEN.fullmatch(part)
                            or part.startswith("下单时间") or len(part) <= 1):
                        continue
                    counterparties.append(self._placeholder(part))

        return counterparties

    @staticmethod
    def _placeholder(token: str) -> str:
        return "" if token == EMPTY_PLACEHOLDER else token

    def _balances(self, lines: List[str]) -> List[str]:
        balances = []
        in_section = False

        for line in lines:
            if line.startswith("余额"):
                in_section = True
                balances.extend(UNSIGNED_AMOUNT.findall(line))
                continue

            signed = SIGNED_AMOUNT.findall(line)
            if signed:
                # First signed-amount line closes the balance run; it may still
                # carry the tail of the balances
                if in_section:
                    unsigned = UNSIGNED_AMOUNT.findall(line)
                    if len(unsigned) > len(signed):
                        balances.extend(unsigned)
                in_section = False
                continue

            if in_section:
                amounts = UNSIGNED_AMOUNT.findall(line)
                if len(amounts) >= MIN_COLUMN_TOKENS:
                    balances.extend(amounts)

        return balances

    def _signed_amounts(self, lines: List[str]) -> List[str]:
        amounts = []
        for line in lines:
            if any(label in line for label in PAGE_TOTAL_LABELS):
                continue
            amounts.extend(SIGNED_AMOUNT.findall(line))
        return amounts
