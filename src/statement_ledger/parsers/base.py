"""Abstract base classes and shared extraction helpers for statement parsers."""

import hashlib
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Optional, Sequence, Tuple

from ..models.core import (
    AccountInfo,
    ParseResult,
    Summary,
    Transaction,
    INCOME,
    EXPENSE,
    DEFAULT_TIME,
)
from ..utils.calculator import DecimalCalculator, default_calculator
from ..utils.categorizer import TransactionCategorizer, default_categorizer
from ..utils.error_handler import ErrorHandler, ErrorCategory, handle_parsing_error


logger = logging.getLogger(__name__)

# Decimal money token with exactly two fractional digits, optional sign and
# comma group separators: -1,316.78  +0.23  25.66
AMOUNT_PATTERN = r'(?<![\d,.])[+-]?\d[\d,]*\.\d{2}(?!\d)'
AMOUNT_REGEX = re.compile(AMOUNT_PATTERN)

DEFAULT_DESCRIPTION = "银行交易"

# Known payment channels appearing in the counterparty bank column
PAYMENT_CHANNELS = (
    '支付宝', '财付通', '网银在线', '抖音支付', '微信', '京东支付', '银联',
    '云闪付', '美团支付', '快钱', '易宝支付',
)

# Column labels that pollute the text after the last amount
COUNTERPARTY_NOISE_REGEX = re.compile(r'转账|跨行支付|0001|现转标志|交易渠道|交易机构')


def split_lines(text: str) -> List[str]:
    """Non-empty, stripped lines of a text block"""
    return [line.strip() for line in (text or "").split("\n") if line.strip()]


def make_transaction_id(*parts) -> str:
    """Deterministic transaction id from its provenance and content"""
    key = "|".join(str(p) for p in parts)
    return hashlib.sha1(key.encode('utf-8')).hexdigest()[:16]


class DataTransformer:
    """Normalizes raw statement tokens into typed values"""

    DATE_FORMATS = [
        "%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d", "%Y年%m月%d日", "%Y%m%d",
    ]

    TIME_FORMATS = ["%H:%M:%S", "%H:%M"]

    def normalize_date(self, date_str: str, formats: Optional[List[str]] = None) -> date:
        """Convert a statement date token to a date"""
        if not date_str or not str(date_str).strip():
            raise ValueError("Date string cannot be empty")

        date_str = str(date_str).strip()

        for fmt in formats or self.DATE_FORMATS:
            try:
                return datetime.strptime(date_str, fmt).date()
            except ValueError:
                continue

        raise ValueError(f"Unable to parse date: {date_str}")

    def normalize_time(self, time_str: Optional[str]) -> str:
        """Return HH:MM:SS, or midnight when no time is known"""
        if not time_str or not str(time_str).strip():
            return DEFAULT_TIME

        time_str = str(time_str).strip()
        for fmt in self.TIME_FORMATS:
            try:
                return datetime.strptime(time_str, fmt).strftime("%H:%M:%S")
            except ValueError:
                continue

        raise ValueError(f"Unable to parse time: {time_str}")

    def normalize_amount(self, amount_str: str) -> Decimal:
        """Convert a money token to Decimal keeping its sign.

        Group separators, currency symbols and whitespace are stripped;
        parentheses mean negative.
        """
        if amount_str is None or str(amount_str).strip() == '':
            raise ValueError("Amount string cannot be empty")

        cleaned = re.sub(r'[¥￥$€£\s]|CNY|RMB', '', str(amount_str).strip())

        is_negative = False
        if cleaned.startswith('(') and cleaned.endswith(')'):
            cleaned = cleaned[1:-1]
            is_negative = True

        if cleaned.startswith('-'):
            is_negative = not is_negative
            cleaned = cleaned[1:]
        elif cleaned.startswith('+'):
            cleaned = cleaned[1:]

        # European style 1.234,56
        if re.match(r'^\d{1,3}(\.\d{3})+,\d{2}$', cleaned):
            cleaned = cleaned.replace('.', '').replace(',', '.')
        else:
            cleaned = cleaned.replace(',', '')

        if not re.match(r'^\d+(\.\d+)?$', cleaned):
            raise ValueError(f"Unable to parse amount: {amount_str}")

        try:
            amount = Decimal(cleaned)
        except InvalidOperation as e:
            raise ValueError(f"Unable to parse amount: {amount_str}") from e

        return -amount if is_negative else amount

    def parse_amount_token(self, amount_str: Optional[str]) -> Optional[Decimal]:
        """Like normalize_amount but an unparseable token counts as absent"""
        try:
            return self.normalize_amount(amount_str)
        except ValueError:
            logger.debug(f"Ignoring malformed amount token: {amount_str!r}")
            return None

    def clean_description(self, description: Optional[str]) -> str:
        """Collapse whitespace and trim separators left over from column splits"""
        if not description:
            return ""
        cleaned = ' '.join(str(description).split())
        return cleaned.strip(' |')


class ExtractionContext:
    """Per-document state shared by the extraction strategies of one parse.

    Builds transactions with deterministic ids and funnels skipped lines
    and diagnostics to the ParseResult.
    """

    def __init__(self, institution_id: str, source_file: str = "",
                 error_handler: Optional[ErrorHandler] = None):
        self.institution_id = institution_id
        self.source_file = source_file
        self.error_handler = error_handler or ErrorHandler()
        self.diagnostics: List[str] = []
        self.strategy = ""
        self._index = 0

    def build_transaction(self, *, date_value: date, time_value: str, amount: Decimal,
                          is_income: bool, raw_line: str = "", **fields) -> Transaction:
        amount = abs(amount)
        transaction_id = make_transaction_id(
            self.source_file, self.institution_id, self.strategy, self._index,
            date_value.isoformat(), time_value, amount, raw_line,
        )
        self._index += 1
        return Transaction(
            id=transaction_id,
            date=date_value,
            time=time_value,
            amount=amount,
            type=INCOME if is_income else EXPENSE,
            source_file=self.source_file,
            raw_line=raw_line,
            **fields
        )

    def line_error(self, line: str, exception: Exception, line_number: Optional[int] = None):
        """Record a line that was skipped because extraction failed"""
        handle_parsing_error(
            self.error_handler,
            self.source_file or None,
            'line',
            line,
            f"{self.institution_id} {self.strategy} transaction line",
            line_number=line_number,
            exception=exception,
            context={'institution': self.institution_id, 'strategy': self.strategy},
        )

    def add_diagnostic(self, message: str, error_type: str = "CROSS_FIELD_VALIDATION_ERROR"):
        self.diagnostics.append(message)
        self.error_handler.log_warning(
            message, error_type, ErrorCategory.VALIDATION,
            file_path=self.source_file or None,
            context={'institution': self.institution_id, 'strategy': self.strategy},
        )


Strategy = Callable[[str, ExtractionContext], List[Transaction]]


@dataclass(frozen=True)
class RowLayout:
    """Shape of a statement whose transactions are one text line each.

    Attributes:
        datetime_pattern: Regex with named groups ``date`` and ``time``
        header_patterns: Substrings/regexes marking header and footer lines
        channels: Known payment-channel names searched after the last amount
    """
    datetime_pattern: str
    header_patterns: Tuple[str, ...] = ()
    channels: Tuple[str, ...] = PAYMENT_CHANNELS
    date_formats: Tuple[str, ...] = ()

    @property
    def datetime_regex(self):
        return re.compile(self.datetime_pattern)


class RowExtractor:
    """Row-based extraction: date/time, description, amount, balance, counterparty"""

    def __init__(self, layout: RowLayout, transformer: Optional[DataTransformer] = None):
        self.layout = layout
        self.transformer = transformer or DataTransformer()
        self._datetime_regex = layout.datetime_regex
        self._header_regexes = [re.compile(p) for p in layout.header_patterns]

    def is_header_or_footer(self, line: str) -> bool:
        for pattern, regex in zip(self.layout.header_patterns, self._header_regexes):
            if pattern in line or regex.search(line):
                return True
        return False

    def extract(self, text: str, context: ExtractionContext) -> List[Transaction]:
        transactions = []

        for line_number, line in enumerate(split_lines(text), 1):
            if self.is_header_or_footer(line):
                continue

            match = self._datetime_regex.search(line)
            if not match or not AMOUNT_REGEX.search(line, match.end()):
                continue

            try:
                transaction = self.parse_line(line, match, context)
            except Exception as e:
                context.line_error(line, e, line_number)
                continue

            if transaction is not None:
                transactions.append(transaction)

        return transactions

    def parse_line(self, line: str, match, context: ExtractionContext) -> Optional[Transaction]:
        date_value = self.transformer.normalize_date(
            match.group('date'), list(self.layout.date_formats) or None)
        time_value = self.transformer.normalize_time(match.group('time'))

        tail = line[match.end():]
        amounts = []
        for amount_match in AMOUNT_REGEX.finditer(tail):
            value = self.transformer.parse_amount_token(amount_match.group())
            if value is not None:
                amounts.append((amount_match, value))

        if not amounts:
            return None

        first_match, first_value = amounts[0]
        balance = amounts[1][1] if len(amounts) > 1 else None
        is_income = not first_match.group().startswith('-')

        description = self.transformer.clean_description(tail[:first_match.start()])
        after_last = tail[amounts[-1][0].end():]

        voucher_match = re.search(r'\d{10,}', line[:match.start()])
        voucher_number = voucher_match.group() if voucher_match else ""

        channel = self.find_channel(after_last)
        counterparty = self.extract_counterparty(after_last, channel, description)

        if not description and channel:
            description = f"{channel}交易"

        if not counterparty and description:
            counterparty = merchant_from_description(description)

        return context.build_transaction(
            date_value=date_value,
            time_value=time_value,
            amount=first_value,
            is_income=is_income,
            raw_line=line,
            description=description or DEFAULT_DESCRIPTION,
            balance=balance,
            counterparty=counterparty or channel,
            counterparty_bank=channel,
            voucher_number=voucher_number,
        )

    def find_channel(self, text: str) -> str:
        for channel in self.layout.channels:
            if channel in text:
                return channel
        return ""

    def extract_counterparty(self, text: str, channel: str, description: str) -> str:
        cleaned = COUNTERPARTY_NOISE_REGEX.sub('', text).strip()
        name_match = re.search(r'[^\d/\s]{2,}', cleaned)
        if not name_match:
            return ""

        counterparty = name_match.group().strip()
        if counterparty == channel or len(counterparty) < 3:
            parts = description.split('-')
            if len(parts) >= 3:
                counterparty = '-'.join(parts[2:]).strip()
        return counterparty


def merchant_from_description(description: str) -> str:
    """Guess a counterparty from a ``channel-method-merchant`` description"""
    parts = [p.strip() for p in description.split('-')]
    if len(parts) >= 3:
        return parts[-1] or parts[0]
    return parts[0]


def compute_summary(transactions: Sequence[Transaction],
                    calculator: DecimalCalculator = default_calculator) -> Summary:
    """Totals over a transaction list using exact decimal arithmetic"""
    income = [t for t in transactions if t.type == INCOME]
    expense = [t for t in transactions if t.type == EXPENSE]

    total_income = calculator.sum_transactions(income)
    total_expense = calculator.sum_transactions(expense)

    return Summary(
        total_income=total_income,
        total_expense=total_expense,
        balance=calculator.subtract(total_income, total_expense),
        transaction_count=len(transactions),
        income_count=len(income),
        expense_count=len(expense),
    )


class StatementParser(ABC):
    """Abstract base class for all statement parsers.

    Subclasses name their institution, extract the account header and list
    their extraction strategies in order of preference. ``parse`` tries the
    strategies in turn and keeps the first non-empty result.
    """

    institution_id: str = ""
    institution_name: str = ""
    detect_patterns: Tuple[str, ...] = ()

    def __init__(self,
                 categorizer: Optional[TransactionCategorizer] = None,
                 calculator: Optional[DecimalCalculator] = None,
                 currency: Optional[str] = None):
        self.categorizer = categorizer or default_categorizer
        self.calculator = calculator or default_calculator
        self.currency = currency
        self.transformer = DataTransformer()

    def detect(self, text: str) -> bool:
        """Return True if the text looks like this institution's statement"""
        return any(pattern in (text or "") for pattern in self.detect_patterns)

    @abstractmethod
    def extract_account_info(self, text: str) -> AccountInfo:
        """Pull account holder, number and period out of the header text"""
        pass

    @abstractmethod
    def strategies(self) -> List[Tuple[str, Strategy]]:
        """Ordered (name, strategy) pairs tried until one yields transactions"""
        pass

    def parse(self, text: str, source_file: str = "",
              error_handler: Optional[ErrorHandler] = None) -> ParseResult:
        """Parse assembled statement text into a ParseResult"""
        context = ExtractionContext(self.institution_id, source_file, error_handler)
        errors_before = len(context.error_handler.errors)

        account_info = self.extract_account_info(text or "")
        if self.currency:
            account_info.currency = self.currency

        transactions: List[Transaction] = []
        for name, strategy in self.strategies():
            context.strategy = name
            transactions = strategy(text or "", context)
            if transactions:
                logger.info(f"{self.institution_id}: strategy '{name}' extracted {len(transactions)} transactions")
                break
            logger.debug(f"{self.institution_id}: strategy '{name}' found nothing")

        for transaction in transactions:
            category = self.categorizer.categorize(transaction.description, transaction.counterparty)
            transaction.category = category.id
            transaction.category_info = category

        return ParseResult(
            institution_id=self.institution_id,
            institution_name=self.institution_name,
            account_info=account_info,
            transactions=transactions,
            summary=compute_summary(transactions, self.calculator),
            raw_text=text or "",
            source_file=source_file,
            diagnostics=context.diagnostics,
            errors=context.error_handler.errors[errors_before:],
        )

    def _search(self, pattern: str, text: str) -> Optional[str]:
        match = re.search(pattern, text)
        return match.group(1) if match else None

    def _parse_period(self, pattern: str, text: str, formats: List[str]) -> Tuple[Optional[date], Optional[date]]:
        match = re.search(pattern, text)
        if not match:
            return None, None
        try:
            return (self.transformer.normalize_date(match.group(1), formats),
                    self.transformer.normalize_date(match.group(2), formats))
        except ValueError as e:
            logger.warning(f"{self.institution_id}: unparseable statement period {match.group(0)!r}: {e}")
            return None, None
