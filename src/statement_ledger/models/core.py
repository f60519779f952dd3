"""Core data models for the statement ledger."""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Dict, Any, Optional, Tuple


INCOME = "income"
EXPENSE = "expense"
TRANSACTION_TYPES = (INCOME, EXPENSE)

UNKNOWN_INSTITUTION = "unknown"
DEFAULT_TIME = "00:00:00"
DEFAULT_CURRENCY = "CNY"

GROUP_ROWS = "rows"
GROUP_COLUMNS = "columns"


@dataclass(frozen=True)
class PositionedFragment:
    """One positioned text run as emitted by document rendering.

    Coordinates are in document space: y grows upward, so a larger y is
    closer to the top of the page.
    """
    text: str
    x: float
    y: float


@dataclass(frozen=True)
class TableRegionMarkers:
    """Substrings locating the transaction table within a page.

    Attributes:
        start_markers: Any of these entering the table region
        start_inclusive: Keep the fragment carrying the start marker
        end_markers: Any of these leaving the table region
        end_inclusive: Keep the fragment carrying the end marker
    """
    start_markers: Tuple[str, ...] = ()
    start_inclusive: bool = True
    end_markers: Tuple[str, ...] = ()
    end_inclusive: bool = False


@dataclass(frozen=True)
class CategoryDescriptor:
    """Category identifier plus its display label"""
    id: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {'id': self.id, 'name': self.name}


@dataclass
class Transaction:
    """Unified transaction data structure.

    ``amount`` is always a non-negative magnitude; the direction of the
    money movement is carried by ``type`` alone.
    """
    id: str
    date: date
    amount: Decimal
    type: str
    time: str = DEFAULT_TIME
    description: str = ""
    counterparty: str = ""
    counterparty_bank: str = ""
    voucher_number: str = ""
    balance: Optional[Decimal] = None
    category: str = "other"
    category_info: Optional[CategoryDescriptor] = None
    source_file: str = ""
    raw_line: str = ""
    note: str = ""

    def __post_init__(self):
        if self.type not in TRANSACTION_TYPES:
            raise ValueError(f"Unknown transaction type: {self.type}")
        if self.amount < 0:
            raise ValueError(f"Transaction amount must be non-negative, got {self.amount}")

    @property
    def datetime(self) -> datetime:
        return datetime.combine(self.date, time.fromisoformat(self.time))

    @property
    def is_income(self) -> bool:
        return self.type == INCOME

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.is_income else -self.amount

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            'id': self.id,
            'date': self.date.isoformat(),
            'time': self.time,
            'datetime': self.datetime.isoformat(),
            'description': self.description,
            'counterparty': self.counterparty,
            'counterparty_bank': self.counterparty_bank,
            'voucher_number': self.voucher_number,
            'amount': str(self.amount),
            'balance': str(self.balance) if self.balance is not None else None,
            'type': self.type,
            'category': self.category,
            'category_info': self.category_info.to_dict() if self.category_info else None,
            'source_file': self.source_file,
            'raw_line': self.raw_line,
            'note': self.note,
        }


@dataclass
class AccountInfo:
    """Statement owner details extracted from the document header"""
    account_name: str = ""
    account_number: str = ""
    currency: str = DEFAULT_CURRENCY
    period_start: Optional[date] = None
    period_end: Optional[date] = None

    @property
    def period(self) -> str:
        if self.period_start and self.period_end:
            return f"{self.period_start.isoformat()} 至 {self.period_end.isoformat()}"
        return ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'account_name': self.account_name,
            'account_number': self.account_number,
            'currency': self.currency,
            'period_start': self.period_start.isoformat() if self.period_start else None,
            'period_end': self.period_end.isoformat() if self.period_end else None,
            'period': self.period,
        }


@dataclass
class Summary:
    """Income/expense totals of one parsed statement"""
    total_income: Decimal = Decimal('0.00')
    total_expense: Decimal = Decimal('0.00')
    balance: Decimal = Decimal('0.00')
    transaction_count: int = 0
    income_count: int = 0
    expense_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_income': str(self.total_income),
            'total_expense': str(self.total_expense),
            'balance': str(self.balance),
            'transaction_count': self.transaction_count,
            'income_count': self.income_count,
            'expense_count': self.expense_count,
        }


@dataclass
class ParseResult:
    """Everything extracted from one statement document.

    Attributes:
        institution_id: Registry key of the parser used ("unknown" for the generic one)
        institution_name: Display name of the institution
        account_info: Header details of the statement
        transactions: Ordered ledger entries
        summary: Totals computed over ``transactions``
        raw_text: Assembled page text the parser consumed
        source_file: Originating document name
        diagnostics: Non-fatal findings about the extraction (e.g. column count mismatches)
        errors: ErrorDetail records for lines that were skipped
    """
    institution_id: str
    institution_name: str
    account_info: AccountInfo
    transactions: List[Transaction]
    summary: Summary
    raw_text: str = ""
    source_file: str = ""
    diagnostics: List[str] = field(default_factory=list)
    errors: List[Any] = field(default_factory=list)

    def to_dict(self, include_raw_text: bool = False) -> Dict[str, Any]:
        data = {
            'institution_id': self.institution_id,
            'institution_name': self.institution_name,
            'source_file': self.source_file,
            'account_info': self.account_info.to_dict(),
            'summary': self.summary.to_dict(),
            'transactions': [t.to_dict() for t in self.transactions],
            'diagnostics': list(self.diagnostics),
            'errors': [e.to_dict() for e in self.errors],
        }
        if include_raw_text:
            data['raw_text'] = self.raw_text
        return data


@dataclass
class InstitutionConfig:
    """User overrides for one institution profile.

    Any attribute left as None keeps the built-in value.
    """
    name: str
    y_tolerance: Optional[float] = None
    x_tolerance: Optional[float] = None
    grouping: Optional[str] = None
    start_markers: Optional[List[str]] = None
    start_inclusive: Optional[bool] = None
    end_markers: Optional[List[str]] = None
    end_inclusive: Optional[bool] = None


@dataclass
class ParserConfig:
    """Configuration for parser behavior"""
    default_y_tolerance: float = 5.0
    default_x_tolerance: float = 5.0
    decimal_places: int = 2
    rounding: str = "ROUND_HALF_UP"
    currency: str = DEFAULT_CURRENCY
    page_separator: str = "--- PAGE BREAK ---"
    log_directory: Optional[str] = None
    institutions: Optional[Dict[str, InstitutionConfig]] = None
    category_rules: Optional[List[Dict[str, Any]]] = None

    def __post_init__(self):
        if self.institutions is None:
            self.institutions = {}
        if self.category_rules is None:
            self.category_rules = []
