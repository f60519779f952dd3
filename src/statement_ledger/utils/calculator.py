"""Exact decimal arithmetic for money values.

Every monetary figure (summary totals, balance deltas, percentages) goes
through a DecimalCalculator so that rounding happens in one place. Operands
may be Decimal, int, float, str or None; None and empty strings count as
zero. Floats are converted through their shortest repr, so 0.1 means
Decimal('0.1') and not its binary approximation.
"""

import decimal
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional, Union


Number = Union[Decimal, int, float, str, None]


@dataclass(frozen=True)
class MoneyContext:
    """Rounding policy of a calculator.

    Attributes:
        places: Fractional digits kept in every result
        rounding: A ``decimal`` rounding mode name, e.g. ROUND_HALF_UP
    """
    places: int = 2
    rounding: str = ROUND_HALF_UP

    def __post_init__(self):
        if self.places < 0:
            raise ValueError("places must be >= 0")
        if not hasattr(decimal, self.rounding) or not self.rounding.startswith('ROUND_'):
            raise ValueError(f"Unknown rounding mode: {self.rounding}")


class DecimalCalculator:
    """Fixed-point calculator bound to one MoneyContext"""

    def __init__(self, context: Optional[MoneyContext] = None):
        self.context = context or MoneyContext()

    def to_decimal(self, value: Number) -> Decimal:
        """Convert an operand to Decimal without rounding"""
        if value is None:
            return Decimal(0)
        if isinstance(value, Decimal):
            return value
        if isinstance(value, bool):
            return Decimal(int(value))
        if isinstance(value, int):
            return Decimal(value)
        if isinstance(value, float):
            return Decimal(repr(value))
        text = str(value).strip().replace(',', '')
        if not text:
            return Decimal(0)
        try:
            return Decimal(text)
        except InvalidOperation as e:
            raise ValueError(f"Not a number: {value!r}") from e

    def round(self, value: Number, places: Optional[int] = None) -> Decimal:
        if places is None:
            places = self.context.places
        exponent = Decimal(1).scaleb(-places)
        return self.to_decimal(value).quantize(exponent, rounding=self.context.rounding)

    def add(self, a: Number, b: Number) -> Decimal:
        return self.round(self.to_decimal(a) + self.to_decimal(b))

    def subtract(self, a: Number, b: Number) -> Decimal:
        return self.round(self.to_decimal(a) - self.to_decimal(b))

    def multiply(self, a: Number, b: Number) -> Decimal:
        return self.round(self.to_decimal(a) * self.to_decimal(b))

    def divide(self, a: Number, b: Number, places: Optional[int] = None) -> Decimal:
        """Divide a by b; a zero divisor yields zero instead of raising"""
        divisor = self.to_decimal(b)
        if divisor == 0:
            return self.round(0, places)
        return self.round(self.to_decimal(a) / divisor, places)

    def sum(self, values: Optional[Iterable[Number]]) -> Decimal:
        total = self.round(0)
        for value in (values if values is not None else []):
            total = self.add(total, value)
        return total

    def sum_transactions(self, transactions: Optional[Iterable[Any]], field: str = 'amount') -> Decimal:
        """Sum one attribute (or dict key) over a list of transactions"""
        values = []
        for transaction in transactions or []:
            if isinstance(transaction, dict):
                values.append(transaction.get(field))
            else:
                values.append(getattr(transaction, field, None))
        return self.sum(values)

    def percentage(self, part: Number, total: Number, places: Optional[int] = None) -> Decimal:
        total_value = self.to_decimal(total)
        if total_value == 0:
            return self.round(0, places)
        return self.round(self.to_decimal(part) / total_value * 100, places)

    def abs(self, value: Number) -> Decimal:
        return self.round(abs(self.to_decimal(value)))

    def compare(self, a: Number, b: Number) -> int:
        """Return -1, 0 or 1 like the classic cmp()"""
        left, right = self.to_decimal(a), self.to_decimal(b)
        if left < right:
            return -1
        if left > right:
            return 1
        return 0

    def gt(self, a: Number, b: Number) -> bool:
        return self.compare(a, b) > 0

    def gte(self, a: Number, b: Number) -> bool:
        return self.compare(a, b) >= 0

    def lt(self, a: Number, b: Number) -> bool:
        return self.compare(a, b) < 0

    def lte(self, a: Number, b: Number) -> bool:
        return self.compare(a, b) <= 0

    def eq(self, a: Number, b: Number) -> bool:
        return self.compare(a, b) == 0


def calculator_from_config(config) -> DecimalCalculator:
    """Build a calculator from a ParserConfig"""
    return DecimalCalculator(MoneyContext(places=config.decimal_places, rounding=config.rounding))


default_calculator = DecimalCalculator()
