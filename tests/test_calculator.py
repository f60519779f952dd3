"""Tests for the decimal money calculator."""

from decimal import Decimal

import pytest

from statement_ledger.utils.calculator import DecimalCalculator, MoneyContext, default_calculator


class TestDecimalCalculator:
    """Arithmetic with the default two-place, round-half-up policy"""

    def setup_method(self):
        self.calc = DecimalCalculator()

    def test_add_is_exact(self):
        result = self.calc.add(0.1, 0.2)
        assert result == Decimal('0.30')
        assert str(result) == '0.30'

    def test_sum_is_exact(self):
        assert self.calc.sum([10.10, 20.20, 30.30]) == Decimal('60.60')

    def test_sum_of_nothing_is_zero(self):
        assert self.calc.sum([]) == Decimal('0.00')
        assert self.calc.sum(None) == Decimal('0.00')

    def test_none_counts_as_zero(self):
        assert self.calc.add(None, 5) == Decimal('5.00')
        assert self.calc.subtract(None, '1.25') == Decimal('-1.25')
        assert self.calc.multiply(None, 3) == Decimal('0.00')

    def test_divide_by_zero_returns_zero(self):
        assert self.calc.divide(10, 0) == Decimal('0.00')
        assert self.calc.divide(10, None) == Decimal('0.00')

    def test_divide_rounds(self):
        assert self.calc.divide(1, 3) == Decimal('0.33')
        assert self.calc.divide(2, 3) == Decimal('0.67')

    def test_round_half_up(self):
        assert self.calc.round('2.345') == Decimal('2.35')
        assert self.calc.round('2.344') == Decimal('2.34')
        assert self.calc.round('-2.345') == Decimal('-2.35')

    def test_round_with_explicit_places(self):
        assert self.calc.round('1.23456', 4) == Decimal('1.2346')

    def test_percentage(self):
        assert self.calc.percentage(25, 200) == Decimal('12.50')
        assert self.calc.percentage(1, 0) == Decimal('0.00')

    def test_group_separators_are_stripped(self):
        assert self.calc.to_decimal('1,316.78') == Decimal('1316.78')

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            self.calc.to_decimal('12.3.4')

    def test_comparisons(self):
        assert self.calc.gt('10.00', 9.99)
        assert self.calc.gte(5, '5.00')
        assert self.calc.lt(-1, 0)
        assert self.calc.lte('0.00', None)
        assert self.calc.eq('1.50', 1.5)
        assert self.calc.compare(1, 2) == -1

    def test_abs(self):
        assert self.calc.abs(-3.456) == Decimal('3.46')

    def test_sum_transactions_reads_dicts_and_objects(self):
        class Row:
            amount = Decimal('2.00')

        assert self.calc.sum_transactions([{'amount': '1.10'}, {'amount': None}, Row()]) == Decimal('3.10')


class TestMoneyContext:
    """Several rounding policies side by side"""

    def test_policies_coexist(self):
        three_places = DecimalCalculator(MoneyContext(places=3))
        assert three_places.divide(1, 3) == Decimal('0.333')
        assert default_calculator.divide(1, 3) == Decimal('0.33')

    def test_half_even(self):
        bankers = DecimalCalculator(MoneyContext(rounding='ROUND_HALF_EVEN'))
        assert bankers.round('2.345') == Decimal('2.34')
        assert default_calculator.round('2.345') == Decimal('2.35')

    def test_invalid_rounding_mode(self):
        with pytest.raises(ValueError):
            MoneyContext(rounding='ROUND_BOGUS')

    def test_negative_places(self):
        with pytest.raises(ValueError):
            MoneyContext(places=-1)
