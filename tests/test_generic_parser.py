"""Tests for the fallback parser used when no institution is detected."""

from datetime import date
from decimal import Decimal

from statement_ledger.models.core import EXPENSE, INCOME, UNKNOWN_INSTITUTION
from statement_ledger.parsers.generic import GenericParser


class TestGenericParser:

    def setup_method(self):
        self.parser = GenericParser()

    def parse_one(self, line):
        transactions = self.parser.parse(line).transactions
        assert len(transactions) == 1
        return transactions[0]

    def test_iso_date_with_time_amount_and_balance(self):
        txn = self.parse_one("2024-03-01 10:20:30 Coffee shop 25.50 974.50")

        assert txn.date == date(2024, 3, 1)
        assert txn.time == "10:20:30"
        assert txn.description == "Coffee shop"
        assert txn.amount == Decimal('25.50')
        assert txn.balance == Decimal('974.50')
        assert txn.type == INCOME

    def test_negative_amount_is_expense(self):
        txn = self.parse_one("2024/03/02 Rent -1,200.00")

        assert txn.type == EXPENSE
        assert txn.amount == Decimal('1200.00')
        assert txn.time == "00:00:00"
        assert txn.balance is None
        assert txn.counterparty == ""

    def test_slash_dates_month_first(self):
        txn = self.parse_one("03/15/2024 Refund +12.00")
        assert txn.date == date(2024, 3, 15)
        assert txn.type == INCOME

    def test_slash_dates_day_first_when_unambiguous(self):
        txn = self.parse_one("15-03-2024 Salary 100.00")
        assert txn.date == date(2024, 3, 15)

    def test_default_description(self):
        txn = self.parse_one("2024-03-05 10:00:00 -5.00")
        assert txn.description == "银行交易"

    def test_lines_without_amount_are_ignored(self):
        result = self.parser.parse("2024-03-04 no amount here\nStatement of account")
        assert result.transactions == []

    def test_bad_date_is_skipped(self):
        result = self.parser.parse("2024-02-30 Bad -1.00\n2024-02-28 Good -2.00")

        assert [t.description for t in result.transactions] == ["Good"]
        assert len(result.errors) == 1

    def test_result_is_tagged_unknown(self):
        result = self.parser.parse("2024-03-01 x 1.00")

        assert result.institution_id == UNKNOWN_INSTITUTION
        assert self.parser.detect("anything")
