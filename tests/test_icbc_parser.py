"""Tests for the ICBC statement parser."""

import unittest
from datetime import date
from decimal import Decimal

from statement_ledger.models.core import EXPENSE, INCOME
from statement_ledger.parsers.icbc import ICBCParser
from statement_ledger.utils.error_handler import ErrorHandler


HEADER = [
    "中国工商银行 借记账户历史明细（电子版）",
    "卡号：6222021234567890123 户名：王五",
    "起止日期：2024-01-01 — 2024-01-31",
]

COLUMN_STATEMENT = "\n".join(HEADER + [
    "交易日期 2024-01-01 2024-01-02 2024-01-03",
    "10:00:00 11:00:00 12:00:00",
    "摘要 工资 利息 消费",
    "对方户名 某某科技有限公司 （空） 美团外卖",
    "余额 100.00 150.00 130.00",
    "+100.00 +50.00 -20.00",
])


class TestICBCColumnStrategy(unittest.TestCase):
    """Field-column layout rebuilt from parallel arrays"""

    def setUp(self):
        self.parser = ICBCParser()

    def test_detect(self):
        self.assertTrue(self.parser.detect("借记账户历史明细"))
        self.assertTrue(self.parser.detect("ICBC"))
        self.assertFalse(self.parser.detect("中国民生银行"))

    def test_balance_deltas(self):
        result = self.parser.parse(COLUMN_STATEMENT)
        txns = result.transactions

        self.assertEqual(len(txns), 3)
        self.assertEqual([t.amount for t in txns], [Decimal('100.00'), Decimal('50.00'), Decimal('20.00')])
        self.assertEqual([t.type for t in txns], [INCOME, INCOME, EXPENSE])
        self.assertEqual([t.balance for t in txns], [Decimal('100.00'), Decimal('150.00'), Decimal('130.00')])
        self.assertEqual(result.diagnostics, [])

    def test_fields_zip_by_index(self):
        txns = self.parser.parse(COLUMN_STATEMENT).transactions

        self.assertEqual(txns[0].date, date(2024, 1, 1))
        self.assertEqual(txns[2].time, "12:00:00")
        self.assertEqual([t.description for t in txns], ["工资", "利息", "消费"])
        self.assertEqual([t.counterparty for t in txns], ["某某科技有限公司", "", "美团外卖"])
        self.assertEqual([t.category for t in txns], ["salary", "interest", "dining"])

    def test_summary(self):
        summary = self.parser.parse(COLUMN_STATEMENT).summary

        self.assertEqual(summary.total_income, Decimal('150.00'))
        self.assertEqual(summary.total_expense, Decimal('20.00'))
        self.assertEqual(summary.balance, Decimal('130.00'))

    def test_account_info(self):
        info = self.parser.parse(COLUMN_STATEMENT).account_info

        self.assertEqual(info.account_number, "6222021234567890123")
        self.assertEqual(info.account_name, "王五")
        self.assertEqual(info.period_start, date(2024, 1, 1))
        self.assertEqual(info.period_end, date(2024, 1, 31))

    def test_balance_run_spans_lines(self):
        text = "\n".join([
            "交易日期 2024-02-01 2024-02-02 2024-02-03 2024-02-04",
            "09:00:00 10:00:00 11:00:00 12:00:00",
            "摘要 开户 工资 利息 消费",
            "余额 0.00",
            "5,818.18 5,818.41 5,793.68",
            "+0.00 +5,818.18 +0.23 -24.73",
        ])
        txns = self.parser.parse(text).transactions

        self.assertEqual(
            [t.amount for t in txns],
            [Decimal('0.00'), Decimal('5818.18'), Decimal('0.23'), Decimal('24.73')],
        )
        self.assertEqual([t.type for t in txns], [INCOME, INCOME, INCOME, EXPENSE])

    def test_page_totals_are_not_amounts(self):
        text = COLUMN_STATEMENT + "\n本页收入算术合计 +150.00 本页支出算术合计 -20.00"
        columns = self.parser.collect_columns(text)
        self.assertEqual(columns['signed_amounts'], ['+100.00', '+50.00', '-20.00'])

    def test_count_mismatch_is_flagged(self):
        handler = ErrorHandler()
        text = COLUMN_STATEMENT.replace("摘要 工资 利息 消费", "摘要 工资 利息")

        result = self.parser.parse(text, error_handler=handler)

        self.assertEqual(len(result.transactions), 3)
        self.assertEqual(result.transactions[2].description, "银行交易")
        self.assertEqual(len(result.diagnostics), 1)
        self.assertIn("descriptions=2", result.diagnostics[0])
        self.assertEqual(handler.warnings[0].error_code, "V001")

    def test_count_follows_shortest_anchor(self):
        text = COLUMN_STATEMENT.replace("余额 100.00 150.00 130.00", "余额 100.00 150.00 130.00 99.00")
        result = self.parser.parse(text)

        self.assertEqual(len(result.transactions), 3)
        self.assertEqual(len(result.diagnostics), 1)


class TestICBCRowFallback(unittest.TestCase):
    """Row lines are used when the column strategy finds nothing"""

    def setUp(self):
        self.parser = ICBCParser()

    def test_falls_back_to_rows(self):
        text = "中国工商银行\n2024-05-14 14:37:43 消费 -24.73 5,793.45 财付通\n第1页"
        txns = self.parser.parse(text).transactions

        self.assertEqual(len(txns), 1)
        self.assertEqual(txns[0].date, date(2024, 5, 14))
        self.assertEqual(txns[0].time, "14:37:43")
        self.assertEqual(txns[0].amount, Decimal('24.73'))
        self.assertEqual(txns[0].type, EXPENSE)
        self.assertEqual(txns[0].balance, Decimal('5793.45'))
        self.assertEqual(txns[0].description, "消费")
        self.assertEqual(txns[0].counterparty_bank, "财付通")

    def test_both_strategies_empty(self):
        result = self.parser.parse("中国工商银行 借记账户历史明细\n没有交易记录")

        self.assertEqual(result.transactions, [])
        self.assertEqual(result.summary.transaction_count, 0)
        self.assertEqual(result.institution_id, "icbc")


if __name__ == '__main__':
    unittest.main()
