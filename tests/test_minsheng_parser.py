"""Tests for the China Minsheng Bank statement parser."""

from datetime import date
from decimal import Decimal

import pytest

from statement_ledger.models.core import EXPENSE, INCOME
from statement_ledger.parsers.minsheng import MinshengParser
from statement_ledger.utils.error_handler import ErrorHandler


STATEMENT = "\n".join([
    "中国民生银行 个人账户对账单",
    "客户姓名：张三 客户账号：6226****1234",
    "起止日期：2019/05/01-2019/05/31",
    "凭证类型 凭证号码 交易时间 摘要 交易金额 账户余额 对方户名 对方行名",
    "2019/05/01 15:36:01 支付宝-快捷支付-还款 -1,316.78 25.66",
    "转账 1234567890123 2019/05/02 10:00:00 网银转入 +5,000.00 5,025.66 转账 李四有限公司 招商银行",
    "2019/05/03 12:00:00 -35.50 4,990.16 财付通",
    "第1页 共1页",
])


class TestMinshengParser:

    def setup_method(self):
        self.parser = MinshengParser()

    def test_detect(self):
        assert self.parser.detect("CHINA MINSHENG BANK statement")
        assert self.parser.detect("民生银行")
        assert not self.parser.detect("中国工商银行")

    def test_end_to_end_line(self):
        result = self.parser.parse("2019/05/01 15:36:01 支付宝-快捷支付-还款 -1,316.78 25.66")

        assert len(result.transactions) == 1
        txn = result.transactions[0]
        assert txn.date == date(2019, 5, 1)
        assert txn.time == "15:36:01"
        assert txn.amount == Decimal('1316.78')
        assert txn.type == EXPENSE
        assert txn.balance == Decimal('25.66')
        assert txn.description == "支付宝-快捷支付-还款"
        assert txn.category == "repayment"

    def test_statement(self):
        result = self.parser.parse(STATEMENT, source_file="may.pdf")

        assert result.institution_id == "minsheng"
        assert result.institution_name == "中国民生银行"
        assert len(result.transactions) == 3
        assert all(t.source_file == "may.pdf" for t in result.transactions)
        assert all(t.amount >= 0 for t in result.transactions)

        summary = result.summary
        assert summary.total_income == Decimal('5000.00')
        assert summary.total_expense == Decimal('1352.28')
        assert summary.balance == Decimal('3647.72')
        assert summary.income_count == 1
        assert summary.expense_count == 2

    def test_account_info(self):
        info = self.parser.parse(STATEMENT).account_info

        assert info.account_name == "张三"
        assert info.account_number == "6226****1234"
        assert info.period_start == date(2019, 5, 1)
        assert info.period_end == date(2019, 5, 31)
        assert info.period == "2019-05-01 至 2019-05-31"

    def test_voucher_and_counterparty(self):
        txn = self.parser.parse(STATEMENT).transactions[1]

        assert txn.type == INCOME
        assert txn.amount == Decimal('5000.00')
        assert txn.voucher_number == "1234567890123"
        assert txn.description == "网银转入"
        assert txn.counterparty == "李四有限公司"
        assert txn.category == "transfer"

    def test_channel_fills_empty_description(self):
        txn = self.parser.parse(STATEMENT).transactions[2]

        assert txn.description == "财付通交易"
        assert txn.counterparty == "财付通"
        assert txn.counterparty_bank == "财付通"
        assert txn.balance == Decimal('4990.16')

    def test_merchant_taken_from_description(self):
        txn = self.parser.parse(STATEMENT).transactions[0]
        assert txn.counterparty == "还款"

    def test_malformed_line_is_skipped_and_recorded(self):
        handler = ErrorHandler()
        text = "2019/13/45 10:00:00 消费 -1.00 2.00\n2019/05/04 10:00:00 消费 -3.00 1.00"

        result = self.parser.parse(text, source_file="bad.pdf", error_handler=handler)

        assert len(result.transactions) == 1
        assert len(result.errors) == 1
        assert result.errors[0].error_code == "D001"
        assert result.errors[0].raw_value.startswith("2019/13/45")
        assert result.errors[0].context['institution'] == "minsheng"

    def test_empty_text_is_a_valid_result(self):
        result = self.parser.parse("")

        assert result.transactions == []
        assert result.summary.transaction_count == 0
        assert result.summary.total_income == Decimal('0.00')
        assert result.summary.total_expense == Decimal('0.00')

    def test_ids_are_deterministic(self):
        first = [t.id for t in self.parser.parse(STATEMENT, source_file="a.pdf").transactions]
        again = [t.id for t in self.parser.parse(STATEMENT, source_file="a.pdf").transactions]
        other = [t.id for t in self.parser.parse(STATEMENT, source_file="b.pdf").transactions]

        assert first == again
        assert len(set(first)) == len(first)
        assert first != other
