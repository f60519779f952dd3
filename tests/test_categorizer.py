"""Tests for keyword categorization."""

from statement_ledger.utils.categorizer import (
    OTHER,
    TransactionCategorizer,
    categorize_transaction,
    default_categorizer,
)


class TestTransactionCategorizer:

    def test_repayment_beats_payment_channel(self):
        assert categorize_transaction("支付宝-快捷支付-还款").id == "repayment"

    def test_keyword_rules(self):
        assert categorize_transaction("美团外卖").id == "dining"
        assert categorize_transaction("超市购物").id == "shopping"
        assert categorize_transaction("代发工资").id == "salary"
        assert categorize_transaction("ETC通行费").id == "transport"

    def test_counterparty_is_considered(self):
        assert categorize_transaction("快捷支付", "滴滴出行").id == "transport"

    def test_no_match_is_other(self):
        category = categorize_transaction("xyz", None)
        assert category == OTHER
        assert category.name == "其他"

    def test_keywords_are_case_insensitive(self):
        assert categorize_transaction("atm withdrawal").id == "cash"

    def test_extra_rules_take_precedence(self):
        custom = default_categorizer.with_extra_rules([
            {"id": "coffee", "name": "咖啡", "keywords": ["星巴克"]},
        ])

        assert custom.categorize("星巴克").id == "coffee"
        assert default_categorizer.categorize("星巴克").id == "dining"
        assert custom.get_category("coffee").name == "咖啡"

    def test_malformed_extra_rules_are_ignored(self):
        custom = default_categorizer.with_extra_rules([{"name": "no id"}, {"id": "x", "keywords": None}])
        assert custom.rules == default_categorizer.rules

    def test_categories_listing(self):
        categorizer = TransactionCategorizer()
        ids = [c.id for c in categorizer.categories()]

        assert ids[0] == "salary"
        assert ids[-1] == "other"
        assert categorizer.get_category("dining").name == "餐饮美食"
        assert categorizer.get_category("missing") is None
