"""Keyword-based transaction categorization.

Rules are evaluated in order against the transaction description and
counterparty; the first rule with a matching keyword wins. Order matters:
"支付宝-快捷支付-还款" is a repayment even though 支付宝 is also a
shopping channel, so repayment rules come before shopping ones.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..models.core import CategoryDescriptor


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryRule:
    """Keyword set mapped to one category"""
    keywords: Tuple[str, ...]
    category: CategoryDescriptor

    def matches(self, text: str) -> bool:
        return any(keyword.lower() in text for keyword in self.keywords)


SALARY = CategoryDescriptor('salary', '工资收入')
INTEREST = CategoryDescriptor('interest', '利息')
REFUND = CategoryDescriptor('refund', '退款')
REPAYMENT = CategoryDescriptor('repayment', '还款')
FEES = CategoryDescriptor('fees', '手续费')
CASH = CategoryDescriptor('cash', '存取现金')
RED_PACKET = CategoryDescriptor('red_packet', '红包')
DINING = CategoryDescriptor('dining', '餐饮美食')
TRANSPORT = CategoryDescriptor('transport', '交通出行')
MEDICAL = CategoryDescriptor('medical', '医疗健康')
UTILITIES = CategoryDescriptor('utilities', '生活缴费')
ENTERTAINMENT = CategoryDescriptor('entertainment', '休闲娱乐')
SHOPPING = CategoryDescriptor('shopping', '购物消费')
TRANSFER = CategoryDescriptor('transfer', '转账')
OTHER = CategoryDescriptor('other', '其他')

DEFAULT_RULES: Tuple[CategoryRule, ...] = (
    CategoryRule(('工资', '代发', '薪资', '薪金', '奖金', '绩效'), SALARY),
    CategoryRule(('利息', '结息', '理财收益'), INTEREST),
    CategoryRule(('退款', '退货', '冲正'), REFUND),
    CategoryRule(('还款', '信用卡', '花呗', '借呗', '白条', '贷款', '信贷'), REPAYMENT),
    CategoryRule(('手续费', '年费', '管理费', '短信费', '工本费'), FEES),
    CategoryRule(('ATM', '取现', '取款', '存现', '现金'), CASH),
    CategoryRule(('红包',), RED_PACKET),
    CategoryRule(('美团', '饿了么', '餐饮', '餐厅', '饭店', '咖啡', '星巴克', '肯德基',
                  '麦当劳', '瑞幸', '奶茶', '外卖'), DINING),
    CategoryRule(('滴滴', '地铁', '公交', '铁路', '12306', '航空', '机票', '加油',
                  '石化', '石油', '停车', '高速', 'ETC', '出行'), TRANSPORT),
    CategoryRule(('医院', '药房', '药店', '诊所', '医疗', '体检'), MEDICAL),
    CategoryRule(('电费', '水费', '燃气', '话费', '物业', '中国移动', '中国联通',
                  '中国电信', '宽带', '缴费'), UTILITIES),
    CategoryRule(('抖音', '腾讯视频', '爱奇艺', '优酷', '游戏', '电影', '影城',
                  '网易云', 'QQ音乐'), ENTERTAINMENT),
    CategoryRule(('淘宝', '天猫', '京东', '拼多多', '超市', '商城', '旗舰店', '店铺',
                  '便利店', '消费', '购物'), SHOPPING),
    CategoryRule(('转账', '汇款', '跨行', '转入', '转出'), TRANSFER),
)


class TransactionCategorizer:
    """Maps description/counterparty text to a CategoryDescriptor"""

    def __init__(self, rules: Optional[Sequence[CategoryRule]] = None,
                 default: CategoryDescriptor = OTHER):
        self.rules: Tuple[CategoryRule, ...] = tuple(rules) if rules is not None else DEFAULT_RULES
        self.default = default

    def categorize(self, description: Optional[str], counterparty: Optional[str] = None) -> CategoryDescriptor:
        text = f"{description or ''} {counterparty or ''}".lower()
        for rule in self.rules:
            if rule.matches(text):
                return rule.category
        return self.default

    def categories(self) -> List[CategoryDescriptor]:
        """All categories this categorizer can return, in rule order"""
        seen = []
        for rule in self.rules:
            if rule.category not in seen:
                seen.append(rule.category)
        if self.default not in seen:
            seen.append(self.default)
        return seen

    def get_category(self, category_id: str) -> Optional[CategoryDescriptor]:
        for category in self.categories():
            if category.id == category_id:
                return category
        return None

    def with_extra_rules(self, extra_rules: Iterable[Dict[str, Any]]) -> 'TransactionCategorizer':
        """Return a categorizer evaluating configured rules before these ones.

        Each rule is a mapping with ``id``, ``name`` and ``keywords``.
        """
        parsed = []
        for rule_data in extra_rules:
            try:
                keywords = tuple(str(k) for k in rule_data['keywords'] if str(k).strip())
                category = CategoryDescriptor(str(rule_data['id']), str(rule_data.get('name', rule_data['id'])))
            except (KeyError, TypeError) as e:
                logger.warning(f"Ignoring malformed category rule {rule_data!r}: {e}")
                continue
            if keywords:
                parsed.append(CategoryRule(keywords, category))
        return TransactionCategorizer(tuple(parsed) + self.rules, self.default)


default_categorizer = TransactionCategorizer()


def categorize_transaction(description: Optional[str], counterparty: Optional[str] = None) -> CategoryDescriptor:
    """Categorize with the built-in rule set"""
    return default_categorizer.categorize(description, counterparty)
