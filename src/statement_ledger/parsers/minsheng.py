"""Parser for China Minsheng Bank personal account statements."""

import logging
from typing import List, Tuple

from .base import StatementParser, RowExtractor, RowLayout, Strategy
from ..models.core import AccountInfo, TableRegionMarkers


logger = logging.getLogger(__name__)


MINSHENG_MARKERS = TableRegionMarkers(
    start_markers=("凭证类型",),
    start_inclusive=True,
    end_markers=("____", "支出交易总额"),
    end_inclusive=False,
)

MINSHENG_ROW_LAYOUT = RowLayout(
    datetime_pattern=r'(?P<date>\d{4}/\d{2}/\d{2})\s+(?P<time>\d{2}:\d{2}:\d{2})',
    header_patterns=(
        '中国民生银行', '个人账户对账单', '客户姓名', '客户账号', '开户机构',
        '凭证类型', '凭证号码', '摘要', '交易时间', '交易金额', '账户余额',
        '对方户名', '对方行名', '温馨提示', '打印渠道', '打印时间', '起止日期',
        '产品名称', '币种', '证件号码', r'第.*页', 'Page',
    ),
    date_formats=("%Y/%m/%d",),
)


class MinshengParser(StatementParser):
    """One transaction per line:

    凭证类型 凭证号码 交易时间 摘要 交易金额 账户余额 ... 对方户名 对方行名
    """

    institution_id = "minsheng"
    institution_name = "中国民生银行"
    detect_patterns = ("中国民生银行", "民生银行", "CHINA MINSHENG BANK")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.row_extractor = RowExtractor(MINSHENG_ROW_LAYOUT, self.transformer)

    def strategies(self) -> List[Tuple[str, Strategy]]:
        return [("rows", self.row_extractor.extract)]

    def extract_account_info(self, text: str) -> AccountInfo:
        info = AccountInfo()

        name = self._search(r'客户姓名[：:]\s*(\S+)', text)
        if name:
            info.account_name = name

        number = self._search(r'客户账号[：:]\s*(\d+\*+\d*)', text)
        if number:
            info.account_number = number

        info.period_start, info.period_end = self._parse_period(
            r'起止日期[：:]\s*(\d{4}/\d{2}/\d{2})\s*[-~至]\s*(\d{4}/\d{2}/\d{2})',
            text,
            ["%Y/%m/%d"],
        )
        return info
