"""Data models and structures"""

from .core import (
    AccountInfo,
    CategoryDescriptor,
    InstitutionConfig,
    ParseResult,
    ParserConfig,
    PositionedFragment,
    Summary,
    TableRegionMarkers,
    Transaction,
    INCOME,
    EXPENSE,
    UNKNOWN_INSTITUTION,
)

__all__ = [
    'AccountInfo',
    'CategoryDescriptor',
    'InstitutionConfig',
    'ParseResult',
    'ParserConfig',
    'PositionedFragment',
    'Summary',
    'TableRegionMarkers',
    'Transaction',
    'INCOME',
    'EXPENSE',
    'UNKNOWN_INSTITUTION',
]
