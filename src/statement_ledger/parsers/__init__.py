"""Statement layout reconstruction and per-institution parsers"""

from .base import StatementParser, DataTransformer, ExtractionContext
from .layout import LayoutReconstructor, LayoutSettings, group_into_rows, group_into_columns, filter_table_region
from .minsheng import MinshengParser
from .icbc import ICBCParser
from .generic import GenericParser
from .registry import InstitutionProfile, ParserRegistry, default_registry, registry_from_config
from .pdf_parser import PDFStatementReader, DocumentReadError

__all__ = [
    'StatementParser',
    'DataTransformer',
    'ExtractionContext',
    'LayoutReconstructor',
    'LayoutSettings',
    'group_into_rows',
    'group_into_columns',
    'filter_table_region',
    'MinshengParser',
    'ICBCParser',
    'GenericParser',
    'InstitutionProfile',
    'ParserRegistry',
    'default_registry',
    'registry_from_config',
    'PDFStatementReader',
    'DocumentReadError',
]
