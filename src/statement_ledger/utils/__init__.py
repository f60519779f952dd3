"""Utility functions and helpers"""

from .calculator import DecimalCalculator, MoneyContext, calculator_from_config, default_calculator
from .categorizer import CategoryRule, TransactionCategorizer, categorize_transaction, default_categorizer
from .config_manager import ConfigManager, get_default_config_manager
from .error_handler import ErrorHandler, ErrorCategory, ErrorSeverity, handle_file_access_error, handle_parsing_error
from .ledger import TransactionLedger

__all__ = [
    'DecimalCalculator',
    'MoneyContext',
    'calculator_from_config',
    'default_calculator',
    'CategoryRule',
    'TransactionCategorizer',
    'categorize_transaction',
    'default_categorizer',
    'ConfigManager',
    'get_default_config_manager',
    'ErrorHandler',
    'ErrorCategory',
    'ErrorSeverity',
    'handle_file_access_error',
    'handle_parsing_error',
    'TransactionLedger',
]
