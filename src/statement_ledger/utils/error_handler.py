"""Error collection and structured logging for statement parsing.

Problems are split in two tiers. Document-level failures (a file that
cannot be opened or has no text) abort that document only. Line-level
failures (a row that does not parse, arrays that disagree in length) are
recorded here and the line is skipped. Both end up as ErrorDetail records
that the CLI can dump as a JSON report.
"""

import json
import logging
import traceback
from collections import Counter, defaultdict
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Any


logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Where in the pipeline a problem was found"""
    DOCUMENT = "document"
    EXTRACTION = "extraction"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    SYSTEM = "system"


@dataclass
class ErrorDetail:
    """One recorded problem"""
    timestamp: str
    severity: str
    category: str
    error_code: str
    message: str
    file_path: Optional[str] = None
    line_number: Optional[int] = None
    field_name: Optional[str] = None
    raw_value: Optional[str] = None
    expected_format: Optional[str] = None
    stack_trace: Optional[str] = None
    context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class JSONFormatter(logging.Formatter):
    """Renders a log record as a single JSON line"""

    EXTRA_FIELDS = ('error_code', 'file_path', 'category', 'context')

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }
        entry.update({name: getattr(record, name) for name in self.EXTRA_FIELDS if hasattr(record, name)})
        return json.dumps(entry, ensure_ascii=False, default=str)


ERROR_CODES = {
    # Document access
    "FILE_NOT_FOUND": "F001",
    "FILE_PERMISSION_DENIED": "F002",
    "DOCUMENT_READ_ERROR": "F003",
    "NO_TEXT_CONTENT": "F004",

    # Line extraction
    "LINE_PARSE_ERROR": "D001",
    "DATE_PARSE_ERROR": "D002",
    "AMOUNT_PARSE_ERROR": "D003",
    "DATA_TYPE_MISMATCH": "D005",

    # Cross-field validation
    "COLUMN_COUNT_MISMATCH": "V001",
    "CROSS_FIELD_VALIDATION_ERROR": "V005",

    # Configuration
    "INVALID_CONFIG_FORMAT": "C002",
    "INVALID_CONFIG_VALUE": "C004",

    "UNEXPECTED_ERROR": "S999"
}


class ErrorHandler:
    """Collects errors and warnings raised while processing statements.

    Records always go to the module logger; when ``log_directory`` is given
    they are also appended as JSON lines to ``parser_YYYYMMDD.jsonl`` there.
    """

    def __init__(self, log_directory: Optional[str] = None):
        self.errors: List[ErrorDetail] = []
        self.warnings: List[ErrorDetail] = []
        self.error_codes = ERROR_CODES
        self.log_directory = Path(log_directory) if log_directory else None
        self.logger = logger

        if self.log_directory is not None:
            self._setup_file_logging()

    def _setup_file_logging(self):
        self.log_directory.mkdir(parents=True, exist_ok=True)
        log_file = self.log_directory / f"parser_{datetime.now().strftime('%Y%m%d')}.jsonl"

        # One child logger per handler instance
        self.logger = logging.getLogger(f"{__name__}.{id(self)}")
        self.logger.setLevel(logging.DEBUG)
        self.logger.handlers.clear()

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(JSONFormatter())
        self.logger.addHandler(file_handler)

    def close(self):
        """Release file handlers opened for ``log_directory``"""
        if self.logger is logger:
            return
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)

    def _record(self, message: str, code: str, category: ErrorCategory,
                severity: ErrorSeverity, exception: Optional[Exception] = None,
                context: Optional[Dict[str, Any]] = None, **details) -> ErrorDetail:
        stack_trace = None
        if exception is not None:
            stack_trace = ''.join(traceback.format_exception(
                type(exception), exception, exception.__traceback__))

        detail = ErrorDetail(
            timestamp=datetime.now().isoformat(),
            severity=severity.value,
            category=category.value,
            error_code=code,
            message=message,
            stack_trace=stack_trace,
            context=context or {},
            **details
        )

        level = logging.WARNING if severity == ErrorSeverity.WARNING else logging.ERROR
        self.logger.log(level, message, extra={
            'error_code': code,
            'category': category.value,
            'file_path': detail.file_path,
            'context': detail.context,
        })
        return detail

    def log_error(self,
                  message: str,
                  error_type: str,
                  category: ErrorCategory = ErrorCategory.SYSTEM,
                  file_path: Optional[str] = None,
                  line_number: Optional[int] = None,
                  field_name: Optional[str] = None,
                  raw_value: Optional[str] = None,
                  expected_format: Optional[str] = None,
                  exception: Optional[Exception] = None,
                  context: Optional[Dict[str, Any]] = None,
                  severity: ErrorSeverity = ErrorSeverity.ERROR) -> ErrorDetail:
        """Record an error; ``error_type`` is a key of ERROR_CODES"""
        detail = self._record(
            message, self.error_codes.get(error_type, "S999"), category, severity,
            exception=exception, context=context,
            file_path=file_path, line_number=line_number, field_name=field_name,
            raw_value=raw_value, expected_format=expected_format,
        )
        self.errors.append(detail)
        return detail

    def log_warning(self,
                    message: str,
                    warning_type: str,
                    category: ErrorCategory = ErrorCategory.SYSTEM,
                    file_path: Optional[str] = None,
                    context: Optional[Dict[str, Any]] = None) -> ErrorDetail:
        detail = self._record(
            message, self.error_codes.get(warning_type, "W999"), category, ErrorSeverity.WARNING,
            context=context, file_path=file_path,
        )
        self.warnings.append(detail)
        return detail

    def log_info(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.logger.info(message, extra={'context': context or {}})

    def get_error_summary(self) -> Dict[str, Any]:
        """Counts per category plus the most frequent error codes"""
        return {
            'total_errors': len(self.errors),
            'total_warnings': len(self.warnings),
            'errors_by_category': dict(Counter(e.category for e in self.errors)),
            'warnings_by_category': dict(Counter(w.category for w in self.warnings)),
            'most_common_errors': self._get_most_common_errors(),
            'files_with_errors': len({e.file_path for e in self.errors if e.file_path}),
        }

    def _get_most_common_errors(self, limit: int = 5) -> List[Dict[str, Any]]:
        by_code: Dict[str, List[ErrorDetail]] = defaultdict(list)
        for error in self.errors:
            by_code[error.error_code].append(error)

        ranked = sorted(by_code.items(), key=lambda item: len(item[1]), reverse=True)
        return [
            {
                'error_code': code,
                'category': errors[0].category,
                'count': len(errors),
                'files': sorted({e.file_path for e in errors if e.file_path}),
            }
            for code, errors in ranked[:limit]
        ]

    def generate_error_report(self, output_file: str) -> str:
        """Write all collected errors and warnings as a JSON report"""
        report = {
            'report_timestamp': datetime.now().isoformat(),
            'summary': self.get_error_summary(),
            'all_errors': [error.to_dict() for error in self.errors],
            'all_warnings': [warning.to_dict() for warning in self.warnings]
        }

        with open(output_file, 'w', encoding='utf-8') as f:
            json.dump(report, f, indent=2, ensure_ascii=False, default=str)

        self.log_info(f"Error report generated: {output_file}")
        return output_file

    def clear_errors(self):
        self.errors.clear()
        self.warnings.clear()

    def has_errors(self) -> bool:
        return bool(self.errors)

    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def get_errors_for_file(self, file_path: str) -> List[ErrorDetail]:
        return [error for error in self.errors if error.file_path == file_path]


def handle_file_access_error(error_handler: ErrorHandler,
                             file_path: str,
                             exception: Exception) -> ErrorDetail:
    """Record a statement document that could not be opened or read"""
    if isinstance(exception, FileNotFoundError):
        error_type, message = "FILE_NOT_FOUND", f"File not found: {file_path}"
    elif isinstance(exception, PermissionError):
        error_type, message = "FILE_PERMISSION_DENIED", f"Permission denied accessing file: {file_path}"
    else:
        error_type, message = "DOCUMENT_READ_ERROR", f"Could not read document {file_path}: {exception}"

    return error_handler.log_error(
        message, error_type, ErrorCategory.DOCUMENT,
        file_path=file_path, exception=exception,
    )


def handle_parsing_error(error_handler: ErrorHandler,
                         file_path: Optional[str],
                         field_name: str,
                         raw_value: str,
                         expected_format: str,
                         line_number: Optional[int] = None,
                         exception: Optional[Exception] = None,
                         context: Optional[Dict[str, Any]] = None) -> ErrorDetail:
    """Record a statement line that could not be turned into a transaction.

    The line is skipped by the caller, so the record is kept at warning
    severity.
    """
    name = field_name.lower()
    if 'date' in name:
        error_type = "DATE_PARSE_ERROR"
    elif 'amount' in name or 'balance' in name:
        error_type = "AMOUNT_PARSE_ERROR"
    elif name == 'line':
        error_type = "LINE_PARSE_ERROR"
    else:
        error_type = "DATA_TYPE_MISMATCH"

    return error_handler.log_error(
        f"Skipped {field_name}: '{raw_value}' (expected format: {expected_format})",
        error_type,
        ErrorCategory.EXTRACTION,
        file_path=file_path,
        line_number=line_number,
        field_name=field_name,
        raw_value=raw_value,
        expected_format=expected_format,
        exception=exception,
        context=context,
        severity=ErrorSeverity.WARNING
    )
