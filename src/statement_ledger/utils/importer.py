"""Statement import pipeline.

Turns the positioned fragments of a document's pages into assembled text,
detects the institution on the first page, parses, and feeds the result
into a TransactionLedger. Documents of a batch are processed one after
another; a document that cannot be read is reported on its ImportResult
and does not disturb what earlier documents already contributed.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence

from ..models.core import ParseResult, ParserConfig, PositionedFragment, UNKNOWN_INSTITUTION
from ..parsers.layout import LayoutReconstructor
from ..parsers.pdf_parser import DocumentReadError, PDFStatementReader
from ..parsers.registry import ParserRegistry, registry_from_config
from .error_handler import ErrorHandler, handle_file_access_error
from .ledger import TransactionLedger


logger = logging.getLogger(__name__)

Page = Sequence[PositionedFragment]


class PageReader(Protocol):
    def read_pages(self, file_path: str) -> List[List[PositionedFragment]]:
        ...


@dataclass
class ImportResult:
    """Outcome of importing one document.

    ``added_count`` is how many of its transactions survived de-duplication
    against the ledger.
    """
    source_file: str
    success: bool
    institution_id: str = UNKNOWN_INSTITUTION
    transaction_count: int = 0
    added_count: int = 0
    result: Optional[ParseResult] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


class StatementImporter:
    """Reconstructs, parses and merges statement documents"""

    def __init__(self,
                 registry: Optional[ParserRegistry] = None,
                 reader: Optional[PageReader] = None,
                 config: Optional[ParserConfig] = None,
                 error_handler: Optional[ErrorHandler] = None):
        self.config = config or ParserConfig()
        self.registry = registry or registry_from_config(self.config)
        self.reader = reader or PDFStatementReader()
        self.error_handler = error_handler or ErrorHandler(self.config.log_directory)

    @property
    def page_separator(self) -> str:
        return f"\n{self.config.page_separator}\n"

    def detect_institution(self, first_page: Page) -> str:
        """Detect from page 1 regrouped with the default tolerance"""
        text = LayoutReconstructor(self.registry.default_layout).reconstruct(first_page, filter_region=False)
        return self.registry.detect_institution(text)

    def assemble_text(self, pages: Sequence[Page], institution_id: str) -> str:
        """Rebuild all pages as one text.

        Page 1 keeps its header (account details live there); later pages
        are cut down to the institution's table region.
        """
        reconstructor = LayoutReconstructor(self.registry.layout_for(institution_id))

        page_texts = []
        for page_num, fragments in enumerate(pages, 1):
            text = reconstructor.reconstruct(fragments, filter_region=page_num > 1)
            logger.debug(f"Page {page_num}: {len(fragments)} fragments, {len(text.splitlines())} lines")
            page_texts.append(text)

        return self.page_separator.join(page_texts)

    def process_pages(self, pages: Sequence[Page], source_file: str = "",
                      known_institution: Optional[str] = None) -> ParseResult:
        """Parse one document given its pages of fragments"""
        if not pages:
            institution_id = known_institution or UNKNOWN_INSTITUTION
        else:
            institution_id = known_institution or self.detect_institution(pages[0])
        logger.info(f"{source_file or 'document'}: institution {institution_id}")

        text = self.assemble_text(pages, institution_id)
        return self.registry.parse_statement(
            text,
            known_institution=institution_id,
            source_file=source_file,
            error_handler=self.error_handler,
        )

    def import_file(self, file_path: str, known_institution: Optional[str] = None) -> ParseResult:
        """Read and parse one document.

        Raises:
            DocumentReadError: the document yields no text at all
        """
        pages = self.reader.read_pages(file_path)
        return self.process_pages(pages, source_file=str(file_path), known_institution=known_institution)

    def import_files(self, file_paths: Sequence[str], ledger: TransactionLedger,
                     known_institution: Optional[str] = None) -> List[ImportResult]:
        """Import a batch into the ledger.

        The first readable document replaces the ledger state, later ones
        are appended with de-duplication.
        """
        results = []
        loaded = False

        for file_path in file_paths:
            file_path = str(file_path)
            try:
                parse_result = self.import_file(file_path, known_institution)
            except DocumentReadError as e:
                handle_file_access_error(self.error_handler, file_path, e)
                results.append(ImportResult(source_file=file_path, success=False, error=str(e)))
                continue

            if not loaded:
                ledger.load_parse_result(parse_result)
                added = len(parse_result.transactions)
                loaded = True
            else:
                added = ledger.append_transactions(parse_result.transactions)

            warnings = list(parse_result.diagnostics)
            if not parse_result.transactions:
                warnings.append("No transactions found")

            results.append(ImportResult(
                source_file=file_path,
                success=True,
                institution_id=parse_result.institution_id,
                transaction_count=len(parse_result.transactions),
                added_count=added,
                result=parse_result,
                warnings=warnings,
            ))

        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Imported {succeeded}/{len(results)} documents, ledger holds {len(ledger)} transactions")
        return results
