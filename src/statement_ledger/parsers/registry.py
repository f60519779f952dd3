"""Institution table: detection, layout settings and parser dispatch.

The table is built once and never mutated. Configuration overrides produce
a new registry (``with_overrides``) instead of patching the existing one.
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Tuple

from .base import StatementParser
from .generic import GenericParser
from .icbc import ICBCParser, ICBC_MARKERS
from .layout import LayoutSettings
from .minsheng import MinshengParser, MINSHENG_MARKERS
from ..models.core import (
    InstitutionConfig,
    ParseResult,
    ParserConfig,
    TableRegionMarkers,
    UNKNOWN_INSTITUTION,
    GROUP_ROWS,
)
from ..utils.calculator import DecimalCalculator, calculator_from_config
from ..utils.categorizer import TransactionCategorizer, default_categorizer
from ..utils.error_handler import ErrorHandler


logger = logging.getLogger(__name__)

ICBC_Y_TOLERANCE = 25.0


@dataclass(frozen=True)
class InstitutionProfile:
    """One row of the institution table"""
    id: str
    name: str
    parser: StatementParser
    layout: LayoutSettings

    @property
    def detector(self) -> Callable[[str], bool]:
        return self.parser.detect

    def with_config(self, override: InstitutionConfig) -> 'InstitutionProfile':
        """Return a copy with the non-None override fields applied"""
        markers = self.layout.markers
        marker_changes = {}
        if override.start_markers is not None:
            marker_changes['start_markers'] = tuple(override.start_markers)
        if override.start_inclusive is not None:
            marker_changes['start_inclusive'] = override.start_inclusive
        if override.end_markers is not None:
            marker_changes['end_markers'] = tuple(override.end_markers)
        if override.end_inclusive is not None:
            marker_changes['end_inclusive'] = override.end_inclusive
        if marker_changes:
            markers = replace(markers, **marker_changes)

        layout_changes = {'markers': markers}
        if override.y_tolerance is not None:
            layout_changes['y_tolerance'] = float(override.y_tolerance)
        if override.x_tolerance is not None:
            layout_changes['x_tolerance'] = float(override.x_tolerance)
        if override.grouping is not None:
            layout_changes['grouping'] = override.grouping

        return replace(self, layout=replace(self.layout, **layout_changes))


class ParserRegistry:
    """Ordered institution profiles plus the generic fallback parser"""

    def __init__(self, profiles: List[InstitutionProfile],
                 fallback: Optional[StatementParser] = None,
                 default_layout: Optional[LayoutSettings] = None):
        ids = [p.id for p in profiles]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate institution ids in registry: {ids}")

        self._profiles: Tuple[InstitutionProfile, ...] = tuple(profiles)
        self._by_id: Dict[str, InstitutionProfile] = {p.id: p for p in profiles}
        self.fallback = fallback or GenericParser()
        self.default_layout = default_layout or LayoutSettings()

    @property
    def profiles(self) -> Tuple[InstitutionProfile, ...]:
        return self._profiles

    def get_profile(self, institution_id: str) -> Optional[InstitutionProfile]:
        return self._by_id.get(institution_id)

    def layout_for(self, institution_id: str) -> LayoutSettings:
        """Layout settings of an institution, defaults for unknown ones"""
        profile = self.get_profile(institution_id)
        return profile.layout if profile else self.default_layout

    def detect_institution(self, text: str) -> str:
        """Id of the first profile whose detector accepts the text, else 'unknown'"""
        for profile in self._profiles:
            if profile.detector(text or ""):
                logger.debug(f"Detected institution: {profile.id}")
                return profile.id
        return UNKNOWN_INSTITUTION

    def parser_for(self, institution_id: str) -> StatementParser:
        profile = self.get_profile(institution_id)
        return profile.parser if profile else self.fallback

    def parse_statement(self, text: str, known_institution: Optional[str] = None,
                        source_file: str = "",
                        error_handler: Optional[ErrorHandler] = None) -> ParseResult:
        """Dispatch text to the right parser.

        A ``known_institution`` from an earlier detection skips re-detection;
        an id not in the table is treated as unknown.
        """
        institution_id = known_institution or self.detect_institution(text)
        parser = self.parser_for(institution_id)
        logger.info(f"Parsing {source_file or 'statement'} with {parser.institution_id} parser")
        return parser.parse(text, source_file=source_file, error_handler=error_handler)

    def list_supported_institutions(self) -> List[str]:
        """Display names in registration order"""
        return [p.name for p in self._profiles]

    def with_overrides(self, overrides: Optional[Dict[str, InstitutionConfig]]) -> 'ParserRegistry':
        """New registry with per-institution overrides applied; unknown ids are ignored"""
        profiles = []
        for profile in self._profiles:
            override = (overrides or {}).get(profile.id)
            profiles.append(profile.with_config(override) if override else profile)

        for institution_id in (overrides or {}):
            if institution_id not in self._by_id:
                logger.warning(f"Ignoring overrides for unknown institution: {institution_id}")

        return ParserRegistry(profiles, self.fallback, self.default_layout)


def build_profiles(categorizer: Optional[TransactionCategorizer] = None,
                   calculator: Optional[DecimalCalculator] = None,
                   currency: Optional[str] = None,
                   y_tolerance: float = 5.0,
                   x_tolerance: float = 5.0) -> List[InstitutionProfile]:
    """Built-in institution table, in detection order"""
    parser_args = dict(categorizer=categorizer, calculator=calculator, currency=currency)
    return [
        InstitutionProfile(
            id=MinshengParser.institution_id,
            name=MinshengParser.institution_name,
            parser=MinshengParser(**parser_args),
            layout=LayoutSettings(GROUP_ROWS, y_tolerance, x_tolerance, MINSHENG_MARKERS),
        ),
        InstitutionProfile(
            id=ICBCParser.institution_id,
            name=ICBCParser.institution_name,
            parser=ICBCParser(**parser_args),
            layout=LayoutSettings(GROUP_ROWS, ICBC_Y_TOLERANCE, x_tolerance, ICBC_MARKERS),
        ),
    ]


def default_registry() -> ParserRegistry:
    return ParserRegistry(build_profiles())


def registry_from_config(config: ParserConfig) -> ParserRegistry:
    """Registry whose parsers use the configured money policy, rules and overrides"""
    categorizer = default_categorizer
    if config.category_rules:
        categorizer = categorizer.with_extra_rules(config.category_rules)
    calculator = calculator_from_config(config)

    profiles = build_profiles(
        categorizer=categorizer,
        calculator=calculator,
        currency=config.currency,
        y_tolerance=config.default_y_tolerance,
        x_tolerance=config.default_x_tolerance,
    )
    fallback = GenericParser(categorizer=categorizer, calculator=calculator, currency=config.currency)
    default_layout = LayoutSettings(
        GROUP_ROWS, config.default_y_tolerance, config.default_x_tolerance, TableRegionMarkers())

    registry = ParserRegistry(profiles, fallback, default_layout)
    return registry.with_overrides(config.institutions)
