"""Table layout reconstruction from positioned text fragments.

PDF text extraction yields loose runs of text with coordinates and no
row/column structure. Rows (or columns) are rebuilt by clustering
fragments whose y (or x) coordinates lie within a tolerance of a cluster's
first member.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from ..models.core import PositionedFragment, TableRegionMarkers, GROUP_ROWS, GROUP_COLUMNS


logger = logging.getLogger(__name__)

Row = List[PositionedFragment]
Column = List[PositionedFragment]


def _non_blank(fragments: Iterable[PositionedFragment]) -> List[PositionedFragment]:
    return [f for f in fragments if f.text and f.text.strip()]


def group_into_rows(fragments: Iterable[PositionedFragment], y_tolerance: float = 5.0) -> List[Row]:
    """Cluster fragments sharing a text line.

    A fragment joins the first row whose first member lies within
    ``y_tolerance`` of it. Rows come back top-to-bottom (descending y),
    fragments within a row left-to-right.
    """
    rows: List[Row] = []

    for fragment in _non_blank(fragments):
        for row in rows:
            if abs(fragment.y - row[0].y) <= y_tolerance:
                row.append(fragment)
                break
        else:
            rows.append([fragment])

    rows.sort(key=lambda r: r[0].y, reverse=True)
    for row in rows:
        row.sort(key=lambda f: f.x)

    return rows


def group_into_columns(fragments: Iterable[PositionedFragment], x_tolerance: float = 5.0) -> List[Column]:
    """Cluster fragments sharing a table field column.

    Columns come back left-to-right, fragments within a column
    top-to-bottom.
    """
    columns: List[Column] = []

    for fragment in _non_blank(fragments):
        for column in columns:
            if abs(fragment.x - column[0].x) <= x_tolerance:
                column.append(fragment)
                break
        else:
            columns.append([fragment])

    columns.sort(key=lambda c: c[0].x)
    for column in columns:
        column.sort(key=lambda f: f.y, reverse=True)

    return columns


def _contains_any(text: str, markers: Sequence[str]) -> bool:
    return any(marker and marker in text for marker in markers)


def filter_table_region(fragments: Sequence[PositionedFragment],
                        markers: TableRegionMarkers) -> List[PositionedFragment]:
    """Keep only the fragments between the table start and end markers.

    Fragments are scanned in the order given. When no start marker is ever
    seen the input is returned unchanged, so a missed marker never blanks
    out a page. Without an end marker the region runs to the last fragment.
    """
    selected: List[PositionedFragment] = []
    in_region = False
    started = False

    for fragment in fragments:
        if not started:
            if _contains_any(fragment.text, markers.start_markers):
                started = True
                in_region = True
                if markers.start_inclusive:
                    selected.append(fragment)
            continue

        if in_region and _contains_any(fragment.text, markers.end_markers):
            if markers.end_inclusive:
                selected.append(fragment)
            in_region = False
            break

        if in_region:
            selected.append(fragment)

    if not started:
        logger.debug("No table start marker found, keeping all fragments")
        return list(fragments)

    return selected


def line_text(fragments: Sequence[PositionedFragment], separator: str = " ") -> str:
    return separator.join(f.text.strip() for f in fragments)


def flatten(groups: Iterable[Sequence[PositionedFragment]]) -> List[PositionedFragment]:
    """Concatenate rows (or columns) back into reading order"""
    return [fragment for group in groups for fragment in group]


@dataclass(frozen=True)
class LayoutSettings:
    """How one institution's pages are regrouped into text lines"""
    grouping: str = GROUP_ROWS
    y_tolerance: float = 5.0
    x_tolerance: float = 5.0
    markers: TableRegionMarkers = field(default_factory=TableRegionMarkers)

    def __post_init__(self):
        if self.grouping not in (GROUP_ROWS, GROUP_COLUMNS):
            raise ValueError(f"Unknown grouping mode: {self.grouping}")


class LayoutReconstructor:
    """Turns one page of fragments into newline-separated text lines"""

    def __init__(self, settings: LayoutSettings):
        self.settings = settings

    def group(self, fragments: Iterable[PositionedFragment]) -> List[List[PositionedFragment]]:
        if self.settings.grouping == GROUP_COLUMNS:
            return group_into_columns(fragments, self.settings.x_tolerance)
        return group_into_rows(fragments, self.settings.y_tolerance)

    def reading_order(self, fragments: Iterable[PositionedFragment]) -> List[PositionedFragment]:
        """Fragments sorted top-to-bottom then left-to-right"""
        return flatten(group_into_rows(fragments, self.settings.y_tolerance))

    def reconstruct(self, fragments: Sequence[PositionedFragment], filter_region: bool = True) -> str:
        """Rebuild a page as text, one row (or column) per line"""
        selected: Sequence[PositionedFragment] = fragments
        if filter_region:
            selected = filter_table_region(self.reading_order(fragments), self.settings.markers)

        lines = [line_text(group) for group in self.group(selected)]
        return "\n".join(line for line in lines if line)
