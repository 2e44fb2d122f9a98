"""
Geometry heuristics over positioned runs.

Everything here is a pure function: runs go in, tags and geometry come
out. The extractor owns block assembly; this module only decides reading
order, visual rows, table regions and page geometry.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar
import math

from ..core.config import ExtractionConfig
from ..core.models import Column, Margins, PageSize, Position, PositionedRun

T = TypeVar("T")

# (page, x, y) of anything that can be placed in reading order
Locator = Callable[[T], Tuple[int, float, float]]


def run_locator(run: PositionedRun) -> Tuple[int, float, float]:
    return run.page_index, run.x, run.y


def block_locator(block) -> Tuple[int, float, float]:
    return block.page_index, block.position.x, block.position.y


def sort_reading_order(
    items: Sequence[T],
    row_tolerance: float = 5.0,
    locate: Locator = run_locator
) -> List[T]:
    """
    Order items top-to-bottom, left-to-right.

    Items on the same page whose y differs by less than ``row_tolerance``
    from the first item of their band are one visual line and are ordered
    by x. The sort is stable for equal coordinates.
    """
    indexed = sorted(enumerate(items), key=lambda pair: (locate(pair[1])[0], locate(pair[1])[2], pair[0]))

    ordered: List[T] = []
    band: List[Tuple[int, T]] = []
    band_page: Optional[int] = None
    band_y = 0.0
    for position, item in indexed:
        page, _, y = locate(item)
        if band and (page != band_page or y - band_y >= row_tolerance):
            ordered.extend(i for _, i in sorted(band, key=lambda pair: (locate(pair[1])[1], pair[0])))
            band = []
        if not band:
            band_page, band_y = page, y
        band.append((position, item))
    ordered.extend(i for _, i in sorted(band, key=lambda pair: (locate(pair[1])[1], pair[0])))
    return ordered


def group_rows(runs: Sequence[PositionedRun], row_tolerance: float = 5.0) -> List[List[int]]:
    """
    Group runs into visual rows.

    ``runs`` must already be in reading order. A row is keyed by the
    floor of its first run's y; later runs join it while their y stays
    within ``row_tolerance`` of that key. Returns lists of indices into
    ``runs``.
    """
    rows: List[List[int]] = []
    key: Optional[Tuple[int, int]] = None
    for index, run in enumerate(runs):
        if key is None or run.page_index != key[0] or abs(run.y - key[1]) > row_tolerance:
            rows.append([])
            key = (run.page_index, math.floor(run.y))
        rows[-1].append(index)
    return rows


def row_gaps(row: Sequence[PositionedRun]) -> List[float]:
    """Horizontal gaps between consecutive runs of a row (sorted by x)."""
    ordered = sorted(row, key=lambda r: r.x)
    return [nxt.x - cur.right for cur, nxt in zip(ordered, ordered[1:])]


def is_candidate_row(
    row: Sequence[PositionedRun],
    min_cell_gap: float = 10.0,
    gap_tolerance: float = 5.0
) -> bool:
    """A row looks tabular if its runs are separated by wide, uniform gaps."""
    if len(row) < 2:
        return False
    gaps = row_gaps(row)
    if min(gaps) < min_cell_gap:
        return False
    return max(gaps) - min(gaps) <= gap_tolerance


@dataclass
class TableRegion:
    """Run indices of one detected table, row by row."""
    table_id: str
    rows: List[List[int]] = field(default_factory=list)
    font_size: float = 0.0
    bbox: Optional[Position] = None

    @property
    def run_indices(self) -> List[int]:
        return [i for row in self.rows for i in row]


def _row_size(row: Sequence[PositionedRun]) -> float:
    return max(r.size for r in row)


def _bbox(runs: Sequence[PositionedRun]) -> Position:
    box = runs[0].position
    for run in runs[1:]:
        box = box.union(run.position)
    return box


def detect_table_regions(
    runs: Sequence[PositionedRun],
    config: Optional[ExtractionConfig] = None,
    id_prefix: str = "table"
) -> List[TableRegion]:
    """
    Find table regions in reading-ordered text runs.

    Consecutive candidate rows form one region. A non-candidate row, a
    page change or a font-size jump larger than ``config.size_jump``
    closes the open region. Regions with fewer than
    ``config.min_table_rows`` rows are dropped; their runs stay text.
    """
    config = config or ExtractionConfig()
    regions: List[TableRegion] = []
    current: List[List[int]] = []
    current_size = 0.0
    current_page: Optional[int] = None

    def flush() -> None:
        if len(current) >= config.min_table_rows:
            members = [runs[i] for row in current for i in row]
            regions.append(TableRegion(
                table_id=f"{id_prefix}-{len(regions)}",
                rows=[sorted(row, key=lambda i: runs[i].x) for row in current],
                font_size=current_size,
                bbox=_bbox(members)
            ))
        current.clear()

    for row in group_rows(runs, config.row_tolerance):
        row_runs = [runs[i] for i in row]
        if not is_candidate_row(row_runs, config.min_cell_gap, config.gap_tolerance):
            flush()
            continue
        size = _row_size(row_runs)
        page = row_runs[0].page_index
        if current and (page != current_page or abs(size - current_size) > config.size_jump):
            flush()
        if not current:
            current_size = size
            current_page = page
        current.append(row)
    flush()
    return regions


def table_tags(regions: Sequence[TableRegion]) -> Dict[int, Tuple[str, int, int]]:
    """Map each run index to its (table id, row, column)."""
    tags = {}
    for region in regions:
        for r, row in enumerate(region.rows):
            for c, index in enumerate(row):
                tags[index] = (region.table_id, r, c)
    return tags


def compute_margins(
    boxes: Sequence[Position],
    page_size: PageSize,
    default_margin: float = 72.0
) -> Margins:
    """Smallest distance of any box from each page edge, clamped at zero."""
    if not boxes:
        return Margins(default_margin, default_margin, default_margin, default_margin)
    return Margins(
        top=max(0.0, min(b.y for b in boxes)),
        right=max(0.0, min(page_size.width - b.right for b in boxes)),
        bottom=max(0.0, min(page_size.height - b.bottom for b in boxes)),
        left=max(0.0, min(b.x for b in boxes)),
    )


def detect_columns(
    left_edges: Sequence[float],
    page_width: float,
    right_margin: float,
    min_column_gap: float = 100.0,
    column_gutter: float = 20.0
) -> List[Column]:
    """
    Cluster distinct left edges into columns.

    A jump of more than ``min_column_gap`` between sorted distinct edges
    starts a new column. Each column runs to the next one minus the
    gutter; the last runs to the right margin.
    """
    edges = sorted(set(round(x, 2) for x in left_edges))
    if not edges:
        return []

    starts = [edges[0]]
    for x in edges[1:]:
        if x - starts[-1] > min_column_gap:
            starts.append(x)

    columns = []
    for i, start in enumerate(starts):
        if i + 1 < len(starts):
            width = starts[i + 1] - start - column_gutter
        else:
            width = page_width - right_margin - start
        columns.append(Column(x=start, width=max(0.0, width)))
    return columns


def detect_orientation(page_size: PageSize) -> str:
    return "landscape" if page_size.width > page_size.height else "portrait"
