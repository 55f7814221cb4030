"""
Page selection: turning a split mode into an export plan.

A *view* is the ordered list of physical (0-based) page indices the user is
currently looking at. It may be a subset or a reordering of the document after
pages were hidden in the UI. Every selection mode addresses positions in the
view, and the resolver maps them back to physical indices.

The resolver never raises: unusable tokens or positions simply contribute no
pages. Callers run ``validate_selection`` first to reject empty input.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .WatermarkConfig import InvalidInputError

# ==========================================
# Selection Modes
# ==========================================

@dataclass(frozen=True)
class EachPage:
    """One output document per page of the view."""
    name = "each"

@dataclass(frozen=True)
class RangeSplit:
    """One output document per comma-separated range token (e.g. "1-3, 5")."""
    ranges: str
    name = "ranges"

@dataclass(frozen=True)
class SelectedPages:
    """One output document per selected view position, in selection order."""
    positions: Tuple[int, ...]
    name = "selected"

@dataclass(frozen=True)
class ExtractPages:
    """A single output document holding the selected view positions, in selection order."""
    positions: Tuple[int, ...]
    name = "extract"

@dataclass(frozen=True)
class DeletePages:
    """A single output document holding every view position except the given ones."""
    positions: Tuple[int, ...]
    name = "delete"

Selection = Union[EachPage, RangeSplit, SelectedPages, ExtractPages, DeletePages]

MODES = ("each", "ranges", "selected", "extract", "delete")


def make_selection(mode: str, ranges: Optional[str] = None,
                   positions: Optional[Iterable[int]] = None) -> Selection:
    """Builds the selection variant for a mode name coming from the CLI or GUI."""
    mode = mode.lower()
    if mode in ("each", "all"):
        return EachPage()
    if mode == "ranges":
        return RangeSplit(ranges or "")
    positions = tuple(positions or ())
    if mode == "selected":
        return SelectedPages(positions)
    if mode == "extract":
        return ExtractPages(positions)
    if mode == "delete":
        return DeletePages(positions)
    raise InvalidInputError(f"Unknown split mode: {mode!r} (expected one of {', '.join(MODES)})")

# ==========================================
# Views
# ==========================================

def build_view(page_count: int, pages: Optional[Sequence[int]] = None) -> List[int]:
    """
    Builds a view over a document with ``page_count`` pages.

    Args:
        page_count: Number of physical pages in the document.
        pages: Optional 1-based physical page numbers in display order.
            None means every page in document order.
    """
    if pages is None:
        return list(range(page_count))

    view: List[int] = []
    seen = set()
    for number in pages:
        if not 1 <= number <= page_count:
            raise InvalidInputError(f"Page {number} is outside the document (1-{page_count}).")
        if number in seen:
            raise InvalidInputError(f"Page {number} appears more than once in the view.")
        seen.add(number)
        view.append(number - 1)
    return view

# ==========================================
# Validation & Resolution
# ==========================================

def validate_selection(selection: Selection) -> None:
    """Rejects selections that cannot produce any output before they are resolved."""
    if isinstance(selection, RangeSplit):
        if not selection.ranges or not selection.ranges.strip():
            raise InvalidInputError("Please enter a page range, e.g. '1-3, 5'.")
    elif isinstance(selection, (SelectedPages, ExtractPages)):
        if not selection.positions:
            raise InvalidInputError("Please select at least one page.")


def _parse_int(text: str) -> Optional[int]:
    try:
        return int(text.strip())
    except ValueError:
        return None


def _range_positions(token: str, size: int) -> List[int]:
    """1-based positions named by one token, limited to 1..size; nothing for malformed tokens."""
    if "-" in token:
        start_text, end_text = token.split("-")[:2]
        start, end = _parse_int(start_text), _parse_int(end_text)
        if start is None or end is None:
            return []
        # start > end is kept literal and yields no positions
        return list(range(max(start, 1), min(end, size) + 1))
    value = _parse_int(token)
    return [value] if value is not None and 1 <= value <= size else []


def resolve(view: Sequence[int], selection: Selection) -> List[List[int]]:
    """
    Resolves a selection against the current view.

    Returns:
        Ordered groups of physical page indices, one group per output document.
        Range tokens matching nothing yield an empty group, which callers skip.
    """
    size = len(view)

    if isinstance(selection, EachPage):
        return [[index] for index in view]

    if isinstance(selection, RangeSplit):
        if not selection.ranges.strip():
            return []
        groups = []
        for token in selection.ranges.split(","):
            groups.append([view[p - 1] for p in _range_positions(token.strip(), size)])
        return groups

    if isinstance(selection, SelectedPages):
        return [[view[p]] for p in selection.positions if 0 <= p < size]

    if isinstance(selection, ExtractPages):
        return [[view[p] for p in selection.positions if 0 <= p < size]]

    if isinstance(selection, DeletePages):
        excluded = set(selection.positions)
        return [[index for position, index in enumerate(view) if position not in excluded]]

    raise TypeError(f"Unsupported selection: {selection!r}")
