"""Extension points invoked by the table rendering engine.

The rendering engine owns the drawing loop, but the order in which hooks fire
and what each hook may change is defined here:

    for each page:
        for each row, in section order (head, body, foot):
            for each cell:
                didParseCell   content resolved, no geometry yet
                <layout>
                willDrawCell   geometry known, may move or restyle the cell
                <draw>
                didDrawCell    read-only, for overlay annotations
        didDrawPage            once, after every row of the page

Cell hooks fire for body cells only, unless ``allSectionHooks`` is set. The
page hook always fires.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Union

from . import diagnostics as diag
from .diagnostics import DiagnosticLog

logger = logging.getLogger(__name__)

SECTION_ORDER = ('head', 'body', 'foot')


class HookPoint(str, Enum):
    """Extension points, named after their option keys."""
    DID_PARSE_CELL = "didParseCell"
    WILL_DRAW_CELL = "willDrawCell"
    DID_DRAW_CELL = "didDrawCell"
    DID_DRAW_PAGE = "didDrawPage"


CELL_HOOK_POINTS = (
    HookPoint.DID_PARSE_CELL,
    HookPoint.WILL_DRAW_CELL,
    HookPoint.DID_DRAW_CELL,
)

# Fields a callback may assign while it runs
WRITABLE_FIELDS: dict[HookPoint, frozenset[str]] = {
    HookPoint.DID_PARSE_CELL: frozenset({'text', 'styles'}),
    HookPoint.WILL_DRAW_CELL: frozenset({'styles', 'x', 'y'}),
    HookPoint.DID_DRAW_CELL: frozenset(),
    HookPoint.DID_DRAW_PAGE: frozenset({'cursor'}),
}

_HOOK_ATTRS: dict[HookPoint, str] = {
    HookPoint.DID_PARSE_CELL: 'did_parse_cell',
    HookPoint.WILL_DRAW_CELL: 'will_draw_cell',
    HookPoint.DID_DRAW_CELL: 'did_draw_cell',
    HookPoint.DID_DRAW_PAGE: 'did_draw_page',
}


class HookContractError(AttributeError):
    """Raised when a hook assigns a field outside its writable set."""


def noop(data: Any) -> None:
    """Default callback for unbound extension points."""
    return None


HookCallback = Callable[[Any], Any]


class _HookData:
    """Context record base; assignments are checked while a hook runs."""

    def __setattr__(self, name: str, value: Any) -> None:
        writable = self.__dict__.get('_writable')
        if writable is not None and name not in writable:
            point = self.__dict__.get('_hook_point')
            raise HookContractError(
                f"'{name}' is read-only in the {point.value} hook. "
                f"Writable fields: {', '.join(sorted(writable)) or 'none'}"
            )
        object.__setattr__(self, name, value)


@dataclass
class Cursor:
    """Drawing position on the current page, in document units."""
    x: float = 0.0
    y: float = 0.0


@dataclass(eq=False)
class CellHookData(_HookData):
    """Context record handed to the cell hooks.

    Attributes:
        section: 'head', 'body' or 'foot'.
        row_index: Index of the row within its section.
        column_index: Position of the column.
        column_key: Declared key of the column (index or data key).
        raw: The cell as supplied by the user.
        text: Resolved cell text, one entry per line.
        styles: Resolved styles of the cell (a private copy).
        x, y, width, height: Cell geometry, None until layout has run.
        page_number: Page the cell is drawn on.
        cursor: Current drawing position.
        table_id: The table's ``tableId`` option.
    """
    section: str
    row_index: int
    column_index: int
    column_key: Any = None
    raw: Any = None
    text: list[str] = field(default_factory=list)
    styles: dict[str, Any] = field(default_factory=dict)
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    page_number: int = 1
    cursor: Cursor = field(default_factory=Cursor)
    table_id: Any = None


@dataclass(eq=False)
class PageHookData(_HookData):
    """Context record handed to the page hook."""
    page_number: int
    cursor: Cursor = field(default_factory=Cursor)
    table_id: Any = None
    settings: Any = None


HookData = Union[CellHookData, PageHookData]


@dataclass(frozen=True)
class HookSet:
    """Callbacks bound to each extension point."""
    did_parse_cell: HookCallback = noop
    will_draw_cell: HookCallback = noop
    did_draw_cell: HookCallback = noop
    did_draw_page: HookCallback = noop

    def get(self, point: Union[HookPoint, str]) -> HookCallback:
        return getattr(self, _HOOK_ATTRS[HookPoint(point)])

    def is_bound(self, point: Union[HookPoint, str]) -> bool:
        return self.get(point) is not noop

    def bound_points(self) -> list[HookPoint]:
        return [point for point in HookPoint if self.is_bound(point)]


def bind_hooks(options: Mapping[str, Any], diagnostics: Optional[DiagnosticLog] = None) -> HookSet:
    """Bind the hook options of a migrated option bag.

    Unset extension points fall back to :func:`noop`. Values that are not
    callable are replaced by the no-op with a diagnostic.
    """
    diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
    bound: dict[str, HookCallback] = {}
    for point in HookPoint:
        callback = options.get(point.value)
        if callback is None:
            continue
        if not callable(callback):
            diagnostics.emit(
                diag.INVALID_HOOK,
                point.value,
                f"The {point.value} hook must be a function, got {type(callback).__name__}",
            )
            continue
        bound[_HOOK_ATTRS[point]] = callback
    return HookSet(**bound)


@contextmanager
def _restricted(data: HookData, point: HookPoint) -> Iterator[HookData]:
    """Limit assignments on a context record to the point's writable fields."""
    writable = WRITABLE_FIELDS[point]
    styles = data.__dict__.get('styles')
    shield_styles = 'styles' not in writable and isinstance(styles, dict)
    if shield_styles:
        object.__setattr__(data, 'styles', MappingProxyType(styles))
    object.__setattr__(data, '_hook_point', point)
    object.__setattr__(data, '_writable', writable)
    try:
        yield data
    finally:
        data.__dict__.pop('_writable', None)
        data.__dict__.pop('_hook_point', None)
        if shield_styles:
            object.__setattr__(data, 'styles', styles)


class HookRegistry:
    """Dispatches bound callbacks following the rendering contract.

    Args:
        hooks: Bound callbacks. Defaults to all no-ops.
        all_section_hooks: Whether head and foot cells fire the cell hooks.
    """

    def __init__(self, hooks: Optional[HookSet] = None, all_section_hooks: bool = False):
        self.hooks = hooks or HookSet()
        self.all_section_hooks = all_section_hooks

    def fires_for(self, point: Union[HookPoint, str], section: str) -> bool:
        """Whether a hook fires for a cell of the given section."""
        if HookPoint(point) is HookPoint.DID_DRAW_PAGE:
            return True
        return self.all_section_hooks or section == 'body'

    def fire_cell(self, point: Union[HookPoint, str], data: CellHookData) -> bool:
        """Invoke a cell hook.

        Returns:
            True if the hook was invoked, False if the section is gated out.
        """
        point = HookPoint(point)
        if point not in CELL_HOOK_POINTS:
            raise ValueError(f"{point.value} is not a cell hook")
        if not self.fires_for(point, data.section):
            return False
        self._dispatch(point, data)
        return True

    def fire_page(self, data: PageHookData) -> None:
        self._dispatch(HookPoint.DID_DRAW_PAGE, data)

    def run_cell(
        self,
        data: CellHookData,
        layout: Optional[Callable[[CellHookData], Any]] = None,
        draw: Optional[Callable[[CellHookData], Any]] = None,
    ) -> CellHookData:
        """Run the full cell lifecycle with the engine's layout and draw steps."""
        self.fire_cell(HookPoint.DID_PARSE_CELL, data)
        if layout is not None:
            layout(data)
        self.fire_cell(HookPoint.WILL_DRAW_CELL, data)
        if draw is not None:
            draw(data)
        self.fire_cell(HookPoint.DID_DRAW_CELL, data)
        return data

    def run_page(
        self,
        data: PageHookData,
        cells: Iterable[CellHookData],
        layout: Optional[Callable[[CellHookData], Any]] = None,
        draw: Optional[Callable[[CellHookData], Any]] = None,
    ) -> None:
        """Run every cell of a page in section order, then the page hook."""
        ordered = sorted(cells, key=lambda cell: SECTION_ORDER.index(cell.section))
        for cell in ordered:
            self.run_cell(cell, layout, draw)
        self.fire_page(data)

    def _dispatch(self, point: HookPoint, data: HookData) -> None:
        callback = self.hooks.get(point)
        if callback is noop:
            return
        logger.debug(f"Invoking {point.value} hook")
        with _restricted(data, point):
            callback(data)
