"""Normalization of table options into one resolved configuration.

Pipeline flow:
    1. Copy and migrate every raw option layer
    2. Merge the layers (later layers win, style sets merge per property)
    3. Resolve the theme, the content rows and the columns
    4. Resolve the section, alternate-row and column styles
    5. Validate scalar options (malformed values fall back to defaults) and bind the hooks
    6. Freeze everything into a NormalizedConfig
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Iterable, Optional, Sequence, Union

from . import diagnostics as diag
from .cascade import (
    ResolvedStyle,
    StyleCascadeResolver,
    default_styles,
    freeze,
    thaw,
)
from .diagnostics import DiagnosticLog
from .hooks import HookRegistry, HookSet, bind_hooks
from .migration import STYLE_OPTION_KEYS, DeprecationMigrator, copy_options
from .themes import Theme, ThemeSpec, lookup

logger = logging.getLogger(__name__)

SECTIONS = ('head', 'body', 'foot')

TABLE_WIDTHS = ('auto', 'wrap')
SHOW_HEADER_VALUES = ('everyPage', 'firstPage', 'never')
SHOW_FOOTER_VALUES = ('everyPage', 'lastPage', 'never')

BOOLEAN_OPTIONS = {
    'avoidTableSplit': 'avoid_table_split',
    'avoidRowSplit': 'avoid_row_split',
    'allSectionHooks': 'all_section_hooks',
    'useCss': 'use_css',
    'includeHiddenHtml': 'include_hidden_html',
}

RECOGNIZED_OPTIONS = frozenset({
    'html', 'head', 'body', 'foot', 'columns',
    'theme', 'startY', 'margin', 'tableWidth', 'showHeader', 'showFooter',
    'tableLineWidth', 'tableLineColor', 'tableId',
    'styles', 'headStyles', 'bodyStyles', 'footStyles', 'alternateRowStyles', 'columnStyles',
    'didParseCell', 'willDrawCell', 'didDrawCell', 'didDrawPage',
    *BOOLEAN_OPTIONS,
})


class MissingContentError(ValueError):
    """Raised when neither an HTML source nor body rows are given."""


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _match_column_key(keyed: Mapping[Any, Any], key: Any) -> Any:
    """Find the entry of ``keyed`` for a column key, comparing string forms as a fallback."""
    if key in keyed:
        return key
    for candidate in keyed:
        if str(candidate) == str(key):
            return candidate
    return None


@dataclass(frozen=True)
class ResolutionContext:
    """Session values read once at the start of a normalization.

    Attributes:
        scale_factor: Points per document unit.
        page_margin: Default table margin, in points.
    """
    scale_factor: float = 1.0
    page_margin: float = 40.0

    def __post_init__(self):
        if not _is_number(self.scale_factor) or self.scale_factor <= 0:
            raise ValueError(f"scale_factor must be a positive number, got {self.scale_factor!r}")
        if not _is_number(self.page_margin) or self.page_margin < 0:
            raise ValueError(f"page_margin must be a non-negative number, got {self.page_margin!r}")

    @property
    def default_margin(self) -> float:
        return self.page_margin / self.scale_factor


@dataclass(frozen=True)
class Margin:
    top: float
    right: float
    bottom: float
    left: float

    @classmethod
    def uniform(cls, value: float) -> "Margin":
        return cls(value, value, value, value)

    def to_dict(self) -> dict[str, float]:
        return {'top': self.top, 'right': self.right, 'bottom': self.bottom, 'left': self.left}


@dataclass(frozen=True)
class ColumnDef:
    """A declared table column."""
    key: Any
    header: Any = None
    footer: Any = None


@dataclass(frozen=True)
class NormalizedConfig:
    """Fully resolved table configuration, immutable once built.

    Every recognized option carries a concrete value. Styles are expressed in
    document units and are never scaled again downstream.
    """
    theme: Theme
    head_styles: ResolvedStyle
    body_styles: ResolvedStyle
    foot_styles: ResolvedStyle
    alternate_row_styles: ResolvedStyle
    column_styles: Mapping[Any, ResolvedStyle]
    column_overrides: Mapping[Any, Mapping[str, Any]]
    columns: tuple[ColumnDef, ...]
    margin: Margin
    start_y: Optional[float]
    table_width: Union[str, float]
    show_header: str
    show_footer: str
    avoid_table_split: bool
    avoid_row_split: bool
    all_section_hooks: bool
    table_id: Any
    table_line_width: float
    table_line_color: Any
    use_css: bool
    include_hidden_html: bool
    html: Any
    head: tuple
    body: tuple
    foot: tuple
    scale_factor: float
    hooks: HookSet = field(default_factory=HookSet)
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def section_style(self, section: str) -> ResolvedStyle:
        """Resolved style of a section ('head', 'body', 'foot' or 'alternateRow')."""
        styles = {
            'head': self.head_styles,
            'body': self.body_styles,
            'foot': self.foot_styles,
            'alternateRow': self.alternate_row_styles,
        }
        if section not in styles:
            raise ValueError(
                f"Unknown section '{section}'. Available sections: {', '.join(styles)}"
            )
        return styles[section]

    @staticmethod
    def is_alternate_row(row_index: int) -> bool:
        """Body rows with an even index carry the alternate-row style."""
        return row_index % 2 == 0

    def cell_style(
        self,
        section: str,
        row_index: int,
        column_key: Any,
        cell_styles: Optional[Mapping[str, Any]] = None,
    ) -> ResolvedStyle:
        """Resolve the style of a single cell.

        Args:
            section: 'head', 'body' or 'foot'.
            row_index: Index of the row within its section.
            column_key: Key of the cell's column.
            cell_styles: The cell's own ``styles``, highest precedence.

        Returns:
            The cell's resolved style.
        """
        if section not in SECTIONS:
            raise ValueError(f"Unknown section '{section}'. Available sections: {', '.join(SECTIONS)}")
        base = self.section_style(section)
        column_override = None
        if section == 'body':
            if self.is_alternate_row(row_index):
                base = self.alternate_row_styles
            match = _match_column_key(self.column_overrides, column_key)
            if match is not None:
                column_override = self.column_overrides[match]
        return StyleCascadeResolver().merge(
            [base, column_override, cell_styles],
            scale_factor=self.scale_factor,
        )

    def hook_registry(self) -> HookRegistry:
        """Registry the rendering engine uses to invoke the bound hooks."""
        return HookRegistry(self.hooks, all_section_hooks=self.all_section_hooks)

    def to_dict(self) -> dict[str, Any]:
        """Plain view of the configuration, hooks reported by name."""
        return {
            'theme': self.theme.value,
            'styles': {
                'head': self.head_styles.to_dict(),
                'body': self.body_styles.to_dict(),
                'foot': self.foot_styles.to_dict(),
                'alternateRow': self.alternate_row_styles.to_dict(),
            },
            'columnStyles': {key: styles.to_dict() for key, styles in self.column_styles.items()},
            'columns': [
                {'key': c.key, 'header': c.header, 'footer': c.footer} for c in self.columns
            ],
            'margin': self.margin.to_dict(),
            'startY': self.start_y,
            'tableWidth': self.table_width,
            'showHeader': self.show_header,
            'showFooter': self.show_footer,
            'avoidTableSplit': self.avoid_table_split,
            'avoidRowSplit': self.avoid_row_split,
            'allSectionHooks': self.all_section_hooks,
            'tableId': self.table_id,
            'tableLineWidth': self.table_line_width,
            'tableLineColor': thaw(self.table_line_color),
            'useCss': self.use_css,
            'includeHiddenHtml': self.include_hidden_html,
            'html': self.html,
            'head': thaw(self.head),
            'body': thaw(self.body),
            'foot': thaw(self.foot),
            'scaleFactor': self.scale_factor,
            'hooks': [point.value for point in self.hooks.bound_points()],
        }


def merge_option_layers(layers: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    """Merge migrated option layers, later layers taking precedence.

    ``None`` never overrides a value. Style sets merge property-wise and
    ``columnStyles`` merge per column, property-wise.
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        for key, value in layer.items():
            if value is None:
                continue
            previous = merged.get(key)
            if key in STYLE_OPTION_KEYS and isinstance(previous, Mapping) and isinstance(value, Mapping):
                merged[key] = {**previous, **value}
            elif key == 'columnStyles' and isinstance(previous, Mapping) and isinstance(value, Mapping):
                combined = dict(previous)
                for column, styles in value.items():
                    prior = combined.get(column)
                    if isinstance(prior, Mapping) and isinstance(styles, Mapping):
                        combined[column] = {**prior, **styles}
                    else:
                        combined[column] = styles
                merged[key] = combined
            else:
                merged[key] = value
    return merged


class OptionsNormalizer:
    """Turns raw option layers into a NormalizedConfig.

    Args:
        context: Session values (scale factor, margin base).
        diagnostics: Log receiving soft errors and deprecation notices.
    """

    def __init__(
        self,
        context: Optional[ResolutionContext] = None,
        diagnostics: Optional[DiagnosticLog] = None,
    ):
        self.context = context or ResolutionContext()
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self.resolver = StyleCascadeResolver()

    def normalize(
        self,
        raw_layers: Union[Mapping[str, Any], Sequence[Any]],
        column_defs: Optional[Sequence[Any]] = None,
        theme: ThemeSpec = None,
        scale_factor: Optional[float] = None,
    ) -> NormalizedConfig:
        """Normalize option layers into a frozen configuration.

        Args:
            raw_layers: Option layers in ascending precedence (e.g. document
                defaults, then per-call options), or a single option mapping.
            column_defs: Declared columns, overriding the ``columns`` option.
            theme: Theme overriding the ``theme`` option.
            scale_factor: Overrides the context's scale factor.

        Returns:
            The resolved configuration.

        Raises:
            UnknownThemeError: If the theme name is unknown.
            MissingContentError: If neither ``html`` nor ``body`` is given.
        """
        context = self.context
        if scale_factor is not None:
            context = replace(context, scale_factor=scale_factor)

        if isinstance(raw_layers, Mapping) or raw_layers is None:
            raw_layers = [raw_layers]
        layers = [copy_options(layer) for layer in raw_layers]
        logger.debug(f"Normalizing {len(layers)} option layer(s), scale factor {context.scale_factor}")

        migrated = DeprecationMigrator(self.diagnostics).migrate_layers(layers)
        options = merge_option_layers(migrated)

        theme_definition = lookup(theme if theme is not None else options.get('theme'))

        html = options.get('html')
        body = options.get('body')
        if html is None and body is None:
            raise MissingContentError(
                "No table content: either the html or the body option must be given"
            )
        if body is not None and not isinstance(body, (list, tuple)):
            raise MissingContentError(
                f"The body option must be a list of rows, got {type(body).__name__}"
            )

        body_rows = tuple(freeze(row) for row in (body or ()))
        head_rows = self._rows(options.get('head'), 'head')
        foot_rows = self._rows(options.get('foot'), 'foot')

        columns = self._declared_columns(column_defs, options.get('columns'), head_rows, body_rows)
        if not head_rows and any(c.header is not None for c in columns):
            head_rows = (tuple('' if c.header is None else c.header for c in columns),)
        if not foot_rows and any(c.footer is not None for c in columns):
            foot_rows = (tuple('' if c.footer is None else c.footer for c in columns),)

        # Styles
        base = default_styles(context.scale_factor)
        user_styles = self._style_bag(options, 'styles')
        section_styles: dict[str, ResolvedStyle] = {}
        for section in SECTIONS:
            section_styles[section] = self.resolver.merge(
                [
                    base,
                    theme_definition.table,
                    theme_definition.section(section),
                    user_styles,
                    self._style_bag(options, f'{section}Styles'),
                ],
                scale_factor=context.scale_factor,
            )
        alternate_row_styles = self.resolver.merge(
            [
                section_styles['body'],
                theme_definition.alternate_row,
                self._style_bag(options, 'alternateRowStyles'),
            ],
            scale_factor=context.scale_factor,
        )
        column_styles, column_overrides = self._column_styles(
            columns, options.get('columnStyles'), section_styles['body'], context
        )

        booleans = {
            attr: self._boolean(options, key, default=False)
            for key, attr in BOOLEAN_OPTIONS.items()
        }

        extra = {k: v for k, v in options.items() if k not in RECOGNIZED_OPTIONS}
        if extra:
            logger.debug(f"Unrecognized options kept as extras: {sorted(extra)}")

        config = NormalizedConfig(
            theme=theme_definition.name,
            head_styles=section_styles['head'],
            body_styles=section_styles['body'],
            foot_styles=section_styles['foot'],
            alternate_row_styles=alternate_row_styles,
            column_styles=MappingProxyType(column_styles),
            column_overrides=MappingProxyType(column_overrides),
            columns=columns,
            margin=self._margin(options.get('margin'), context.default_margin),
            start_y=self._start_y(options.get('startY')),
            table_width=self._table_width(options.get('tableWidth')),
            show_header=self._choice(options, 'showHeader', SHOW_HEADER_VALUES, 'everyPage'),
            show_footer=self._choice(options, 'showFooter', SHOW_FOOTER_VALUES, 'everyPage'),
            table_id=options.get('tableId'),
            table_line_width=self._number(options, 'tableLineWidth', default=0),
            table_line_color=self._color(options, 'tableLineColor', default=200),
            html=html,
            head=head_rows,
            body=body_rows,
            foot=foot_rows,
            scale_factor=context.scale_factor,
            hooks=bind_hooks(options, self.diagnostics),
            extra=MappingProxyType({k: freeze(v) for k, v in extra.items()}),
            **booleans,
        )
        logger.info(
            f"Normalized table options: theme '{config.theme.value}', "
            f"{len(config.columns)} column(s), {len(self.diagnostics)} diagnostic(s)"
        )
        return config

    # Scalar validation

    def _invalid(self, key: str, value: Any, fallback: Any) -> None:
        self.diagnostics.emit(
            diag.INVALID_VALUE,
            key,
            f"Invalid value for {key} option: {value!r}, using {fallback!r}",
        )

    def _start_y(self, value: Any) -> Optional[float]:
        if value is None or value is False:
            return None
        if _is_number(value):
            return float(value)
        self._invalid('startY', value, None)
        return None

    def _margin(self, value: Any, default: float) -> Margin:
        if value is None:
            return Margin.uniform(default)
        if _is_number(value):
            return Margin.uniform(float(value))
        if isinstance(value, (list, tuple)) and 1 <= len(value) and all(_is_number(v) for v in value):
            values = [float(v) for v in value]
            if len(values) >= 4:
                return Margin(values[0], values[1], values[2], values[3])
            if len(values) == 3:
                return Margin(values[0], values[1], values[2], values[1])
            if len(values) == 2:
                return Margin(values[0], values[1], values[0], values[1])
            return Margin.uniform(values[0])
        if isinstance(value, Mapping):
            sides = {'top': default, 'right': default, 'bottom': default, 'left': default}
            axes = (('vertical', ('top', 'bottom')), ('horizontal', ('right', 'left')))
            for axis, axis_sides in axes:
                if axis in value:
                    for side in axis_sides:
                        sides[side] = value[axis]
            for side in ('top', 'right', 'bottom', 'left'):
                if side in value:
                    sides[side] = value[side]
            for side, side_value in sides.items():
                if not _is_number(side_value):
                    self._invalid(f'margin.{side}', side_value, default)
                    sides[side] = default
            return Margin(**{side: float(v) for side, v in sides.items()})
        self._invalid('margin', value, default)
        return Margin.uniform(default)

    def _table_width(self, value: Any) -> Union[str, float]:
        if value is None:
            return 'auto'
        if value in TABLE_WIDTHS or (_is_number(value) and value > 0):
            return value
        self._invalid('tableWidth', value, 'auto')
        return 'auto'

    def _choice(self, options: Mapping[str, Any], key: str, choices: Sequence[str], default: str) -> str:
        value = options.get(key)
        if value is None:
            return default
        if value in choices:
            return value
        self._invalid(key, value, default)
        return default

    def _boolean(self, options: Mapping[str, Any], key: str, default: bool) -> bool:
        value = options.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        self._invalid(key, value, default)
        return default

    def _number(self, options: Mapping[str, Any], key: str, default: float) -> float:
        value = options.get(key)
        if value is None:
            return default
        if _is_number(value) and value >= 0:
            return value
        self._invalid(key, value, default)
        return default

    def _color(self, options: Mapping[str, Any], key: str, default: Any) -> Any:
        value = options.get(key)
        if value is None:
            return default
        if value is False or _is_number(value) or isinstance(value, str):
            return value
        if isinstance(value, (list, tuple)) and len(value) == 3 and all(_is_number(v) for v in value):
            return tuple(value)
        self._invalid(key, value, default)
        return default

    # Styles and columns

    def _style_bag(self, options: Mapping[str, Any], key: str) -> Mapping[str, Any]:
        value = options.get(key)
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return value
        self._invalid(key, value, {})
        return {}

    def _column_styles(
        self,
        columns: Sequence[ColumnDef],
        raw_column_styles: Any,
        body_styles: ResolvedStyle,
        context: ResolutionContext,
    ) -> tuple[dict[Any, ResolvedStyle], dict[Any, Mapping[str, Any]]]:
        overrides: Mapping[Any, Any] = {}
        if isinstance(raw_column_styles, Mapping):
            overrides = raw_column_styles
        elif raw_column_styles is not None:
            self._invalid('columnStyles', raw_column_styles, {})

        resolved: dict[Any, ResolvedStyle] = {}
        frozen_overrides: dict[Any, Mapping[str, Any]] = {}
        matched = set()
        for column in columns:
            match = _match_column_key(overrides, column.key)
            override: Mapping[str, Any] = {}
            if match is not None:
                matched.add(match)
                value = overrides[match]
                if isinstance(value, Mapping):
                    override = value
                else:
                    self._invalid(f'columnStyles.{match}', value, {})
            frozen_overrides[column.key] = freeze(override)
            resolved[column.key] = self.resolver.merge(
                [body_styles, override], scale_factor=context.scale_factor
            )

        for key in overrides:
            if key not in matched:
                self.diagnostics.emit(
                    diag.UNKNOWN_COLUMN,
                    f'columnStyles.{key}',
                    f"columnStyles entry {key!r} does not match any column",
                )
        return resolved, frozen_overrides

    def _declared_columns(
        self,
        column_defs: Optional[Sequence[Any]],
        columns_option: Any,
        head_rows: tuple,
        body_rows: tuple,
    ) -> tuple[ColumnDef, ...]:
        if column_defs is not None:
            return tuple(self._column_def(item, idx) for idx, item in enumerate(column_defs))
        if isinstance(columns_option, (list, tuple)):
            return tuple(self._column_def(item, idx, by_header=True) for idx, item in enumerate(columns_option))
        if columns_option is not None:
            self._invalid('columns', columns_option, [])

        first_row = head_rows[0] if head_rows else (body_rows[0] if body_rows else None)
        if first_row is None:
            return ()
        if isinstance(first_row, Mapping):
            return tuple(ColumnDef(key=key) for key in first_row)

        keys: list[int] = []
        for cell in first_row:
            span = cell.get('colSpan', 1) if isinstance(cell, Mapping) else 1
            span = span if _is_number(span) and span >= 1 else 1
            for _ in range(int(span)):
                keys.append(len(keys))
        return tuple(ColumnDef(key=key) for key in keys)

    @staticmethod
    def _column_def(item: Any, idx: int, by_header: bool = False) -> ColumnDef:
        if isinstance(item, ColumnDef):
            return item
        if isinstance(item, Mapping):
            key = item.get('dataKey', item.get('key', idx))
            return ColumnDef(key=key, header=item.get('header'), footer=item.get('footer'))
        if by_header:
            # Plain strings in the columns option are headers of indexed data
            return ColumnDef(key=idx, header=item)
        return ColumnDef(key=item)

    def _rows(self, value: Any, key: str) -> tuple:
        if value is None:
            return ()
        if isinstance(value, Mapping):
            return (freeze(value),)
        if not isinstance(value, (list, tuple)):
            self._invalid(key, value, [])
            return ()
        if not value:
            return ()
        first = value[0]
        is_cell_definition = isinstance(first, Mapping) and 'content' in first
        if isinstance(first, (list, tuple)) or (isinstance(first, Mapping) and not is_cell_definition):
            return tuple(freeze(row) for row in value)
        return (freeze(value),)


def normalize(
    raw_layers: Union[Mapping[str, Any], Sequence[Any]],
    column_defs: Optional[Sequence[Any]] = None,
    theme: ThemeSpec = None,
    scale_factor: Optional[float] = None,
    *,
    context: Optional[ResolutionContext] = None,
    diagnostics: Optional[DiagnosticLog] = None,
) -> NormalizedConfig:
    """Normalize option layers with a fresh OptionsNormalizer.

    See :meth:`OptionsNormalizer.normalize`.
    """
    normalizer = OptionsNormalizer(context=context, diagnostics=diagnostics)
    return normalizer.normalize(raw_layers, column_defs=column_defs, theme=theme, scale_factor=scale_factor)
