"""Migration of deprecated table options.

Options renamed or removed over the years are rewritten into their current
equivalents before any typed access happens. Rules live in closed tables so
that every retired key is listed in one place:

* ``OPTION_RULES`` rename top-level keys, optionally transforming the value.
* ``STYLE_OPTION_RULES`` move retired top-level keys into ``styles``.
* ``STYLE_RULES`` rename properties inside every style set.
* ``COLUMN_RULES`` rename keys of ``columns`` entries.

A deprecated value only fills a gap: when the current key is already set, the
deprecated key is dropped. Deprecated keys never survive migration, which
makes migration idempotent. Unknown keys pass through untouched.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from . import diagnostics as diag
from .diagnostics import DiagnosticLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeprecationRule:
    """Maps a retired key to its current equivalent.

    Attributes:
        old_key: The deprecated key.
        new_key: The key replacing it.
        transform: Optional conversion of the deprecated value.
    """
    old_key: str
    new_key: str
    transform: Optional[Callable[[Any], Any]] = None

    def convert(self, value: Any) -> Any:
        return self.transform(value) if self.transform else value


def _extend_width_to_table_width(value: Any) -> str:
    return 'auto' if value else 'wrap'


OPTION_RULES: tuple[DeprecationRule, ...] = (
    DeprecationRule('margins', 'margin'),
    DeprecationRule('extendWidth', 'tableWidth', _extend_width_to_table_width),
    DeprecationRule('showFoot', 'showFooter'),
    DeprecationRule('showHead', 'showHeader'),
    DeprecationRule('addPageContent', 'didDrawPage'),
    DeprecationRule('createdCell', 'didParseCell'),
    DeprecationRule('drawCell', 'willDrawCell'),
    DeprecationRule('drawCellContent', 'didDrawCell'),
    DeprecationRule('data', 'body'),
    DeprecationRule('headerStyles', 'headStyles'),
    DeprecationRule('footerStyles', 'footStyles'),
    DeprecationRule('useCSS', 'useCss'),
    DeprecationRule('hiddenHTML', 'includeHiddenHtml'),
)

# Top-level keys moved into the ``styles`` option
STYLE_OPTION_RULES: tuple[DeprecationRule, ...] = (
    DeprecationRule('padding', 'cellPadding'),
    DeprecationRule('rowHeight', 'rowHeight'),
    DeprecationRule('lineHeight', 'rowHeight'),
    DeprecationRule('fontSize', 'fontSize'),
    DeprecationRule('overflow', 'overflow'),
)

STYLE_RULES: tuple[DeprecationRule, ...] = (
    DeprecationRule('rowHeight', 'minCellHeight'),
    DeprecationRule('columnWidth', 'cellWidth'),
)

COLUMN_RULES: tuple[DeprecationRule, ...] = (
    DeprecationRule('title', 'header'),
)

STYLE_OPTION_KEYS = ('styles', 'headStyles', 'bodyStyles', 'footStyles', 'alternateRowStyles')

# Hooks whose semantics changed without a drop-in replacement
REMOVED_HOOKS = ('createdHeaderCell', 'drawHeaderRow', 'drawRow', 'drawHeaderCell')

LEGACY_PAGE_HOOKS = (
    'beforePageContent', 'drawPageHeader', 'afterPageContent', 'drawPageFooter', 'afterPageAdd',
)


def copy_options(value: Any) -> Any:
    """Deep copy of option data. Callables are shared, never copied."""
    if callable(value):
        return value
    if isinstance(value, Mapping):
        return {key: copy_options(item) for key, item in value.items()}
    if isinstance(value, list):
        return [copy_options(item) for item in value]
    if isinstance(value, tuple):
        return tuple(copy_options(item) for item in value)
    return copy.deepcopy(value)


def compose_page_hooks(
    before: Optional[Callable[[Any], Any]] = None,
    after: Optional[Callable[[Any], Any]] = None,
    page_add: Optional[Callable[[Any], Any]] = None,
    header: Optional[Callable[[Any], Any]] = None,
    footer: Optional[Callable[[Any], Any]] = None,
) -> Callable[[Any], None]:
    """Build a didDrawPage callback from the legacy page hooks.

    The returned callback invokes the before-hook, the page header, the
    after-hook and the page footer in that order. The page-add hook runs last,
    and only from the second page on.
    """
    def did_draw_page(data: Any) -> None:
        for callback in (before, header, after, footer):
            if callback is not None:
                callback(data)
        if page_add is not None and data.page_number > 1:
            page_add(data)

    return did_draw_page


class DeprecationMigrator:
    """Rewrites option layers into their current form.

    Args:
        diagnostics: Log receiving one diagnostic per migrated or dropped key.
    """

    def __init__(self, diagnostics: Optional[DiagnosticLog] = None):
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()

    def migrate_layers(self, layers: Iterable[Any]) -> list[dict[str, Any]]:
        """Migrate each option layer, keeping their order."""
        return [self.migrate(layer) for layer in layers]

    def migrate(self, options: Any) -> dict[str, Any]:
        """Return a migrated copy of a single option layer.

        Args:
            options: The user's option bag. Never modified.

        Returns:
            A new dictionary without deprecated keys.
        """
        if options is None:
            return {}
        if not isinstance(options, Mapping):
            self.diagnostics.emit(
                diag.INVALID_OPTIONS,
                '',
                f"The options parameter should be a mapping, is: {type(options).__name__}",
            )
            return {}

        migrated = copy_options(options)

        for rule in OPTION_RULES:
            self._apply_rule(migrated, rule, scope='')

        self._migrate_style_options(migrated)
        self._migrate_page_hooks(migrated)

        for name in REMOVED_HOOKS:
            if name in migrated:
                del migrated[name]
                self.diagnostics.emit(
                    diag.REMOVED_OPTION,
                    name,
                    f'The "{name}" hook has changed in version 3.0 and is ignored, '
                    f'check the changelog for how to migrate.',
                )

        for key in STYLE_OPTION_KEYS:
            styles = migrated.get(key)
            if isinstance(styles, Mapping):
                migrated[key] = self._migrate_styles(styles, scope=key)

        column_styles = migrated.get('columnStyles')
        if isinstance(column_styles, Mapping):
            migrated['columnStyles'] = {
                column: self._migrate_styles(styles, scope=f'columnStyles.{column}')
                if isinstance(styles, Mapping) else styles
                for column, styles in column_styles.items()
            }

        columns = migrated.get('columns')
        if isinstance(columns, list):
            migrated['columns'] = [
                self._migrate_column(column, idx) if isinstance(column, Mapping) else column
                for idx, column in enumerate(columns)
            ]

        return migrated

    def _apply_rule(self, target: dict[str, Any], rule: DeprecationRule, scope: str) -> None:
        """Apply one rename rule in place on an already-copied mapping."""
        if rule.old_key not in target:
            return
        value = target.pop(rule.old_key)
        old_name = f'{scope}.{rule.old_key}' if scope else rule.old_key
        new_name = f'{scope}.{rule.new_key}' if scope else rule.new_key

        if target.get(rule.new_key) is not None:
            self.diagnostics.emit(
                diag.IGNORED_DEPRECATED_OPTION,
                old_name,
                f"Use of deprecated option {old_name} ignored, {new_name} is already set",
            )
            return

        target[rule.new_key] = rule.convert(value)
        self.diagnostics.emit(
            diag.DEPRECATED_OPTION,
            old_name,
            f"Use of deprecated option {old_name}. Use {new_name} instead",
        )

    def _migrate_style_options(self, options: dict[str, Any]) -> None:
        present = [rule for rule in STYLE_OPTION_RULES if rule.old_key in options]
        if not present:
            return
        styles = options.get('styles')
        if isinstance(styles, Mapping):
            styles = dict(styles)
        else:
            if styles is not None:
                self.diagnostics.emit(
                    diag.INVALID_VALUE,
                    'styles',
                    f"Invalid value for styles option: {styles!r}, using {{}}",
                )
            styles = {}
        for rule in present:
            value = options.pop(rule.old_key)
            if styles.get(rule.new_key) is not None:
                self.diagnostics.emit(
                    diag.IGNORED_DEPRECATED_OPTION,
                    rule.old_key,
                    f"Use of deprecated option {rule.old_key} ignored, "
                    f"the style {rule.new_key} is already set",
                )
                continue
            styles[rule.new_key] = rule.convert(value)
            self.diagnostics.emit(
                diag.DEPRECATED_OPTION,
                rule.old_key,
                f"Use of deprecated option: {rule.old_key}, "
                f"use the style {rule.new_key} instead.",
            )
        options['styles'] = styles

    def _migrate_page_hooks(self, options: dict[str, Any]) -> None:
        legacy = {name: options.pop(name) for name in LEGACY_PAGE_HOOKS if name in options}
        if not legacy:
            return
        if options.get('didDrawPage') is not None:
            self.diagnostics.emit(
                diag.IGNORED_DEPRECATED_OPTION,
                ', '.join(legacy),
                f"Deprecated hooks {', '.join(legacy)} ignored, didDrawPage is already set",
            )
            return
        options['didDrawPage'] = compose_page_hooks(
            before=legacy.get('beforePageContent'),
            after=legacy.get('afterPageContent'),
            page_add=legacy.get('afterPageAdd'),
            header=legacy.get('drawPageHeader'),
            footer=legacy.get('drawPageFooter'),
        )
        self.diagnostics.emit(
            diag.DEPRECATED_OPTION,
            ', '.join(legacy),
            f"The {', '.join(legacy)} hooks are deprecated. Use didDrawPage instead",
        )

    def _migrate_styles(self, styles: Mapping[str, Any], scope: str) -> dict[str, Any]:
        migrated = dict(styles)
        for rule in STYLE_RULES:
            self._apply_rule(migrated, rule, scope=scope)
        return migrated

    def _migrate_column(self, column: Mapping[str, Any], idx: int) -> dict[str, Any]:
        migrated = dict(column)
        for rule in COLUMN_RULES:
            self._apply_rule(migrated, rule, scope=f'columns[{idx}]')
        return migrated


def migrate_options(options: Any, diagnostics: Optional[DiagnosticLog] = None) -> dict[str, Any]:
    """Migrate a single option layer with a fresh migrator."""
    return DeprecationMigrator(diagnostics).migrate(options)
