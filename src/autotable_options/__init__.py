"""Table option normalization: themes, style cascade, deprecations and hooks."""

from .cascade import (
    ResolvedStyle,
    StyleLayer,
    StyleCascadeResolver,
    default_styles,
    STYLE_PROPERTIES,
)
from .diagnostics import (
    Diagnostic,
    DiagnosticLog,
)
from .hooks import (
    HookPoint,
    HookSet,
    HookRegistry,
    CellHookData,
    PageHookData,
    Cursor,
    HookContractError,
    bind_hooks,
)
from .migration import (
    DeprecationRule,
    DeprecationMigrator,
    migrate_options,
)
from .normalizer import (
    ColumnDef,
    Margin,
    MissingContentError,
    NormalizedConfig,
    OptionsNormalizer,
    ResolutionContext,
    normalize,
)
from .themes import (
    Theme,
    ThemeDefinition,
    UnknownThemeError,
    get_available_theme_names,
    lookup,
    resolve_theme_name,
)

__all__ = [
    # Style cascade
    "ResolvedStyle",
    "StyleLayer",
    "StyleCascadeResolver",
    "default_styles",
    "STYLE_PROPERTIES",
    # Diagnostics
    "Diagnostic",
    "DiagnosticLog",
    # Hooks
    "HookPoint",
    "HookSet",
    "HookRegistry",
    "CellHookData",
    "PageHookData",
    "Cursor",
    "HookContractError",
    "bind_hooks",
    # Deprecations
    "DeprecationRule",
    "DeprecationMigrator",
    "migrate_options",
    # Normalization
    "ColumnDef",
    "Margin",
    "MissingContentError",
    "NormalizedConfig",
    "OptionsNormalizer",
    "ResolutionContext",
    "normalize",
    # Themes
    "Theme",
    "ThemeDefinition",
    "UnknownThemeError",
    "get_available_theme_names",
    "lookup",
    "resolve_theme_name",
]
