"""Theme catalog for table presentation.

Themes are a closed set of named bundles of style sets, one per table role
(``table``, ``head``, ``body``, ``foot``, ``alternateRow``). The ``auto``
theme, and its ``css`` alias, injects no themed styling at all.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Union

from .cascade import freeze

logger = logging.getLogger(__name__)

THEME_SECTIONS = ('table', 'head', 'body', 'foot', 'alternateRow')


class Theme(str, Enum):
    """The built-in table themes."""
    STRIPED = "striped"
    GRID = "grid"
    PLAIN = "plain"
    AUTO = "auto"


ThemeSpec = Union[Theme, str, None]

DEFAULT_THEME = Theme.AUTO

_THEME_ALIASES: dict[str, Theme] = {
    "css": Theme.AUTO,
}


class UnknownThemeError(ValueError):
    """Raised when a theme name does not match any built-in theme."""


def _frozen(styles: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType({k: freeze(v) for k, v in styles.items()})


@dataclass(frozen=True)
class ThemeDefinition:
    """Style sets of a single theme.

    Roles the theme leaves empty keep whatever base style already applies.
    """
    name: Theme
    table: Mapping[str, Any] = field(default_factory=dict)
    head: Mapping[str, Any] = field(default_factory=dict)
    body: Mapping[str, Any] = field(default_factory=dict)
    foot: Mapping[str, Any] = field(default_factory=dict)
    alternate_row: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        for attr in ('table', 'head', 'body', 'foot', 'alternate_row'):
            object.__setattr__(self, attr, _frozen(getattr(self, attr)))

    def section(self, name: str) -> Mapping[str, Any]:
        """Get the style set for a role (``alternateRow`` or ``alternate_row``)."""
        if name in ('alternateRow', 'alternate_row'):
            return self.alternate_row
        if name not in THEME_SECTIONS:
            raise ValueError(
                f"Unknown theme section '{name}'. "
                f"Available sections: {', '.join(THEME_SECTIONS)}"
            )
        return getattr(self, name)

    @property
    def is_styled(self) -> bool:
        return self.name is not Theme.AUTO


_STRIPED_HEAD = {'textColor': 255, 'fillColor': [41, 128, 185], 'fontStyle': 'bold'}
_GRID_HEAD = {'textColor': 255, 'fillColor': [26, 188, 156], 'fontStyle': 'bold', 'lineWidth': 0}

_CATALOG: dict[Theme, ThemeDefinition] = {
    Theme.STRIPED: ThemeDefinition(
        name=Theme.STRIPED,
        table={'fillColor': 255, 'textColor': 80, 'fontStyle': 'normal'},
        head=_STRIPED_HEAD,
        foot=_STRIPED_HEAD,
        alternate_row={'fillColor': 245},
    ),
    Theme.GRID: ThemeDefinition(
        name=Theme.GRID,
        table={'fillColor': 255, 'textColor': 80, 'fontStyle': 'normal', 'lineWidth': 0.1},
        head=_GRID_HEAD,
        foot=_GRID_HEAD,
    ),
    Theme.PLAIN: ThemeDefinition(
        name=Theme.PLAIN,
        head={'fontStyle': 'bold'},
        foot={'fontStyle': 'bold'},
    ),
    Theme.AUTO: ThemeDefinition(name=Theme.AUTO),
}


def get_available_theme_names() -> list[str]:
    """Get a sorted list of accepted theme names, aliases included."""
    return sorted([theme.value for theme in Theme] + list(_THEME_ALIASES))


def resolve_theme_name(name: ThemeSpec) -> Theme:
    """Resolve a theme specification to a Theme.

    Args:
        name: A Theme, a theme name or alias, or None for the default theme.

    Returns:
        The resolved Theme.

    Raises:
        UnknownThemeError: If the name is not a known theme or alias.
    """
    if name is None:
        return DEFAULT_THEME
    if isinstance(name, Theme):
        return name
    if isinstance(name, str):
        if name in _THEME_ALIASES:
            return _THEME_ALIASES[name]
        try:
            return Theme(name)
        except ValueError:
            pass
    raise UnknownThemeError(
        f"Unknown theme {name!r}. "
        f"Available themes: {', '.join(get_available_theme_names())}"
    )


def lookup(name: ThemeSpec) -> ThemeDefinition:
    """Look up the style sets of a theme.

    Raises:
        UnknownThemeError: If the name is not a known theme or alias.
    """
    theme = resolve_theme_name(name)
    logger.debug(f"Using theme '{theme.value}'")
    return _CATALOG[theme]
