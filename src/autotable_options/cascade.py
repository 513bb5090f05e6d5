"""Style cascade resolution.

A cascade is an ordered list of style layers merged last-wins per property.
Merging is shallow: a later layer's ``fillColor`` replaces an earlier one
outright, nested values are never blended.

Unit-bearing properties (``cellPadding``, ``lineWidth``) of layers authored in
points are divided by the scale factor at the moment the layer is read. The
merged result is a :class:`ResolvedStyle`, which is already in document units,
so feeding it back into another merge never scales it a second time.

Typical usage:
    >>> resolver = StyleCascadeResolver()
    >>> body = resolver.merge([default_styles(2), {'fontSize': 8}], scale_factor=2)
    >>> body['cellPadding'], body['fontSize']
    (2.5, 8)
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union

# Properties expressed in document units
UNIT_PROPERTIES = frozenset({'cellPadding', 'lineWidth'})

STYLE_PROPERTIES = (
    'font',
    'fontStyle',
    'overflow',
    'fillColor',
    'textColor',
    'halign',
    'valign',
    'fontSize',
    'cellPadding',
    'lineColor',
    'lineWidth',
    'cellWidth',
    'minCellHeight',
)

# Base style shared by every theme, unit-bearing values in points
BASE_STYLE_POINTS: dict[str, Any] = {
    'font': 'helvetica',  # helvetica, times, courier
    'fontStyle': 'normal',  # normal, bold, italic, bolditalic
    'overflow': 'linebreak',  # linebreak, ellipsize, visible, hidden
    'fillColor': False,  # False is transparent
    'textColor': 20,
    'halign': 'left',
    'valign': 'top',
    'fontSize': 10,
    'cellPadding': 5,
    'lineColor': 200,
    'lineWidth': 0,
    'cellWidth': 'auto',  # 'auto' | 'wrap' | number
    'minCellHeight': 0,
}


def freeze(value: Any) -> Any:
    """Return an immutable equivalent of a style or option value."""
    if isinstance(value, ResolvedStyle):
        return value
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of :func:`freeze`, producing fresh mutable containers."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw(v) for v in value]
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _scale(value: Any, scale_factor: float) -> Any:
    if _is_number(value):
        return value / scale_factor
    if isinstance(value, Mapping):
        return {k: _scale(v, scale_factor) for k, v in value.items()}
    return value


class ResolvedStyle(Mapping):
    """Immutable style set produced by the cascade, in document units."""

    __slots__ = ('_values',)

    def __init__(self, values: Mapping[str, Any] | None = None):
        self._values = {k: freeze(v) for k, v in (values or {}).items()}

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ResolvedStyle({self._values!r})"

    def to_dict(self) -> dict[str, Any]:
        """Mutable deep copy, safe to hand to user callbacks."""
        return thaw(self._values)


@dataclass(frozen=True)
class StyleLayer:
    """A raw, author-facing style set.

    Attributes:
        styles: The style properties of this layer.
        in_points: True when unit-bearing values are authored in points and
            must be divided by the scale factor when the layer is read.
        name: Label used in debugging output.
    """
    styles: Mapping[str, Any] = field(default_factory=dict)
    in_points: bool = False
    name: str = ''


Layer = Union[ResolvedStyle, StyleLayer, Mapping[str, Any], None]


class StyleCascadeResolver:
    """Stateless merger of ordered style layers."""

    def merge(self, layers: Iterable[Layer], scale_factor: float = 1.0) -> ResolvedStyle:
        """Merge style layers, later layers taking precedence.

        Args:
            layers: Layers in ascending precedence. ``None`` entries are
                skipped, as are properties whose value is ``None``.
            scale_factor: Points per document unit, applied to layers
                authored in points.

        Returns:
            The merged style.

        Raises:
            ValueError: If scale_factor is not positive.
            TypeError: If a layer is not a mapping or StyleLayer.
        """
        if not _is_number(scale_factor) or scale_factor <= 0:
            raise ValueError(f"scale_factor must be a positive number, got {scale_factor!r}")

        merged: dict[str, Any] = {}
        for layer in layers:
            for key, value in self._read_layer(layer, scale_factor).items():
                if value is not None:
                    merged[key] = value
        return ResolvedStyle(merged)

    @staticmethod
    def _read_layer(layer: Layer, scale_factor: float) -> Mapping[str, Any]:
        if layer is None:
            return {}
        if isinstance(layer, StyleLayer):
            if not layer.in_points:
                return layer.styles
            return {
                key: _scale(value, scale_factor) if key in UNIT_PROPERTIES else value
                for key, value in layer.styles.items()
            }
        if isinstance(layer, Mapping):
            return layer
        raise TypeError(
            f"Style layer must be a mapping or StyleLayer, got {type(layer).__name__}"
        )


def default_styles(scale_factor: float = 1.0) -> ResolvedStyle:
    """Base style for all themes, scaled into document units."""
    return StyleCascadeResolver().merge(
        [StyleLayer(BASE_STYLE_POINTS, in_points=True, name='default')],
        scale_factor=scale_factor,
    )
