"""
Tests for the theme catalog
"""

import pytest

from autotable_options.themes import (
    Theme,
    UnknownThemeError,
    get_available_theme_names,
    lookup,
    resolve_theme_name,
)


class TestResolveThemeName:

    @pytest.mark.parametrize('name,expected', [
        ('striped', Theme.STRIPED),
        ('grid', Theme.GRID),
        ('plain', Theme.PLAIN),
        ('auto', Theme.AUTO),
        ('css', Theme.AUTO),
        (None, Theme.AUTO),
        (Theme.GRID, Theme.GRID),
    ])
    def test_known_names(self, name, expected):
        assert resolve_theme_name(name) is expected

    def test_unknown_name_is_fatal(self):
        with pytest.raises(UnknownThemeError) as exc_info:
            resolve_theme_name('sunset')
        assert 'striped' in str(exc_info.value)
        assert isinstance(exc_info.value, ValueError)

    def test_non_string_name(self):
        with pytest.raises(UnknownThemeError):
            resolve_theme_name(3)

    def test_available_names(self):
        assert get_available_theme_names() == ['auto', 'css', 'grid', 'plain', 'striped']


class TestLookup:

    def test_striped(self):
        theme = lookup('striped')
        assert theme.table == {'fillColor': 255, 'textColor': 80, 'fontStyle': 'normal'}
        assert theme.head['fillColor'] == (41, 128, 185)
        assert theme.foot == theme.head
        assert theme.body == {}
        assert theme.alternate_row == {'fillColor': 245}

    def test_grid(self):
        theme = lookup('grid')
        assert theme.table['lineWidth'] == 0.1
        assert theme.head['lineWidth'] == 0
        assert theme.head['fillColor'] == (26, 188, 156)
        assert theme.alternate_row == {}

    def test_plain(self):
        theme = lookup('plain')
        assert theme.table == {}
        assert theme.head == {'fontStyle': 'bold'}
        assert theme.foot == {'fontStyle': 'bold'}

    def test_auto_injects_nothing(self):
        theme = lookup('css')
        assert theme.name is Theme.AUTO
        assert not theme.is_styled
        for section in ('table', 'head', 'body', 'foot', 'alternateRow'):
            assert theme.section(section) == {}

    def test_section_accessor(self):
        theme = lookup('striped')
        assert theme.section('alternateRow') is theme.alternate_row
        with pytest.raises(ValueError):
            theme.section('middle')

    def test_definitions_are_immutable(self):
        with pytest.raises(TypeError):
            lookup('striped').head['fillColor'] = 0
