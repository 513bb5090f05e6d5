"""
Tests for option normalization
"""

import copy
import dataclasses
import functools
import threading

import pytest
import yaml

from autotable_options import diagnostics as diag
from autotable_options.hooks import CellHookData, HookPoint
from autotable_options.normalizer import (
    ColumnDef,
    Margin,
    MissingContentError,
    OptionsNormalizer,
    ResolutionContext,
    merge_option_layers,
    normalize,
)
from autotable_options.themes import Theme, UnknownThemeError


class CellCollector:
    """Stateful hook target that cannot be deep-copied."""

    def __init__(self):
        self.lock = threading.Lock()
        self.seen = []

    def on_cell(self, data):
        with self.lock:
            self.seen.append(data.section)

    def __call__(self, data):
        self.on_cell(data)


class TestCascadeProperties:
    """Precedence of defaults, themes, user styles and overrides."""

    def test_user_styles_override_theme_and_default(self, body_rows):
        config = normalize({'theme': 'grid', 'styles': {'lineWidth': 0.5}, 'body': body_rows})
        assert config.body_styles['lineWidth'] == 0.5

    def test_theme_overrides_default(self, body_rows):
        config = normalize({'theme': 'grid', 'body': body_rows})
        assert config.body_styles['lineWidth'] == 0.1
        assert config.head_styles['lineWidth'] == 0

    def test_section_styles_override_theme(self, body_rows):
        config = normalize({
            'theme': 'striped',
            'headStyles': {'fillColor': [0, 0, 0]},
            'body': body_rows,
        })
        assert config.head_styles['fillColor'] == (0, 0, 0)
        assert config.foot_styles['fillColor'] == (41, 128, 185)

    def test_section_styles_override_user_styles(self, body_rows):
        config = normalize({
            'styles': {'halign': 'center', 'fontSize': 8},
            'footStyles': {'halign': 'right'},
            'body': body_rows,
        })
        assert config.foot_styles['halign'] == 'right'
        assert config.body_styles['halign'] == 'center'
        assert config.foot_styles['fontSize'] == 8

    def test_auto_theme_uses_base_style_only(self, body_rows):
        config = normalize({'body': body_rows})
        assert config.theme is Theme.AUTO
        assert config.head_styles['fillColor'] is False
        assert config.alternate_row_styles == config.body_styles

    def test_full_cell_cascade(self):
        config = normalize({
            'theme': 'striped',
            'styles': {'textColor': 10},
            'bodyStyles': {'textColor': 30},
            'alternateRowStyles': {'textColor': 40},
            'columnStyles': {0: {'textColor': 50}},
            'body': [[1, 2], [3, 4]],
        })
        assert config.cell_style('head', 0, 0)['textColor'] == 10
        assert config.cell_style('body', 1, 1)['textColor'] == 30
        assert config.cell_style('body', 0, 1)['textColor'] == 40
        assert config.cell_style('body', 1, 0)['textColor'] == 50
        assert config.cell_style('body', 0, 0)['textColor'] == 50
        assert config.cell_style('body', 0, 0, {'textColor': 60})['textColor'] == 60

    def test_alternate_rows(self, body_rows):
        config = normalize({'theme': 'striped', 'body': body_rows})
        assert config.cell_style('body', 0, 0)['fillColor'] == 245
        assert config.cell_style('body', 1, 0)['fillColor'] == 255
        assert config.cell_style('head', 0, 0)['fillColor'] == (41, 128, 185)

    def test_column_overrides_apply_to_body_only(self):
        config = normalize({'columnStyles': {0: {'halign': 'right'}}, 'body': [[1]], 'head': [['A']]})
        assert config.cell_style('body', 1, 0)['halign'] == 'right'
        assert config.cell_style('head', 0, 0)['halign'] == 'left'

    def test_unknown_section(self, body_rows):
        config = normalize({'body': body_rows})
        with pytest.raises(ValueError):
            config.cell_style('middle', 0, 0)


class TestScaling:

    def test_default_padding_scaled_once(self, body_rows):
        config = normalize({'body': body_rows}, scale_factor=2)
        assert config.body_styles['cellPadding'] == 2.5
        assert config.cell_style('body', 1, 0)['cellPadding'] == 2.5
        assert config.scale_factor == 2

    def test_user_padding_in_document_units(self, body_rows):
        config = normalize({'styles': {'cellPadding': 3}, 'body': body_rows}, scale_factor=2)
        assert config.body_styles['cellPadding'] == 3

    def test_default_margin_from_context(self, body_rows):
        context = ResolutionContext(scale_factor=2, page_margin=40)
        config = normalize({'body': body_rows}, context=context)
        assert config.margin == Margin.uniform(20)

    def test_scale_factor_argument_overrides_context(self, body_rows):
        context = ResolutionContext(scale_factor=4)
        config = normalize({'body': body_rows}, scale_factor=2, context=context)
        assert config.margin == Margin.uniform(20)

    @pytest.mark.parametrize('scale_factor', [0, -2])
    def test_invalid_scale_factor(self, body_rows, scale_factor):
        with pytest.raises(ValueError):
            normalize({'body': body_rows}, scale_factor=scale_factor)


class TestDeprecatedOptions:

    def test_show_foot_translated(self, body_rows):
        config = normalize({'showFoot': 'never', 'body': body_rows})
        assert config.show_footer == 'never'
        assert 'showFoot' not in config.to_dict()
        assert 'showFoot' not in config.extra

    def test_deprecated_keys_in_every_layer(self, body_rows):
        config = normalize([
            {'margins': 12, 'headerStyles': {'fontSize': 14}},
            {'extendWidth': False, 'body': body_rows},
        ])
        assert config.margin == Margin.uniform(12)
        assert config.head_styles['fontSize'] == 14
        assert config.table_width == 'wrap'
        assert dict(config.extra) == {}

    def test_legacy_page_hooks_bound(self, body_rows):
        config = normalize({'afterPageContent': lambda data: None, 'body': body_rows})
        assert config.hooks.is_bound(HookPoint.DID_DRAW_PAGE)

    def test_data_layer_from_version_two(self, diagnostics):
        config = normalize(
            {'columns': [{'title': 'Name', 'dataKey': 'name'}], 'data': [{'name': 'Donna'}]},
            diagnostics=diagnostics,
        )
        assert config.columns == (ColumnDef(key='name', header='Name'),)
        assert config.body[0]['name'] == 'Donna'
        assert config.head == (('Name',),)
        assert 'data' in diagnostics.keys()

    def test_diagnostics_logged(self, body_rows, caplog):
        with caplog.at_level('WARNING'):
            normalize({'showFoot': 'never', 'body': body_rows})
        assert any('showFoot' in record.getMessage() for record in caplog.records)


class TestFatalErrors:

    def test_unknown_theme(self, body_rows):
        with pytest.raises(UnknownThemeError):
            normalize({'theme': 'sunset', 'body': body_rows})

    def test_unknown_theme_argument(self, body_rows):
        with pytest.raises(UnknownThemeError):
            normalize({'body': body_rows}, theme='sunset')

    def test_missing_content(self):
        with pytest.raises(MissingContentError):
            normalize({'theme': 'grid'})

    def test_body_must_be_rows(self):
        with pytest.raises(MissingContentError):
            normalize({'body': 'rows'})

    def test_html_source_is_enough(self):
        config = normalize({'html': '#my-table'})
        assert config.html == '#my-table'
        assert config.body == ()
        assert config.columns == ()


class TestScalarValidation:

    @pytest.mark.parametrize('value,expected', [
        (None, None),
        (False, None),
        (100, 100.0),
        (12.5, 12.5),
    ])
    def test_start_y(self, body_rows, value, expected):
        assert normalize({'startY': value, 'body': body_rows}).start_y == expected

    def test_invalid_start_y_dropped(self, body_rows, diagnostics):
        config = normalize({'startY': '100', 'body': body_rows}, diagnostics=diagnostics)
        assert config.start_y is None
        assert diagnostics.codes() == [diag.INVALID_VALUE]
        assert diagnostics.keys() == ['startY']

    @pytest.mark.parametrize('value,expected', [
        (10, Margin(10, 10, 10, 10)),
        ({'top': 5}, Margin(5, 40, 40, 40)),
        ({'vertical': 3, 'horizontal': 4, 'left': 9}, Margin(3, 4, 3, 9)),
        ([7], Margin(7, 7, 7, 7)),
        ([1, 2], Margin(1, 2, 1, 2)),
        ([1, 2, 3], Margin(1, 2, 3, 2)),
        ([1, 2, 3, 4], Margin(1, 2, 3, 4)),
    ])
    def test_margin(self, body_rows, value, expected):
        assert normalize({'margin': value, 'body': body_rows}).margin == expected

    def test_invalid_margin_uses_default(self, body_rows, diagnostics):
        config = normalize({'margin': 'wide', 'body': body_rows}, diagnostics=diagnostics)
        assert config.margin == Margin.uniform(40)
        assert diagnostics.codes() == [diag.INVALID_VALUE]

    def test_invalid_margin_side(self, body_rows, diagnostics):
        config = normalize({'margin': {'top': 'x', 'left': 2}, 'body': body_rows}, diagnostics=diagnostics)
        assert config.margin == Margin(40, 40, 40, 2)
        assert diagnostics.keys() == ['margin.top']

    @pytest.mark.parametrize('key,value,attr,expected', [
        ('tableWidth', 'huge', 'table_width', 'auto'),
        ('showHeader', 'sometimes', 'show_header', 'everyPage'),
        ('showFooter', 'firstPage', 'show_footer', 'everyPage'),
        ('avoidRowSplit', 'yes', 'avoid_row_split', False),
        ('tableLineWidth', -1, 'table_line_width', 0),
        ('tableLineColor', [1, 2], 'table_line_color', 200),
    ])
    def test_invalid_values_degrade(self, body_rows, diagnostics, key, value, attr, expected):
        config = normalize({key: value, 'body': body_rows}, diagnostics=diagnostics)
        assert getattr(config, attr) == expected
        assert diagnostics.codes() == [diag.INVALID_VALUE]

    def test_defaults(self, body_rows):
        config = normalize({'body': body_rows})
        assert config.table_width == 'auto'
        assert config.show_header == 'everyPage'
        assert config.show_footer == 'everyPage'
        assert config.avoid_table_split is False
        assert config.avoid_row_split is False
        assert config.all_section_hooks is False
        assert config.use_css is False
        assert config.include_hidden_html is False
        assert config.table_id is None
        assert config.table_line_width == 0
        assert config.table_line_color == 200
        assert config.start_y is None

    def test_valid_values(self, body_rows):
        config = normalize({
            'tableWidth': 300,
            'showHeader': 'firstPage',
            'showFooter': 'lastPage',
            'avoidTableSplit': True,
            'allSectionHooks': True,
            'tableId': 'invoice',
            'tableLineColor': [10, 20, 30],
            'body': body_rows,
        })
        assert config.table_width == 300
        assert config.show_header == 'firstPage'
        assert config.show_footer == 'lastPage'
        assert config.avoid_table_split is True
        assert config.all_section_hooks is True
        assert config.table_id == 'invoice'
        assert config.table_line_color == (10, 20, 30)


class TestLayers:

    def test_later_layer_wins(self, body_rows):
        config = normalize([{'theme': 'grid'}, {'theme': 'plain', 'body': body_rows}])
        assert config.theme is Theme.PLAIN

    def test_none_does_not_override(self, body_rows):
        config = normalize([{'theme': 'grid'}, {'theme': None, 'body': body_rows}])
        assert config.theme is Theme.GRID

    def test_style_bags_merge_per_property(self, body_rows):
        config = normalize([
            {'styles': {'fontSize': 8, 'halign': 'center'}, 'columnStyles': {0: {'halign': 'right'}}},
            {'styles': {'fontSize': 12}, 'columnStyles': {0: {'fontStyle': 'bold'}}, 'body': body_rows},
        ])
        assert config.body_styles['fontSize'] == 12
        assert config.body_styles['halign'] == 'center'
        assert config.column_styles[0]['halign'] == 'right'
        assert config.column_styles[0]['fontStyle'] == 'bold'

    def test_theme_argument_wins(self, body_rows):
        config = normalize({'theme': 'grid', 'body': body_rows}, theme='css')
        assert config.theme is Theme.AUTO

    def test_merge_option_layers(self):
        merged = merge_option_layers([
            {'headStyles': {'a': 1}, 'tableId': 1},
            {'headStyles': {'b': 2}, 'tableId': None},
        ])
        assert merged == {'headStyles': {'a': 1, 'b': 2}, 'tableId': 1}


class TestColumns:

    def test_columns_from_first_row(self, body_rows):
        config = normalize({'body': body_rows})
        assert [c.key for c in config.columns] == [0, 1]
        assert set(config.column_styles) == {0, 1}

    def test_columns_honor_col_span(self):
        config = normalize({'body': [[{'content': 'a', 'colSpan': 2}, 'b']]})
        assert [c.key for c in config.columns] == [0, 1, 2]

    def test_columns_from_dict_rows(self):
        config = normalize({'body': [{'id': 1, 'name': 'Donna'}]})
        assert [c.key for c in config.columns] == ['id', 'name']

    def test_columns_option_builds_head(self):
        config = normalize({
            'columns': [{'header': 'ID', 'dataKey': 'id'}, {'title': 'Name', 'dataKey': 'name'}],
            'body': [{'id': 1, 'name': 'Donna'}],
        })
        assert config.columns == (
            ColumnDef(key='id', header='ID'),
            ColumnDef(key='name', header='Name'),
        )
        assert config.head == (('ID', 'Name'),)

    def test_plain_column_headers(self, body_rows):
        config = normalize({'columns': ['Name', 'Country'], 'body': body_rows})
        assert [c.key for c in config.columns] == [0, 1]
        assert config.head == (('Name', 'Country'),)

    def test_column_defs_argument(self, body_rows):
        config = normalize(
            {'columnStyles': {'country': {'halign': 'right'}}, 'body': body_rows},
            column_defs=['name', 'country'],
        )
        assert config.column_styles['country']['halign'] == 'right'
        assert config.column_styles['name']['halign'] == 'left'

    def test_column_styles_string_keys(self, body_rows):
        config = normalize({'columnStyles': {'1': {'cellWidth': 40}}, 'body': body_rows})
        assert config.column_styles[1]['cellWidth'] == 40
        assert config.cell_style('body', 1, 1)['cellWidth'] == 40

    def test_cell_style_matches_column_key_by_string(self, body_rows):
        config = normalize({'columnStyles': {1: {'cellWidth': 40}}, 'body': body_rows})
        assert config.cell_style('body', 1, '1')['cellWidth'] == 40
        assert config.cell_style('body', 1, '0').get('cellWidth') != 40

    def test_unknown_column_key(self, body_rows, diagnostics):
        normalize({'columnStyles': {'zzz': {'halign': 'right'}}, 'body': body_rows}, diagnostics=diagnostics)
        assert diagnostics.codes() == [diag.UNKNOWN_COLUMN]

    def test_column_styles_resolved_over_body(self, body_rows):
        config = normalize({
            'bodyStyles': {'fontSize': 7},
            'columnStyles': {0: {'halign': 'right'}},
            'body': body_rows,
        })
        assert config.column_styles[0]['fontSize'] == 7
        assert config.column_styles[0]['halign'] == 'right'
        assert config.column_styles[1] == config.body_styles


class TestContent:

    def test_single_head_row(self, body_rows):
        config = normalize({'head': ['Name', 'Country'], 'body': body_rows})
        assert config.head == (('Name', 'Country'),)

    def test_head_with_cell_definitions(self, body_rows):
        config = normalize({'head': [{'content': 'Person', 'colSpan': 2}], 'body': body_rows})
        assert len(config.head) == 1
        assert config.head[0][0]['content'] == 'Person'

    def test_multiple_foot_rows(self, body_rows):
        config = normalize({'foot': [['a', 'b'], ['c', 'd']], 'body': body_rows})
        assert config.foot == (('a', 'b'), ('c', 'd'))

    def test_body_frozen(self, body_rows):
        config = normalize({'body': body_rows})
        assert config.body[0] == ('Donna', 'Sweden')


class TestHookBinding:

    def test_head_cell_does_not_trigger_parse_by_default(self, body_rows):
        calls = []
        config = normalize({'didParseCell': lambda data: calls.append(data.section), 'body': body_rows})
        registry = config.hook_registry()
        registry.fire_cell(HookPoint.DID_PARSE_CELL, CellHookData('head', 0, 0))
        registry.fire_cell(HookPoint.DID_PARSE_CELL, CellHookData('body', 0, 0))
        assert calls == ['body']

    def test_all_section_hooks(self, body_rows):
        calls = []
        config = normalize({
            'didParseCell': lambda data: calls.append(data.section),
            'allSectionHooks': True,
            'body': body_rows,
        })
        config.hook_registry().fire_cell(HookPoint.DID_PARSE_CELL, CellHookData('head', 0, 0))
        assert calls == ['head']

    def test_created_cell_alias(self, body_rows):
        def created(data):
            return None
        config = normalize({'createdCell': created, 'body': body_rows})
        assert config.hooks.get(HookPoint.DID_PARSE_CELL) is created
        assert config.to_dict()['hooks'] == ['didParseCell']

    def test_bound_method_hook_reaches_its_object(self, body_rows):
        collector = CellCollector()
        config = normalize({'didParseCell': collector.on_cell, 'body': body_rows})
        assert config.hooks.did_parse_cell.__self__ is collector

        config.hook_registry().fire_cell(HookPoint.DID_PARSE_CELL, CellHookData('body', 0, 0))
        assert collector.seen == ['body']

    def test_partial_hook_keeps_captured_state(self, body_rows):
        seen = []
        hook = functools.partial(lambda sink, data: sink.append(data.row_index), seen)
        config = normalize({'didParseCell': hook, 'body': body_rows})
        assert config.hooks.did_parse_cell is hook

        config.hook_registry().fire_cell(HookPoint.DID_PARSE_CELL, CellHookData('body', 2, 0))
        assert seen == [2]

    def test_hook_object_holding_a_lock(self, body_rows):
        collector = CellCollector()
        config = normalize([{'willDrawCell': collector}, {'body': body_rows}])
        config.hook_registry().fire_cell(HookPoint.WILL_DRAW_CELL, CellHookData('body', 1, 0))
        assert collector.seen == ['body']


class TestPurityAndImmutability:

    def test_identical_inputs_give_equal_configs(self, body_rows):
        options = {'theme': 'striped', 'styles': {'fontSize': 9}, 'columnStyles': {0: {'halign': 'right'}}, 'body': body_rows}
        assert normalize(options, scale_factor=2) == normalize(options, scale_factor=2)

    def test_inputs_not_mutated(self, body_rows):
        options = {
            'showFoot': 'never',
            'padding': 3,
            'styles': {'rowHeight': 10},
            'columnStyles': {0: {'columnWidth': 20}},
            'body': body_rows,
        }
        snapshot = copy.deepcopy(options)
        normalize(options)
        assert options == snapshot

    def test_config_is_frozen(self, body_rows):
        config = normalize({'body': body_rows})
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.start_y = 10
        with pytest.raises(TypeError):
            config.body_styles['fontSize'] = 20
        with pytest.raises(TypeError):
            config.column_styles[0] = config.body_styles

    def test_hook_mutation_does_not_leak_into_next_table(self, body_rows):
        def parse(data):
            data.styles['fillColor'] = [255, 0, 0]
            data.styles['fontSize'] = 30

        options = {'didParseCell': parse, 'theme': 'grid', 'body': body_rows}
        first = normalize(options)
        cell = CellHookData('body', 1, 0, styles=first.cell_style('body', 1, 0).to_dict())
        first.hook_registry().fire_cell(HookPoint.DID_PARSE_CELL, cell)
        assert cell.styles['fontSize'] == 30

        second = normalize(options)
        assert second == first
        assert second.body_styles['fontSize'] == 10

    def test_unknown_options_kept_as_extras(self, body_rows):
        config = normalize({'myOption': [1, 2], 'body': body_rows})
        assert config.extra['myOption'] == (1, 2)

    def test_to_dict_is_yaml_serializable(self, body_rows):
        config = normalize({'theme': 'striped', 'head': ['Name', 'Country'], 'body': body_rows})
        data = yaml.safe_load(yaml.safe_dump(config.to_dict()))
        assert data['theme'] == 'striped'
        assert data['styles']['head']['fillColor'] == [41, 128, 185]
        assert data['head'] == [['Name', 'Country']]
        assert data['margin'] == {'top': 40.0, 'right': 40.0, 'bottom': 40.0, 'left': 40.0}


class TestOptionsNormalizer:

    def test_shared_diagnostics(self, body_rows, diagnostics):
        normalizer = OptionsNormalizer(ResolutionContext(scale_factor=2), diagnostics)
        config = normalizer.normalize({'margins': 4, 'body': body_rows})
        assert config.margin == Margin.uniform(4)
        assert config.body_styles['cellPadding'] == 2.5
        assert diagnostics.keys() == ['margins']
