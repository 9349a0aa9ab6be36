"""Tests for request validation helpers."""

import pytest

from hostwatch.utils.validators import (
    ValidationError, parse_positive_int, validate_alert_rule, validate_layout,
    validate_message_template, validate_metric_name
)


def valid_rule(**overrides):
    data = {
        'metric_pattern': 'disk.*.used_pct',
        'operator': 'gt',
        'threshold': 90,
        'severity': 'critical',
        'message_en': 'Disk at %.1f%%',
    }
    data.update(overrides)
    return data


class TestMetricName:

    def test_valid_names(self):
        assert validate_metric_name(' cpu.total.usage ') == 'cpu.total.usage'
        assert validate_metric_name('net.Wi-Fi 2.bytes_recv') == 'net.Wi-Fi 2.bytes_recv'

    @pytest.mark.parametrize('name', ['', '   ', None, 'cpu..usage', '.cpu', 'cpu.*.usage', 'x' * 300])
    def test_invalid_names(self, name):
        with pytest.raises(ValidationError):
            validate_metric_name(name)

    def test_wildcards_in_patterns(self):
        assert validate_metric_name('gpu.*.temp_c', allow_wildcard=True) == 'gpu.*.temp_c'
        with pytest.raises(ValidationError):
            validate_metric_name('gpu.t*.temp_c', allow_wildcard=True)


class TestMessageTemplate:

    def test_single_placeholder(self):
        assert validate_message_template('Load %.2f', 'message_en') == 'Load %.2f'
        assert validate_message_template('Usage %.1f%%', 'message_en') == 'Usage %.1f%%'

    @pytest.mark.parametrize('template', ['', 'no value', '%.1f and %.1f', '%(value)s', 'bad %'])
    def test_rejected_templates(self, template):
        with pytest.raises(ValidationError):
            validate_message_template(template, 'message_en')


class TestPositiveInt:

    def test_parses_strings_and_ints(self):
        assert parse_positive_int('15', 'interval') == 15
        assert parse_positive_int(3, 'interval') == 3
        assert parse_positive_int(2.0, 'interval') == 2

    @pytest.mark.parametrize('value', ['abc', None, True, 2.5, 0, -1])
    def test_rejects(self, value):
        with pytest.raises(ValidationError):
            parse_positive_int(value, 'interval')

    def test_maximum(self):
        with pytest.raises(ValidationError):
            parse_positive_int(51, 'top_process_count', maximum=50)


class TestAlertRule:

    def test_valid_rule(self):
        data = validate_alert_rule(valid_rule())
        assert data['threshold'] == 90.0
        assert data['message_ko'] == 'Disk at %.1f%%'
        assert data['enabled'] is True

    def test_defaults(self):
        data = validate_alert_rule({'metric_pattern': 'cpu.load.1', 'threshold': 4, 'message_en': 'Load %.2f'})
        assert data['operator'] == 'gt'
        assert data['severity'] == 'warning'

    @pytest.mark.parametrize('overrides', [
        {'operator': 'eq'},
        {'threshold': 'high'},
        {'threshold': True},
        {'severity': 'fatal'},
        {'message_en': 'no placeholder'},
        {'message_ko': '%d %d'},
        {'enabled': 'yes'},
        {'metric_pattern': ''},
    ])
    def test_invalid_rules(self, overrides):
        with pytest.raises(ValidationError):
            validate_alert_rule(valid_rule(**overrides))

    def test_not_an_object(self):
        with pytest.raises(ValidationError):
            validate_alert_rule(['cpu.load.1'])


class TestLayout:

    def test_valid_layout(self):
        assert validate_layout({'name': ' main ', 'layout': {'grid': []}}) == {
            'name': 'main', 'layout': {'grid': []}
        }

    def test_partial_update(self):
        assert validate_layout({'name': 'ops'}, require_layout=False) == {'name': 'ops', 'layout': None}

    @pytest.mark.parametrize('data', [{'name': 'x'}, {'name': '', 'layout': {}}, {'layout': []}, 'layout'])
    def test_invalid_layouts(self, data):
        with pytest.raises(ValidationError):
            validate_layout(data)
