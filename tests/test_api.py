"""Tests for the REST API."""

from hostwatch.monitoring.alerts import default_alert_rules


def collect(app):
    app.monitoring.scheduler.collect_all()


class TestSystem:

    def test_health(self, client):
        response = client.get('/api/health')

        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'ok'
        assert data['scheduler_running'] is False
        assert data['enabled_collectors'] == ['cpu', 'memory']
        assert data['collect_interval'] == 5

    def test_unknown_route(self, client):
        response = client.get('/api/v1/nothing-here')
        assert response.status_code == 404
        assert response.get_json() == {'error': 'Resource not found'}


class TestCollectors:

    def test_list(self, client):
        data = client.get('/api/v1/collectors').get_json()

        assert [c['id'] for c in data] == ['cpu', 'memory']
        cpu = data[0]
        assert cpu['enabled'] is True
        assert {m['name'] for m in cpu['metric_states']} == {'cpu.load.1', 'cpu.total.usage'}

    def test_enable_disable(self, client, app):
        response = client.put('/api/v1/collectors/cpu/disable')
        assert response.status_code == 200
        assert response.get_json() == {'status': 'disabled', 'id': 'cpu'}
        assert not app.monitoring.registry.is_enabled('cpu')
        assert app.monitoring.store.get_all_collector_states()['cpu'] is False

        client.put('/api/v1/collectors/cpu/enable')
        assert app.monitoring.registry.is_enabled('cpu')

    def test_unknown_collector(self, client):
        assert client.put('/api/v1/collectors/nope/enable').status_code == 404
        assert client.put('/api/v1/collectors/nope/disable').status_code == 404
        assert client.put('/api/v1/collectors/nope/metrics/enable').status_code == 404

    def test_collector_metrics_toggle(self, client, app):
        response = client.put('/api/v1/collectors/memory/metrics/disable')

        assert response.status_code == 200
        assert app.monitoring.store.get_disabled_metrics() == {'mem.total', 'mem.used_pct'}

        client.put('/api/v1/collectors/memory/metrics/enable')
        assert app.monitoring.store.get_disabled_metrics() == set()


class TestMetrics:

    def test_query_collected_samples(self, client, app):
        collect(app)

        response = client.get('/api/v1/metrics/query?name=cpu.total.usage,mem.used_pct&from=0&to=2000000000')

        assert response.status_code == 200
        data = response.get_json()
        assert sorted((s['metric_name'], s['value']) for s in data) == [
            ('cpu.total.usage', 42.0), ('mem.used_pct', 55.0)
        ]

    def test_query_step(self, client, app):
        collect(app)

        data = client.get('/api/v1/metrics/query?name=cpu.total.usage&from=0&to=2000000000&step=60').get_json()

        assert data[0]['timestamp'] == 1700000000 // 60 * 60

    def test_query_default_window_excludes_old_samples(self, client, app):
        collect(app)
        assert client.get('/api/v1/metrics/query?name=cpu.total.usage').get_json() == []

    def test_query_validation(self, client):
        assert client.get('/api/v1/metrics/query').status_code == 400
        assert client.get('/api/v1/metrics/query?name=cpu.load.1&from=yesterday').status_code == 400
        assert client.get('/api/v1/metrics/query?name=cpu.load.1&step=-1').status_code == 400

    def test_available_groups_by_collector(self, client):
        """Test the catalogue groups metrics by second name segment."""
        data = client.get('/api/v1/metrics/available').get_json()

        cpu = data[0]
        assert cpu['label'] == 'CPU (cpu)'
        assert [child['label'] for child in cpu['children']] == ['load', 'total']
        usage = cpu['children'][1]['metrics'][0]
        assert usage['name'] == 'cpu.total.usage'
        assert usage['unit'] == '%'
        assert 'description_ko' in usage

    def test_disable_single_metric(self, client, app):
        response = client.put('/api/v1/metrics/state/cpu.load.1/disable')

        assert response.status_code == 200
        assert not app.monitoring.registry.is_metric_enabled('cpu.load.1')

        collect(app)
        data = client.get('/api/v1/metrics/query?name=cpu.load.1&from=0&to=2000000000').get_json()
        assert data == []

        client.put('/api/v1/metrics/state/cpu.load.1/enable')
        assert app.monitoring.registry.is_metric_enabled('cpu.load.1')

    def test_invalid_metric_name(self, client):
        assert client.put('/api/v1/metrics/state/cpu..load/disable').status_code == 400

    def test_ensure_enabled(self, client, app):
        """Test requesting metrics turns their disabled collector back on."""
        client.put('/api/v1/collectors/cpu/disable')
        client.put('/api/v1/metrics/state/cpu.total.usage/disable')

        response = client.put('/api/v1/metrics/ensure-enabled', json={'metrics': ['cpu.total.usage']})

        assert response.status_code == 200
        assert app.monitoring.registry.is_enabled('cpu')
        assert app.monitoring.registry.is_metric_enabled('cpu.total.usage')
        assert 'cpu.total.usage' not in app.monitoring.store.get_disabled_metrics()

    def test_ensure_enabled_validation(self, client):
        assert client.put('/api/v1/metrics/ensure-enabled').status_code == 400
        assert client.put('/api/v1/metrics/ensure-enabled', json={'metrics': 'cpu'}).status_code == 400
        assert client.put('/api/v1/metrics/ensure-enabled', json={'metrics': ['']}).status_code == 400


class TestAlerts:

    def test_default_rules_seeded(self, client):
        data = client.get('/api/v1/alert-rules').get_json()
        assert len(data) == len(default_alert_rules())
        assert all(rule['id'] for rule in data)

    def test_create_rule_raises_alert(self, client, app):
        """Test a new rule takes effect on the next collection."""
        response = client.post('/api/v1/alert-rules', json={
            'metric_pattern': 'mem.used_pct',
            'operator': 'gt',
            'threshold': 50,
            'severity': 'info',
            'message_en': 'Memory at %.1f%%',
        })
        assert response.status_code == 201
        assert response.get_json()['message_ko'] == 'Memory at %.1f%%'

        collect(app)

        alerts = client.get('/api/v1/alerts').get_json()
        assert [(a['id'], a['severity']) for a in alerts] == [('alert-mem.used_pct', 'info')]
        assert alerts[0]['message_en'] == 'Memory at 55.0%'

    def test_update_and_delete_rule(self, client, app):
        rule_id = client.get('/api/v1/alert-rules').get_json()[0]['id']
        payload = {
            'metric_pattern': 'cpu.total.usage',
            'operator': 'gte',
            'threshold': 42,
            'severity': 'critical',
            'message_en': 'CPU %.0f%%',
            'message_ko': 'CPU %.0f%%',
            'enabled': True,
        }

        response = client.put(f'/api/v1/alert-rules/{rule_id}', json=payload)
        assert response.status_code == 200
        assert response.get_json()['threshold'] == 42

        collect(app)
        assert [a['metric'] for a in client.get('/api/v1/alerts').get_json()] == ['cpu.total.usage']

        assert client.delete(f'/api/v1/alert-rules/{rule_id}').status_code == 200
        assert len(app.monitoring.alert_engine.rules) == len(default_alert_rules()) - 1

    def test_rule_errors(self, client):
        assert client.post('/api/v1/alert-rules', json={'metric_pattern': 'x'}).status_code == 400
        assert client.post('/api/v1/alert-rules', json={
            'metric_pattern': 'cpu.load.1', 'threshold': 1, 'message_en': 'no placeholder'
        }).status_code == 400
        assert client.put('/api/v1/alert-rules/9999', json={
            'metric_pattern': 'cpu.load.1', 'threshold': 1, 'message_en': 'load %.2f'
        }).status_code == 404
        assert client.delete('/api/v1/alert-rules/9999').status_code == 404


class TestSettings:

    def test_defaults(self, client):
        data = client.get('/api/v1/settings').get_json()
        assert data['collect_interval'] == '5'
        assert data['retention_hours'] == '24'

    def test_update_applies_live(self, client, app):
        response = client.put('/api/v1/settings', json={
            'collect_interval': 10, 'retention_hours': '48', 'theme': 'dark'
        })

        assert response.status_code == 200
        assert app.monitoring.scheduler.interval == 10
        assert app.monitoring.retention.retention_hours == 48
        data = client.get('/api/v1/settings').get_json()
        assert data['collect_interval'] == '10'
        assert data['theme'] == 'dark'

    def test_invalid_settings(self, client):
        assert client.put('/api/v1/settings', json={'collect_interval': 0}).status_code == 400
        assert client.put('/api/v1/settings', json={'top_process_count': 100}).status_code == 400
        assert client.put('/api/v1/settings', json={}).status_code == 400
        assert client.put('/api/v1/settings', json={'theme': ['a']}).status_code == 400

    def test_db_info_and_purge(self, client, app):
        collect(app)

        info = client.get('/api/v1/settings/db-info').get_json()
        assert info['sample_count'] == 4

        response = client.delete('/api/v1/settings/db-purge')
        assert response.get_json() == {'status': 'purged', 'deleted': 4}
        assert client.get('/api/v1/settings/db-info').get_json()['sample_count'] == 0


class TestDashboard:

    def test_default_layout_created(self, client):
        layouts = client.get('/api/v1/dashboard/layouts').get_json()

        assert len(layouts) == 1
        assert layouts[0]['name'] == 'default'
        assert 'w-cpu-usage' in layouts[0]['layout']['widgets']

    def test_layout_crud(self, client):
        response = client.post('/api/v1/dashboard/layouts', json={'name': 'ops', 'layout': {'grid': []}})
        assert response.status_code == 201
        layout_id = response.get_json()['id']

        response = client.put(f'/api/v1/dashboard/layouts/{layout_id}', json={'name': 'night shift'})
        assert response.get_json()['name'] == 'night shift'
        assert response.get_json()['layout'] == {'grid': []}

        assert client.get(f'/api/v1/dashboard/layouts/{layout_id}').status_code == 200
        assert client.delete(f'/api/v1/dashboard/layouts/{layout_id}').status_code == 200
        assert client.get(f'/api/v1/dashboard/layouts/{layout_id}').status_code == 404

    def test_layout_validation(self, client):
        assert client.post('/api/v1/dashboard/layouts', json={'name': 'x'}).status_code == 400
        assert client.put('/api/v1/dashboard/layouts/999', json={'name': 'x'}).status_code == 404
