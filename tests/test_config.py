"""Tests for dashboard settings persistence."""

import json

from logdash.utils.config import SETTINGS_VERSION, DashboardSettings
from logdash.utils.units import DEFAULT_PREFERENCES


class TestDashboardSettings:

    def test_defaults(self):
        settings = DashboardSettings()
        assert settings.default_units == DEFAULT_PREFERENCES
        assert settings.max_render_points == 2000
        assert settings.auto_select_count == 3
        assert settings.remote_allowed_hosts == ['bootmod3.net']
        assert not settings.debug_enabled

    def test_save_and_load(self, tmp_path):
        path = tmp_path / 'settings.json'
        settings = DashboardSettings(max_render_points=500)
        settings.default_units['pressure'] = 'bar'
        assert settings.save(str(path))

        data = json.loads(path.read_text(encoding='utf-8'))
        assert data['version'] == SETTINGS_VERSION

        loaded = DashboardSettings.load(str(path))
        assert loaded == settings

    def test_missing_file_gives_defaults(self, tmp_path):
        assert DashboardSettings.load(str(tmp_path / 'none.json')) == DashboardSettings()

    def test_corrupt_file_gives_defaults(self, tmp_path):
        path = tmp_path / 'settings.json'
        path.write_text('{not json', encoding='utf-8')
        assert DashboardSettings.load(str(path)) == DashboardSettings()

    def test_unsupported_version_gives_defaults(self, tmp_path):
        path = tmp_path / 'settings.json'
        path.write_text(json.dumps({'version': '0.1', 'max_render_points': 10}), encoding='utf-8')
        assert DashboardSettings.load(str(path)).max_render_points == 2000

    def test_partial_units_merge_with_defaults(self, tmp_path):
        path = tmp_path / 'settings.json'
        path.write_text(json.dumps({
            'version': SETTINGS_VERSION,
            'default_units': {'speed': 'km/h'},
            'unknown_key': True,
        }), encoding='utf-8')
        loaded = DashboardSettings.load(str(path))
        assert loaded.default_units['speed'] == 'km/h'
        assert loaded.default_units['pressure'] == DEFAULT_PREFERENCES['pressure']
        assert not hasattr(loaded, 'unknown_key')
