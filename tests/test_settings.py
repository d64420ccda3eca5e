"""Test settings loading and validation"""

import pytest
import yaml

from tidal_playlist.config.settings import Settings, get_settings, reload_settings
from tidal_playlist.exceptions import ConfigError


@pytest.fixture
def isolated_home(temp_dir, monkeypatch):
    """Run with an empty working directory and home so no real config is found"""
    monkeypatch.chdir(temp_dir)
    monkeypatch.setenv('HOME', str(temp_dir))
    for name in ('CLIENT_ID', 'CLIENT_SECRET', 'COUNTRY_CODE', 'PLAYLIST_NAME',
                 'PLAYLIST_COUNT', 'WHITELIST', 'BLACKLIST', 'LOG_LEVEL'):
        monkeypatch.delenv(f'TIDAL_{name}', raising=False)
    return temp_dir


class TestSettingsLoading:
    """Test configuration sources and precedence"""

    def test_defaults(self, isolated_home):
        """Test default values"""
        settings = Settings(load_env=False)
        assert settings.loaded_from is None
        assert settings.tidal.country_code == 'US'
        assert settings.tidal.redirect_url == 'http://localhost:8080/callback'
        assert settings.playlist.default_name == 'My Artists Mix'
        assert settings.playlist.count == 50
        assert settings.filters.whitelist == []
        assert settings.network.request_delay == 0.3
        assert settings.network.request_timeout == 30
        assert str(settings.get_token_storage_path()).endswith('tidal-playlist/token.json')

    def test_yaml_file(self, settings, config_file):
        """Test YAML loading"""
        assert settings.loaded_from == config_file
        assert settings.tidal.client_id == 'test-client'
        assert settings.tidal.country_code == 'DE'
        assert settings.playlist.count == 5
        # Untouched keys keep their defaults
        assert settings.logging.level == 'INFO'

    def test_working_directory_config_is_found(self, isolated_home):
        """Test config search path"""
        (isolated_home / 'config.yaml').write_text(yaml.safe_dump({'playlist': {'count': 7}}))
        settings = Settings(load_env=False)
        assert settings.playlist.count == 7

    def test_unknown_keys_ignored(self, temp_dir):
        """Test unknown keys"""
        path = temp_dir / 'extra.yaml'
        path.write_text(yaml.safe_dump({
            'playlist': {'count': 3, 'shuffle': True},
            'unknown_section': {'a': 1},
        }))
        settings = Settings(config_path=str(path), load_env=False)
        assert settings.playlist.count == 3
        assert not hasattr(settings.playlist, 'shuffle')

    def test_missing_explicit_path(self, temp_dir):
        """Test missing config file"""
        with pytest.raises(ConfigError) as exc_info:
            Settings(config_path=str(temp_dir / 'nope.yaml'), load_env=False)
        assert 'not found' in str(exc_info.value)

    def test_invalid_yaml(self, temp_dir):
        """Test invalid YAML"""
        path = temp_dir / 'bad.yaml'
        path.write_text("playlist: [unclosed")
        with pytest.raises(ConfigError):
            Settings(config_path=str(path), load_env=False)

    def test_non_mapping_document(self, temp_dir):
        """Test non-mapping YAML"""
        path = temp_dir / 'list.yaml'
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            Settings(config_path=str(path), load_env=False)

    def test_environment_overrides_file(self, config_file, monkeypatch):
        """Test environment overrides"""
        monkeypatch.setenv('TIDAL_CLIENT_ID', 'env-client')
        monkeypatch.setenv('TIDAL_PLAYLIST_COUNT', '12')
        monkeypatch.setenv('TIDAL_PLAYLIST_NAME', 'Env Mix')
        monkeypatch.setenv('TIDAL_BLACKLIST', 'a1, B2 ,,')
        monkeypatch.setenv('TIDAL_LOG_LEVEL', 'DEBUG')

        settings = Settings(config_path=str(config_file))

        assert settings.tidal.client_id == 'env-client'
        assert settings.tidal.client_secret == 'test-secret'
        assert settings.playlist.count == 12
        assert settings.playlist.default_name == 'Env Mix'
        assert settings.filters.blacklist == ['a1', 'B2']
        assert settings.logging.level == 'DEBUG'

    def test_invalid_environment_count(self, config_file, monkeypatch):
        """Test invalid environment count"""
        monkeypatch.setenv('TIDAL_PLAYLIST_COUNT', 'many')
        with pytest.raises(ConfigError):
            Settings(config_path=str(config_file))

    def test_reload_settings_replaces_global(self, config_file):
        """Test settings reload"""
        settings = reload_settings(str(config_file))
        assert get_settings() is settings
        assert settings.tidal.client_id == 'test-client'


class TestSettingsValidation:
    """Test validation and persistence"""

    def test_valid(self, settings):
        """Test valid settings"""
        settings.validate()

    def test_collects_every_error(self, settings):
        """Test every error is reported"""
        settings.tidal.client_id = ''
        settings.tidal.client_secret = ''
        settings.playlist.count = 0

        with pytest.raises(ConfigError) as exc_info:
            settings.validate()

        errors = exc_info.value.details['errors']
        assert len(errors) == 3
        assert str(exc_info.value).startswith('invalid config: ')
        assert 'tidal.client_id is required' in str(exc_info.value)

    def test_count_must_be_integer(self, settings):
        """Test count type"""
        settings.playlist.count = '10'
        with pytest.raises(ConfigError, match='playlist.count must be an integer'):
            settings.validate()

    def test_filters_must_be_lists(self, settings):
        """Test filter types"""
        settings.filters.whitelist = 'abc'
        with pytest.raises(ConfigError, match='filters.whitelist'):
            settings.validate()
