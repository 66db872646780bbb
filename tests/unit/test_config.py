"""
Unit tests for the OAT configuration module.

Tests configuration loading, override precedence, property access, flip
settings conversion, and TOML persistence using temporary files.
"""

import logging

import pytest
import toml

# Import module under test
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from OATConfig import OATConfig, OATConfigError
from flip_settings import FlipSettings


@pytest.fixture
def loaded_config(temp_toml_file, tmp_path):
    """Config loaded from the shared temp file with no override file."""
    return OATConfig(temp_toml_file, tmp_path / 'missing' / 'override.toml')


class TestConfigInitialization:
    """Test configuration initialization."""

    @pytest.mark.unit
    def test_config_loads_from_file(self, loaded_config):
        assert loaded_config is not None
        assert loaded_config._lock is not None

    @pytest.mark.unit
    def test_config_raises_on_missing_file(self, tmp_path):
        with pytest.raises(OATConfigError, match="Failed to load"):
            OATConfig(tmp_path / 'absent.toml', tmp_path / 'override.toml')

    @pytest.mark.unit
    def test_config_raises_on_invalid_toml(self, tmp_path):
        config_file = tmp_path / 'oatconfig.toml'
        config_file.write_text('invalid toml {{{{')

        with pytest.raises(OATConfigError):
            OATConfig(config_file, tmp_path / 'override.toml')

    @pytest.mark.unit
    def test_config_raises_on_invalid_override(self, temp_toml_file, tmp_path):
        override = tmp_path / 'override.toml'
        override.write_text('[device\n')

        with pytest.raises(OATConfigError, match="override"):
            OATConfig(temp_toml_file, override)


class TestConfigDeviceSection:
    """Test device configuration properties."""

    @pytest.mark.unit
    def test_values_from_file(self, loaded_config):
        assert loaded_config.transport == 'serial'
        assert loaded_config.serial_port == '/dev/ttyUSB0'
        assert loaded_config.baudrate == 9600
        assert loaded_config.safe_time_command == ':XGST#'

    @pytest.mark.unit
    def test_defaults_for_missing_keys(self, loaded_config):
        assert loaded_config.alpaca_address == '127.0.0.1'
        assert loaded_config.alpaca_port == 11111
        assert loaded_config.alpaca_device_number == 0

    @pytest.mark.unit
    def test_override_wins(self, temp_toml_file, tmp_path):
        override = tmp_path / 'override.toml'
        override.write_text("[device]\ntransport = 'ALPACA'\n")

        config = OATConfig(temp_toml_file, override)

        assert config.transport == 'alpaca'
        assert config.serial_port == '/dev/ttyUSB0'


class TestConfigFlipSection:
    """Test flip settings conversion."""

    @pytest.mark.unit
    def test_flip_settings_validated(self, loaded_config):
        settings = loaded_config.flip_settings()

        assert settings.safe_time_threshold_minutes == 10.0
        assert settings.polling_interval_seconds == 30
        assert settings.recenter_after_flip is True
        # Out of range in the file, default kept
        assert settings.max_centering_attempts == 3

    @pytest.mark.unit
    def test_store_and_save(self, loaded_config, temp_toml_file, tmp_path):
        loaded_config.store_flip_settings(FlipSettings(autofocus_after_flip=True))
        loaded_config.save()

        saved = toml.load(temp_toml_file)
        assert saved['flip']['autofocus_after_flip'] is True
        assert saved['flip']['polling_interval_seconds'] == 15

        reloaded = OATConfig(temp_toml_file, tmp_path / 'missing' / 'override.toml')
        assert reloaded.flip_settings() == FlipSettings(autofocus_after_flip=True)


class TestConfigOtherSections:
    """Test monitor and logging properties."""

    @pytest.mark.unit
    def test_monitor_tick(self, loaded_config):
        assert loaded_config.tick_seconds == 2.0

    @pytest.mark.unit
    def test_logging_values(self, loaded_config):
        assert loaded_config.log_level == logging.DEBUG
        assert loaded_config.log_to_stdout is False
        assert loaded_config.max_size_mb == 5
        assert loaded_config.num_keep_logs == 10
        assert loaded_config.log_file == 'oat_safetime.log'

    @pytest.mark.unit
    def test_unknown_log_level_falls_back(self, loaded_config):
        loaded_config.log_level = 'chatty'

        assert loaded_config.log_level == logging.INFO

    @pytest.mark.unit
    def test_reload_discards_unsaved_changes(self, loaded_config):
        loaded_config.tick_seconds = 9.0
        loaded_config.reload()

        assert loaded_config.tick_seconds == 2.0
