"""
Unit tests for mount creation and logger setup.
"""

import logging

import pytest
from unittest.mock import Mock

# Import module under test
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

import log
from alpaca_mount import AlpacaMount
from mount_factory import create_mount, get_available_transports
from oat_serial import LX200SerialMount


def make_config(**values):
    config = Mock()
    config.transport = 'serial'
    config.serial_port = '/dev/ttyUSB0'
    config.baudrate = 9600
    config.alpaca_address = '127.0.0.1'
    config.alpaca_port = 11111
    config.alpaca_device_number = 0
    for key, value in values.items():
        setattr(config, key, value)
    return config


class TestCreateMount:
    """Test transport selection."""

    @pytest.mark.unit
    def test_serial(self, mock_logger):
        mount = create_mount(make_config(), mock_logger)

        assert isinstance(mount, LX200SerialMount)
        assert mount.Connected is False

    @pytest.mark.unit
    def test_alpaca(self, mock_logger):
        mount = create_mount(make_config(transport='alpaca', alpaca_port=32323), mock_logger)

        assert isinstance(mount, AlpacaMount)
        assert mount.server == '127.0.0.1:32323'

    @pytest.mark.unit
    def test_unknown(self, mock_logger):
        assert create_mount(make_config(transport='usb'), mock_logger) is None
        mock_logger.error.assert_called_once()
        message = mock_logger.error.call_args.args[0]
        assert "usb" in message
        assert "alpaca, serial" in message

    @pytest.mark.unit
    def test_available_transports(self):
        assert set(get_available_transports()) == {'alpaca', 'serial'}


class TestInitLogging:
    """Test the shared logger setup."""

    @pytest.fixture
    def log_config(self, tmp_path):
        config = Mock()
        config.log_level = logging.DEBUG
        config.log_file = str(tmp_path / 'oat_safetime.log')
        config.max_size_mb = 1
        config.num_keep_logs = 2
        config.log_to_stdout = False
        return config

    @pytest.mark.unit
    def test_file_logging(self, log_config):
        logger = log.init_logging(log_config)
        try:
            logger.info("OAT Safe Time: 0.50 hours")
            for handler in logger.handlers:
                handler.flush()

            with open(log_config.log_file) as f:
                assert "INFO oat_safetime OAT Safe Time: 0.50 hours" in f.read()
            assert log.logger is logger
            assert log.get_logger('monitor').name == 'oat_safetime.monitor'
        finally:
            for handler in logger.handlers[:]:
                handler.close()
                logger.removeHandler(handler)

    @pytest.mark.unit
    def test_stdout_handler(self, log_config):
        log_config.log_to_stdout = True

        logger = log.init_logging(log_config)
        try:
            assert len(logger.handlers) == 2
            assert logger.level == logging.DEBUG
            assert logger.propagate is False
        finally:
            for handler in logger.handlers[:]:
                handler.close()
                logger.removeHandler(handler)
