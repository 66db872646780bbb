# -*- coding: utf-8 -*-
# -----------------------------------------------------------------------------
# OATConfig.py - OAT safe time flip persistent configuration file.  Adapted
# from Alpyca's config.py
#
# Python Compatibility: Requires Python 3.8 or later
#
# -----------------------------------------------------------------------------
# MIT License
#
# Copyright (c) 2022-2024 Bob Denny
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
# -----------------------------------------------------------------------------

import logging
import threading
from pathlib import Path
from typing import Any, Optional, Union

import toml

from flip_settings import DEFAULT_SETTINGS, FlipSettings


class OATConfigError(Exception):
    """Custom exception for OAT configuration errors"""
    pass


class OATConfig:
    """Trigger configuration with thread-safe TOML persistence.

    For docker-based installations, looks for /alpyca/oatconfig.toml
    first, with any settings there overriding ./oatconfig.toml.

    Attributes:
        transport: Mount transport, 'alpaca' or 'serial'
        safe_time_command: LX200 command returning safe time in hours
        tick_seconds: Host tick cadence for the standalone monitor
        log_level: Logging level (integer)
    """

    # Class constants
    DEFAULT_CONFIG_FILE = 'oatconfig.toml'
    OVERRIDE_CONFIG_PATH = '/alpyca/oatconfig.toml'

    def __init__(
        self,
        config_file: Optional[Union[str, Path]] = None,
        override_file: Optional[Union[str, Path]] = None
    ):
        """Initialize configuration by loading TOML files.

        Args:
            config_file: Primary file, defaults to ./oatconfig.toml.
            override_file: Override file, defaults to /alpyca/oatconfig.toml.
        """
        self._lock = threading.RLock()
        self._dict = {}
        self._dict2 = {}

        self._config_file = Path(config_file) if config_file else Path.cwd() / self.DEFAULT_CONFIG_FILE
        self._override_file = Path(override_file) if override_file else Path(self.OVERRIDE_CONFIG_PATH)

        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from TOML files.

        Raises:
            OATConfigError: If primary config file cannot be loaded.
        """
        with self._lock:
            try:
                self._dict = toml.load(self._config_file)
            except (FileNotFoundError, toml.TomlDecodeError) as e:
                raise OATConfigError(
                    f"Failed to load primary config file {self._config_file}: {e}"
                ) from e

            try:
                if self._override_file.exists():
                    self._dict2 = toml.load(self._override_file)
            except toml.TomlDecodeError as e:
                raise OATConfigError(
                    f"Failed to load override config file {self._override_file}: {e}"
                ) from e

    def _get_toml(self, sect: str, item: str, default: Any = None) -> Any:
        """Get configuration value, checking override file first.

        Args:
            sect: Configuration section name
            item: Configuration item name
            default: Returned when neither file has the item

        Returns:
            Configuration value or default if not found
        """
        with self._lock:
            try:
                return self._dict2[sect][item]
            except KeyError:
                try:
                    return self._dict[sect][item]
                except KeyError:
                    return default

    def _put_toml(self, sect: str, item: str, setting: Any) -> None:
        """Set configuration value in the appropriate dictionary.

        Args:
            sect: Configuration section name
            item: Configuration item name
            setting: Value to set
        """
        with self._lock:
            # Override file wins once it exists or has been written to
            if self._dict2 or self._override_file.exists():
                if sect not in self._dict2:
                    self._dict2[sect] = {}
                self._dict2[sect][item] = setting
            else:
                if sect not in self._dict:
                    self._dict[sect] = {}
                self._dict[sect][item] = setting

    def save(self) -> None:
        """Save configuration to file, overwriting existing.

        Raises:
            OATConfigError: If configuration cannot be saved.
        """
        with self._lock:
            try:
                if self._dict2 or self._override_file.exists():
                    self._override_file.parent.mkdir(parents=True, exist_ok=True)
                    with self._override_file.open('w', encoding='utf-8') as f:
                        toml.dump(self._dict2, f)
                else:
                    with self._config_file.open('w', encoding='utf-8') as f:
                        toml.dump(self._dict, f)
            except (OSError, PermissionError) as e:
                raise OATConfigError(f"Failed to save configuration: {e}") from e

    def reload(self) -> None:
        """Reload configuration from files.

        Raises:
            OATConfigError: If configuration files cannot be reloaded.
        """
        with self._lock:
            self._dict = {}
            self._dict2 = {}
            self._load_config()

    # Configuration section constants
    DEVICE_SECTION = 'device'
    FLIP_SECTION = 'flip'
    MONITOR_SECTION = 'monitor'
    LOGGING_SECTION = 'logging'

    # --------------
    # Device Section
    # --------------

    @property
    def transport(self) -> str:
        """Mount transport: 'alpaca' or 'serial'."""
        return str(self._get_toml(self.DEVICE_SECTION, 'transport', 'alpaca')).lower()

    @transport.setter
    def transport(self, value: str) -> None:
        self._put_toml(self.DEVICE_SECTION, 'transport', value)

    @property
    def alpaca_address(self) -> str:
        return self._get_toml(self.DEVICE_SECTION, 'alpaca_address', '127.0.0.1')

    @alpaca_address.setter
    def alpaca_address(self, value: str) -> None:
        self._put_toml(self.DEVICE_SECTION, 'alpaca_address', value)

    @property
    def alpaca_port(self) -> int:
        return self._get_toml(self.DEVICE_SECTION, 'alpaca_port', 11111)

    @alpaca_port.setter
    def alpaca_port(self, value: int) -> None:
        self._put_toml(self.DEVICE_SECTION, 'alpaca_port', value)

    @property
    def alpaca_device_number(self) -> int:
        return self._get_toml(self.DEVICE_SECTION, 'alpaca_device_number', 0)

    @alpaca_device_number.setter
    def alpaca_device_number(self, value: int) -> None:
        self._put_toml(self.DEVICE_SECTION, 'alpaca_device_number', value)

    @property
    def serial_port(self) -> str:
        """Serial port of a directly attached mount."""
        return self._get_toml(self.DEVICE_SECTION, 'serial_port', 'COM1')

    @serial_port.setter
    def serial_port(self, value: str) -> None:
        self._put_toml(self.DEVICE_SECTION, 'serial_port', value)

    @property
    def baudrate(self) -> int:
        return self._get_toml(self.DEVICE_SECTION, 'baudrate', 9600)

    @baudrate.setter
    def baudrate(self, value: int) -> None:
        self._put_toml(self.DEVICE_SECTION, 'baudrate', value)

    @property
    def safe_time_command(self) -> str:
        """Mount command returning the remaining safe time in hours."""
        return self._get_toml(self.DEVICE_SECTION, 'safe_time_command', ':XGST#')

    @safe_time_command.setter
    def safe_time_command(self, value: str) -> None:
        self._put_toml(self.DEVICE_SECTION, 'safe_time_command', value)

    # ------------
    # Flip Section
    # ------------

    def flip_settings(self) -> FlipSettings:
        """Build validated flip settings from the [flip] section.

        Out-of-range values in the file are ignored and the default
        is kept for that setting.
        """
        with self._lock:
            values = {}
            for name in DEFAULT_SETTINGS:
                value = self._get_toml(self.FLIP_SECTION, name)
                if value is not None:
                    values[name] = value
        return FlipSettings.from_dict(values)

    def store_flip_settings(self, settings: FlipSettings) -> None:
        """Write flip settings into the [flip] section (call save() to persist)."""
        with self._lock:
            for name, value in settings.as_dict().items():
                self._put_toml(self.FLIP_SECTION, name, value)

    # ---------------
    # Monitor Section
    # ---------------

    @property
    def tick_seconds(self) -> float:
        """Evaluation cadence of the standalone monitor."""
        return float(self._get_toml(self.MONITOR_SECTION, 'tick_seconds', 1.0))

    @tick_seconds.setter
    def tick_seconds(self, value: float) -> None:
        self._put_toml(self.MONITOR_SECTION, 'tick_seconds', value)

    # ---------------
    # Logging Section
    # ---------------

    @property
    def log_level(self) -> int:
        """Logging level as integer."""
        level = logging.getLevelName(str(self._get_toml(self.LOGGING_SECTION, 'log_level', 'INFO')).upper())
        return level if isinstance(level, int) else logging.INFO

    @log_level.setter
    def log_level(self, value: str) -> None:
        """Set log level using string value."""
        self._put_toml(self.LOGGING_SECTION, 'log_level', value)

    @property
    def log_to_stdout(self) -> bool:
        return self._get_toml(self.LOGGING_SECTION, 'log_to_stdout', True)

    @log_to_stdout.setter
    def log_to_stdout(self, value: bool) -> None:
        self._put_toml(self.LOGGING_SECTION, 'log_to_stdout', value)

    @property
    def log_file(self) -> str:
        return self._get_toml(self.LOGGING_SECTION, 'log_file', 'oat_safetime.log')

    @log_file.setter
    def log_file(self, value: str) -> None:
        self._put_toml(self.LOGGING_SECTION, 'log_file', value)

    @property
    def max_size_mb(self) -> int:
        """Maximum log file size in MB."""
        return self._get_toml(self.LOGGING_SECTION, 'max_size_mb', 5)

    @max_size_mb.setter
    def max_size_mb(self, value: int) -> None:
        self._put_toml(self.LOGGING_SECTION, 'max_size_mb', value)

    @property
    def num_keep_logs(self) -> int:
        """Number of log files to keep."""
        return self._get_toml(self.LOGGING_SECTION, 'num_keep_logs', 10)

    @num_keep_logs.setter
    def num_keep_logs(self, value: int) -> None:
        self._put_toml(self.LOGGING_SECTION, 'num_keep_logs', value)

    def __repr__(self) -> str:
        """Return string representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"config_file='{self._config_file}', "
            f"override_file='{self._override_file}')"
        )
