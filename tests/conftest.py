"""
Shared pytest fixtures for OAT safe time flip tests.

This module provides common fixtures used across unit and integration tests,
including mock loggers, fake mount handles, a manual clock, and in-memory
doubles for the guider, imaging, autofocus and plate solving collaborators.
"""

import pytest
from unittest.mock import Mock, MagicMock, patch
from datetime import datetime, timedelta
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from flip_interfaces import (
    AutofocusFactory,
    AutofocusReport,
    AutofocusRunner,
    CenteringSolver,
    CenterResult,
    GuiderControl,
    GuiderInfo,
    ImagingControl,
    ObservatoryProfile,
    PlateSolverFactory,
    PlateSolveSettings,
    ProfileProvider,
    TelescopeControl,
    TelescopeInfo,
)
from flip_sequence import FlipActionSequence
from flip_settings import FlipSettings
from notifications import NotificationCenter
from safe_time_trigger import SafeTimeTrigger


# Device handle doubles

class CommandStringHandle:
    """Device handle exposing CommandString, like an ASCOM/Alpaca driver."""

    def __init__(self, response='4.25#', connected=True):
        self.response = response
        self.Connected = connected
        self.commands = []
        self.error = None

    def CommandString(self, command, raw):
        self.commands.append(command)
        if self.error is not None:
            raise self.error
        return self.response


class SendStringHandle:
    """Device handle exposing only SendString, with IsConnected."""

    def __init__(self, response='1.50#'):
        self.response = response
        self.IsConnected = True
        self.commands = []

    def SendString(self, command, raw):
        self.commands.append(command)
        return self.response


class ManualClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 6, 1, 22, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


# Collaborator doubles

class FakeTelescope(TelescopeControl):

    def __init__(self, handle=None, info=None):
        self.handle = handle
        self.info = info or TelescopeInfo(connected=True, right_ascension=5.5, declination=22.0)
        self.slews = []
        self.slew_error = None
        self.events = None

    def get_device(self):
        return self.handle

    def get_info(self):
        return self.info

    async def slew_to_coordinates(self, coordinates, token):
        if self.events is not None:
            self.events.append('slew')
        self.slews.append(coordinates)
        if self.slew_error is not None:
            raise self.slew_error


class FakeGuider(GuiderControl):

    def __init__(self, guiding=True, connected=True):
        self.info = GuiderInfo(connected=connected, guiding=guiding)
        self.stop_calls = 0
        self.start_calls = []
        self.stop_error = None
        self.start_error = None
        self.start_result = True
        self.events = None

    def get_info(self):
        return self.info

    async def stop_guiding(self, token):
        if self.events is not None:
            self.events.append('stop_guiding')
        self.stop_calls += 1
        if self.stop_error is not None:
            raise self.stop_error
        self.info = GuiderInfo(connected=self.info.connected, guiding=False)

    async def start_guiding(self, force_calibration, progress, token):
        if self.events is not None:
            self.events.append('start_guiding')
        self.start_calls.append(force_calibration)
        if self.start_error is not None:
            raise self.start_error
        return self.start_result


class FakeImaging(ImagingControl):
    """Reports the queued exposure states, then the last one forever."""

    def __init__(self, states=(False,)):
        self.states = list(states)
        self.calls = 0

    def is_exposing(self):
        self.calls += 1
        if len(self.states) > 1:
            return self.states.pop(0)
        return self.states[0]


class FakeAutofocusRunner(AutofocusRunner):

    def __init__(self, report=None, error=None):
        self.report = report
        self.error = error
        self.runs = 0

    async def run(self, filter_name, token, progress):
        self.runs += 1
        if self.error is not None:
            raise self.error
        return self.report


class FakeAutofocusFactory(AutofocusFactory):

    def __init__(self, runner=None):
        self.runner = runner if runner is not None else FakeAutofocusRunner(AutofocusReport(position=4200, hfr=2.1))

    def create(self):
        return self.runner


class FakeCenteringSolver(CenteringSolver):

    def __init__(self, result=None, error=None):
        self.result = result if result is not None else CenterResult(success=True, separation=4.2)
        self.error = error
        self.requests = []
        self.events = None

    async def center(self, capture, parameter, progress, token):
        if self.events is not None:
            self.events.append('center')
        self.requests.append((capture, parameter))
        if self.error is not None:
            raise self.error
        return self.result


class FakePlateSolverFactory(PlateSolverFactory):

    def __init__(self, centering_solver=None):
        self.centering_solver = centering_solver if centering_solver is not None else FakeCenteringSolver()
        self.plate_solver = object()
        self.blind_solver = object()

    def get_plate_solver(self, settings):
        return self.plate_solver

    def get_blind_solver(self, settings):
        return self.blind_solver

    def get_centering_solver(self, plate_solver, blind_solver, imaging, telescope):
        return self.centering_solver


class FakeProfileProvider(ProfileProvider):

    def __init__(self, profile=None):
        self.profile = profile if profile is not None else ObservatoryProfile(
            plate_solve_settings=PlateSolveSettings(exposure_time=3.0, binning=2, gain=120),
            focal_length=400.0,
            pixel_size=3.76
        )

    @property
    def active_profile(self):
        return self.profile


# Fixtures

@pytest.fixture
def mock_logger():
    """Create a mock logger for testing.

    Returns:
        Mock logger with standard logging methods.
    """
    logger = Mock()
    logger.debug = Mock()
    logger.info = Mock()
    logger.warning = Mock()
    logger.error = Mock()
    logger.critical = Mock()
    return logger


@pytest.fixture
def mock_serial_port():
    """Mock serial port for testing without hardware.

    Yields:
        MagicMock serial port instance.
    """
    with patch('serial.Serial') as mock:
        instance = MagicMock()
        instance.is_open = True
        instance.timeout = 1.0
        instance.read = Mock(return_value=b'')
        instance.write = Mock(return_value=0)
        instance.read_until = Mock(return_value=b'')
        instance.reset_input_buffer = Mock()
        instance.flush = Mock()
        instance.close = Mock()
        mock.return_value = instance
        yield instance


@pytest.fixture
def notifier():
    return NotificationCenter()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def mount_handle():
    return CommandStringHandle()


@pytest.fixture
def telescope(mount_handle):
    return FakeTelescope(handle=mount_handle)


@pytest.fixture
def guider():
    return FakeGuider()


@pytest.fixture
def fast_exposure_wait(monkeypatch):
    """Make exposure wait ticks instantaneous."""
    monkeypatch.setattr(FlipActionSequence, 'EXPOSURE_POLL_INTERVAL', 0)


@pytest.fixture
def make_trigger(telescope, notifier, mock_logger, clock):
    """Factory for SafeTimeTrigger instances wired to the shared doubles.

    Returns:
        Callable accepting SafeTimeTrigger keyword overrides.
    """
    def _make(**kwargs):
        kwargs.setdefault('settings', FlipSettings())
        kwargs.setdefault('notifier', notifier)
        kwargs.setdefault('logger', mock_logger)
        kwargs.setdefault('clock', clock)
        return SafeTimeTrigger(kwargs.pop('telescope', telescope), **kwargs)
    return _make


# Utility fixtures

@pytest.fixture
def temp_toml_file(tmp_path):
    """Create a temporary TOML config file for testing.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary config file.
    """
    config_content = """
[device]
transport = 'serial'
serial_port = '/dev/ttyUSB0'
baudrate = 9600
safe_time_command = ':XGST#'

[flip]
safe_time_threshold_minutes = 10.0
polling_interval_seconds = 30
recenter_after_flip = true
max_centering_attempts = 50

[monitor]
tick_seconds = 2.0

[logging]
log_level = 'DEBUG'
log_to_stdout = false
max_size_mb = 5
num_keep_logs = 10
"""
    config_file = tmp_path / "oatconfig.toml"
    config_file.write_text(config_content)
    return config_file
