"""
Unit tests for the LX200 serial transport.

Tests coordinate string conversion, command framing over a mocked serial
port, slew start/refusal handling, and slew completion and cancellation
without requiring actual serial hardware.
"""

import threading

import pytest
import serial
from unittest.mock import patch

# Import module under test
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

import oat_serial
from flip_exceptions import FlipCancelledError, MountConnectionError
from flip_interfaces import Coordinates
from oat_serial import (
    LX200SerialMount,
    degrees_to_dms,
    dms_to_degrees,
    hms_to_hours,
    hours_to_hms,
)


@pytest.fixture
def mount(mock_serial_port, mock_logger):
    """Connected serial mount on the mocked port."""
    mount = LX200SerialMount(mock_logger, port='/dev/ttyUSB0')
    mount.connect()
    return mount


@pytest.fixture
def fast_slew_poll(monkeypatch):
    monkeypatch.setattr(oat_serial, 'SLEW_POLL_INTERVAL', 0)


def written(port):
    return [c.args[0] for c in port.write.call_args_list]


class TestCoordinateConversion:
    """Test sexagesimal string conversion."""

    @pytest.mark.unit
    def test_hms_to_hours(self):
        assert hms_to_hours("14:32:45#") == pytest.approx(14.545833, abs=1e-6)
        assert hms_to_hours("12:30") == pytest.approx(12.5)

    @pytest.mark.unit
    def test_dms_to_degrees(self):
        assert dms_to_degrees("+45*30'15#") == pytest.approx(45.504167, abs=1e-6)
        assert dms_to_degrees("-12:34:56") == pytest.approx(-12.582222, abs=1e-6)
        assert dms_to_degrees("90*00") == pytest.approx(90.0)

    @pytest.mark.unit
    @pytest.mark.parametrize("bad", ["", "#", "25:00:00", "12:61:00", "1:2:3:4", "ab:cd"])
    def test_hms_invalid(self, bad):
        with pytest.raises(ValueError):
            hms_to_hours(bad)

    @pytest.mark.unit
    @pytest.mark.parametrize("bad", ["", "+45*75:00", "x*y"])
    def test_dms_invalid(self, bad):
        with pytest.raises(ValueError):
            dms_to_degrees(bad)

    @pytest.mark.unit
    def test_degrees_to_dms(self):
        assert degrees_to_dms(22.0) == "+22*00:00"
        assert degrees_to_dms(-12.582222) == "-12*34:56"

    @pytest.mark.unit
    def test_hours_to_hms_wraps(self):
        assert hours_to_hms(5.5) == "05:30:00"
        assert hours_to_hms(24.0) == "00:00:00"
        assert hours_to_hms(-1.0) == "23:00:00"

    @pytest.mark.unit
    def test_nan_rejected(self):
        with pytest.raises(ValueError):
            hours_to_hms(float('nan'))
        with pytest.raises(ValueError):
            degrees_to_dms(float('inf'))


class TestConnection:
    """Test opening and closing the port."""

    @pytest.mark.unit
    def test_connect(self, mount, mock_serial_port):
        assert mount.Connected is True
        assert mount.get_device() is mount

    @pytest.mark.unit
    def test_empty_port_rejected(self, mock_logger):
        with pytest.raises(ValueError):
            LX200SerialMount(mock_logger, port='').connect()

    @pytest.mark.unit
    def test_open_failure(self, mock_logger):
        with patch('serial.Serial', side_effect=serial.SerialException("port busy")):
            mount = LX200SerialMount(mock_logger, port='/dev/ttyUSB0')

            with pytest.raises(MountConnectionError, match="port busy"):
                mount.connect()

        assert mount.Connected is False

    @pytest.mark.unit
    def test_context_manager_disconnects(self, mock_serial_port, mock_logger):
        with LX200SerialMount(mock_logger, port='/dev/ttyUSB0') as mount:
            mount.connect()

        mock_serial_port.close.assert_called_once()
        assert mount.Connected is False


class TestCommands:
    """Test command framing."""

    @pytest.mark.unit
    def test_command_string(self, mount, mock_serial_port):
        mock_serial_port.read_until.return_value = b'4.25#'

        assert mount.CommandString(':XGST#', True) == '4.25#'
        assert written(mock_serial_port) == [b':XGST#']
        mock_serial_port.reset_input_buffer.assert_called()
        mock_serial_port.read_until.assert_called_with(b'#')

    @pytest.mark.unit
    def test_command_string_no_reply(self, mount, mock_serial_port):
        mock_serial_port.read_until.return_value = b''

        with pytest.raises(MountConnectionError, match="No response"):
            mount.CommandString(':XGST#')

    @pytest.mark.unit
    def test_command_when_disconnected(self, mock_logger):
        mount = LX200SerialMount(mock_logger, port='/dev/ttyUSB0')

        with pytest.raises(MountConnectionError, match="not connected"):
            mount.CommandString(':GR#')

    @pytest.mark.unit
    def test_command_bool(self, mount, mock_serial_port):
        mock_serial_port.read.return_value = b'1'
        assert mount.CommandBool(':Sr05:30:00#') is True

        mock_serial_port.read.return_value = b'0'
        assert mount.CommandBool(':Sr05:30:00#') is False

    @pytest.mark.unit
    def test_serial_error_wrapped(self, mount, mock_serial_port):
        mock_serial_port.write.side_effect = serial.SerialException("device unplugged")

        with pytest.raises(MountConnectionError, match="device unplugged"):
            mount.CommandBlind(':Q#')

    @pytest.mark.unit
    def test_get_info(self, mount, mock_serial_port):
        mock_serial_port.read_until.side_effect = [b'05:30:00#', b'+22*00:00#']

        info = mount.get_info()

        assert info.connected is True
        assert info.right_ascension == pytest.approx(5.5)
        assert info.declination == pytest.approx(22.0)

    @pytest.mark.unit
    def test_get_info_bad_reply(self, mount, mock_serial_port):
        mock_serial_port.read_until.return_value = b'garbage#'

        assert mount.get_info().connected is False


class TestSlew:
    """Test slew start and completion."""

    TARGET = Coordinates.from_hours(5.5, 22.0)

    @pytest.mark.unit
    def test_start_slew_commands(self, mount, mock_serial_port):
        mock_serial_port.read.side_effect = [b'1', b'1', b'0']

        mount.start_slew(self.TARGET)

        assert written(mock_serial_port) == [b':Sr05:30:00#', b':Sd+22*00:00#', b':MS#']

    @pytest.mark.unit
    def test_target_rejected(self, mount, mock_serial_port):
        mock_serial_port.read.side_effect = [b'0']

        with pytest.raises(MountConnectionError, match="right ascension"):
            mount.start_slew(self.TARGET)

    @pytest.mark.unit
    def test_slew_refused_with_reason(self, mount, mock_serial_port):
        mock_serial_port.read.side_effect = [b'1', b'1', b'1']
        mock_serial_port.read_until.return_value = b'Object below horizon#'

        with pytest.raises(MountConnectionError, match="Object below horizon"):
            mount.start_slew(self.TARGET)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_slew_waits_until_stopped(self, mount, mock_serial_port, fast_slew_poll):
        mock_serial_port.read.side_effect = [b'1', b'1', b'0']
        mock_serial_port.read_until.side_effect = [b'|#', b'|#', b'#']

        await mount.slew_to_coordinates(self.TARGET, threading.Event())

        assert written(mock_serial_port).count(b':D#') == 3
        assert b':Q#' not in written(mock_serial_port)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_slew_cancel_aborts(self, mount, mock_serial_port, fast_slew_poll):
        mock_serial_port.read.side_effect = [b'1', b'1', b'0']
        mock_serial_port.read_until.return_value = b'|#'
        token = threading.Event()
        token.set()

        with pytest.raises(FlipCancelledError):
            await mount.slew_to_coordinates(self.TARGET, token)

        assert written(mock_serial_port)[-1] == b':Q#'
