# File: oat_serial.py
"""
LX200 serial transport for the OpenAstroTracker mount.

Provides the mount as a device handle for the DeviceLink (CommandString
and Connected, like an ASCOM driver would) and as telescope control for
the flip slew.

Example:
    >>> mount = LX200SerialMount(logger, '/dev/ttyUSB0')
    >>> mount.connect()
    >>> mount.CommandString(':XGST#', True)
    '4.25#'
"""

import asyncio
import logging
import math
import threading
import time
from typing import Any, Optional

import serial

from flip_exceptions import FlipCancelledError, MountConnectionError
from flip_interfaces import CancelToken, Coordinates, TelescopeControl, TelescopeInfo


# Constants
DEFAULT_BAUDRATE = 9600
DEFAULT_TIMEOUT = 1.0
SLEW_POLL_INTERVAL = 0.1
SLEW_TIMEOUT = 300.0
SLEWING_INDICATOR = '|'
RESPONSE_TERMINATOR = b'#'


# Coordinate Conversion Utilities

def dms_to_degrees(dms_str: str) -> float:
    """
    Convert DMS (Degrees:Minutes:Seconds) string to decimal degrees.

    Args:
        dms_str: DMS string in formats like "+45*30'15#", "-12:34:56", "90*00"

    Returns:
        float: Decimal degrees, signed per the leading sign

    Raises:
        ValueError: If the string is empty or not a valid DMS value

    Examples:
        "+45*30'15#" -> 45.504167
        "-12:34:56" -> -12.582222
    """
    cleaned = dms_str.rstrip('#').strip()
    if not cleaned:
        raise ValueError("DMS string cannot be empty")

    sign = -1 if cleaned.startswith('-') else 1
    cleaned = cleaned.lstrip('+-')

    parts = cleaned.replace('*', ':').replace("'", ':').replace('"', ':').split(':')
    if len(parts) > 3:
        raise ValueError(f"Invalid DMS format: expected 1-3 parts, got {len(parts)}")

    try:
        degrees = float(parts[0])
        minutes = float(parts[1]) if len(parts) > 1 else 0.0
        seconds = float(parts[2]) if len(parts) > 2 else 0.0
    except ValueError as ex:
        raise ValueError(f"Invalid numeric values in DMS string '{dms_str}': {ex}") from ex

    if not (0 <= minutes < 60) or not (0 <= seconds < 60):
        raise ValueError(f"Minutes/seconds out of range in '{dms_str}'")

    return sign * (degrees + minutes / 60.0 + seconds / 3600.0)


def hms_to_hours(hms_str: str) -> float:
    """
    Convert HMS (Hours:Minutes:Seconds) string to decimal hours.

    Args:
        hms_str: HMS string like "14:32:45#", "23:59:59", "12:30"

    Returns:
        float: Decimal hours (0.0 to 24.0)

    Raises:
        ValueError: If the string is empty or values are out of range
    """
    cleaned = hms_str.rstrip('#').strip()
    if not cleaned:
        raise ValueError("HMS string cannot be empty")

    parts = cleaned.split(':')
    if len(parts) > 3:
        raise ValueError(f"Invalid HMS format: expected 1-3 parts, got {len(parts)}")

    try:
        hours = float(parts[0])
        minutes = float(parts[1]) if len(parts) > 1 else 0.0
        seconds = float(parts[2]) if len(parts) > 2 else 0.0
    except ValueError as ex:
        raise ValueError(f"Invalid numeric values in HMS string '{hms_str}': {ex}") from ex

    if not (0 <= hours < 24) or not (0 <= minutes < 60) or not (0 <= seconds < 60):
        raise ValueError(f"HMS value out of range: '{hms_str}'")

    return hours + minutes / 60.0 + seconds / 3600.0


def degrees_to_dms(degrees: float) -> str:
    """Convert decimal degrees to the LX200 "sDD*MM:SS" form."""
    if math.isnan(degrees) or math.isinf(degrees):
        raise ValueError(f"Degrees cannot be NaN or infinite: {degrees}")

    sign = "-" if degrees < 0 else "+"
    total_seconds = int(round(abs(degrees) * 3600))
    deg, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{sign}{deg:02d}*{minutes:02d}:{seconds:02d}"


def hours_to_hms(hours: float) -> str:
    """Convert decimal hours to the LX200 "HH:MM:SS" form."""
    if math.isnan(hours) or math.isinf(hours):
        raise ValueError(f"Hours cannot be NaN or infinite: {hours}")

    total_seconds = int(round((hours % 24) * 3600)) % 86400
    h, remainder = divmod(total_seconds, 3600)
    m, s = divmod(remainder, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


class LX200SerialMount(TelescopeControl):
    """
    Thread-safe LX200 serial connection to an OpenAstroTracker mount.

    Every exchange holds an RLock, so safe time queries from the trigger
    and slew status polls never interleave on the wire.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        port: str = '',
        baudrate: int = DEFAULT_BAUDRATE
    ):
        """
        Initialize the serial mount.

        Args:
            logger: Optional logger instance. If None, creates module logger.
            port: Serial port path (e.g., '/dev/ttyUSB0' or 'COM3')
            baudrate: Communication baud rate
        """
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._serial: Optional[serial.Serial] = None
        self._port = port
        self._baudrate = baudrate

    def __enter__(self) -> 'LX200SerialMount':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()

    # ----------
    # Connection
    # ----------

    def connect(self) -> None:
        """
        Open the serial port.

        Raises:
            ValueError: If port or baudrate are invalid
            MountConnectionError: If the port cannot be opened
        """
        if not self._port or not isinstance(self._port, str):
            raise ValueError("Port must be a non-empty string")

        if not isinstance(self._baudrate, int) or self._baudrate <= 0:
            raise ValueError("Baudrate must be a positive integer")

        with self._lock:
            if self.Connected:
                return

            try:
                self._serial = serial.Serial(
                    port=self._port,
                    baudrate=self._baudrate,
                    bytesize=serial.EIGHTBITS,
                    parity=serial.PARITY_NONE,
                    stopbits=serial.STOPBITS_ONE,
                    timeout=DEFAULT_TIMEOUT
                )

                if not self._serial.is_open:
                    self._serial.open()

                self._logger.info(f"Serial connection opened: {self._port} @ {self._baudrate} baud")

            except Exception as ex:
                self._serial = None
                self._logger.error(f"Failed to open serial connection on {self._port}: {ex}")
                raise MountConnectionError(f"Serial connection failed: {ex}") from ex

    def disconnect(self) -> None:
        """Close the serial port."""
        with self._lock:
            if self._serial:
                try:
                    if self._serial.is_open:
                        self._serial.close()
                        self._logger.info("Serial connection closed")
                except Exception as ex:
                    self._logger.warning(f"Error closing serial connection: {ex}")
                finally:
                    self._serial = None

    @property
    def Connected(self) -> bool:
        """Check if the serial port is open."""
        with self._lock:
            return self._serial is not None and self._serial.is_open

    # --------------------
    # Device handle surface
    # --------------------

    def CommandString(self, command: str, raw: bool = True) -> str:
        """
        Send a command and return the '#'-terminated reply.

        Args:
            command: LX200 command such as ':XGST#'
            raw: Accepted for driver compatibility; commands are always sent as-is

        Returns:
            Reply text including the terminator

        Raises:
            MountConnectionError: If not connected, no reply, or the port fails
        """
        with self._lock:
            self._write(command)
            try:
                response = self._serial.read_until(RESPONSE_TERMINATOR).decode('ascii', errors='replace')
            except serial.SerialException as ex:
                raise MountConnectionError(f"Serial communication error: {ex}") from ex

            if not response:
                raise MountConnectionError(f"No response received for {command}")

            self._logger.debug(f"String response: {response}")
            return response

    def CommandBool(self, command: str) -> bool:
        """Send a command answered by a single '1'/'0' character."""
        with self._lock:
            self._write(command)
            try:
                response = self._serial.read(1).decode('ascii', errors='replace')
            except serial.SerialException as ex:
                raise MountConnectionError(f"Serial communication error: {ex}") from ex

            if not response:
                raise MountConnectionError(f"No boolean response received for {command}")

            self._logger.debug(f"Boolean response: {response}")
            return response == '1'

    def CommandBlind(self, command: str) -> None:
        """Send a command that has no reply."""
        with self._lock:
            self._write(command)

    def _write(self, command: str) -> None:
        if not self.Connected:
            raise MountConnectionError("Serial port not connected")

        try:
            self._serial.reset_input_buffer()
            self._logger.debug(f"Sending command: {command}")
            self._serial.write(command.encode('ascii'))
            self._serial.flush()
        except (serial.SerialException, UnicodeEncodeError) as ex:
            raise MountConnectionError(f"Serial communication error: {ex}") from ex

    # -----------------
    # Telescope control
    # -----------------

    def get_device(self) -> Any:
        return self

    def get_info(self) -> Optional[TelescopeInfo]:
        if not self.Connected:
            return TelescopeInfo(connected=False)

        try:
            with self._lock:
                ra = hms_to_hours(self.CommandString(':GR#'))
                dec = dms_to_degrees(self.CommandString(':GD#'))
            return TelescopeInfo(connected=True, right_ascension=ra, declination=dec)
        except Exception as ex:
            self._logger.warning(f"Error reading mount position: {ex}")
            return TelescopeInfo(connected=False)

    def start_slew(self, coordinates: Coordinates) -> None:
        """
        Set the target and start a slew.

        Raises:
            MountConnectionError: If the mount rejects the target or the slew
        """
        with self._lock:
            hms_str = hours_to_hms(coordinates.ra_hours)
            if not self.CommandBool(f":Sr{hms_str}#"):
                raise MountConnectionError(f"Mount rejected target right ascension: {hms_str}")

            dms_str = degrees_to_dms(coordinates.dec_degrees)
            if not self.CommandBool(f":Sd{dms_str}#"):
                raise MountConnectionError(f"Mount rejected target declination: {dms_str}")

            # '0' means the slew started; otherwise a message follows up to '#'
            self._write(":MS#")
            status = self._serial.read(1).decode('ascii', errors='replace')
            if status != '0':
                reason = self._serial.read_until(RESPONSE_TERMINATOR).decode('ascii', errors='replace')
                raise MountConnectionError(f"Mount refused slew: {reason.rstrip('#') or status or 'no reply'}")

            self._logger.info(f"Started slew to RA={hms_str} Dec={dms_str}")

    def is_slewing(self) -> bool:
        return self.CommandString(':D#').startswith(SLEWING_INDICATOR)

    def abort_slew(self) -> None:
        self.CommandBlind(':Q#')

    async def slew_to_coordinates(self, coordinates: Coordinates, token: CancelToken) -> None:
        """
        Slew to coordinates and wait until the mount stops.

        Raises:
            MountConnectionError: Serial or mount errors, or the slew timed out
            FlipCancelledError: Token set while slewing (the slew is aborted)
        """
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.start_slew, coordinates)

        start = time.monotonic()
        while await loop.run_in_executor(None, self.is_slewing):
            if token.is_set():
                self._logger.warning("Slew cancelled, aborting")
                await loop.run_in_executor(None, self.abort_slew)
                raise FlipCancelledError("Slew cancelled")
            if time.monotonic() - start > SLEW_TIMEOUT:
                raise MountConnectionError(f"Slew did not finish within {SLEW_TIMEOUT:g}s")
            await asyncio.sleep(SLEW_POLL_INTERVAL)

        self._logger.info("Slew operation completed")
