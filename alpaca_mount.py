# -*- coding: utf-8 -*-
"""
Alpaca Mount

Telescope control for mounts served over the ASCOM Alpaca protocol.
The connected alpyca Telescope is also the device handle handed to the
DeviceLink: it exposes CommandString and Connected, so safe time queries
go through the CommandString family.

Third-Party Library:
    alpyca is licensed under the MIT License by the ASCOM Initiative.
    https://github.com/ASCOMInitiative/alpyca
"""

import asyncio
import logging
import threading
import time
from typing import Any, Optional

from alpaca.telescope import Telescope

from flip_exceptions import FlipCancelledError, MountConnectionError
from flip_interfaces import CancelToken, Coordinates, TelescopeControl, TelescopeInfo


class AlpacaMount(TelescopeControl):
    """Thread-safe Alpaca telescope wrapper.

    Thread Safety:
        Connection changes are guarded by an RLock.

    Attributes:
        SLEW_POLL_INTERVAL: Seconds between Slewing checks.
        SLEW_TIMEOUT: Longest accepted slew duration in seconds.
    """

    SLEW_POLL_INTERVAL = 0.5
    SLEW_TIMEOUT = 300.0

    def __init__(
        self,
        logger: logging.Logger,
        address: str = "127.0.0.1",
        port: int = 11111,
        device_number: int = 0
    ):
        """Initialize the mount wrapper.

        Args:
            logger: Logger instance for mount operations.
            address: Alpaca server IP address or hostname.
            port: Alpaca server port number.
            device_number: Telescope device number on the server.
        """
        self._logger = logger
        self._address = address
        self._port = port
        self._device_number = device_number
        self._lock = threading.RLock()
        self._telescope: Optional[Telescope] = None
        self._error_message = ""

    @property
    def server(self) -> str:
        return f"{self._address}:{self._port}"

    def connect(self) -> bool:
        """Connect to the Alpaca telescope.

        Returns:
            True if connection successful, False otherwise.
        """
        with self._lock:
            if self._telescope is not None:
                self._logger.debug("Already connected to telescope")
                return True

            try:
                self._logger.info(f"Connecting to telescope at {self.server}, device {self._device_number}")
                telescope = Telescope(self.server, self._device_number)
                telescope.Connected = True

                if not telescope.Connected:
                    raise MountConnectionError("Failed to establish connection")

                self._telescope = telescope
                self._error_message = ""
                self._logger.info(f"Connected to telescope: {telescope.Name}")
                return True

            except Exception as e:
                self._error_message = str(e)
                self._logger.error(f"Failed to connect to telescope: {e}")
                self._telescope = None
                return False

    def disconnect(self) -> None:
        """Disconnect from the telescope."""
        with self._lock:
            if self._telescope is not None:
                try:
                    self._telescope.Connected = False
                    self._logger.info("Disconnected from telescope")
                except Exception as e:
                    self._logger.warning(f"Error during disconnect: {e}")
                finally:
                    self._telescope = None

    def get_error_message(self) -> str:
        return self._error_message

    def get_device(self) -> Any:
        with self._lock:
            return self._telescope

    def get_info(self) -> Optional[TelescopeInfo]:
        telescope = self.get_device()
        if telescope is None:
            return TelescopeInfo(connected=False)

        try:
            if not telescope.Connected:
                return TelescopeInfo(connected=False)
            return TelescopeInfo(
                connected=True,
                right_ascension=telescope.RightAscension,
                declination=telescope.Declination
            )
        except Exception as e:
            self._logger.warning(f"Error reading telescope position: {e}")
            return TelescopeInfo(connected=False)

    async def slew_to_coordinates(self, coordinates: Coordinates, token: CancelToken) -> None:
        """Slew to coordinates and wait until the mount stops.

        Raises:
            MountConnectionError: Not connected, or the slew timed out.
            FlipCancelledError: Token set while slewing (the slew is aborted).
        """
        telescope = self.get_device()
        if telescope is None:
            raise MountConnectionError("Telescope not connected")

        loop = asyncio.get_running_loop()
        self._logger.debug(
            f"SlewToCoordinatesAsync RA={coordinates.ra_hours:.4f}h Dec={coordinates.dec_degrees:.4f}"
        )
        await loop.run_in_executor(
            None, telescope.SlewToCoordinatesAsync, coordinates.ra_hours, coordinates.dec_degrees
        )

        start = time.monotonic()
        while await loop.run_in_executor(None, lambda: telescope.Slewing):
            if token.is_set():
                self._logger.warning("Slew cancelled, aborting")
                await loop.run_in_executor(None, telescope.AbortSlew)
                raise FlipCancelledError("Slew cancelled")
            if time.monotonic() - start > self.SLEW_TIMEOUT:
                raise MountConnectionError(f"Slew did not finish within {self.SLEW_TIMEOUT:g}s")
            await asyncio.sleep(self.SLEW_POLL_INTERVAL)

        self._logger.debug("Slew finished")
