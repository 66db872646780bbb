# File: meade_link.py
"""
Single-command link to an LX200-compatible mount controller.

The connected device handle may expose one of several equivalent command
methods depending on the driver in front of the mount. The link selects a
command family strategy once per connected handle, dispatches the blocking
device call to a worker thread and awaits it, and converts every failure
into an absent (None) result.

Example:
    >>> link = DeviceLink(mount.get_device, logger)
    >>> response = await link.send(':XGST#')

Known limitation:
    No timeout is enforced around the device call. A transport that hangs
    stalls the awaiting poll until the transport gives up on its own.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

from oat_types import CommandFamily
from response_decoder import format_debug

COMMAND_TERMINATOR = "#"
RESPONSE_STRIP_CHARS = "#\r\n "
CONNECTION_PROPERTIES = ("Connected", "IsConnected")


class CommandStrategy(ABC):
    """Command execution strategy for one device command family."""

    terminator = COMMAND_TERMINATOR

    def __init__(self, family: CommandFamily):
        self.family = family

    def build(self, command: str) -> str:
        """Normalize a command to exactly one family terminator."""
        return command.rstrip(COMMAND_TERMINATOR) + self.terminator

    @abstractmethod
    def invoke(self, handle: Any, wire_command: str) -> Any:
        """Execute the command on the device handle (blocking)."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.family.value})"


class CommandStringStrategy(CommandStrategy):
    """ASCOM/Alpaca style ``CommandString(command, raw)``."""

    def __init__(self):
        super().__init__(CommandFamily.COMMAND_STRING)

    def invoke(self, handle: Any, wire_command: str) -> Any:
        return handle.CommandString(wire_command, True)


class SendStringStrategy(CommandStrategy):
    """Fallback ``SendCommandString``/``SendString``/``Command`` drivers.

    These drivers expect the command followed by an extra ``,#`` marker.
    """

    terminator = "#,#"

    def invoke(self, handle: Any, wire_command: str) -> Any:
        method = getattr(handle, self.family.value)
        return method(wire_command, True)


# Lookup order matters: the first capability present on a handle wins
_STRATEGY_FACTORIES = (
    (CommandFamily.COMMAND_STRING, CommandStringStrategy),
    (CommandFamily.SEND_COMMAND_STRING, lambda: SendStringStrategy(CommandFamily.SEND_COMMAND_STRING)),
    (CommandFamily.SEND_STRING, lambda: SendStringStrategy(CommandFamily.SEND_STRING)),
    (CommandFamily.COMMAND, lambda: SendStringStrategy(CommandFamily.COMMAND)),
)


def resolve_strategy(handle: Any) -> Optional[CommandStrategy]:
    """Select the command strategy supported by a device handle.

    Args:
        handle: Connected device handle.

    Returns:
        Strategy for the first supported command family, or None.
    """
    if handle is None:
        return None

    for family, factory in _STRATEGY_FACTORIES:
        if callable(getattr(handle, family.value, None)):
            return factory()
    return None


class DeviceLink:
    """Sends one textual command to the mount and returns its response.

    Never raises to the caller: a missing handle, a missing command
    capability, a failing invocation and an empty response all yield None.

    Thread Safety:
        The cached handle/strategy pair is guarded by an RLock; device
        calls are serialized on a single worker thread.
    """

    def __init__(
        self,
        device_provider: Callable[[], Any],
        logger: Optional[logging.Logger] = None
    ):
        """Initialize the link.

        Args:
            device_provider: Callable returning the current device handle
                             (or None when no device is available).
            logger: Optional logger instance.
        """
        self._device_provider = device_provider
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._handle: Any = None
        self._strategy: Optional[CommandStrategy] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def strategy(self) -> Optional[CommandStrategy]:
        """Strategy bound to the current connection, if any."""
        with self._lock:
            return self._strategy

    def get_device(self) -> Any:
        """Return the current device handle without touching the device."""
        try:
            return self._device_provider()
        except Exception as ex:
            self._logger.debug(f"Device handle not available: {ex}")
            return None

    def has_device(self) -> bool:
        """Check whether a device handle is obtainable (no device I/O)."""
        return self.get_device() is not None

    def is_connected(self) -> bool:
        """Check the device's connection state.

        Returns:
            Value of the handle's Connected/IsConnected property, or False
            when the handle or the property is unavailable.
        """
        handle = self.get_device()
        if handle is None:
            self.reset()
            return False

        for name in CONNECTION_PROPERTIES:
            try:
                value = getattr(handle, name)
            except AttributeError:
                continue
            except Exception as ex:
                self._logger.debug(f"IsConnected check error: {ex}")
                break
            if isinstance(value, bool):
                if not value:
                    self.reset()
                return value

        self.reset()
        return False

    async def check_connected(self) -> bool:
        """Run is_connected() on the worker thread.

        Driver properties such as Alpaca's Connected are network round
        trips, so the event loop never reads them directly.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._get_executor(), self.is_connected)

    def reset(self) -> None:
        """Forget the bound handle so the next command re-selects a strategy."""
        with self._lock:
            if self._strategy is not None:
                self._logger.debug("Releasing command strategy binding")
            self._handle = None
            self._strategy = None

    def close(self) -> None:
        """Release the binding and the worker thread."""
        self.reset()
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=False)
                self._executor = None

    async def send(self, command: str) -> Optional[str]:
        """Send a command and return the cleaned response.

        Args:
            command: Command text such as ':XGST#'.

        Returns:
            Response with trailing terminator/CR/LF/space removed, or None.
        """
        if not command:
            self._logger.debug("Empty command")
            return None

        try:
            handle = self.get_device()
            if handle is None:
                self._logger.debug("Device not available")
                return None

            strategy = self._bind(handle)
            if strategy is None:
                self._logger.warning(
                    f"Device {type(handle).__name__} exposes no supported command method"
                )
                return None

            wire_command = strategy.build(command)
            self._logger.debug(f"Sending command via {strategy.family.value} -> {wire_command}")

            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                self._get_executor(), self._invoke, strategy, handle, wire_command
            )
        except Exception as ex:
            self._logger.debug(f"Command {command} failed: {ex}")
            return None

        if not isinstance(response, str) or not response:
            self._logger.debug(f"No response from device for {command}")
            return None

        cleaned = response.rstrip(RESPONSE_STRIP_CHARS)
        self._logger.debug(f"Raw response -> '{format_debug(cleaned)}'")
        return cleaned or None

    def _bind(self, handle: Any) -> Optional[CommandStrategy]:
        """Return the strategy for this handle, selecting it on first use."""
        with self._lock:
            if handle is not self._handle or self._strategy is None:
                self._handle = handle
                self._strategy = resolve_strategy(handle)
                if self._strategy is not None:
                    self._logger.info(f"Using {self._strategy.family.value} for mount commands")
            return self._strategy

    def _invoke(self, strategy: CommandStrategy, handle: Any, wire_command: str) -> Any:
        """Worker-thread body; converts device errors into None."""
        try:
            return strategy.invoke(handle, wire_command)
        except Exception as ex:
            inner = ex.__cause__ or ex.__context__
            self._logger.debug(f"Command error -> {ex}")
            if inner is not None:
                self._logger.debug(f"Inner error -> {inner}")
            return None

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="DeviceLink"
                )
            return self._executor
