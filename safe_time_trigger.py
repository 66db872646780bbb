# -*- coding: utf-8 -*-
"""
OAT Safe Time Meridian Flip Trigger

Polls the mount for the firmware's "safe time remaining" before a tracking
limit, predicts when the flip will happen, and fires the flip sequence once
the safe time drops to the configured threshold.

The trigger owns no timer. The host calls should_trigger() on every tick of
the running sequence and execute() when it returns True.

States:
    IDLE -> POLLING -> (THRESHOLD_REACHED) -> FLIPPING -> IDLE

Thread Safety:
    The flip-in-progress flag is guarded by a lock and is set before the
    first suspension point of execute(), so at most one flip runs at a time
    even when polling and firing happen on different threads.
"""

import asyncio
import logging
import math
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from flip_exceptions import FlipCancelledError, describe_exception
from flip_interfaces import (
    AutofocusFactory,
    CancelToken,
    FlipContext,
    GuiderControl,
    ImagingControl,
    PlateSolverFactory,
    ProfileProvider,
    ProgressSink,
    TelescopeControl,
)
from flip_sequence import FlipActionSequence, FlipReport
from flip_settings import FlipSettings
from flip_state import StatePublisher, TriggerSnapshot, TriggerState
from meade_link import DeviceLink
from notifications import NotificationCenter
from oat_types import TriggerPhase
from response_decoder import parse_number

SAFE_TIME_COMMAND = ':XGST#'
DEFAULT_CATEGORY = 'OAT Safe Time Sync'


class SafeTimeTrigger:
    """Meridian flip trigger driven by the mount's safe time.

    Attributes:
        category: Category label shown by hosts.
        safe_time_command: Command that queries safe time in hours.
    """

    def __init__(
        self,
        telescope: TelescopeControl,
        settings: Optional[FlipSettings] = None,
        notifier: Optional[NotificationCenter] = None,
        logger: Optional[logging.Logger] = None,
        guider: Optional[GuiderControl] = None,
        imaging: Optional[ImagingControl] = None,
        autofocus_factory: Optional[AutofocusFactory] = None,
        plate_solver_factory: Optional[PlateSolverFactory] = None,
        profile_provider: Optional[ProfileProvider] = None,
        safe_time_command: str = SAFE_TIME_COMMAND,
        clock: Callable[[], datetime] = datetime.now,
        category: str = DEFAULT_CATEGORY
    ):
        """Initialize the trigger.

        Args:
            telescope: Telescope control; also provides the device handle
                       used for the safe time query.
            settings: Flip settings (defaults used if None).
            notifier: Notification sink for user-visible messages.
            logger: Logger instance.
            guider: Optional guider control.
            imaging: Optional imaging control.
            autofocus_factory: Optional autofocus capability.
            plate_solver_factory: Optional plate solving capability.
            profile_provider: Optional equipment profile access.
            safe_time_command: Safe time query command.
            clock: Returns the current local time.
            category: Category label.
        """
        self._telescope = telescope
        self._settings = settings if settings is not None else FlipSettings()
        self._notifier = notifier if notifier is not None else NotificationCenter()
        self._logger = logger or logging.getLogger(__name__)
        self._guider = guider
        self._imaging = imaging
        self._autofocus_factory = autofocus_factory
        self._plate_solver_factory = plate_solver_factory
        self._profile_provider = profile_provider
        self.safe_time_command = safe_time_command
        self.category = category
        self._clock = clock

        self._link = DeviceLink(telescope.get_device, self._logger)
        self._sequence = FlipActionSequence(
            telescope,
            self._notifier,
            self._logger,
            guider=guider,
            imaging=imaging,
            autofocus_factory=autofocus_factory,
            plate_solver_factory=plate_solver_factory,
            profile_provider=profile_provider
        )

        self._flip_lock = threading.Lock()
        self._state: Optional[TriggerState] = None
        self._publisher = StatePublisher()

    # ----------
    # Properties
    # ----------

    @property
    def settings(self) -> FlipSettings:
        return self._settings

    @property
    def notifier(self) -> NotificationCenter:
        return self._notifier

    @property
    def link(self) -> DeviceLink:
        return self._link

    @property
    def publisher(self) -> StatePublisher:
        """Snapshot publisher; subscribe to observe state transitions."""
        return self._publisher

    @property
    def attached(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> TriggerState:
        """Current trigger state, attaching on first use."""
        if self._state is None:
            self.attach()
        return self._state

    @property
    def flip_in_progress(self) -> bool:
        with self._flip_lock:
            return self._state is not None and self._state.flip_in_progress

    def snapshot(self) -> TriggerSnapshot:
        return self.state.snapshot()

    # ---------
    # Lifecycle
    # ---------

    def attach(self) -> None:
        """Start a fresh trigger state for a newly running sequence."""
        with self._flip_lock:
            self._state = TriggerState()
        self._link.reset()
        self._logger.debug(f"Trigger attached: {self}")
        self._publish()

    def detach(self) -> None:
        """Discard the trigger state and release the device link."""
        with self._flip_lock:
            self._state = None
        self._link.close()
        self._logger.debug(f"Trigger detached: {self}")

    def clone(self) -> 'SafeTimeTrigger':
        """Create a trigger with a copy of these settings and its own state."""
        return SafeTimeTrigger(
            self._telescope,
            settings=self._settings.copy(),
            notifier=self._notifier,
            logger=self._logger,
            guider=self._guider,
            imaging=self._imaging,
            autofocus_factory=self._autofocus_factory,
            plate_solver_factory=self._plate_solver_factory,
            profile_provider=self._profile_provider,
            safe_time_command=self.safe_time_command,
            clock=self._clock,
            category=self.category
        )

    def __str__(self) -> str:
        return (
            f"Category: {self.category}, Item: {self.__class__.__name__}, "
            f"Threshold: {self._settings.safe_time_threshold_minutes:g}min, "
            f"Poll: {self._settings.polling_interval_seconds}s"
        )

    # -----------
    # Poll/decide
    # -----------

    async def should_trigger(self) -> bool:
        """Poll the mount if due and decide whether to flip now.

        Returns:
            True if 0 <= safe time <= threshold on this poll.
        """
        state = self.state

        with self._flip_lock:
            if state.flip_in_progress:
                return False

        if not self._link.has_device():
            state.clear_prediction()
            self._publish()
            return False

        now = self._clock()
        if (now - state.last_poll_instant).total_seconds() < self._settings.polling_interval_seconds:
            return False

        state.last_poll_instant = now
        state.phase = TriggerPhase.POLLING
        self._publish()

        safe_time_hours = await self._get_safe_time()

        if safe_time_hours is None:
            state.clear_prediction()
            state.phase = TriggerPhase.IDLE
            self._publish()
            return False

        if not math.isfinite(safe_time_hours):
            self._logger.warning(
                f"OAT Safe Time: Unusable safe time reported ({safe_time_hours}), ignoring"
            )
            state.clear_prediction()
            state.phase = TriggerPhase.IDLE
            self._publish()
            return False

        state.last_safe_time_hours = safe_time_hours
        safe_time_minutes = safe_time_hours * 60.0
        threshold = self._settings.safe_time_threshold_minutes

        if safe_time_minutes < 0:
            self._logger.warning(
                f"OAT Safe Time: Negative safe time reported ({safe_time_hours:.2f} hours), ignoring"
            )
            state.clear_prediction()
            state.phase = TriggerPhase.IDLE
            self._publish()
            return False

        try:
            flip_time = now + timedelta(minutes=max(0.0, safe_time_minutes - threshold))
        except OverflowError:
            self._logger.warning(
                f"OAT Safe Time: Flip time out of range for {safe_time_hours:.2f} hours, ignoring"
            )
            state.clear_prediction()
            state.phase = TriggerPhase.IDLE
            self._publish()
            return False

        state.earliest_flip_time = flip_time
        state.latest_flip_time = flip_time

        self._logger.info(
            f"OAT Safe Time: {safe_time_hours:.2f} hours ({safe_time_minutes:.1f} minutes), "
            f"Threshold: {threshold:g} minutes, "
            f"Flip time: {state.earliest_flip_time.strftime('%H:%M:%S')}"
        )

        fire = safe_time_minutes <= threshold
        state.phase = TriggerPhase.THRESHOLD_REACHED if fire else TriggerPhase.IDLE
        self._publish()
        return fire

    async def _get_safe_time(self) -> Optional[float]:
        """Query and decode the safe time in hours; None if unavailable."""
        try:
            if not await self._link.check_connected():
                return None

            response = await self._link.send(self.safe_time_command)
            if not response:
                return None

            hours = parse_number(response)
            if hours is None:
                self._logger.warning(f"OAT Safe Time Flip: Could not parse safe time response: {response}")
            return hours

        except Exception as ex:
            self._logger.error(f"OAT Safe Time Flip: Error getting safe time - {ex}")
            return None

    # -------
    # Execute
    # -------

    async def execute(
        self,
        context: Optional[FlipContext] = None,
        progress: ProgressSink = None,
        token: Optional[CancelToken] = None
    ) -> Optional[FlipReport]:
        """Run the meridian flip.

        Args:
            context: Sequence context with the declared target.
            progress: Optional progress sink.
            token: Cancellation token.

        Returns:
            FlipReport, or None if a flip was already running.

        Raises:
            Exception: Any fatal flip failure, after the trigger state
                       has been cleaned up.
        """
        state = self.state
        if token is None:
            token = threading.Event()

        with self._flip_lock:
            if state.flip_in_progress:
                self._logger.warning("OAT Safe Time Flip: Flip already in progress, ignoring request")
                return None
            state.flip_in_progress = True
            state.was_guiding_before_flip = False
            state.phase = TriggerPhase.FLIPPING
        self._publish()

        try:
            hours = self._hours_text(state.last_safe_time_hours)
            self._logger.info(f"OAT Safe Time Flip: Starting meridian flip sequence. Safe time: {hours} hours")
            self._notifier.show_information(f"OAT Meridian Flip: Safe time at {hours}h - starting flip")

            result = await self._sequence.run(
                self._settings.copy(),
                context,
                progress,
                token,
                on_guiding_paused=self._record_guiding
            )

            self._logger.info("OAT Safe Time Flip: Meridian flip completed successfully")
            self._notifier.show_success("OAT Meridian Flip: Completed successfully")
            return result

        except (FlipCancelledError, asyncio.CancelledError) as ex:
            self._logger.warning(f"OAT Safe Time Flip: Meridian flip cancelled - {ex}")
            self._notifier.show_warning("OAT Meridian Flip cancelled")
            raise

        except Exception as ex:
            self._logger.error(
                f"OAT Safe Time Flip: Error during meridian flip - {describe_exception(ex)}",
                exc_info=True
            )
            self._notifier.show_error(f"OAT Meridian Flip failed: {ex}")
            raise

        finally:
            with self._flip_lock:
                state.flip_in_progress = False
                state.phase = TriggerPhase.IDLE
            self._publish()

    def _record_guiding(self, was_guiding: bool) -> None:
        if self._state is not None:
            self._state.was_guiding_before_flip = was_guiding
            self._publish()

    @staticmethod
    def _hours_text(hours: Optional[float]) -> str:
        return f"{hours:.2f}" if hours is not None else "unknown"

    def _publish(self) -> None:
        state = self._state
        if state is not None:
            self._publisher.publish(state.snapshot())
