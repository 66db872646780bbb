# -*- coding: utf-8 -*-
"""
Meridian Flip Action Sequence.

Ordered steps executed once the safe time trigger fires:

    wait for exposure -> pause guiding -> resolve target -> flip slew
    -> autofocus -> recenter -> resume guiding

Only target resolution and the slew are hard failures. Every other step
contains its own errors, logs them, raises a warning notification and lets
the sequence continue, so a failed recenter never prevents guiding from
being resumed.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from flip_exceptions import FlipCancelledError, FlipSlewError, TargetUnavailableError
from flip_interfaces import (
    AutofocusFactory,
    CancelToken,
    CaptureSequence,
    CenterResult,
    CenterSolveParameter,
    Coordinates,
    FlipContext,
    GuiderControl,
    ImagingControl,
    PlateSolverFactory,
    ProfileProvider,
    ProgressSink,
    TelescopeControl,
    report,
)
from flip_settings import FlipSettings
from notifications import NotificationCenter
from oat_types import Epoch


@dataclass
class FlipReport:
    """Outcome of one flip sequence."""
    target: Optional[Coordinates] = None
    was_guiding: bool = False
    autofocus_position: Optional[int] = None
    recenter_result: Optional[CenterResult] = None
    guiding_resumed: bool = False


class FlipActionSequence:
    """Executes the meridian flip steps against the equipment collaborators.

    Attributes:
        EXPOSURE_POLL_INTERVAL: Seconds per exposure wait tick.
        EXPOSURE_WAIT_TICKS: Upper bound of ticks spent waiting for an exposure.
        EXPOSURE_GRACE_TICKS: Ticks waited when the exposure state is unknown.
    """

    EXPOSURE_POLL_INTERVAL = 1.0
    EXPOSURE_WAIT_TICKS = 300
    EXPOSURE_GRACE_TICKS = 2
    PROGRESS_EVERY_TICKS = 10

    def __init__(
        self,
        telescope: TelescopeControl,
        notifier: NotificationCenter,
        logger: Optional[logging.Logger] = None,
        guider: Optional[GuiderControl] = None,
        imaging: Optional[ImagingControl] = None,
        autofocus_factory: Optional[AutofocusFactory] = None,
        plate_solver_factory: Optional[PlateSolverFactory] = None,
        profile_provider: Optional[ProfileProvider] = None
    ):
        """Initialize the sequence with its collaborators.

        Args:
            telescope: Telescope control (required).
            notifier: Sink for user-visible notifications.
            logger: Logger instance.
            guider: Guider control, if a guider is available.
            imaging: Imaging control, used to wait out a running exposure.
            autofocus_factory: Autofocus capability.
            plate_solver_factory: Plate solving capability.
            profile_provider: Active equipment profile for centering.
        """
        self._telescope = telescope
        self._notifier = notifier
        self._logger = logger or logging.getLogger(__name__)
        self._guider = guider
        self._imaging = imaging
        self._autofocus_factory = autofocus_factory
        self._plate_solver_factory = plate_solver_factory
        self._profile_provider = profile_provider

    async def run(
        self,
        settings: FlipSettings,
        context: Optional[FlipContext],
        progress: ProgressSink,
        token: CancelToken,
        on_guiding_paused: Optional[Callable[[bool], None]] = None
    ) -> FlipReport:
        """Run all flip steps.

        Args:
            settings: Flip settings for this run.
            context: Sequence context with the declared target.
            progress: Optional progress sink.
            token: Cancellation token.
            on_guiding_paused: Called with the guiding state recorded
                               before the flip.

        Returns:
            FlipReport describing what was done.

        Raises:
            FlipCancelledError: If cancelled while waiting for an exposure.
            TargetUnavailableError: If no coordinates can be resolved.
            FlipSlewError: If the flip slew fails.
        """
        result = FlipReport()

        await self.wait_for_exposure(progress, token)

        if settings.pause_guiding_during_flip and self._guider is not None:
            result.was_guiding = await self.pause_guiding(progress, token)
        if on_guiding_paused is not None:
            on_guiding_paused(result.was_guiding)

        result.target = await self.resolve_target(context)
        self._logger.info(
            f"OAT Safe Time Flip: Target coordinates - RA: {result.target.ra_degrees:.4f} deg, "
            f"Dec: {result.target.dec_degrees:.4f} deg"
        )

        # The mount firmware chooses the pier side for the same coordinates
        await self.flip_slew(result.target, progress, token)

        if settings.autofocus_after_flip and self._autofocus_factory is not None:
            result.autofocus_position = await self.autofocus(progress, token)

        if settings.recenter_after_flip and self._plate_solver_factory is not None:
            result.recenter_result = await self.recenter(result.target, settings, progress, token)

        if result.was_guiding and self._guider is not None:
            result.guiding_resumed = await self.resume_guiding(
                settings.force_calibration_after_flip, progress, token
            )

        return result

    async def wait_for_exposure(self, progress: ProgressSink, token: CancelToken) -> None:
        """Wait for a running exposure to finish.

        Waits while the imaging collaborator reports an exposure, up to
        EXPOSURE_WAIT_TICKS ticks. If the exposure state cannot be
        determined, only EXPOSURE_GRACE_TICKS ticks are spent.

        Raises:
            FlipCancelledError: If the token is set during the wait.
        """
        if self._imaging is None:
            return

        try:
            self._logger.info("OAT Safe Time Flip: Checking for active exposure...")
            waited = 0
            while waited < self.EXPOSURE_WAIT_TICKS:
                if token.is_set():
                    raise FlipCancelledError("Flip cancelled while waiting for exposure")

                exposing = self._exposure_state()
                if exposing is False:
                    break
                if exposing is None and waited >= self.EXPOSURE_GRACE_TICKS:
                    break

                await asyncio.sleep(self.EXPOSURE_POLL_INTERVAL)
                waited += 1

                if waited % self.PROGRESS_EVERY_TICKS == 0:
                    self._logger.debug(f"OAT Safe Time Flip: Waiting for exposure... {waited}s")
                    report(progress, f"Waiting for exposure to finish... {waited}s")
            else:
                self._logger.warning(
                    f"OAT Safe Time Flip: Exposure still running after {waited} ticks, flipping anyway"
                )

            if token.is_set():
                raise FlipCancelledError("Flip cancelled while waiting for exposure")

        except FlipCancelledError:
            raise
        except Exception as ex:
            self._logger.warning(f"OAT Safe Time Flip: Error waiting for exposure - {ex}")

    def _exposure_state(self) -> Optional[bool]:
        try:
            return self._imaging.is_exposing()
        except Exception as ex:
            self._logger.debug(f"Exposure state not available: {ex}")
            return None

    async def pause_guiding(self, progress: ProgressSink, token: CancelToken) -> bool:
        """Stop guiding if it is active.

        Returns:
            True if guiding was active and has been stopped. Any failure
            returns False so guiding is not resumed later.
        """
        try:
            self._logger.info("OAT Safe Time Flip: Stopping guiding...")
            report(progress, "Stopping guiding...")

            loop = asyncio.get_running_loop()
            info = await loop.run_in_executor(None, self._guider.get_info)
            was_guiding = bool(info is not None and info.connected and info.guiding)

            if was_guiding:
                await self._guider.stop_guiding(token)
                self._logger.info("OAT Safe Time Flip: Guiding stopped")
            else:
                self._logger.info("OAT Safe Time Flip: Guiding was not active")
            return was_guiding

        except Exception as ex:
            self._logger.warning(f"OAT Safe Time Flip: Error stopping guiding - {ex}")
            self._notifier.show_warning(f"OAT Flip: Could not stop guiding - {ex}")
            return False

    async def resolve_target(self, context: Optional[FlipContext]) -> Coordinates:
        """Resolve the coordinates to re-slew to.

        Prefers the sequence's declared target and falls back to the
        telescope's current pointing, read on a worker thread.

        Raises:
            TargetUnavailableError: If neither is available.
        """
        if context is not None and context.target is not None:
            return context.target

        self._logger.warning(
            "OAT Safe Time Flip: Could not get target coordinates, using current telescope position"
        )
        position = await self._telescope_position()
        if position is None:
            raise TargetUnavailableError("Cannot determine target coordinates for flip")
        return position

    async def _telescope_position(self) -> Optional[Coordinates]:
        try:
            loop = asyncio.get_running_loop()
            info = await loop.run_in_executor(None, self._telescope.get_info)
            if info is None or not info.connected:
                return None
            if info.coordinates is not None:
                return info.coordinates
            return Coordinates.from_hours(info.right_ascension, info.declination, Epoch.J2000)
        except Exception as ex:
            self._logger.warning(f"OAT Safe Time Flip: Error getting telescope position - {ex}")
            return None

    async def flip_slew(self, target: Coordinates, progress: ProgressSink, token: CancelToken) -> None:
        """Re-slew to the target so the mount crosses to the other pier side.

        Raises:
            FlipSlewError: Wrapping any slew failure.
        """
        self._logger.info(
            f"OAT Safe Time Flip: Slewing to target for flip - RA: {target.ra_hours:.4f}h, "
            f"Dec: {target.dec_degrees:.4f} deg"
        )
        report(progress, "Performing meridian flip slew...")

        try:
            await self._telescope.slew_to_coordinates(target, token)
        except FlipCancelledError:
            raise
        except Exception as ex:
            raise FlipSlewError(f"Flip slew failed: {ex}") from ex

        self._logger.info("OAT Safe Time Flip: Slew completed")

    async def autofocus(self, progress: ProgressSink, token: CancelToken) -> Optional[int]:
        """Run autofocus after the flip.

        Returns:
            Achieved focuser position, or None if autofocus did not succeed.
        """
        try:
            self._logger.info("OAT Safe Time Flip: Starting auto focus...")
            report(progress, "Auto focusing after flip...")

            runner = self._autofocus_factory.create()
            if runner is None:
                self._logger.warning("OAT Safe Time Flip: Auto focus not available, skipping autofocus")
                self._notifier.show_warning("Auto focus not available - check focuser connection")
                return None

            af_result = await runner.run(None, token, progress)

            if af_result is not None:
                self._logger.info(f"OAT Safe Time Flip: Auto focus completed - Position: {af_result.position}")
                self._notifier.show_success(f"OAT Flip: Auto focus completed at position {af_result.position}")
                return af_result.position

            self._logger.warning("OAT Safe Time Flip: Auto focus failed")
            self._notifier.show_warning("OAT Flip: Auto focus failed - continuing anyway")
            return None

        except Exception as ex:
            self._logger.warning(f"OAT Safe Time Flip: Error during auto focus - {ex}")
            self._notifier.show_warning(f"OAT Flip: Auto focus error - {ex}")
            return None

    def _recenter_unavailable(self, log_message: str, notice: str) -> None:
        self._logger.warning(f"OAT Safe Time Flip: {log_message}")
        self._notifier.show_warning(notice)

    async def recenter(
        self,
        target: Coordinates,
        settings: FlipSettings,
        progress: ProgressSink,
        token: CancelToken
    ) -> Optional[CenterResult]:
        """Plate solve and center on the target.

        Any missing dependency skips this step with a warning.

        Returns:
            Centering result, or None if the step was skipped or failed.
        """
        try:
            self._logger.info("OAT Safe Time Flip: Starting plate solve and recenter...")
            report(progress, "Recentering after flip...")

            self._logger.debug(
                "OAT Safe Time Flip: Checking dependencies - "
                f"plate solver factory: {self._plate_solver_factory is not None}, "
                f"imaging: {self._imaging is not None}, "
                f"profile: {self._profile_provider is not None}"
            )

            if self._plate_solver_factory is None or self._imaging is None or self._profile_provider is None:
                self._recenter_unavailable(
                    "Required services not available for recentering",
                    "Recenter not available - check configuration"
                )
                return None

            profile = self._profile_provider.active_profile
            if profile is None:
                self._recenter_unavailable(
                    "No active profile available",
                    "Recenter not available - no active profile"
                )
                return None

            solve_settings = profile.plate_solve_settings
            if solve_settings is None:
                self._recenter_unavailable(
                    "Plate solve settings not available",
                    "Recenter not available - check plate solver settings"
                )
                return None

            plate_solver = self._plate_solver_factory.get_plate_solver(solve_settings)
            blind_solver = self._plate_solver_factory.get_blind_solver(solve_settings)
            if plate_solver is None or blind_solver is None:
                self._recenter_unavailable(
                    "Plate solver or blind solver not available",
                    "Recenter not available - check plate solver configuration"
                )
                return None

            centering_solver = self._plate_solver_factory.get_centering_solver(
                plate_solver, blind_solver, self._imaging, self._telescope
            )
            if centering_solver is None:
                self._recenter_unavailable(
                    "Centering solver not available",
                    "Plate solver not available"
                )
                return None

            capture = CaptureSequence(
                exposure_time=solve_settings.exposure_time,
                binning=solve_settings.binning,
                gain=solve_settings.gain,
                filter_name=solve_settings.filter_name
            )
            parameter = CenterSolveParameter(
                coordinates=target,
                threshold=settings.platesolve_tolerance_arcsec,
                attempts=settings.max_centering_attempts,
                focal_length=profile.focal_length,
                pixel_size=profile.pixel_size
            )

            result = await centering_solver.center(capture, parameter, progress, token)

            if result is not None and result.success:
                self._logger.info(f"OAT Safe Time Flip: Recentering successful - Separation: {result.separation:.2f}\"")
                self._notifier.show_success(f"OAT Flip: Recentered successfully ({result.separation:.1f}\" error)")
            else:
                self._logger.warning(
                    "OAT Safe Time Flip: Recentering failed or not precise enough - "
                    f"result none: {result is None}, success: {bool(result and result.success)}"
                )
                self._notifier.show_warning("OAT Flip: Recentering failed - continuing anyway")
            return result

        except Exception as ex:
            self._logger.error(f"OAT Safe Time Flip: Error during recentering - {ex}", exc_info=True)
            inner = ex.__cause__ or ex.__context__
            if inner is not None:
                self._logger.error(f"OAT Safe Time Flip: Inner exception: {inner}")
            self._notifier.show_warning(f"OAT Flip: Recenter error - {ex}")
            return None

    async def resume_guiding(
        self,
        force_calibration: bool,
        progress: ProgressSink,
        token: CancelToken
    ) -> bool:
        """Restart guiding, optionally forcing a new calibration.

        Returns:
            True if guiding was restarted.
        """
        try:
            self._logger.info("OAT Safe Time Flip: Resuming guiding...")
            report(progress, "Resuming guiding...")

            started = await self._guider.start_guiding(force_calibration, progress, token)
            if started is False:
                self._logger.warning("OAT Safe Time Flip: Guider did not restart")
                self._notifier.show_warning("Failed to resume guiding")
                return False

            self._logger.info("OAT Safe Time Flip: Guiding resumed")
            return True

        except Exception as ex:
            self._logger.warning(f"OAT Safe Time Flip: Error resuming guiding - {ex}")
            self._notifier.show_warning(f"Failed to resume guiding: {ex}")
            return False
