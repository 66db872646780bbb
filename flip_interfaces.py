# -*- coding: utf-8 -*-
"""
Flip Collaborator Interfaces

Abstract interfaces for the equipment the meridian flip coordinates:
telescope, guider, imaging, autofocus and plate solving. Hosts plug
their own device layers in behind these contracts.

Cancellation is cooperative: a ``threading.Event`` token is passed to
every long-running operation, and a set event means "cancel".
Progress is reported as short human-readable strings.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from oat_types import Epoch

ProgressSink = Optional[Callable[[str], None]]
CancelToken = threading.Event


def report(progress: ProgressSink, status: str) -> None:
    """Send a status line to an optional progress sink."""
    if progress is not None:
        progress(status)


@dataclass(frozen=True)
class Coordinates:
    """Equatorial coordinates.

    Attributes:
        ra_degrees: Right ascension in degrees (0-360)
        dec_degrees: Declination in degrees (-90 to +90)
        epoch: Coordinate epoch
    """
    ra_degrees: float
    dec_degrees: float
    epoch: Epoch = Epoch.J2000

    @property
    def ra_hours(self) -> float:
        return self.ra_degrees / 15.0

    @classmethod
    def from_hours(cls, ra_hours: float, dec_degrees: float, epoch: Epoch = Epoch.J2000) -> 'Coordinates':
        return cls(ra_hours * 15.0, dec_degrees, epoch)


@dataclass
class FlipContext:
    """Sequence context handed to the flip.

    Attributes:
        target: Target declared by the running sequence, if any
    """
    target: Optional[Coordinates] = None


@dataclass
class TelescopeInfo:
    """Telescope status snapshot."""
    connected: bool
    right_ascension: float = 0.0    # hours
    declination: float = 0.0        # degrees
    coordinates: Optional[Coordinates] = None


@dataclass
class GuiderInfo:
    """Guider status snapshot."""
    connected: bool
    guiding: bool = False


@dataclass
class AutofocusReport:
    """Autofocus run result."""
    position: int
    hfr: float = 0.0


@dataclass
class PlateSolveSettings:
    """Capture settings used for plate solving."""
    exposure_time: float = 2.0      # seconds
    binning: int = 2
    gain: int = -1
    filter_name: Optional[str] = None


@dataclass
class ObservatoryProfile:
    """Equipment profile needed to center with plate solving."""
    plate_solve_settings: Optional[PlateSolveSettings]
    focal_length: float             # mm
    pixel_size: float               # microns


@dataclass
class CaptureSequence:
    """Exposure used by the centering solver."""
    exposure_time: float
    binning: int
    gain: int
    filter_name: Optional[str] = None


@dataclass
class CenterSolveParameter:
    """Centering request."""
    coordinates: Coordinates
    threshold: float                # arcseconds
    attempts: int
    focal_length: float
    pixel_size: float


@dataclass
class CenterResult:
    """Centering outcome."""
    success: bool
    separation: float = 0.0         # arcseconds


class TelescopeControl(ABC):
    """Telescope control capability.

    Implementations:
    - AlpacaMount: ASCOM Alpaca mounts via alpyca
    - LX200SerialMount: mounts on a local serial port via pyserial
    """

    @abstractmethod
    def get_device(self) -> Any:
        """Return the raw device handle used for mount commands, or None."""
        pass

    @abstractmethod
    def get_info(self) -> Optional[TelescopeInfo]:
        """Return current telescope status."""
        pass

    @abstractmethod
    async def slew_to_coordinates(self, coordinates: Coordinates, token: CancelToken) -> None:
        """Slew to coordinates and wait for the slew to finish.

        Raises:
            Exception: Any transport or mount error.
        """
        pass


class GuiderControl(ABC):
    """Guider control capability."""

    @abstractmethod
    def get_info(self) -> Optional[GuiderInfo]:
        pass

    @abstractmethod
    async def stop_guiding(self, token: CancelToken) -> None:
        pass

    @abstractmethod
    async def start_guiding(
        self,
        force_calibration: bool,
        progress: ProgressSink,
        token: CancelToken
    ) -> bool:
        pass


class ImagingControl(ABC):
    """Imaging capability used to wait out a running exposure."""

    @abstractmethod
    def is_exposing(self) -> Optional[bool]:
        """Return True while exposing, False when idle, None if unknown."""
        pass


class AutofocusRunner(ABC):
    """A single autofocus run."""

    @abstractmethod
    async def run(
        self,
        filter_name: Optional[str],
        token: CancelToken,
        progress: ProgressSink
    ) -> Optional[AutofocusReport]:
        """Run autofocus to completion; None means the run failed."""
        pass


class AutofocusFactory(ABC):

    @abstractmethod
    def create(self) -> Optional[AutofocusRunner]:
        pass


class CenteringSolver(ABC):
    """Capture, plate solve and correct pointing toward a target."""

    @abstractmethod
    async def center(
        self,
        capture: CaptureSequence,
        parameter: CenterSolveParameter,
        progress: ProgressSink,
        token: CancelToken
    ) -> Optional[CenterResult]:
        pass


class PlateSolverFactory(ABC):
    """Builds solvers from plate solve settings."""

    @abstractmethod
    def get_plate_solver(self, settings: PlateSolveSettings) -> Any:
        pass

    @abstractmethod
    def get_blind_solver(self, settings: PlateSolveSettings) -> Any:
        pass

    @abstractmethod
    def get_centering_solver(
        self,
        plate_solver: Any,
        blind_solver: Any,
        imaging: Optional[ImagingControl],
        telescope: TelescopeControl
    ) -> Optional[CenteringSolver]:
        pass


class ProfileProvider(ABC):
    """Access to the active equipment profile."""

    @property
    @abstractmethod
    def active_profile(self) -> Optional[ObservatoryProfile]:
        pass
