# -*- coding: utf-8 -*-
"""
Meridian Flip Settings

User-tunable parameters of the safe time flip trigger, with the
validation ranges enforced by every setter.

Out-of-range assignments are ignored on purpose: the previous valid value
is kept and no error reaches the caller. Values are neither clamped to the
nearest boundary nor rejected with an exception, so a bad entry in a
settings file or an editor field simply has no effect.
"""

from typing import Any, Dict


# Default settings
DEFAULT_SETTINGS: Dict[str, Any] = {
    'safe_time_threshold_minutes': 5.0,
    'polling_interval_seconds': 15,
    'pause_guiding_during_flip': True,
    'recenter_after_flip': False,
    'platesolve_tolerance_arcsec': 30.0,
    'max_centering_attempts': 3,
    'autofocus_after_flip': False,
    'force_calibration_after_flip': False,
}


# Accepted ranges: (min, max, min_inclusive)
SETTING_RANGES: Dict[str, tuple] = {
    'safe_time_threshold_minutes': (0.0, 120.0, True),
    'polling_interval_seconds': (5, 300, True),
    'platesolve_tolerance_arcsec': (0.0, 3600.0, False),
    'max_centering_attempts': (1, 10, True),
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def in_range(name: str, value: Any) -> bool:
    """Check a numeric setting against its declared range.

    Args:
        name: Setting name (key of SETTING_RANGES).
        value: Candidate value.

    Returns:
        True if the value may be assigned.
    """
    if not _is_number(value) or value != value:  # NaN
        return False
    low, high, low_inclusive = SETTING_RANGES[name]
    if low_inclusive:
        return low <= value <= high
    return low < value <= high


class FlipSettings:
    """Validated flip trigger configuration.

    Attributes:
        safe_time_threshold_minutes: Flip fires at or below this safe time (0-120).
        polling_interval_seconds: Minimum seconds between mount polls (5-300).
        pause_guiding_during_flip: Stop guiding before the flip slew.
        recenter_after_flip: Plate solve and center after the slew.
        platesolve_tolerance_arcsec: Centering tolerance (0 exclusive - 3600).
        max_centering_attempts: Centering iterations (1-10).
        autofocus_after_flip: Run autofocus after the slew.
        force_calibration_after_flip: Recalibrate the guider when resuming.
    """

    def __init__(self, **overrides: Any):
        self._values: Dict[str, Any] = dict(DEFAULT_SETTINGS)
        for name, value in overrides.items():
            if name in DEFAULT_SETTINGS:
                setattr(self, name, value)

    def _set_ranged(self, name: str, value: Any, cast=float) -> None:
        if in_range(name, value):
            self._values[name] = cast(value)

    def _set_integral(self, name: str, value: Any) -> None:
        if _is_number(value) and float(value).is_integer():
            self._set_ranged(name, value, int)

    def _set_flag(self, name: str, value: Any) -> None:
        if isinstance(value, bool):
            self._values[name] = value

    # ----------
    # Thresholds
    # ----------

    @property
    def safe_time_threshold_minutes(self) -> float:
        """Safe time threshold in minutes."""
        return self._values['safe_time_threshold_minutes']

    @safe_time_threshold_minutes.setter
    def safe_time_threshold_minutes(self, value: float) -> None:
        self._set_ranged('safe_time_threshold_minutes', value)

    @property
    def polling_interval_seconds(self) -> int:
        """How often to poll the mount for safe time."""
        return self._values['polling_interval_seconds']

    @polling_interval_seconds.setter
    def polling_interval_seconds(self, value: int) -> None:
        self._set_integral('polling_interval_seconds', value)

    # ------------
    # Flip options
    # ------------

    @property
    def pause_guiding_during_flip(self) -> bool:
        return self._values['pause_guiding_during_flip']

    @pause_guiding_during_flip.setter
    def pause_guiding_during_flip(self, value: bool) -> None:
        self._set_flag('pause_guiding_during_flip', value)

    @property
    def recenter_after_flip(self) -> bool:
        return self._values['recenter_after_flip']

    @recenter_after_flip.setter
    def recenter_after_flip(self, value: bool) -> None:
        self._set_flag('recenter_after_flip', value)

    @property
    def platesolve_tolerance_arcsec(self) -> float:
        """Plate solve centering tolerance in arcseconds."""
        return self._values['platesolve_tolerance_arcsec']

    @platesolve_tolerance_arcsec.setter
    def platesolve_tolerance_arcsec(self, value: float) -> None:
        self._set_ranged('platesolve_tolerance_arcsec', value)

    @property
    def max_centering_attempts(self) -> int:
        return self._values['max_centering_attempts']

    @max_centering_attempts.setter
    def max_centering_attempts(self, value: int) -> None:
        self._set_integral('max_centering_attempts', value)

    @property
    def autofocus_after_flip(self) -> bool:
        return self._values['autofocus_after_flip']

    @autofocus_after_flip.setter
    def autofocus_after_flip(self, value: bool) -> None:
        self._set_flag('autofocus_after_flip', value)

    @property
    def force_calibration_after_flip(self) -> bool:
        return self._values['force_calibration_after_flip']

    @force_calibration_after_flip.setter
    def force_calibration_after_flip(self, value: bool) -> None:
        self._set_flag('force_calibration_after_flip', value)

    # -------------
    # Serialization
    # -------------

    def copy(self) -> 'FlipSettings':
        """Return an independent copy of these settings."""
        clone = FlipSettings()
        clone._values = dict(self._values)
        return clone

    def as_dict(self) -> Dict[str, Any]:
        """Return settings as a plain dictionary."""
        return dict(self._values)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'FlipSettings':
        """Build settings from a dictionary, ignoring invalid entries.

        Args:
            values: Mapping of setting name to value. Unknown keys and
                    out-of-range values are skipped.

        Returns:
            New FlipSettings instance.
        """
        return cls(**{k: v for k, v in values.items() if k in DEFAULT_SETTINGS})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FlipSettings):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self._values.items())
        return f"{self.__class__.__name__}({fields})"
