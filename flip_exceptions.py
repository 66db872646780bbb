# -*- coding: utf-8 -*-
"""
Safe Time Flip Exception Hierarchy

Custom exceptions for the meridian flip trigger, separating hard
failures that abort a flip from transport errors that are contained
inside the device layer.
"""


class SafeTimeFlipError(Exception):
    """Base exception for all safe time flip errors.

    All flip-related exceptions inherit from this class, allowing
    callers to catch them with a single except clause.
    """
    pass


class TargetUnavailableError(SafeTimeFlipError):
    """Raised when no coordinates can be resolved for the flip slew.

    Neither the sequence's declared target nor the telescope's current
    pointing was available. The mount cannot be slewed blindly, so the
    whole flip is aborted.
    """
    pass


class FlipSlewError(SafeTimeFlipError):
    """Raised when the flip slew itself fails.

    The underlying transport error is chained as ``__cause__``.
    """
    pass


class FlipCancelledError(SafeTimeFlipError):
    """Raised when cancellation is honored during a flip."""
    pass


class MountConnectionError(SafeTimeFlipError):
    """Mount transport errors (serial port or Alpaca server)."""
    pass


def describe_exception(ex: BaseException) -> str:
    """Render an exception message followed by its chained causes.

    Args:
        ex: Exception to describe.

    Returns:
        Text like ``"outer (inner: root cause)"``.
    """
    text = str(ex) or type(ex).__name__
    seen = {id(ex)}
    inner = ex.__cause__ or ex.__context__
    causes = []
    while inner is not None and id(inner) not in seen:
        seen.add(id(inner))
        causes.append(str(inner) or type(inner).__name__)
        inner = inner.__cause__ or inner.__context__
    if causes:
        text += " (inner: " + "; ".join(causes) + ")"
    return text
