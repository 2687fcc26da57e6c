"""Exceptions raised by hardsub services."""

from __future__ import annotations


class BackendError(RuntimeError):
    """Raised when the job backend rejects a start or stop command."""


class ReplayFormatError(ValueError):
    """Raised when a recorded event log cannot be parsed."""


class SubscriptionError(RuntimeError):
    """Raised when an event source cannot accept a listener or an emission."""


__all__ = ["BackendError", "ReplayFormatError", "SubscriptionError"]
