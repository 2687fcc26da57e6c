"""Service layer for hardsub: event bridge, state transitions, backends and sessions."""

from hardsub.services.errors import BackendError, ReplayFormatError, SubscriptionError

__all__ = ["BackendError", "ReplayFormatError", "SubscriptionError"]
