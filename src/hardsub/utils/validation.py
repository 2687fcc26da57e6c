"""Validation helpers for payloads arriving on backend event channels."""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import ValidationError

from hardsub.models.encode import EncodeProgress


class InvalidEventPayloadError(ValueError):
    """Raised when a channel payload does not have the expected shape."""


def parse_progress_payload(payload: Any) -> EncodeProgress:
    """Validate a progress payload into an :class:`EncodeProgress` snapshot."""

    if isinstance(payload, EncodeProgress):
        return payload
    if not isinstance(payload, Mapping):
        raise InvalidEventPayloadError(f"Progress payload must be an object, got {type(payload).__name__}.")

    try:
        return EncodeProgress.model_validate(dict(payload))
    except ValidationError as exc:
        raise InvalidEventPayloadError(f"Invalid progress payload: {exc.error_count()} error(s)") from exc


def parse_text_payload(channel: str, payload: Any) -> str:
    """Validate a log, completion or error payload, which must be a single string."""

    if not isinstance(payload, str):
        raise InvalidEventPayloadError(f"Payload on {channel!r} must be a string, got {type(payload).__name__}.")
    return payload


__all__ = ["InvalidEventPayloadError", "parse_progress_payload", "parse_text_payload"]
