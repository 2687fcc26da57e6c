"""Actions accepted by the encode state transition function."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import Field

from hardsub.models.base import SnapshotModel
from hardsub.models.encode import EncodeProgress


class StartAction(SnapshotModel):
    """A new run begins; all previous run data is discarded."""

    kind: Literal["start"] = "start"


class ProgressAction(SnapshotModel):
    kind: Literal["progress"] = "progress"
    progress: EncodeProgress


class LogAction(SnapshotModel):
    kind: Literal["log"] = "log"
    line: str


class CompleteAction(SnapshotModel):
    kind: Literal["complete"] = "complete"
    output_path: str


class ErrorAction(SnapshotModel):
    kind: Literal["error"] = "error"
    message: str


class StopAction(SnapshotModel):
    kind: Literal["stop"] = "stop"


class ResetAction(SnapshotModel):
    kind: Literal["reset"] = "reset"


EncodeAction = Annotated[
    Union[StartAction, ProgressAction, LogAction, CompleteAction, ErrorAction, StopAction, ResetAction],
    Field(discriminator="kind"),
]


__all__ = [
    "CompleteAction",
    "EncodeAction",
    "ErrorAction",
    "LogAction",
    "ProgressAction",
    "ResetAction",
    "StartAction",
    "StopAction",
]
