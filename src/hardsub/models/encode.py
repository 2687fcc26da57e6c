"""Pydantic models describing an encode job, its progress and its tracked state."""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Optional, Tuple

from pydantic import ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from hardsub.models.base import HardsubBaseModel, SnapshotModel

MAX_LOG_LINES = 500


class EncodeStatus(str, Enum):
    """Lifecycle states of the tracked encode job."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({EncodeStatus.COMPLETED, EncodeStatus.ERROR, EncodeStatus.STOPPED})


class OutputFormat(str, Enum):
    MP4 = "mp4"
    MKV = "mkv"
    AVI = "avi"
    MOV = "mov"


class VideoCodec(str, Enum):
    LIBX264 = "libx264"
    LIBX265 = "libx265"
    COPY = "copy"


class SubtitleEncoding(str, Enum):
    UTF8 = "utf8"
    GBK = "gbk"
    BIG5 = "big5"


class SubtitleStyle(str, Enum):
    DEFAULT = "default"
    CUSTOM = "custom"


class EncodeParams(HardsubBaseModel):
    """Parameters handed to the job backend when an encode is started.

    The backend expects camelCase keys (``videoPath``, ``outputDir``...), so the
    model accepts both spellings and serializes with aliases.
    """

    video_path: str = Field(min_length=1)
    subtitle_path: str = Field(min_length=1)
    output_dir: str = Field(min_length=1)
    output_format: OutputFormat = OutputFormat.MP4
    video_codec: VideoCodec = VideoCodec.LIBX264
    crf: int = Field(default=23, ge=0, le=51)
    subtitle_encoding: SubtitleEncoding = SubtitleEncoding.UTF8
    subtitle_style: SubtitleStyle = SubtitleStyle.DEFAULT
    subtitle_style_name: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_command_payload(self) -> dict[str, Any]:
        """Return the JSON-ready payload sent with the backend start command."""

        return self.model_dump(mode="json", by_alias=True)


class EncodeProgress(SnapshotModel):
    """Point-in-time progress report; always replaced as a whole."""

    frame: int = Field(ge=0)
    fps: float = Field(ge=0, allow_inf_nan=False)
    time: str
    speed: str
    percentage: int = Field(ge=0, le=100)

    @field_validator("percentage", mode="before")
    @classmethod
    def _coerce_percentage(cls, value: Any) -> Any:
        # Backends report fractional percentages; the tracked value is a whole number.
        if isinstance(value, float):
            if not math.isfinite(value):
                raise ValueError("percentage must be a finite number")
            value = round(value)
        if isinstance(value, int) and not isinstance(value, bool):
            return min(max(value, 0), 100)
        return value


class EncodeState(SnapshotModel):
    """Aggregate snapshot of the tracked encode job."""

    status: EncodeStatus = EncodeStatus.IDLE
    progress: Optional[EncodeProgress] = None
    logs: Tuple[str, ...] = Field(default=(), max_length=MAX_LOG_LINES)
    output_path: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.status is EncodeStatus.RUNNING

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


__all__ = [
    "MAX_LOG_LINES",
    "TERMINAL_STATUSES",
    "EncodeParams",
    "EncodeProgress",
    "EncodeState",
    "EncodeStatus",
    "OutputFormat",
    "SubtitleEncoding",
    "SubtitleStyle",
    "VideoCodec",
]
