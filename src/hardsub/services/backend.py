"""Job backend contract and a backend that replays recorded event logs."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, List, Optional, Protocol, Sequence

from pydantic import Field, ValidationError
from rich.console import Console

from hardsub.config.settings import ChannelConfig
from hardsub.models.base import SnapshotModel
from hardsub.models.encode import EncodeParams
from hardsub.services.errors import BackendError, ReplayFormatError
from hardsub.services.events import LocalEventHub


class JobBackend(Protocol):
    """Commands understood by the process that performs the actual encode."""

    async def start_job(self, params: EncodeParams) -> str:
        """Ask the backend to begin encoding; the outcome arrives later as events."""

    async def stop_job(self) -> None:
        """Ask the backend to cancel the active job."""


class ReplayEvent(SnapshotModel):
    """One recorded backend emission."""

    channel: str = Field(min_length=1)
    payload: Any = None
    delay: float = Field(default=0.0, ge=0)


def load_replay_events(path: Path) -> List[ReplayEvent]:
    """Read a JSON-lines recording, one ``{"channel", "payload", "delay"}`` object per line.

    Blank lines and lines starting with ``#`` are ignored.
    """

    events: List[ReplayEvent] = []
    for line_number, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        try:
            events.append(ReplayEvent.model_validate(json.loads(stripped)))
        except json.JSONDecodeError as exc:
            raise ReplayFormatError(f"{path}:{line_number}: invalid JSON ({exc.msg})") from exc
        except ValidationError as exc:
            raise ReplayFormatError(f"{path}:{line_number}: invalid event ({exc.error_count()} error(s))") from exc
    return events


class ReplayBackend:
    """Backend that emits a recorded event sequence into a :class:`LocalEventHub`.

    Starting schedules the emissions and returns immediately; stopping cancels
    whatever has not been emitted yet.
    """

    def __init__(
        self,
        hub: LocalEventHub,
        events: Sequence[ReplayEvent],
        *,
        channels: Optional[ChannelConfig] = None,
        console: Optional[Console] = None,
    ) -> None:
        self._hub = hub
        self._events = list(events)
        self._console = console or Console()
        self._task: Optional[asyncio.Task[None]] = None
        known = set((channels or ChannelConfig()).names())
        unknown = sorted({event.channel for event in self._events} - known)
        if unknown:
            self._console.log(f"[yellow]Replay contains events for unknown channels:[/yellow] {', '.join(unknown)}")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start_job(self, params: EncodeParams) -> str:
        if self.running:
            raise BackendError("An encode job is already running.")

        self._console.log(f"Replaying {len(self._events)} event(s) for {params.video_path}")
        self._task = asyncio.get_running_loop().create_task(self._play())
        self._task.add_done_callback(self._on_replay_done)
        return f"Replay started: {len(self._events)} event(s)"

    async def stop_job(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._console.log("Replay stopped")

    async def _play(self) -> None:
        for event in self._events:
            await asyncio.sleep(event.delay)
            self._hub.emit(event.channel, event.payload)

    def _on_replay_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._console.log(f"[red]Replay failed:[/red] {exc}")


__all__ = ["JobBackend", "ReplayBackend", "ReplayEvent", "load_replay_events"]
