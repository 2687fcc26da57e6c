"""Pytest configuration and fixtures."""

import asyncio
import io
from typing import Any, Callable, Dict, List, Optional

import pytest
from rich.console import Console

from hardsub.config.settings import Settings, get_settings
from hardsub.models.encode import EncodeParams


class ControlledEventSource:
    """Event source whose attach acknowledgments are released by the test.

    Handlers are registered as soon as ``listen`` is entered and stay registered
    after detach, so ``fire`` simulates deliveries that were already in flight.
    """

    def __init__(self, *, auto_ack: bool = False, fail_with: Optional[Exception] = None) -> None:
        self.auto_ack = auto_ack
        self.fail_with = fail_with
        self.handlers: Dict[str, List[Callable[[Any], None]]] = {}
        self.pending: Dict[str, "asyncio.Future[None]"] = {}
        self.detached: List[str] = []

    async def listen(self, channel: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        if self.fail_with is not None:
            raise self.fail_with
        self.handlers.setdefault(channel, []).append(handler)
        if not self.auto_ack:
            future = asyncio.get_running_loop().create_future()
            self.pending[channel] = future
            await future

        def unlisten() -> None:
            self.detached.append(channel)

        return unlisten

    def acknowledge(self, channel: str) -> None:
        self.pending.pop(channel).set_result(None)

    def fire(self, channel: str, payload: Any) -> None:
        for handler in list(self.handlers.get(channel, [])):
            handler(payload)


class FakeBackend:
    """Job backend that records commands and fails on request."""

    def __init__(self, *, start_error: Optional[Exception] = None, stop_error: Optional[Exception] = None) -> None:
        self.start_error = start_error
        self.stop_error = stop_error
        self.started: List[EncodeParams] = []
        self.stop_calls = 0

    async def start_job(self, params: EncodeParams) -> str:
        self.started.append(params)
        if self.start_error is not None:
            raise self.start_error
        return "started"

    async def stop_job(self) -> None:
        self.stop_calls += 1
        if self.stop_error is not None:
            raise self.stop_error


async def drain(iterations: int = 5) -> None:
    """Let scheduled callbacks and background tasks run."""

    for _ in range(iterations):
        await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def console_buffer() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def console(console_buffer: io.StringIO) -> Console:
    return Console(file=console_buffer, width=200, force_terminal=False, color_system=None)


@pytest.fixture
def params() -> EncodeParams:
    return EncodeParams(
        video_path="/videos/input.mp4",
        subtitle_path="/videos/input.ass",
        output_dir="/out",
        output_format="mp4",
        video_codec="libx264",
        crf=23,
        subtitle_encoding="utf8",
        subtitle_style="default",
    )


@pytest.fixture
def progress_payload() -> Dict[str, Any]:
    return {"frame": 10, "fps": 24.0, "time": "00:00:01", "speed": "1.0x", "percentage": 5}
