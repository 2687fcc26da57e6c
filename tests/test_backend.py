"""Tests for replay recordings and the replay backend."""

import asyncio
import json

import pytest

from conftest import drain
from hardsub.services.backend import ReplayBackend, ReplayEvent, load_replay_events
from hardsub.services.errors import BackendError, ReplayFormatError
from hardsub.services.events import LocalEventHub, subscribe
from hardsub.services.session import EncodeSession
from hardsub.models.encode import EncodeStatus


def _write_jsonl(path, records):
    path.write_text("\n".join(json.dumps(record) for record in records) + "\n", encoding="utf-8")
    return path


class TestLoadReplayEvents:
    def test_parses_records_and_skips_comments(self, tmp_path):
        recording = tmp_path / "job.jsonl"
        recording.write_text(
            "# recorded from a 10s clip\n"
            '{"channel": "encode-log", "payload": "ffmpeg version 6.1"}\n'
            "\n"
            '{"channel": "encode-complete", "payload": "/out/clip.mp4", "delay": 0.5}\n',
            encoding="utf-8",
        )

        events = load_replay_events(recording)

        assert events == [
            ReplayEvent(channel="encode-log", payload="ffmpeg version 6.1"),
            ReplayEvent(channel="encode-complete", payload="/out/clip.mp4", delay=0.5),
        ]

    def test_invalid_json_reports_line(self, tmp_path):
        recording = tmp_path / "broken.jsonl"
        recording.write_text('{"channel": "encode-log", "payload": "ok"}\n{not json\n', encoding="utf-8")

        with pytest.raises(ReplayFormatError, match=":2: invalid JSON"):
            load_replay_events(recording)

    def test_invalid_event_reports_line(self, tmp_path):
        recording = _write_jsonl(tmp_path / "neg.jsonl", [{"channel": "encode-log", "delay": -1}])

        with pytest.raises(ReplayFormatError, match=":1: invalid event"):
            load_replay_events(recording)


class TestReplayBackend:
    def test_emits_recorded_events_in_order(self, console, params):
        events = [ReplayEvent(channel="encode-log", payload=f"line {index}") for index in range(5)]

        async def scenario():
            hub = LocalEventHub()
            received = []
            subscription = subscribe(hub, "encode-log", received.append, console=console)
            await subscription.wait_ready()
            backend = ReplayBackend(hub, events, console=console)
            ack = await backend.start_job(params)
            await drain(20)
            return ack, received, backend.running

        ack, received, running = asyncio.run(scenario())

        assert ack == "Replay started: 5 event(s)"
        assert received == [f"line {index}" for index in range(5)]
        assert not running

    def test_rejects_concurrent_start(self, console, params):
        events = [ReplayEvent(channel="encode-log", payload="slow", delay=10)]

        async def scenario():
            backend = ReplayBackend(LocalEventHub(), events, console=console)
            await backend.start_job(params)
            try:
                with pytest.raises(BackendError, match="already running"):
                    await backend.start_job(params)
            finally:
                await backend.stop_job()
            return backend.running

        assert asyncio.run(scenario()) is False

    def test_stop_cancels_pending_emissions(self, console, params):
        events = [
            ReplayEvent(channel="encode-log", payload="now"),
            ReplayEvent(channel="encode-log", payload="later", delay=10),
        ]

        async def scenario():
            hub = LocalEventHub()
            received = []
            subscription = subscribe(hub, "encode-log", received.append, console=console)
            await subscription.wait_ready()
            backend = ReplayBackend(hub, events, console=console)
            await backend.start_job(params)
            await drain()
            await backend.stop_job()
            await backend.stop_job()
            await drain()
            return received

        assert asyncio.run(scenario()) == ["now"]

    def test_warns_about_unknown_channels(self, console, console_buffer):
        ReplayBackend(LocalEventHub(), [ReplayEvent(channel="encode-stats", payload={})], console=console)

        assert "encode-stats" in console_buffer.getvalue()

    def test_reports_replay_failure_when_hub_closes(self, console, console_buffer, params):
        """A replay that can no longer emit is logged instead of failing silently."""

        events = [ReplayEvent(channel="encode-log", payload="late", delay=0.01)]

        async def scenario():
            hub = LocalEventHub()
            backend = ReplayBackend(hub, events, console=console)
            await backend.start_job(params)
            hub.close()
            await asyncio.sleep(0.05)
            return backend.running

        assert asyncio.run(scenario()) is False
        output = console_buffer.getvalue()
        assert "Replay failed" in output
        assert "Event hub is closed" in output

    def test_full_replay_through_session(self, settings, console, params, progress_payload):
        events = [
            ReplayEvent(channel="encode-log", payload="Input #0, matroska"),
            ReplayEvent(channel="encode-progress", payload=progress_payload),
            ReplayEvent(channel="encode-progress", payload={**progress_payload, "frame": 240, "percentage": 87.6}),
            ReplayEvent(channel="encode-complete", payload="/out/input.mp4"),
            ReplayEvent(channel="encode-log", payload="trailing output"),
        ]

        async def scenario():
            hub = LocalEventHub()
            backend = ReplayBackend(hub, events, channels=settings.channels, console=console)
            async with EncodeSession(backend, hub, settings=settings, console=console) as session:
                await session.ready()
                await session.start(params)
                state = await session.wait_until_finished(timeout=1)
                await drain(10)
                return state, session.state

        finished, final = asyncio.run(scenario())

        assert finished.status is EncodeStatus.COMPLETED
        assert finished.progress.frame == 240
        assert finished.progress.percentage == 100
        assert finished.logs[1] == "Input #0, matroska"
        assert final == finished
