"""Encode session: owns the job state and wires backend events into transitions."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, List, Optional, Tuple

from rich.console import Console

from hardsub.config.settings import Settings, get_settings
from hardsub.models.actions import (
    CompleteAction,
    EncodeAction,
    ErrorAction,
    LogAction,
    ProgressAction,
    ResetAction,
    StartAction,
    StopAction,
)
from hardsub.models.encode import EncodeParams, EncodeState
from hardsub.services.backend import JobBackend
from hardsub.services.events import EventSource, Subscription, subscribe
from hardsub.services.reducer import INITIAL_STATE, STOP_FAILED_PREFIX, is_stale, transition
from hardsub.utils.validation import InvalidEventPayloadError, parse_progress_payload, parse_text_payload


StateObserver = Callable[[EncodeState], None]


class EncodeSession:
    """Tracks one encode job at a time for a single caller.

    The session subscribes to the backend's progress, log, completion and error
    channels once, on construction, and releases all four together on
    :meth:`dispose`. Every state change goes through :func:`transition`;
    observers receive each new snapshot.

    Must be created inside a running event loop.
    """

    def __init__(
        self,
        backend: JobBackend,
        events: EventSource,
        *,
        settings: Optional[Settings] = None,
        console: Optional[Console] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._console = console or Console()
        self._backend = backend
        self._state: EncodeState = INITIAL_STATE
        self._observers: List[StateObserver] = []
        self._finished = asyncio.Event()
        self._disposed = False

        channels = self._settings.channels
        verbose = self._settings.debug
        self._subscriptions: Tuple[Subscription, ...] = (
            subscribe(events, channels.progress, self._on_progress, console=self._console, verbose=verbose),
            subscribe(events, channels.log, self._on_log, console=self._console, verbose=verbose),
            subscribe(events, channels.complete, self._on_complete, console=self._console, verbose=verbose),
            subscribe(events, channels.error, self._on_error, console=self._console, verbose=verbose),
        )

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    @property
    def state(self) -> EncodeState:
        """Latest state snapshot."""

        return self._state

    @property
    def subscriptions(self) -> Tuple[Subscription, ...]:
        return self._subscriptions

    async def start(self, params: EncodeParams) -> Optional[str]:
        """Begin a new run and issue the backend start command.

        The run is marked as started before the command is sent. If the command
        itself fails the state moves to ``error``; otherwise the outcome arrives
        later through the completion and error channels.
        """

        self._dispatch(StartAction())
        try:
            return await self._backend.start_job(params)
        except Exception as exc:
            self._console.log(f"[red]Start command failed:[/red] {exc}")
            self._dispatch(ErrorAction(message=str(exc)))
            return None

    async def stop(self) -> None:
        """Ask the backend to stop; the state reflects whether the request was accepted."""

        try:
            await self._backend.stop_job()
        except Exception as exc:
            self._console.log(f"[red]Stop command failed:[/red] {exc}")
            self._dispatch(ErrorAction(message=f"{STOP_FAILED_PREFIX}{exc}"))
            return
        self._dispatch(StopAction())

    def reset(self) -> None:
        """Discard the current run and all of its history."""

        self._dispatch(ResetAction())

    def observe(self, observer: StateObserver) -> Callable[[], None]:
        """Register ``observer`` for state changes; returns a function that unregisters it."""

        self._observers.append(observer)

        def unobserve() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unobserve

    async def ready(self) -> None:
        """Wait until every channel subscription has settled."""

        await asyncio.gather(*(subscription.wait_ready() for subscription in self._subscriptions))

    async def wait_until_finished(self, timeout: Optional[float] = None) -> EncodeState:
        """Wait for the run to reach ``completed``, ``error`` or ``stopped``.

        Raises
        ------
        asyncio.TimeoutError
            If ``timeout`` elapses first.
        """

        await asyncio.wait_for(self._finished.wait(), timeout)
        return self._state

    def dispose(self) -> None:
        """Release all four channel subscriptions. Safe to call more than once."""

        if self._disposed:
            return
        self._disposed = True
        for subscription in self._subscriptions:
            subscription.cancel()

    close = dispose

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def __aenter__(self) -> "EncodeSession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.dispose()

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #
    def _dispatch(self, action: EncodeAction) -> None:
        current = self._state
        if is_stale(current, action):
            return

        next_state = transition(current, action)
        if next_state == current:
            return

        self._state = next_state
        if next_state.is_terminal:
            self._finished.set()
        else:
            self._finished.clear()

        for observer in list(self._observers):
            observer(next_state)

    def _on_progress(self, payload: Any) -> None:
        try:
            progress = parse_progress_payload(payload)
        except InvalidEventPayloadError as exc:
            self._console.log(f"[yellow]Dropped progress event:[/yellow] {exc}")
            return
        self._dispatch(ProgressAction(progress=progress))

    def _on_log(self, payload: Any) -> None:
        try:
            line = parse_text_payload(self._settings.channels.log, payload)
        except InvalidEventPayloadError as exc:
            self._console.log(f"[yellow]Dropped log event:[/yellow] {exc}")
            return
        self._dispatch(LogAction(line=line))

    def _on_complete(self, payload: Any) -> None:
        try:
            output_path = parse_text_payload(self._settings.channels.complete, payload)
        except InvalidEventPayloadError as exc:
            self._console.log(f"[yellow]Dropped completion event:[/yellow] {exc}")
            return
        self._dispatch(CompleteAction(output_path=output_path))

    def _on_error(self, payload: Any) -> None:
        try:
            message = parse_text_payload(self._settings.channels.error, payload)
        except InvalidEventPayloadError as exc:
            self._console.log(f"[yellow]Dropped error event:[/yellow] {exc}")
            return
        self._dispatch(ErrorAction(message=message))


__all__ = ["EncodeSession", "StateObserver"]
