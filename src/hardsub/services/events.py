"""Bridge between asynchronous backend event channels and synchronous callbacks."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from rich.console import Console

from hardsub.services.errors import SubscriptionError


EventHandler = Callable[[Any], None]
Unlisten = Callable[[], None]


class EventSource(Protocol):
    """Anything that can attach a handler to a named channel.

    ``listen`` resolves once the handler is attached and returns the function
    that detaches it again.
    """

    def listen(self, channel: str, handler: EventHandler) -> Awaitable[Unlisten]:
        ...


class SubscriptionState(str, Enum):
    """Lifecycle of a :class:`Subscription` handle."""

    PENDING = "pending"
    ACTIVE = "active"
    CANCELLED_PENDING = "cancelled_pending"
    CLOSED = "closed"


class Subscription:
    """Cancellation handle for one channel listener.

    Attaching happens in the background; :meth:`cancel` may be called at any
    point, including before the attach has been acknowledged. In that case the
    cancellation is recorded and the listener is detached the moment the
    acknowledgment arrives. Once cancelled, no event reaches the callback again,
    even if the source still has deliveries queued.
    """

    def __init__(
        self,
        channel: str,
        callback: EventHandler,
        *,
        console: Optional[Console] = None,
        verbose: bool = False,
    ) -> None:
        self.channel = channel
        self._callback = callback
        self._console = console or Console()
        self._verbose = verbose
        self._state = SubscriptionState.PENDING
        self._unlisten: Optional[Unlisten] = None
        self._ready = asyncio.Event()
        self._attach_task: Optional[asyncio.Task[None]] = None

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state is SubscriptionState.ACTIVE

    @property
    def cancelled(self) -> bool:
        return self._state in (SubscriptionState.CANCELLED_PENDING, SubscriptionState.CLOSED)

    def cancel(self) -> None:
        """Stop delivery and release the underlying listener. Idempotent."""

        if self._state is SubscriptionState.PENDING:
            self._state = SubscriptionState.CANCELLED_PENDING
            if self._verbose:
                self._console.log(f"[dim]{self.channel}: cancelled before attach; teardown deferred[/dim]")
            return

        if self._state is SubscriptionState.ACTIVE:
            unlisten = self._unlisten
            self._unlisten = None
            self._state = SubscriptionState.CLOSED
            if unlisten is not None:
                unlisten()

    async def wait_ready(self) -> None:
        """Wait until the attach has either completed or failed."""

        await self._ready.wait()

    def _start(self, source: EventSource) -> None:
        self._attach_task = asyncio.get_running_loop().create_task(self._attach(source))

    async def _attach(self, source: EventSource) -> None:
        try:
            unlisten = await source.listen(self.channel, self._deliver)
        except asyncio.CancelledError:
            self._state = SubscriptionState.CLOSED
            self._ready.set()
            raise
        except Exception as exc:
            self._console.log(f"[red]Failed to attach to channel {self.channel}:[/red] {exc}")
            self._state = SubscriptionState.CLOSED
            self._ready.set()
            return

        self._settle(unlisten)

    def _settle(self, unlisten: Unlisten) -> None:
        if self._state is SubscriptionState.CANCELLED_PENDING:
            self._state = SubscriptionState.CLOSED
            unlisten()
            if self._verbose:
                self._console.log(f"[dim]{self.channel}: deferred teardown complete[/dim]")
        else:
            self._unlisten = unlisten
            self._state = SubscriptionState.ACTIVE
        self._ready.set()

    def _deliver(self, payload: Any) -> None:
        if self.cancelled:
            return
        self._callback(payload)


def subscribe(
    source: EventSource,
    channel: str,
    callback: EventHandler,
    *,
    console: Optional[Console] = None,
    verbose: bool = False,
) -> Subscription:
    """Attach ``callback`` to ``channel`` on ``source`` and return its handle.

    Must be called from a running event loop; the attach itself completes in
    the background.
    """

    subscription = Subscription(channel, callback, console=console, verbose=verbose)
    subscription._start(source)
    return subscription


class LocalEventHub:
    """In-process event source with asynchronous attach and FIFO delivery per channel.

    Emissions are scheduled on the running loop rather than delivered inline, so
    handlers always run after the emitter returns. A listener that has been
    detached receives nothing further, including deliveries already scheduled.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, Dict[int, EventHandler]] = {}
        self._next_id = 0
        self._closed = False

    async def listen(self, channel: str, handler: EventHandler) -> Unlisten:
        if self._closed:
            raise SubscriptionError(f"Event hub is closed; cannot listen on {channel!r}.")

        # Acknowledge on a later loop iteration, like a remote event bus would.
        await asyncio.sleep(0)

        self._next_id += 1
        listener_id = self._next_id
        self._listeners.setdefault(channel, {})[listener_id] = handler

        def unlisten() -> None:
            listeners = self._listeners.get(channel)
            if listeners is None:
                return
            listeners.pop(listener_id, None)
            if not listeners:
                del self._listeners[channel]

        return unlisten

    def emit(self, channel: str, payload: Any) -> int:
        """Schedule delivery of ``payload`` to every listener of ``channel``.

        Returns the number of listeners the payload was scheduled for.
        """

        if self._closed:
            raise SubscriptionError(f"Event hub is closed; cannot emit on {channel!r}.")

        loop = asyncio.get_running_loop()
        listener_ids = list(self._listeners.get(channel, {}))
        for listener_id in listener_ids:
            loop.call_soon(self._deliver, channel, listener_id, payload)
        return len(listener_ids)

    def listener_count(self, channel: str) -> int:
        return len(self._listeners.get(channel, {}))

    def close(self) -> None:
        self._closed = True
        self._listeners.clear()

    def _deliver(self, channel: str, listener_id: int, payload: Any) -> None:
        handler = self._listeners.get(channel, {}).get(listener_id)
        if handler is None:
            return
        handler(payload)


__all__ = [
    "EventHandler",
    "EventSource",
    "LocalEventHub",
    "Subscription",
    "SubscriptionState",
    "Unlisten",
    "subscribe",
]
