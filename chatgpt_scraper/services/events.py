# chatgpt_scraper/services/events.py
"""
Typed publish/subscribe for session state transitions.

Listeners are plain callables (sync or async). A failing listener is logged
and never breaks the session that emitted the event.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable

# Module logger
logger = logging.getLogger(__name__)


class ScraperEvent(str, Enum):
    """Events emitted by ChatGPTHandler.

    Arguments passed to listeners:
        OPTIONS_CHANGED: (old_options: dict, new_options: dict)
        LOCATION_CHANGE: (location: Location)
        all others: none
    """
    READY = "ready"
    DISCONNECTED = "disconnected"
    LOGIN_PAGE = "login_page"
    INITIALIZED = "initialized"
    BROWSER_DESTROYED = "browser_destroyed"
    HIDE = "hide"
    SHOW = "show"
    OPTIONS_CHANGED = "options_changed"
    LOCATION_CHANGE = "location_change"


Listener = Callable[..., Any]


class EventBus:
    """Registry of listeners per ScraperEvent"""

    def __init__(self):
        self._listeners: dict[ScraperEvent, list[Listener]] = {}
        # Keep references to scheduled async listeners until they finish
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, event: ScraperEvent | str, listener: Listener) -> Callable[[], None]:
        """
        Register `listener` for `event`.

        Returns:
            A callable that removes the listener again.
        """
        key = ScraperEvent(event)
        self._listeners.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(key, listener)

        return unsubscribe

    def once(self, event: ScraperEvent | str, listener: Listener) -> Callable[[], None]:
        """Register a listener that is removed after its first call."""
        key = ScraperEvent(event)

        def wrapper(*args: Any) -> Any:
            self.unsubscribe(key, wrapper)
            return listener(*args)

        return self.subscribe(key, wrapper)

    def unsubscribe(self, event: ScraperEvent | str, listener: Listener) -> None:
        listeners = self._listeners.get(ScraperEvent(event), [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: ScraperEvent | str) -> int:
        return len(self._listeners.get(ScraperEvent(event), []))

    def emit(self, event: ScraperEvent | str, *args: Any) -> bool:
        """
        Call every listener of `event` with `args`.

        Coroutine results are scheduled on the running loop.

        Returns:
            True if the event had listeners
        """
        key = ScraperEvent(event)
        listeners = list(self._listeners.get(key, []))
        logger.debug("Emitting %s to %d listener(s)", key.value, len(listeners))

        for listener in listeners:
            try:
                result = listener(*args)
            except Exception:
                logger.exception("Listener for '%s' failed", key.value)
                continue
            if inspect.isawaitable(result):
                self._schedule(key, result)

        return bool(listeners)

    def _schedule(self, key: ScraperEvent, awaitable: Any) -> None:
        task = asyncio.ensure_future(awaitable)
        self._pending.add(task)

        def _done(t: asyncio.Task) -> None:
            self._pending.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error("Async listener for '%s' failed: %s", key.value, t.exception())

        task.add_done_callback(_done)
