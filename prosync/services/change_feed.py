"""
In-process change notifications keyed by project id.

Repositories publish after every successful write that touches a project
row, its tasks, or its comments. Subscribers get a ``ChangeEvent`` and
typically re-read the project. A failing callback is logged and skipped;
it never fails the write that triggered it.

Usage:
    unsubscribe = change_feed.subscribe(project_id, lambda event: refresh())
    ...
    unsubscribe()
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    project_id: str
    kind: str      # project | task | comment
    action: str    # insert | update | delete


class ChangeFeed:
    """Subscription registry; thread-safe."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Callable[[ChangeEvent], None]]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, project_id: str, callback: Callable[[ChangeEvent], None]) -> Callable[[], None]:
        """Register ``callback`` for ``project_id``; returns the unsubscribe handle."""
        with self._lock:
            self._subscribers[project_id].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(project_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(project_id, None)

        return unsubscribe

    def subscriber_count(self, project_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(project_id, []))

    def publish(self, project_id: str, kind: str, action: str) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(project_id, []))
        if not callbacks:
            return
        event = ChangeEvent(project_id=project_id, kind=kind, action=action)
        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception("Change subscriber failed for project %s", project_id)
