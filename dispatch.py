"""Dispatchers that deliver engine notifications to observers.

Engines never call observers while holding their state lock; they hand a
ready-made callback to a dispatcher instead.  ``ImmediateDispatcher`` runs it
on the publishing thread.  ``QueueDispatcher`` parks it until the observer's
own thread drains the queue, so a UI loop only ever sees state changes on the
thread it owns.
"""

from __future__ import annotations

import logging
from queue import Empty, Queue
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ImmediateDispatcher:
    def post(self, callback: Callable[[], None]) -> None:
        callback()


class QueueDispatcher:
    def __init__(self) -> None:
        self._queue: Queue[Callable[[], None]] = Queue()

    def post(self, callback: Callable[[], None]) -> None:
        self._queue.put(callback)

    def pending(self) -> int:
        return self._queue.qsize()

    def run_pending(self, max_items: Optional[int] = None, timeout: float = 0.0) -> int:
        """Run queued callbacks on the calling thread and return how many ran.

        With ``timeout`` > 0 the first callback is awaited for up to that long.
        """
        ran = 0
        block = timeout > 0
        while max_items is None or ran < max_items:
            try:
                callback = self._queue.get(block=block, timeout=timeout if block else None)
            except Empty:
                break
            block = False
            try:
                callback()
            except Exception:
                logger.exception("observer callback failed")
            ran += 1
        return ran
