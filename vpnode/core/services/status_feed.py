"""
StatusFeed — thread-safe, in-process pub/sub of pipeline step events.

The executor publishes a StepEvent after every transition; renderers
(the CLI progress display, tests) subscribe from their own thread.

Thread safety model
───────────────────
- ``_lock`` protects ``_seq``, ``_buffer``, ``_subscribers`` and
  ``_closed``.
- Each subscriber gets its own ``queue.Queue``; ``publish()`` pushes
  with ``put_nowait`` and never waits on a consumer. A subscriber
  whose queue is full is dropped rather than allowed to stall the
  pipeline.
- A bounded ring buffer lets a late subscriber replay what it missed.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import deque
from collections.abc import Generator

from vpnode.core.models.step import StepEvent

logger = logging.getLogger(__name__)

_CLOSED = None  # end-of-stream marker pushed to every subscriber queue


def _end_stream(q: queue.Queue[StepEvent | None]) -> None:
    """Push the end marker, evicting the oldest events if the queue is full."""
    while True:
        try:
            q.put_nowait(_CLOSED)
            return
        except queue.Full:
            try:
                q.get_nowait()
            except queue.Empty:
                pass


class StatusFeed:
    """Non-blocking publisher of StepEvents with bounded replay.

    Args:
        buffer_size: Events kept for replay to late subscribers.
        subscriber_queue_size: Backlog allowed per subscriber before it
            is dropped.
    """

    def __init__(self, *, buffer_size: int = 100, subscriber_queue_size: int = 100) -> None:
        self._lock = threading.Lock()
        self._seq = 0
        self._buffer: deque[tuple[int, StepEvent]] = deque(maxlen=buffer_size)
        self._subscribers: list[queue.Queue[StepEvent | None]] = []
        self._subscriber_queue_size = subscriber_queue_size
        self._closed = False

    # ── Properties ──────────────────────────────────────────────

    @property
    def seq(self) -> int:
        """Number of events published so far."""
        with self._lock:
            return self._seq

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def history(self) -> list[StepEvent]:
        """Events still held in the replay buffer, oldest first."""
        with self._lock:
            return [event for _, event in self._buffer]

    # ── Publishing ──────────────────────────────────────────────

    def publish(self, event: StepEvent) -> int:
        """Broadcast ``event`` to all subscribers without blocking.

        Returns:
            The event's sequence number.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("StatusFeed is closed")
            self._seq += 1
            self._buffer.append((self._seq, event))

            dead: list[queue.Queue[StepEvent | None]] = []
            for q in self._subscribers:
                try:
                    q.put_nowait(event)
                except queue.Full:
                    dead.append(q)
            for q in dead:
                self._subscribers.remove(q)
                _end_stream(q)
                logger.info("Dropped unresponsive status subscriber (queue full)")
            seq = self._seq

        logger.debug("status %s %s %s", event.position, event.status, event.name)
        return seq

    def close(self) -> None:
        """End the stream; subscribers finish after draining their queues."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for q in self._subscribers:
                _end_stream(q)

    # ── Subscribing ─────────────────────────────────────────────

    def subscribe(self, *, since: int = 0) -> Generator[StepEvent, None, None]:
        """Yield events published after sequence ``since`` until closed.

        Events still in the replay buffer are delivered first, so a
        subscriber attached after the pipeline started misses nothing
        the buffer still holds.
        """
        q: queue.Queue[StepEvent | None] = queue.Queue(maxsize=self._subscriber_queue_size)

        with self._lock:
            for seq, event in self._buffer:
                if seq > since:
                    try:
                        q.put_nowait(event)
                    except queue.Full:
                        break
            if self._closed:
                _end_stream(q)
            else:
                self._subscribers.append(q)

        try:
            while True:
                event = q.get()
                if event is _CLOSED:
                    return
                yield event
        finally:
            with self._lock:
                if q in self._subscribers:
                    self._subscribers.remove(q)
