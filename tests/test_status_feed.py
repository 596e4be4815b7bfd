"""
Tests for StatusFeed — non-blocking publish, replay, close semantics.
"""

import threading
import time

import pytest

from vpnode.core.models.step import StepEvent, StepStatus
from vpnode.core.services.status_feed import StatusFeed


def _event(i: int, status: StepStatus = StepStatus.RUNNING) -> StepEvent:
    return StepEvent(index=i, total=10, name=f"step {i}", status=status)


class TestPublish:
    def test_sequence_numbers(self):
        feed = StatusFeed()
        assert feed.publish(_event(0)) == 1
        assert feed.publish(_event(1)) == 2
        assert feed.seq == 2

    def test_history_is_bounded(self):
        feed = StatusFeed(buffer_size=3)
        for i in range(5):
            feed.publish(_event(i))
        assert [e.index for e in feed.history()] == [2, 3, 4]

    def test_publish_after_close(self):
        feed = StatusFeed()
        feed.close()
        assert feed.closed
        with pytest.raises(RuntimeError, match="closed"):
            feed.publish(_event(0))

    def test_close_is_idempotent(self):
        feed = StatusFeed()
        feed.close()
        feed.close()


class TestSubscribe:
    def test_replay_then_end(self):
        feed = StatusFeed()
        for i in range(3):
            feed.publish(_event(i))
        feed.close()
        assert [e.index for e in feed.subscribe()] == [0, 1, 2]

    def test_since(self):
        feed = StatusFeed()
        for i in range(4):
            feed.publish(_event(i))
        feed.close()
        assert [e.index for e in feed.subscribe(since=2)] == [2, 3]

    def test_live_subscriber_on_thread(self):
        feed = StatusFeed()
        received: list[int] = []

        def consume() -> None:
            for event in feed.subscribe():
                received.append(event.index)

        # Published before the consumer attaches; delivered by replay
        feed.publish(_event(0))
        worker = threading.Thread(target=consume)
        worker.start()
        deadline = time.monotonic() + 5
        while feed.subscriber_count == 0 and time.monotonic() < deadline:
            time.sleep(0.01)

        for i in range(1, 4):
            feed.publish(_event(i))
        feed.close()
        worker.join(timeout=5)

        assert not worker.is_alive()
        assert received == [0, 1, 2, 3]

    def test_slow_subscriber_is_dropped_and_ended(self):
        feed = StatusFeed(subscriber_queue_size=2)
        feed.publish(_event(0))
        stream = feed.subscribe()
        assert next(stream).index == 0

        for i in range(1, 6):
            feed.publish(_event(i))

        assert feed.subscriber_count == 0
        # The dropped stream ends instead of waiting forever
        remaining = list(stream)
        assert len(remaining) <= 2

    def test_unsubscribes_on_exit(self):
        feed = StatusFeed()
        feed.publish(_event(0))
        stream = feed.subscribe()
        next(stream)
        assert feed.subscriber_count == 1
        stream.close()
        assert feed.subscriber_count == 0
