"""Tests for EventQueue and VirtualClock."""

import pytest

from rr_load_balancer.events import EventQueue, VirtualClock


class TestEventQueue:
    def test_pops_in_time_order_fifo_on_ties(self):
        queue = EventQueue()
        queue.schedule(200, server_id=1, request_id=1)
        queue.schedule(100, server_id=1, request_id=2)
        queue.schedule(100, server_id=2, request_id=3)

        order = [queue.pop().request_id for _ in range(3)]
        assert order == [2, 3, 1]

    def test_pop_due_stops_at_now(self):
        queue = EventQueue()
        for request_id, time_ms in enumerate([50, 100, 150], start=1):
            queue.schedule(time_ms, server_id=1, request_id=request_id)

        due = [e.request_id for e in queue.pop_due(100)]

        assert due == [1, 2]
        assert queue.size() == 1

    def test_cancelled_events_are_skipped(self):
        queue = EventQueue()
        first = queue.schedule(10, server_id=1, request_id=1)
        queue.schedule(20, server_id=2, request_id=2)

        first.cancel()
        first.cancel()

        assert queue.peek().request_id == 2
        assert [e.request_id for e in queue.pop_due(100)] == [2]
        assert not queue.has_events()

    def test_cancel_for_server(self):
        queue = EventQueue()
        queue.schedule(10, server_id=1, request_id=1)
        queue.schedule(20, server_id=2, request_id=2)
        queue.schedule(30, server_id=1, request_id=3)

        assert queue.cancel_for_server(1) == 2
        assert queue.cancel_for_server(1) == 0
        assert queue.size() == 1


class TestVirtualClock:
    def test_advances_forward_only(self):
        clock = VirtualClock()
        clock.advance_to(10)
        clock.advance_to(10)
        assert clock.now_ms == 10

        with pytest.raises(ValueError):
            clock.advance_to(5)

    def test_reset(self):
        clock = VirtualClock(start_ms=40)
        clock.reset()
        assert clock.now_ms == 0
