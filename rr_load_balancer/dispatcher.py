"""Dispatcher — tick-driven request generator on a virtual clock.

Each tick manufactures a request, asks the load balancer for a server and, on
admission, schedules the request's completion ``processing_time_ms`` later.
Completions that are due are always applied before the next dispatch, so an
admission never sees capacity that has not been freed yet.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from rr_load_balancer.balancer import LoadBalancer
from rr_load_balancer.config import DEFAULT_ARRIVAL_RATE, SimulationSettings, clamp_arrival_rate
from rr_load_balancer.events import EventQueue, VirtualClock
from rr_load_balancer.models import Algorithm, Request, Server

logger = logging.getLogger(__name__)


class SimulationState(str, Enum):
    STOPPED = "stopped"
    PAUSED = "paused"
    RUNNING = "running"


@dataclass
class DispatchResult:
    """Outcome of one tick. ``server`` is None when the request was dropped."""

    request: Request
    server: Optional[Server] = None

    @property
    def accepted(self) -> bool:
        return self.server is not None


class Dispatcher:
    """Drives requests into a LoadBalancer at a fixed arrival rate.

    Time only moves when the caller advances it (``advance`` / ``run_until``)
    or when ``tick`` is called directly, which makes runs deterministic.
    Ticks are produced only while RUNNING; pending completions keep firing
    while paused so in-flight work drains.
    """

    def __init__(
        self,
        balancer: LoadBalancer,
        *,
        arrival_rate: float = DEFAULT_ARRIVAL_RATE,
        algorithm: Algorithm | str = Algorithm.RR,
    ):
        self.balancer = balancer
        self.events = EventQueue()
        self.clock = VirtualClock()
        self.state = SimulationState.STOPPED
        self.algorithm = Algorithm.parse(algorithm)
        self.arrival_rate = clamp_arrival_rate(arrival_rate)
        self.request_counter = 0
        self.total_requests = 0
        self.dropped = 0
        self._next_tick_ms: Optional[float] = None

        balancer.on_server_removed.append(self._cancel_completions)

    @classmethod
    def from_settings(cls, settings: SimulationSettings) -> "Dispatcher":
        balancer = LoadBalancer()
        for config in settings.servers:
            balancer.add_server(config)
        return cls(
            balancer,
            arrival_rate=settings.arrival_rate,
            algorithm=settings.algorithm,
        )

    @property
    def now_ms(self) -> float:
        return self.clock.now_ms

    @property
    def running(self) -> bool:
        return self.state is SimulationState.RUNNING

    @property
    def interval_ms(self) -> float:
        return 1000 / self.arrival_rate

    @property
    def pending_completions(self) -> int:
        return self.events.size()

    # ── lifecycle ──────────────────────────────────────────────────────

    def start(self) -> None:
        if self.running:
            return
        self.state = SimulationState.RUNNING
        self._next_tick_ms = self.clock.now_ms + self.interval_ms
        logger.info(
            f"Simulation started: algorithm={self.algorithm.value}, "
            f"rate={self.arrival_rate:g}/s"
        )

    def pause(self) -> None:
        """Halt dispatch, keeping stats and in-flight requests."""
        self._next_tick_ms = None
        if self.running:
            self.state = SimulationState.PAUSED
            logger.info(f"Simulation paused at {self.clock.now_ms:.0f} ms")

    def toggle(self) -> None:
        if self.running:
            self.pause()
        else:
            self.start()

    def stop(self) -> None:
        """Halt dispatch and clear every counter and pending completion."""
        self.state = SimulationState.STOPPED
        self._next_tick_ms = None
        self.events.clear()
        self.balancer.clear_stats()
        self.total_requests = 0
        self.dropped = 0
        logger.info("Simulation stopped, stats cleared")

    def reset(self) -> None:
        """Stop, then rewind the clock, request ids and rotation state."""
        self.stop()
        self.clock.reset()
        self.request_counter = 0
        self.balancer.selector.reset()

    # ── configuration ──────────────────────────────────────────────────

    def set_algorithm(self, algorithm: Algorithm | str) -> Algorithm:
        """Switch policy. Switching pauses dispatch; stats are kept."""
        self.algorithm = Algorithm.parse(algorithm)
        self.pause()
        logger.info(f"Algorithm set to {self.algorithm.label}")
        return self.algorithm

    def set_arrival_rate(self, rate: float) -> float:
        self.arrival_rate = clamp_arrival_rate(rate)
        if self.running:
            self._next_tick_ms = self.clock.now_ms + self.interval_ms
        return self.arrival_rate

    # ── time ───────────────────────────────────────────────────────────

    def tick(self) -> DispatchResult:
        """Dispatch one request at the current virtual time.

        This is a manual step and ignores the simulation state: it dispatches
        even while STOPPED or PAUSED. Use ``advance`` / ``run_until`` to get
        state-gated ticks at the arrival rate.
        """
        self._apply_due_completions()

        self.request_counter += 1
        now = self.clock.now_ms
        request = Request(id=self.request_counter, created_at_ms=now)

        outcome = self.balancer.distribute(request, self.algorithm, now)
        if outcome is None:
            self.dropped += 1
            logger.debug(f"Dropped request {request.id}: no server can accept it")
            return DispatchResult(request=request)

        admitted, server = outcome
        self.total_requests += 1
        self.events.schedule(now + admitted.processing_time_ms, server.id, admitted.id)
        return DispatchResult(request=admitted, server=server)

    def advance(self, duration_ms: float) -> list[DispatchResult]:
        return self.run_until(self.clock.now_ms + duration_ms)

    def run_until(self, until_ms: float) -> list[DispatchResult]:
        """Process completions and ticks in time order up to ``until_ms``.

        At equal timestamps completions are applied before the dispatch.
        """
        results = []
        while True:
            pending = self.events.peek()
            next_completion = pending.time_ms if pending is not None else None
            next_tick = self._next_tick_ms if self.running else None

            upcoming = [t for t in (next_completion, next_tick) if t is not None]
            if not upcoming or min(upcoming) > until_ms:
                break

            now = min(upcoming)
            self.clock.advance_to(now)
            if next_completion is not None and next_completion <= now:
                self._apply_due_completions()
                continue

            self._next_tick_ms = now + self.interval_ms
            results.append(self.tick())

        self.clock.advance_to(until_ms)
        return results

    def drain(self) -> None:
        """Pause, then let every in-flight request complete."""
        self.pause()
        pending = self.events.peek()
        while pending is not None:
            self.clock.advance_to(pending.time_ms)
            self._apply_due_completions()
            pending = self.events.peek()

    def _apply_due_completions(self) -> None:
        for event in self.events.pop_due(self.clock.now_ms):
            self.balancer.complete(event.server_id, event.request_id)

    def _cancel_completions(self, server: Server) -> None:
        cancelled = self.events.cancel_for_server(server.id)
        if cancelled:
            logger.info(
                f"Cancelled {cancelled} pending completion(s) for removed "
                f"server {server.name}"
            )
