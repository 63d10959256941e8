"""Value types shared by the registry, the selection engine and the driver.

``Server`` and ``Request`` are frozen snapshots. The registry owns the mutable
records and hands out fresh snapshots after every mutation, so holding a
snapshot never gives a caller a way to change engine state.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Algorithm(str, Enum):
    """Server selection policy."""

    RR = "RR"
    WRR = "WRR"
    DWRR = "DWRR"
    LC_RR = "LC_RR"

    @property
    def label(self) -> str:
        return ALGORITHM_LABELS[self]

    @classmethod
    def parse(cls, value: "Algorithm | str") -> "Algorithm":
        """Accept an ``Algorithm`` or its name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            names = ", ".join(a.value for a in cls)
            raise ValueError(
                f"Unknown algorithm {value!r}; expected one of {names}"
            ) from None


ALGORITHM_LABELS = {
    Algorithm.RR: "Simple Round Robin",
    Algorithm.WRR: "Weighted Round Robin",
    Algorithm.DWRR: "Dynamic Weighted Round Robin",
    Algorithm.LC_RR: "Least Connection Round Robin",
}


class Server(BaseModel):
    """Point-in-time view of one backend server."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    weight: int
    original_weight: int
    max_connections: int
    processing_time_ms: int
    active: bool = True
    current_connections: int = 0
    total_requests: int = 0
    total_response_time_ms: int = 0
    in_flight: frozenset[int] = frozenset()

    @property
    def can_accept(self) -> bool:
        """Active and below capacity."""
        return self.active and self.current_connections < self.max_connections

    @property
    def load_factor(self) -> float:
        return self.current_connections / self.max_connections

    @property
    def average_response_time(self) -> float:
        """Completed service time per admitted request, 0 when idle."""
        if self.total_requests == 0:
            return 0.0
        return round(self.total_response_time_ms / self.total_requests, 2)


class Request(BaseModel):
    """One simulated unit of work.

    Lifecycle transitions return new values via ``model_copy``:
    created -> admitted (``server_id`` set) -> completed.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    created_at_ms: float = 0.0
    server_id: Optional[int] = None
    completed: bool = False
    processing_time_ms: int = 0
    admitted_at_ms: Optional[float] = None

    @property
    def admitted(self) -> bool:
        return self.server_id is not None


@dataclass
class WeightCredit:
    """Per-server credit consumed by the weighted policies."""

    current: int = 0
    max: int = 1
