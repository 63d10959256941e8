"""ServerRegistry — owns backend server records and capacity admission.

Records are mutable and private; every public operation returns a frozen
``Server`` snapshot taken after the mutation. Servers are keyed by an id the
registry allocates itself, and iteration follows insertion order, which the
round-robin policies depend on.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from rr_load_balancer.config import ServerConfig
from rr_load_balancer.models import Request, Server

logger = logging.getLogger(__name__)


@dataclass
class _ServerRecord:
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
    in_flight: dict[int, Request] = field(default_factory=dict)

    def can_accept(self) -> bool:
        return self.active and self.current_connections < self.max_connections

    def snapshot(self) -> Server:
        return Server(
            id=self.id,
            name=self.name,
            weight=self.weight,
            original_weight=self.original_weight,
            max_connections=self.max_connections,
            processing_time_ms=self.processing_time_ms,
            active=self.active,
            current_connections=self.current_connections,
            total_requests=self.total_requests,
            total_response_time_ms=self.total_response_time_ms,
            in_flight=frozenset(self.in_flight),
        )


class ServerRegistry:
    """Set of backend servers with per-server load counters."""

    def __init__(self) -> None:
        self._records: dict[int, _ServerRecord] = {}
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, server_id: object) -> bool:
        return server_id in self._records

    def add(self, config: ServerConfig) -> Server:
        """Register a new server with zeroed counters."""
        server_id = self._next_id
        self._next_id += 1
        record = _ServerRecord(
            id=server_id,
            name=config.name,
            weight=config.weight,
            original_weight=config.weight,
            max_connections=config.max_connections,
            processing_time_ms=config.processing_time_ms,
        )
        self._records[server_id] = record
        return record.snapshot()

    def remove(self, server_id: int) -> Optional[Server]:
        """Drop a server. Removing an unknown id is a no-op."""
        record = self._records.pop(server_id, None)
        if record is None:
            return None
        return record.snapshot()

    def get(self, server_id: int) -> Optional[Server]:
        record = self._records.get(server_id)
        return record.snapshot() if record is not None else None

    def servers(self) -> list[Server]:
        """All servers in insertion order."""
        return [record.snapshot() for record in self._records.values()]

    def eligible(self) -> list[Server]:
        """Servers that are active and below capacity, in insertion order."""
        return [
            record.snapshot()
            for record in self._records.values()
            if record.can_accept()
        ]

    def can_accept(self, server_id: int) -> bool:
        record = self._records.get(server_id)
        return record is not None and record.can_accept()

    def toggle_active(self, server_id: int) -> Optional[Server]:
        """Flip the active flag. Requests already admitted keep running."""
        record = self._lookup(server_id, "toggle")
        if record is None:
            return None
        record.active = not record.active
        return record.snapshot()

    def update_config(self, server_id: int, config: ServerConfig) -> Optional[Server]:
        """Replace the configuration; runtime counters are kept."""
        record = self._lookup(server_id, "update")
        if record is None:
            return None
        record.name = config.name
        record.weight = config.weight
        record.original_weight = config.weight
        record.max_connections = config.max_connections
        record.processing_time_ms = config.processing_time_ms
        return record.snapshot()

    def set_effective_weight(self, server_id: int, weight: int) -> None:
        record = self._records.get(server_id)
        if record is not None:
            record.weight = weight

    def admit(self, server_id: int, request: Request, now_ms: float) -> Optional[Request]:
        """Accept a request onto a server.

        Returns the request stamped with the server and its processing time,
        or None when the server is unknown, inactive or full. A refusal is a
        normal outcome and the caller drops the request.
        """
        record = self._records.get(server_id)
        if record is None or not record.can_accept():
            return None

        admitted = request.model_copy(
            update={
                "server_id": record.id,
                "processing_time_ms": record.processing_time_ms,
                "admitted_at_ms": now_ms,
            }
        )
        record.current_connections += 1
        record.total_requests += 1
        record.in_flight[admitted.id] = admitted
        logger.debug(
            f"Admitted request {admitted.id} on {record.name} "
            f"(slot {record.current_connections}/{record.max_connections})"
        )
        return admitted

    def complete(self, server_id: int, request_id: int) -> Optional[Request]:
        """Finish an in-flight request and fold its service time into the stats."""
        record = self._records.get(server_id)
        if record is None:
            return None
        request = record.in_flight.pop(request_id, None)
        if request is None:
            return None

        record.current_connections = max(0, record.current_connections - 1)
        record.total_response_time_ms += request.processing_time_ms
        logger.debug(
            f"Completed request {request_id} on {record.name} "
            f"(slot {record.current_connections}/{record.max_connections})"
        )
        return request.model_copy(update={"completed": True})

    def clear_stats(self) -> None:
        """Zero every load counter and forget all in-flight requests."""
        for record in self._records.values():
            record.current_connections = 0
            record.total_requests = 0
            record.total_response_time_ms = 0
            record.in_flight.clear()

    def _lookup(self, server_id: int, action: str) -> Optional[_ServerRecord]:
        record = self._records.get(server_id)
        if record is None:
            logger.warning(f"Cannot {action} server {server_id}: no such server")
        return record
