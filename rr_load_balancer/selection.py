"""SelectionEngine — the four server selection policies.

Every policy works over the eligible set: servers that are active and below
capacity, in registry order. The engine owns the shared rotation index and the
weight credits used by the weighted policies.
"""

import logging
import math
from typing import Optional

from rr_load_balancer.models import Algorithm, Server, WeightCredit
from rr_load_balancer.registry import ServerRegistry

logger = logging.getLogger(__name__)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def dynamic_weight(server: Server) -> int:
    """Configured weight scaled down by the server's current load, floored at 1."""
    return _round_half_up(max(1.0, server.original_weight * (1 - server.load_factor)))


class SelectionEngine:
    """Picks the next server for a request under a given policy.

    The rotation index is taken modulo the size of the set being rotated at
    the moment of selection, so when servers join, leave or fill up the same
    index can land on a different server.
    """

    def __init__(self, registry: ServerRegistry):
        self._registry = registry
        self.rotation_index = 0
        self.credits: dict[int, WeightCredit] = {}

    def track(self, server: Server) -> None:
        """Start tracking credit for a newly added server."""
        self.credits[server.id] = WeightCredit(current=0, max=server.weight)

    def refresh(self, server: Server) -> None:
        credit = self.credits.setdefault(server.id, WeightCredit(current=0))
        credit.max = server.weight

    def forget(self, server_id: int) -> None:
        self.credits.pop(server_id, None)

    def reset(self) -> None:
        self.rotation_index = 0
        self.credits = {}
        for server in self._registry.servers():
            self.track(server)

    def select(self, algorithm: Algorithm) -> Optional[Server]:
        """Return the chosen server, or None when no server can accept."""
        servers = self._registry.eligible()
        if not servers:
            return None

        if algorithm is Algorithm.WRR:
            return self.weighted_round_robin(servers)
        if algorithm is Algorithm.DWRR:
            return self.dynamic_weighted_round_robin(servers)
        if algorithm is Algorithm.LC_RR:
            return self.least_connection_round_robin(servers)
        return self.round_robin(servers)

    def round_robin(self, servers: list[Server]) -> Server:
        server = servers[self.rotation_index % len(servers)]
        self.rotation_index = (self.rotation_index + 1) % len(servers)
        return server

    def weighted_round_robin(self, servers: list[Server]) -> Server:
        """Highest remaining credit wins; the first server wins a tie.

        Once every candidate's credit is spent, all candidates are refilled
        to their weight.
        """
        selected = None
        best = -1
        for server in servers:
            current = self._credit(server).current
            if current > best:
                best = current
                selected = server

        if selected is None:
            return servers[0]

        self._credit(selected).current -= 1
        if all(self._credit(s).current <= 0 for s in servers):
            for server in servers:
                self._credit(server).current = server.weight
            logger.debug(f"Replenished weight credits for {len(servers)} server(s)")
        return selected

    def dynamic_weighted_round_robin(self, servers: list[Server]) -> Server:
        """Recompute weights from current load, then pick as WRR does."""
        for server in servers:
            weight = dynamic_weight(server)
            self._registry.set_effective_weight(server.id, weight)
            self._credit(server).max = weight

        refreshed = [self._registry.get(server.id) for server in servers]
        return self.weighted_round_robin(refreshed)

    def least_connection_round_robin(self, servers: list[Server]) -> Server:
        """Rotate among the servers tied for the fewest open connections."""
        fewest = min(server.current_connections for server in servers)
        least_loaded = [s for s in servers if s.current_connections == fewest]
        return self.round_robin(least_loaded)

    def _credit(self, server: Server) -> WeightCredit:
        credit = self.credits.get(server.id)
        if credit is None:
            credit = self.credits[server.id] = WeightCredit(current=0, max=server.weight)
        return credit
