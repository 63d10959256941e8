"""StatsAggregator — per-server and overall summaries for reporting.

``SimulationReport`` is the stable, serializable shape handed to exporters;
it serializes with camelCase keys (``totalRequests``, ``perServer`` ...).
"""

import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from rr_load_balancer.dispatcher import Dispatcher
from rr_load_balancer.models import Server

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ServerStats(_CamelModel):
    """One row of the live per-server table."""

    name: str
    status: str
    weight: int
    connections: str
    total_requests: int
    avg_response_time: str


class TrafficEntry(_CamelModel):
    name: str
    count: int


class Summary(_CamelModel):
    """Live overview.

    ``total_requests`` sums the servers currently registered;
    ``lifetime_requests`` also counts admissions on servers removed since.
    """

    algorithm: str
    total_requests: int
    lifetime_requests: int
    dropped: int
    active_servers: int
    avg_response_time: str
    most_traffic: Optional[TrafficEntry] = None
    least_traffic: Optional[TrafficEntry] = None


class ServerAnalytics(_CamelModel):
    name: str
    total_requests: int
    avg_response: float
    max_connections: int
    weight: int


class SimulationReport(_CamelModel):
    total_requests: int
    avg_response: float
    most_traffic: TrafficEntry
    least_traffic: TrafficEntry
    per_server: list[ServerAnalytics]

    def to_json(self, indent: Optional[int] = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)


def mean_response_time(servers: list[Server]) -> float:
    """Unweighted mean of per-server averages; 0 for an empty fleet."""
    if not servers:
        return 0.0
    return round(sum(s.average_response_time for s in servers) / len(servers), 2)


def _traffic_extremes(servers: list[Server]) -> tuple[TrafficEntry, TrafficEntry]:
    busiest = max(servers, key=lambda s: s.total_requests)
    quietest = min(servers, key=lambda s: s.total_requests)
    return (
        TrafficEntry(name=busiest.name, count=busiest.total_requests),
        TrafficEntry(name=quietest.name, count=quietest.total_requests),
    )


class StatsAggregator:
    """Reads the dispatcher and its load balancer; never mutates them."""

    def __init__(self, dispatcher: Dispatcher):
        self.dispatcher = dispatcher
        self.balancer = dispatcher.balancer

    def server_stats(self) -> list[ServerStats]:
        return [
            ServerStats(
                name=s.name,
                status="active" if s.active else "inactive",
                weight=s.weight,
                connections=f"{s.current_connections}/{s.max_connections}",
                total_requests=s.total_requests,
                avg_response_time=f"{s.average_response_time:.2f}",
            )
            for s in self.balancer.servers
        ]

    def summary(self) -> Summary:
        servers = self.balancer.servers
        most = least = None
        if servers:
            most, least = _traffic_extremes(servers)
        return Summary(
            algorithm=self.dispatcher.algorithm.label,
            total_requests=sum(s.total_requests for s in servers),
            lifetime_requests=self.dispatcher.total_requests,
            dropped=self.dispatcher.dropped,
            active_servers=sum(1 for s in servers if s.active),
            avg_response_time=f"{mean_response_time(servers):.2f}",
            most_traffic=most,
            least_traffic=least,
        )

    def report(self) -> Optional[SimulationReport]:
        """Exportable report, or None while there are no servers."""
        servers = self.balancer.servers
        if not servers:
            return None
        most, least = _traffic_extremes(servers)
        return SimulationReport(
            total_requests=sum(s.total_requests for s in servers),
            avg_response=mean_response_time(servers),
            most_traffic=most,
            least_traffic=least,
            per_server=[
                ServerAnalytics(
                    name=s.name,
                    total_requests=s.total_requests,
                    avg_response=s.average_response_time,
                    max_connections=s.max_connections,
                    weight=s.weight,
                )
                for s in servers
            ],
        )

    def write_report(self, path: Union[str, Path]) -> Optional[Path]:
        """Write the JSON report to ``path``; returns None if there is nothing to report."""
        report = self.report()
        if report is None:
            logger.warning("No servers configured, report not written")
            return None
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(report.to_json(), encoding="utf-8")
        logger.info(f"Wrote simulation report to {path}")
        return path
