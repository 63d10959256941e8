"""rr-load-balancer — discrete-event simulation of a request-dispatch layer.

Public API:
    LoadBalancer       — server fleet plus the four selection policies
    Dispatcher         — tick-driven request generator on a virtual clock
    StatsAggregator    — per-server and overall summaries, JSON report
    RealTimeRunner     — asyncio task pacing a Dispatcher against wall time
    ServerConfig       — Pydantic model for per-server configuration
    SimulationSettings — Pydantic model for a whole run
    Algorithm          — RR | WRR | DWRR | LC_RR
"""

import logging

from rr_load_balancer.balancer import LoadBalancer
from rr_load_balancer.config import ServerConfig, SimulationSettings
from rr_load_balancer.dispatcher import DispatchResult, Dispatcher, SimulationState
from rr_load_balancer.logging_config import (
    configure_from_env,
    disable_logging,
    enable_console_logging,
    set_level,
)
from rr_load_balancer.models import Algorithm, Request, Server
from rr_load_balancer.registry import ServerRegistry
from rr_load_balancer.runner import RealTimeRunner
from rr_load_balancer.selection import SelectionEngine
from rr_load_balancer.stats import SimulationReport, StatsAggregator

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Algorithm",
    "DispatchResult",
    "Dispatcher",
    "LoadBalancer",
    "RealTimeRunner",
    "Request",
    "SelectionEngine",
    "Server",
    "ServerConfig",
    "ServerRegistry",
    "SimulationReport",
    "SimulationSettings",
    "SimulationState",
    "StatsAggregator",
    "configure_from_env",
    "disable_logging",
    "enable_console_logging",
    "set_level",
]
