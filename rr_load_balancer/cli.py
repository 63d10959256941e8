"""Command-line batch run of the dispatch simulation in virtual time.

Example:
    rr-load-balancer --algorithm WRR --rate 20 --duration 30 \\
        --server api-1:3:50:400 --server api-2:1:50:900 --report out/report.json
"""

import argparse
import sys
from typing import Optional

from pydantic import ValidationError

from rr_load_balancer.config import (
    DEFAULT_ARRIVAL_RATE,
    ServerConfig,
    SimulationSettings,
    default_servers,
)
from rr_load_balancer.dispatcher import Dispatcher
from rr_load_balancer.logging_config import configure_from_env, enable_console_logging
from rr_load_balancer.models import Algorithm
from rr_load_balancer.stats import StatsAggregator


def parse_server(value: str) -> ServerConfig:
    """Parse ``NAME[:WEIGHT[:MAX_CONNECTIONS[:PROCESSING_MS]]]``."""
    parts = value.split(":")
    if len(parts) > 4:
        raise argparse.ArgumentTypeError(
            f"expected NAME[:WEIGHT[:MAXCONN[:PROCMS]]], got {value!r}"
        )
    fields = ("name", "weight", "max_connections", "processing_time_ms")
    try:
        return ServerConfig(**dict(zip(fields, parts)))
    except ValidationError as e:
        errors = "; ".join(err["msg"] for err in e.errors())
        raise argparse.ArgumentTypeError(f"invalid server {value!r}: {errors}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rr-load-balancer",
        description="Simulate round-robin style request dispatch across a server pool.",
    )
    parser.add_argument(
        "--algorithm",
        choices=[a.value for a in Algorithm],
        default=Algorithm.RR.value,
        help="selection policy (default: RR)",
    )
    parser.add_argument(
        "--rate",
        type=float,
        default=DEFAULT_ARRIVAL_RATE,
        help="arrival rate in requests/second, clamped to [1, 100]",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=10.0,
        help="simulated seconds of dispatch (default: 10)",
    )
    parser.add_argument(
        "--server",
        dest="servers",
        action="append",
        type=parse_server,
        metavar="NAME:WEIGHT:MAXCONN:PROCMS",
        help="add a server; repeatable. Defaults to a three-server fleet",
    )
    parser.add_argument(
        "--drain",
        action="store_true",
        help="let in-flight requests finish before reporting",
    )
    parser.add_argument("--report", metavar="PATH", help="write the JSON report here")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="enable console logging at this level",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.log_level:
        enable_console_logging(level=args.log_level)
    else:
        configure_from_env()

    settings = SimulationSettings(
        algorithm=args.algorithm,
        arrival_rate=args.rate,
        servers=args.servers or default_servers(),
    )
    dispatcher = Dispatcher.from_settings(settings)
    dispatcher.start()
    dispatcher.advance(args.duration * 1000)
    if args.drain:
        dispatcher.drain()
    else:
        dispatcher.pause()

    stats = StatsAggregator(dispatcher)
    print(f"{'server':<16} {'status':<9} {'weight':>6} {'conns':>9} {'requests':>9} {'avg ms':>9}")
    for row in stats.server_stats():
        print(
            f"{row.name:<16} {row.status:<9} {row.weight:>6} {row.connections:>9} "
            f"{row.total_requests:>9} {row.avg_response_time:>9}"
        )
    print(stats.summary().model_dump_json(by_alias=True, indent=2))

    if args.report:
        stats.write_report(args.report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
