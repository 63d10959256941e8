"""LoadBalancer — server registry plus selection engine behind one surface.

Keeps the engine's weight credits in step with registry changes and validates
server configuration before anything is mutated.
"""

import logging
from typing import Any, Callable, Mapping, Optional, Union

from rr_load_balancer.config import ServerConfig, default_servers
from rr_load_balancer.models import Algorithm, Request, Server
from rr_load_balancer.registry import ServerRegistry
from rr_load_balancer.selection import SelectionEngine

logger = logging.getLogger(__name__)

ConfigInput = Union[ServerConfig, Mapping[str, Any]]


def _validate(config: ConfigInput) -> ServerConfig:
    if isinstance(config, ServerConfig):
        return config
    return ServerConfig.model_validate(config)


class LoadBalancer:
    """Manages the backend fleet and picks servers for incoming requests.

    Listeners in ``on_server_removed`` are called with the removed server's
    last snapshot; the dispatcher uses this to cancel its pending completions.
    """

    def __init__(self, registry: Optional[ServerRegistry] = None):
        self.registry = registry if registry is not None else ServerRegistry()
        self.selector = SelectionEngine(self.registry)
        self.on_server_removed: list[Callable[[Server], None]] = []

    @classmethod
    def with_defaults(cls) -> "LoadBalancer":
        balancer = cls()
        balancer.seed_defaults()
        return balancer

    def seed_defaults(self) -> list[Server]:
        return [self.add_server(config) for config in default_servers()]

    @property
    def servers(self) -> list[Server]:
        return self.registry.servers()

    def get_server(self, server_id: int) -> Optional[Server]:
        return self.registry.get(server_id)

    def add_server(self, config: ConfigInput) -> Server:
        """Validate and register a server.

        Raises pydantic.ValidationError (for instance on a blank name)
        without touching the registry.
        """
        server = self.registry.add(_validate(config))
        self.selector.track(server)
        logger.info(
            f"Added server {server.name} (id={server.id}, weight={server.weight}, "
            f"max_connections={server.max_connections}, "
            f"processing_time_ms={server.processing_time_ms})"
        )
        return server

    def remove_server(self, server_id: int) -> Optional[Server]:
        server = self.registry.remove(server_id)
        self.selector.forget(server_id)
        if server is None:
            return None
        logger.info(
            f"Removed server {server.name} (id={server_id}, "
            f"{len(server.in_flight)} request(s) in flight)"
        )
        for listener in self.on_server_removed:
            listener(server)
        return server

    def toggle_server(self, server_id: int) -> Optional[Server]:
        server = self.registry.toggle_active(server_id)
        if server is not None:
            state = "active" if server.active else "inactive"
            logger.info(f"Server {server.name} is now {state}")
        return server

    def update_server(self, server_id: int, config: ConfigInput) -> Optional[Server]:
        """Replace a server's configuration, with the same validation as add."""
        server = self.registry.update_config(server_id, _validate(config))
        if server is not None:
            self.selector.refresh(server)
            logger.info(f"Updated server {server.name} (id={server_id})")
        return server

    def select(self, algorithm: Algorithm) -> Optional[Server]:
        return self.selector.select(algorithm)

    def distribute(
        self, request: Request, algorithm: Algorithm, now_ms: float
    ) -> Optional[tuple[Request, Server]]:
        """Select a server and admit the request onto it.

        Returns the admitted request with the server snapshot taken after
        admission, or None when the request has to be dropped.
        """
        server = self.select(algorithm)
        if server is None:
            return None
        admitted = self.registry.admit(server.id, request, now_ms)
        if admitted is None:
            return None
        return admitted, self.registry.get(server.id)

    def complete(self, server_id: int, request_id: int) -> Optional[Request]:
        return self.registry.complete(server_id, request_id)

    def clear_stats(self) -> None:
        self.registry.clear_stats()
