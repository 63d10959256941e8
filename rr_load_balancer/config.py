"""ServerConfig and SimulationSettings — validated configuration inputs."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from rr_load_balancer.models import Algorithm

MIN_ARRIVAL_RATE = 1
MAX_ARRIVAL_RATE = 100
DEFAULT_ARRIVAL_RATE = 5


def clamp_arrival_rate(rate: float) -> float:
    """Requests per second, clamped to [1, 100]."""
    return float(max(MIN_ARRIVAL_RATE, min(MAX_ARRIVAL_RATE, rate)))


class ServerConfig(BaseModel):
    """Configuration for a single backend server.

    Accepts both snake_case and camelCase keys, so payloads coming from a UI
    form (``maxConnections``, ``processingTimeMs``) validate as-is.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    weight: int = Field(default=1, ge=1)
    max_connections: int = Field(default=100, gt=0)
    processing_time_ms: int = Field(default=1000, gt=0)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("server name must not be empty")
        return value


def default_servers() -> list[ServerConfig]:
    """The fleet a fresh simulation starts with."""
    return [
        ServerConfig(name="Server-1", weight=3, max_connections=100, processing_time_ms=800),
        ServerConfig(name="Server-2", weight=2, max_connections=80, processing_time_ms=1000),
        ServerConfig(name="Server-3", weight=1, max_connections=120, processing_time_ms=600),
    ]


class SimulationSettings(BaseModel):
    """Everything needed to build a ready-to-run dispatcher."""

    algorithm: Algorithm = Algorithm.RR
    arrival_rate: float = DEFAULT_ARRIVAL_RATE
    servers: list[ServerConfig] = Field(default_factory=default_servers)

    @field_validator("algorithm", mode="before")
    @classmethod
    def _parse_algorithm(cls, value):
        return Algorithm.parse(value)

    @field_validator("arrival_rate", mode="before")
    @classmethod
    def _clamp_rate(cls, value) -> float:
        return clamp_arrival_rate(float(value))
