"""Generation parameters and tunables for universe generation."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from galaxybang.universe.errors import ConfigurationError

# ===================== Tunables / Defaults =====================

# --- Sector bounds ---
MIN_SECTOR_COUNT = 10
MAX_SECTOR_COUNT = 10000
HOME_SECTOR = 1
HOME_SECTOR_NAME = "Sol (Earth)"
HOME_PLANET_NAME = "Earth"
HOME_PLANET_OWNER = "Terra Corp"
HOME_MIN_DEGREE = 2

# --- Warps / topology ---
DEFAULT_TARGET_AVERAGE_DEGREE = 3.5
DEGREE_CAP = 6  # Maximum warps per sector
MAX_EDGE_ATTEMPTS_PER_SECTOR = 20
MAX_REPAIR_ROUNDS = 8

# --- Feature density ---
DEFAULT_PORT_PERCENTAGE = 12.0
DEFAULT_PLANET_PERCENTAGE = 3.0
DEFAULT_STARDOCK_COUNT = 1
DEFAULT_SPAWN_MIN_SEPARATION = 3  # In warp hops

# Density features may land this far from their rounded target
DENSITY_TOLERANCE = 1


class UniverseConfig(BaseModel):
    """Parameters for one universe generation.

    Field names are snake_case; camelCase aliases (``sectorCount``,
    ``allowDeadEnds``...) are accepted so request bodies validate as-is.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="forbid",
    )

    sector_count: int = Field(ge=MIN_SECTOR_COUNT, le=MAX_SECTOR_COUNT)
    port_percentage: float = Field(default=DEFAULT_PORT_PERCENTAGE, ge=0, le=100)
    stardock_count: int = Field(default=DEFAULT_STARDOCK_COUNT, ge=0)
    alien_planet_count: int = Field(default=0, ge=0)
    allow_dead_ends: bool = False
    seed: Optional[int] = None

    planet_percentage: float = Field(default=DEFAULT_PLANET_PERCENTAGE, ge=0, le=100)
    target_average_degree: float = Field(default=DEFAULT_TARGET_AVERAGE_DEGREE, ge=1)
    max_degree: int = Field(default=DEGREE_CAP, ge=3, le=20)
    spawn_min_separation: int = Field(default=DEFAULT_SPAWN_MIN_SEPARATION, ge=0)
    name: str = Field(default="Universe", min_length=1)

    @model_validator(mode="after")
    def _check_counts(self) -> "UniverseConfig":
        if self.stardock_count > self.sector_count:
            raise ValueError(
                f"stardock_count ({self.stardock_count}) exceeds sector_count ({self.sector_count})"
            )
        if self.alien_planet_count > self.sector_count:
            raise ValueError(
                f"alien_planet_count ({self.alien_planet_count}) exceeds sector_count "
                f"({self.sector_count})"
            )
        if self.target_average_degree > self.max_degree:
            raise ValueError(
                f"target_average_degree ({self.target_average_degree}) exceeds max_degree "
                f"({self.max_degree})"
            )
        return self

    @property
    def port_target(self) -> int:
        return round(self.port_percentage / 100 * self.sector_count)

    @property
    def planet_target(self) -> int:
        return round(self.planet_percentage / 100 * self.sector_count)


def load_config(data: Union[UniverseConfig, Mapping[str, Any]]) -> UniverseConfig:
    """Validate raw parameters into a ``UniverseConfig``.

    Raises:
        ConfigurationError: if any field is missing, malformed or out of range.
    """
    if isinstance(data, UniverseConfig):
        return data
    try:
        return UniverseConfig.model_validate(dict(data))
    except ValidationError as exc:
        problems = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"]) or "config"
            problems.append(f"{location}: {error['msg']}")
        raise ConfigurationError(
            "Invalid universe configuration: " + "; ".join(problems),
            errors=exc.errors(),
        ) from exc
