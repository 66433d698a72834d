"""Procedural universe generation: sector graph, warps and feature placement."""

from galaxybang.universe.assembler import Sector, Universe, WarpLink, assemble_universe, check_invariants
from galaxybang.universe.config import UniverseConfig, load_config
from galaxybang.universe.errors import (
    CapacityError,
    ConfigurationError,
    InvariantViolation,
    PersistenceFailure,
    UniverseGenerationError,
)
from galaxybang.universe.features import HubStation, Planet, Port, SpawnSite, place_features
from galaxybang.universe.graph import SectorGraph, build_sector_graph
from galaxybang.universe.persistence import JsonUniverseStore, SupabaseUniverseStore, UniverseStore
from galaxybang.universe.pipeline import generate_universe, generate_universe_async, persist_universe
from galaxybang.universe.repair import RepairResult, repair_connectivity
from galaxybang.universe.rng import RandomStream

__all__ = [
    "CapacityError",
    "ConfigurationError",
    "HubStation",
    "InvariantViolation",
    "JsonUniverseStore",
    "PersistenceFailure",
    "Planet",
    "Port",
    "RandomStream",
    "RepairResult",
    "Sector",
    "SectorGraph",
    "SpawnSite",
    "SupabaseUniverseStore",
    "Universe",
    "UniverseConfig",
    "UniverseGenerationError",
    "UniverseStore",
    "WarpLink",
    "assemble_universe",
    "build_sector_graph",
    "check_invariants",
    "generate_universe",
    "generate_universe_async",
    "load_config",
    "persist_universe",
    "place_features",
    "repair_connectivity",
]
