"""Universe generation entry points.

Pipeline: RandomStream -> build_sector_graph -> repair_connectivity ->
place_features -> assemble_universe -> store.save. Strictly forward; nothing
is read back from persistence.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Mapping, Optional, Union

from loguru import logger

from galaxybang.universe.assembler import Universe, assemble_universe
from galaxybang.universe.config import UniverseConfig, load_config
from galaxybang.universe.errors import PersistenceFailure
from galaxybang.universe.features import place_features
from galaxybang.universe.graph import build_sector_graph
from galaxybang.universe.persistence import UniverseStore
from galaxybang.universe.repair import repair_connectivity
from galaxybang.universe.rng import RandomStream


def generate_universe(
    config: Union[UniverseConfig, Mapping[str, Any]],
    *,
    rng: Optional[RandomStream] = None,
    store: Optional[UniverseStore] = None,
    now: Optional[datetime] = None,
) -> Universe:
    """Generate one complete universe and optionally persist it.

    Args:
        config: ``UniverseConfig`` or a mapping of its fields (camelCase ok).
        rng: Random stream to draw from. Defaults to a fresh stream seeded
            from ``config.seed`` (or OS entropy when no seed is given).
        store: Persistence collaborator; when given, the universe is saved
            after it passes every invariant check.
        now: Generation timestamp override.

    Raises:
        ConfigurationError: invalid parameters (before any work starts).
        CapacityError: hub stations or spawn sites cannot all be placed.
        InvariantViolation: the assembled universe is structurally broken.
        PersistenceFailure: the store failed; nothing was committed.
    """
    config = load_config(config)
    if rng is None:
        rng = RandomStream(config.seed)

    logger.info(
        f"Generating universe '{config.name}' with {config.sector_count} sectors (seed {rng.seed})"
    )

    graph = build_sector_graph(config, rng)
    repaired = repair_connectivity(
        graph,
        rng,
        allow_dead_ends=config.allow_dead_ends,
        max_degree=config.max_degree,
    )
    placement = place_features(repaired.graph, config, rng)
    universe = assemble_universe(config, rng.seed, repaired, placement, now=now)

    if store is not None:
        persist_universe(universe, store)
    return universe


def persist_universe(universe: Universe, store: UniverseStore) -> None:
    """Hand a finished universe to ``store``; failures surface as PersistenceFailure."""
    try:
        store.save(universe)
    except PersistenceFailure:
        logger.error(f"Persisting universe '{universe.config.name}' failed; discarding it")
        raise
    except Exception as exc:
        logger.error(f"Persisting universe '{universe.config.name}' failed; discarding it")
        raise PersistenceFailure(type(store).__name__, str(exc)) from exc


async def generate_universe_async(
    config: Union[UniverseConfig, Mapping[str, Any]],
    *,
    rng: Optional[RandomStream] = None,
    store: Optional[UniverseStore] = None,
    now: Optional[datetime] = None,
) -> Universe:
    """Run ``generate_universe`` on a worker thread so the event loop stays free."""
    return await asyncio.to_thread(generate_universe, config, rng=rng, store=store, now=now)
