"""Persistence collaborators for generated universes.

A store takes one finished ``Universe`` and writes it atomically: either the
whole universe is committed or nothing is.

- ``JsonUniverseStore`` writes ``universe.json`` through a temp file and
  ``os.replace``
- ``SupabaseUniverseStore`` sends every table's rows in a single RPC call that
  the database runs in one transaction
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from loguru import logger
from supabase import Client, create_client

from galaxybang.universe.assembler import Universe
from galaxybang.universe.config import HOME_SECTOR
from galaxybang.universe.errors import PersistenceFailure
from galaxybang.universe.features import COMMODITIES, COMMODITY_CODES, HubStation, Planet, Port, SpawnSite
from galaxybang.utils.config import get_supabase_credentials

DEFAULT_RPC_NAME = "persist_universe"


class UniverseStore(Protocol):
    """Anything that can persist a finished universe in one atomic write."""

    def save(self, universe: Universe) -> None:
        ...


def _port_row(sector_id: int, port: Port) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "sector_id": sector_id,
        "port_code": port.archetype,
        "port_class": port.port_class,
    }
    for idx, code in enumerate(COMMODITY_CODES):
        key = code.lower()
        capacity = port.capacity[idx]
        # Sellers start full; buyers start empty with full demand
        row[f"stock_{key}"] = capacity if port.archetype[idx] == "S" else 0
        row[f"max_{key}"] = capacity
    return row


def _planet_row(sector_id: int, planet: Planet) -> Dict[str, Any]:
    return {
        "sector_id": sector_id,
        "name": planet.name,
        "owner_name": planet.owner,
        "is_claimable": planet.claimable,
    }


def to_rows(universe: Universe) -> Dict[str, List[Dict[str, Any]]]:
    """Flatten a universe into table rows.

    Tables: universe_config, sectors, warp_links (one row per undirected
    warp), ports, stardocks, alien_planets, planets.
    """
    rows: Dict[str, List[Dict[str, Any]]] = {
        "universe_config": [
            {
                "name": universe.config.name,
                "sector_count": universe.sector_count,
                "seed": universe.seed,
                "generated_at": universe.generated_at.isoformat(),
                "config": universe.config.model_dump(),
                "warnings": list(universe.warnings),
            }
        ],
        "sectors": [],
        "warp_links": [
            {"sector_a": link.a, "sector_b": link.b} for link in universe.warp_links
        ],
        "ports": [],
        "stardocks": [],
        "alien_planets": [],
        "planets": [],
    }

    for sector in universe.sectors:
        feature = sector.feature
        rows["sectors"].append(
            {
                "sector_id": sector.id,
                "name": sector.name,
                "feature_kind": feature.kind if feature else None,
                "warp_count": sector.degree,
            }
        )
        if isinstance(feature, Port):
            rows["ports"].append(_port_row(sector.id, feature))
        elif isinstance(feature, HubStation):
            rows["stardocks"].append(
                {"sector_id": sector.id, "name": feature.name, "stock": feature.stock}
            )
        elif isinstance(feature, SpawnSite):
            row: Dict[str, Any] = {
                "sector_id": sector.id,
                "name": feature.name,
                "alien_race": feature.race,
                "citadel_level": feature.citadel_level,
                "colonists": feature.colonists,
                "fighters": feature.fighters,
                "production_type": feature.production_type,
            }
            for commodity in COMMODITIES:
                row[commodity] = feature.stock
            rows["alien_planets"].append(row)
        elif isinstance(feature, Planet):
            rows["planets"].append(_planet_row(sector.id, feature))

    rows["planets"].insert(0, _planet_row(HOME_SECTOR, universe.home_planet))
    return rows


class JsonUniverseStore:
    """Writes the universe document to a JSON file, atomically."""

    def __init__(self, path: Path, *, force: bool = False):
        self.path = Path(path)
        self.force = force

    def save(self, universe: Universe) -> None:
        if self.path.exists() and not self.force:
            raise PersistenceFailure(
                "JsonUniverseStore",
                f"{self.path} already exists; a universe is generated once (use force to overwrite)",
            )

        tmp_name: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=".universe-", suffix=".json.tmp"
            )
            with os.fdopen(fd, "w") as f:
                json.dump(universe.to_payload(), f, indent=2)
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise PersistenceFailure("JsonUniverseStore", str(exc)) from exc

        logger.info(f"Universe written to {self.path}")


class SupabaseUniverseStore:
    """Persists the universe through one transactional Supabase RPC."""

    def __init__(self, client: Client, *, rpc_name: str = DEFAULT_RPC_NAME):
        self.client = client
        self.rpc_name = rpc_name

    @classmethod
    def from_env(cls, *, rpc_name: str = DEFAULT_RPC_NAME) -> "SupabaseUniverseStore":
        url, key = get_supabase_credentials()
        if not url:
            raise PersistenceFailure("SupabaseUniverseStore", "SUPABASE_URL must be set")
        if not key:
            raise PersistenceFailure("SupabaseUniverseStore", "SUPABASE_SERVICE_ROLE_KEY is required")
        return cls(create_client(url, key), rpc_name=rpc_name)

    def save(self, universe: Universe) -> None:
        rows = to_rows(universe)
        try:
            self.client.rpc(self.rpc_name, {"universe": rows}).execute()
        except Exception as exc:
            raise PersistenceFailure("SupabaseUniverseStore", str(exc)) from exc

        logger.info(
            f"Universe stored via {self.rpc_name}: {len(rows['sectors'])} sectors, "
            f"{len(rows['warp_links'])} warp links"
        )
