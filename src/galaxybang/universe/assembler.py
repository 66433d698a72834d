"""Universe aggregate and final assembly.

Combines the repaired warp graph and the feature placement into one frozen
``Universe`` and verifies every structural invariant before it is handed to
persistence.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from loguru import logger

from galaxybang.universe.analysis import check_structure, find_asymmetric_warps
from galaxybang.universe.config import (
    DENSITY_TOLERANCE,
    HOME_MIN_DEGREE,
    HOME_SECTOR,
    HOME_SECTOR_NAME,
    UniverseConfig,
)
from galaxybang.universe.errors import InvariantViolation
from galaxybang.universe.features import (
    COMMODITIES,
    COMMODITY_CODES,
    FEATURE_KINDS,
    HOME_PLANET,
    Feature,
    FeaturePlacement,
    HubStation,
    Planet,
    Port,
    SpawnSite,
)
from galaxybang.universe.graph import normalize_link
from galaxybang.universe.repair import RepairResult

EXACT_KINDS = (HubStation.kind, SpawnSite.kind)
DENSITY_KINDS = (Port.kind, Planet.kind)


@dataclass(frozen=True, order=True)
class WarpLink:
    """Two-way warp between sectors ``a`` and ``b`` (stored with a <= b)."""

    a: int
    b: int

    @classmethod
    def between(cls, x: int, y: int) -> "WarpLink":
        a, b = normalize_link(x, y)
        return cls(a, b)

    def as_tuple(self) -> Tuple[int, int]:
        return (self.a, self.b)


@dataclass(frozen=True)
class Sector:
    id: int
    warps: Tuple[int, ...]
    feature: Optional[Feature] = None
    name: Optional[str] = None

    @property
    def degree(self) -> int:
        return len(self.warps)

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "warps": [{"to": t, "two_way": True} for t in self.warps],
            "feature": self.feature.to_payload() if self.feature else None,
        }


@dataclass(frozen=True)
class Universe:
    """A complete generated universe. Never mutated after assembly."""

    config: UniverseConfig
    seed: int
    sectors: Tuple[Sector, ...]
    warp_links: Tuple[WarpLink, ...]
    generated_at: datetime
    targets: Mapping[str, int]
    warnings: Tuple[str, ...] = ()
    accepted_dead_ends: Tuple[int, ...] = ()
    home_planet: Planet = HOME_PLANET

    @property
    def sector_count(self) -> int:
        return len(self.sectors)

    def sector(self, sector_id: int) -> Sector:
        if not 1 <= sector_id <= len(self.sectors):
            raise KeyError(sector_id)
        return self.sectors[sector_id - 1]

    def sectors_with(self, kind: str) -> List[int]:
        return [s.id for s in self.sectors if s.feature is not None and s.feature.kind == kind]

    def feature_counts(self) -> Dict[str, int]:
        counts = {kind: 0 for kind in FEATURE_KINDS}
        for sector in self.sectors:
            if sector.feature is not None:
                counts[sector.feature.kind] += 1
        return counts

    def edge_list(self) -> List[Tuple[int, int]]:
        return [link.as_tuple() for link in self.warp_links]

    def stats(self) -> dict:
        degrees = [s.degree for s in self.sectors]
        return {
            "sector_count": self.sector_count,
            "warp_count": len(self.warp_links),
            "average_degree": round(sum(degrees) / len(degrees), 3) if degrees else 0.0,
            "min_degree": min(degrees, default=0),
            "max_degree": max(degrees, default=0),
            "dead_ends": sum(1 for d in degrees if d == 1),
            "features": self.feature_counts(),
        }

    def to_payload(self) -> dict:
        """JSON document for the persistence collaborator."""
        meta = {
            "name": self.config.name,
            "sector_count": self.sector_count,
            "id_base": 1,
            "directed": False,
            "seed": self.seed,
            "generated_at": self.generated_at.isoformat(),
            "allow_dead_ends": self.config.allow_dead_ends,
            "accepted_dead_ends": list(self.accepted_dead_ends),
            "home_planet": {"sector": HOME_SECTOR, **self.home_planet.to_payload()},
            "config": self.config.model_dump(),
            "targets": dict(self.targets),
            "stats": self.stats(),
            "warnings": list(self.warnings),
            "commodities": dict(zip(COMMODITY_CODES, COMMODITIES)),
        }
        return {"meta": meta, "sectors": [s.to_payload() for s in self.sectors]}


def _fail(check: str, detail: str, sectors=()) -> None:
    violation = InvariantViolation(check, detail, sectors)
    logger.error(
        f"Universe invariant '{check}' failed: {detail} | sectors={list(violation.sectors[:50])}"
    )
    raise violation


def check_invariants(universe: Universe) -> None:
    """Verify every structural invariant of ``universe``.

    Raises:
        InvariantViolation: naming the first check that failed.
    """
    sector_ids = [s.id for s in universe.sectors]
    if sector_ids != list(range(1, len(sector_ids) + 1)):
        _fail("dense_ids", f"sector ids are not 1..{len(sector_ids)}")

    links = universe.edge_list()
    min_degree = 1 if universe.config.allow_dead_ends else 2
    findings = check_structure(
        sector_ids,
        links,
        min_degree=min_degree,
        accepted_dead_ends=universe.accepted_dead_ends,
    )
    if findings:
        first = findings[0]
        _fail(first.check, first.detail, first.sectors)

    # Sector warp lists must agree with the link set
    adjacency = {s.id: list(s.warps) for s in universe.sectors}
    asymmetric = find_asymmetric_warps(adjacency)
    if asymmetric:
        _fail("two_way_warps", f"{len(asymmetric)} warp(s) listed on one side only",
              sorted({s for pair in asymmetric for s in pair}))
    from_sectors = {normalize_link(s, t) for s, targets in adjacency.items() for t in targets}
    if from_sectors != set(links):
        _fail("link_set", "sector warp lists disagree with the warp link set")

    home = universe.sector(HOME_SECTOR)
    if home.feature is not None:
        _fail("home_sector_free", f"sector {HOME_SECTOR} carries a {home.feature.kind}", [HOME_SECTOR])
    # Holds even when dead ends are allowed elsewhere
    if home.degree < HOME_MIN_DEGREE:
        _fail("home_sector_degree", f"sector {HOME_SECTOR} has {home.degree} warp(s)", [HOME_SECTOR])

    counts = universe.feature_counts()
    for kind in EXACT_KINDS:
        target = universe.targets.get(kind, 0)
        if counts[kind] != target:
            _fail("feature_counts", f"{kind}: expected exactly {target}, placed {counts[kind]}",
                  universe.sectors_with(kind))

    # A density shortfall is only acceptable once every candidate sector is taken
    free_candidates = sum(1 for s in universe.sectors if s.feature is None and s.id != HOME_SECTOR)
    for kind in DENSITY_KINDS:
        target = universe.targets.get(kind, 0)
        placed = counts[kind]
        if placed > target + DENSITY_TOLERANCE:
            _fail("feature_counts", f"{kind}: {placed} placed, target {target}")
        if placed < target - DENSITY_TOLERANCE and free_candidates:
            _fail("feature_counts", f"{kind}: {placed} placed, target {target}, "
                  f"{free_candidates} free sectors left")


def assemble_universe(
    config: UniverseConfig,
    seed: int,
    repaired: RepairResult,
    placement: FeaturePlacement,
    *,
    now: Optional[datetime] = None,
) -> Universe:
    """Build the frozen ``Universe`` and run the final invariant check."""
    graph = repaired.graph
    sectors = tuple(
        Sector(
            id=sector_id,
            warps=tuple(sorted(graph.neighbors(sector_id))),
            feature=placement.features.get(sector_id),
            name=HOME_SECTOR_NAME if sector_id == HOME_SECTOR else _feature_name(placement.features.get(sector_id)),
        )
        for sector_id in graph.sectors()
    )

    warnings = list(placement.warnings)
    if repaired.unresolved_dead_ends:
        warnings.append(
            f"{len(repaired.unresolved_dead_ends)} dead-end sector(s) accepted after "
            f"{repaired.rounds} repair rounds"
        )

    universe = Universe(
        config=config,
        seed=seed,
        sectors=sectors,
        warp_links=tuple(WarpLink(a, b) for a, b in graph.links()),
        generated_at=now or datetime.now(timezone.utc),
        targets=MappingProxyType(dict(placement.targets)),
        warnings=tuple(warnings),
        accepted_dead_ends=repaired.unresolved_dead_ends,
    )
    check_invariants(universe)
    logger.info(
        f"Assembled universe '{config.name}': {universe.sector_count} sectors, "
        f"{len(universe.warp_links)} warps, {len(universe.warnings)} warning(s)"
    )
    return universe


def _feature_name(feature: Optional[Feature]) -> Optional[str]:
    if isinstance(feature, (HubStation, SpawnSite)):
        return feature.name
    return None


def summarize(universe: Universe) -> Dict[str, Any]:
    """Flat summary used by the CLI and logs."""
    stats = universe.stats()
    return {
        "name": universe.config.name,
        "seed": universe.seed,
        "sectors": stats["sector_count"],
        "warps": stats["warp_count"],
        "average_degree": stats["average_degree"],
        "dead_ends": stats["dead_ends"],
        **stats["features"],
        "warnings": len(universe.warnings),
    }
