"""Feature payloads and their placement onto sectors.

Each sector holds at most one feature. Placement draws from a single pool of
candidate sectors (sector 1 excluded) in a fixed priority order:

1. Hub stations (StarDocks): exact count, uniform
2. Spawn sites (alien homeworlds): exact count, best-effort hop separation
3. Ports: density target, crossroads favored
4. Unclaimed planets: density target, uniform
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import ClassVar, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from loguru import logger

from galaxybang.universe.config import HOME_PLANET_NAME, HOME_PLANET_OWNER, HOME_SECTOR, UniverseConfig
from galaxybang.universe.errors import CapacityError
from galaxybang.universe.graph import SectorGraph, bfs_distances
from galaxybang.universe.rng import RandomStream

# --- Commodities & port archetypes ---
# Archetype codes list one letter per commodity in this order: B = buys, S = sells
COMMODITIES: Tuple[str, ...] = ("fuel_ore", "organics", "equipment")
COMMODITY_CODES: Tuple[str, ...] = ("FO", "OG", "EQ")

COMMON_ARCHETYPES: Tuple[str, ...] = ("BBS", "BSB", "SBB", "SSB", "SBS", "BSS")
RARE_ARCHETYPES: Tuple[str, ...] = ("SSS", "BBB")
PORT_ARCHETYPES: Tuple[str, ...] = COMMON_ARCHETYPES + RARE_ARCHETYPES
RARE_ARCHETYPE_CHANCE = 0.05  # Per rare archetype

# --- Port inventory model ---
PORT_MIN_CAP = 5000
PORT_MAX_CAP = 14999
PORT_MIN_CLASS, PORT_MAX_CLASS = 1, 3

# Port placement weights by sector degree (crossroads favored)
CROSSROADS_DEGREE = 5
CROSSROADS_WEIGHT = 1.5
DEAD_END_WEIGHT = 0.7

# --- Hub stations ---
STARDOCK_STOCK = 50000
STARDOCK_NAME_PREFIX = "StarDock Alpha"

# --- Spawn sites ---
ALIEN_RACES: Tuple[str, ...] = (
    "Xenthi", "Vorlak", "Krynn", "Sslith", "Zendarr",
    "Thorax", "Quell", "Nebari", "Vedran", "Pyrians",
)
CITADEL_LEVELS = (3, 4)
COLONIST_RANGE = (50000, 99999)
FIGHTER_RANGE = (1000, 1999)
ALIEN_STOCK = 10000  # Per commodity
ALIEN_PRODUCTION_TYPE = "balanced"

# --- Planets ---
PLANET_PREFIXES: Tuple[str, ...] = (
    "Alpha", "Beta", "Gamma", "Delta", "Epsilon", "Zeta", "Theta", "Omega",
    "Nova", "Nexus", "Orion", "Vega", "Rigel", "Altair", "Deneb", "Sirius",
    "Kepler", "Titan", "Atlas", "Helios", "Kronos", "Hyperion", "Prometheus",
)
PLANET_SUFFIXES: Tuple[str, ...] = (
    "Prime", "Major", "Minor", "Station", "Colony", "Outpost", "Haven", "Base",
)


# ===================== Feature payloads =====================

@dataclass(frozen=True)
class Port:
    kind: ClassVar[str] = "port"

    archetype: str
    port_class: int
    capacity: Tuple[int, int, int]

    def buys(self) -> List[str]:
        return [COMMODITIES[i] for i, ch in enumerate(self.archetype) if ch == "B"]

    def sells(self) -> List[str]:
        return [COMMODITIES[i] for i, ch in enumerate(self.archetype) if ch == "S"]

    def to_payload(self) -> dict:
        # Sellers start fully stocked, buyers start at full demand
        stock, stock_max, demand, demand_max = {}, {}, {}, {}
        for idx, code in enumerate(COMMODITY_CODES):
            cap = self.capacity[idx]
            selling = self.archetype[idx] == "S"
            stock[code] = cap if selling else 0
            stock_max[code] = cap if selling else 0
            demand[code] = 0 if selling else cap
            demand_max[code] = 0 if selling else cap
        return {
            "kind": self.kind,
            "code": self.archetype,
            "class": self.port_class,
            "buys": self.buys(),
            "sells": self.sells(),
            "stock": stock,
            "stock_max": stock_max,
            "demand": demand,
            "demand_max": demand_max,
        }


@dataclass(frozen=True)
class HubStation:
    kind: ClassVar[str] = "stardock"

    name: str
    stock: int = STARDOCK_STOCK

    def to_payload(self) -> dict:
        return {
            "kind": self.kind,
            "name": self.name,
            "stock": {code: self.stock for code in COMMODITY_CODES},
        }


@dataclass(frozen=True)
class SpawnSite:
    kind: ClassVar[str] = "alien_planet"

    name: str
    race: str
    citadel_level: int
    colonists: int
    fighters: int
    stock: int = ALIEN_STOCK
    production_type: str = ALIEN_PRODUCTION_TYPE

    def to_payload(self) -> dict:
        return {
            "kind": self.kind,
            "name": self.name,
            "race": self.race,
            "citadel_level": self.citadel_level,
            "colonists": self.colonists,
            "fighters": self.fighters,
            "stock": {code: self.stock for code in COMMODITY_CODES},
            "production_type": self.production_type,
        }


@dataclass(frozen=True)
class Planet:
    kind: ClassVar[str] = "planet"

    name: str
    claimable: bool = True
    owner: Optional[str] = None

    def to_payload(self) -> dict:
        return {
            "kind": self.kind,
            "name": self.name,
            "claimable": self.claimable,
            "owner": self.owner,
        }


Feature = Union[Port, HubStation, SpawnSite, Planet]

# Earth sits in the home sector as fixed scenery, outside the feature slots
HOME_PLANET = Planet(name=HOME_PLANET_NAME, claimable=False, owner=HOME_PLANET_OWNER)

FEATURE_KINDS: Tuple[str, ...] = (HubStation.kind, SpawnSite.kind, Port.kind, Planet.kind)


@dataclass(frozen=True)
class FeaturePlacement:
    """Result of feature placement: one feature per sector id, plus reporting."""

    features: Mapping[int, Feature]
    targets: Mapping[str, int]
    warnings: Tuple[str, ...] = ()

    def sectors_with(self, kind: str) -> List[int]:
        return sorted(s for s, f in self.features.items() if f.kind == kind)

    def count(self, kind: str) -> int:
        return sum(1 for f in self.features.values() if f.kind == kind)


# ===================== Payload rolls =====================

def roll_port(rng: RandomStream) -> Port:
    """Roll a port archetype, class and per-commodity capacity."""
    roll = rng.random()
    if roll < RARE_ARCHETYPE_CHANCE:
        archetype = RARE_ARCHETYPES[0]
    elif roll < 2 * RARE_ARCHETYPE_CHANCE:
        archetype = RARE_ARCHETYPES[1]
    else:
        archetype = rng.choice(COMMON_ARCHETYPES)
    capacity = tuple(rng.integer(PORT_MIN_CAP, PORT_MAX_CAP) for _ in COMMODITIES)
    return Port(
        archetype=archetype,
        port_class=rng.integer(PORT_MIN_CLASS, PORT_MAX_CLASS),
        capacity=capacity,
    )


def _homeworld_letter(index: int) -> str:
    """A, B, ... Z, AA, AB, ..."""
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


def roll_spawn_site(rng: RandomStream, index: int) -> SpawnSite:
    race = rng.choice(ALIEN_RACES)
    return SpawnSite(
        name=f"{race} Homeworld {_homeworld_letter(index)}",
        race=race,
        citadel_level=rng.integer(*CITADEL_LEVELS),
        colonists=rng.integer(*COLONIST_RANGE),
        fighters=rng.integer(*FIGHTER_RANGE),
    )


def roll_planet(rng: RandomStream) -> Planet:
    return Planet(name=f"{rng.choice(PLANET_PREFIXES)} {rng.choice(PLANET_SUFFIXES)}")


def port_weight(degree: int) -> float:
    if degree >= CROSSROADS_DEGREE:
        return CROSSROADS_WEIGHT
    if degree == 1:
        return DEAD_END_WEIGHT
    return 1.0


# ===================== Placement =====================

@dataclass
class _PlacementState:
    pool: List[int]
    features: Dict[int, Feature] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def take(self, chosen: Sequence[int], payloads: Sequence[Feature]) -> None:
        for sector_id, payload in zip(chosen, payloads):
            self.features[sector_id] = payload
        taken = set(chosen)
        self.pool = [s for s in self.pool if s not in taken]

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)


def _require_pool(state: _PlacementState, feature: str, target: int) -> None:
    if target > len(state.pool):
        raise CapacityError(feature, target, len(state.pool))


def _place_hub_stations(state: _PlacementState, target: int, rng: RandomStream) -> None:
    _require_pool(state, "hub stations", target)
    chosen = rng.sample(state.pool, target)
    state.take(chosen, [HubStation(name=f"{STARDOCK_NAME_PREFIX}-{n}") for n in range(len(chosen))])


def _place_spawn_sites(
    state: _PlacementState,
    graph: SectorGraph,
    target: int,
    min_separation: int,
    rng: RandomStream,
) -> None:
    _require_pool(state, "spawn sites", target)
    placed: List[int] = []
    blocked: Set[int] = set()
    relaxed = 0
    remaining = list(state.pool)
    for _ in range(target):
        candidates = [s for s in remaining if s not in blocked]
        if not candidates:
            candidates = remaining
            relaxed += 1
        site = rng.choice(candidates)
        placed.append(site)
        remaining.remove(site)
        if min_separation > 0:
            blocked.update(bfs_distances(graph.adjacency, site, cutoff=min_separation))

    if relaxed:
        state.warn(
            f"Spawn-site separation of {min_separation} hops relaxed for {relaxed} of "
            f"{target} spawn sites"
        )
    state.take(placed, [roll_spawn_site(rng, i) for i in range(len(placed))])


def _place_density_feature(
    state: _PlacementState,
    feature: str,
    target: int,
    rng: RandomStream,
    weights: Optional[List[float]] = None,
) -> List[int]:
    chosen = rng.sample(state.pool, target, weights=weights)
    if len(chosen) < target:
        state.warn(
            f"Candidate pool exhausted placing {feature}: placed {len(chosen)} of {target}"
        )
    return chosen


def place_features(graph: SectorGraph, config: UniverseConfig, rng: RandomStream) -> FeaturePlacement:
    """Assign hub stations, spawn sites, ports and planets to sectors.

    Raises:
        CapacityError: if the pool runs out before hub stations or spawn sites
            reach their exact targets.
    """
    state = _PlacementState(pool=[s for s in graph.sectors() if s != HOME_SECTOR])
    targets = {
        HubStation.kind: config.stardock_count,
        SpawnSite.kind: config.alien_planet_count,
        Port.kind: config.port_target,
        Planet.kind: config.planet_target,
    }

    _place_hub_stations(state, targets[HubStation.kind], rng)
    _place_spawn_sites(
        state, graph, targets[SpawnSite.kind], config.spawn_min_separation, rng
    )

    weights = [port_weight(graph.degree(s)) for s in state.pool]
    port_sectors = _place_density_feature(state, "ports", targets[Port.kind], rng, weights)
    state.take(port_sectors, [roll_port(rng) for _ in port_sectors])

    planet_sectors = _place_density_feature(state, "planets", targets[Planet.kind], rng)
    state.take(planet_sectors, [roll_planet(rng) for _ in planet_sectors])

    placement = FeaturePlacement(
        features=MappingProxyType(dict(sorted(state.features.items()))),
        targets=MappingProxyType(targets),
        warnings=tuple(state.warnings),
    )
    logger.info(
        f"Placed features: {placement.count(HubStation.kind)} hub stations, "
        f"{placement.count(SpawnSite.kind)} spawn sites, {placement.count(Port.kind)} ports, "
        f"{placement.count(Planet.kind)} planets"
    )
    return placement
