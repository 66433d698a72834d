"""Sector graph construction.

Builds the raw warp graph for a universe:
- Random attachment spanning tree over sectors 1..N, so the graph is connected
  by construction
- Sector 1 (the entry point) always gets at least two warps
- Extra random warps between non-adjacent pairs until the target average
  degree is reached, with every sector capped at ``max_degree``
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple

from loguru import logger

from galaxybang.universe.config import (
    HOME_MIN_DEGREE,
    HOME_SECTOR,
    MAX_EDGE_ATTEMPTS_PER_SECTOR,
    MIN_SECTOR_COUNT,
    UniverseConfig,
)
from galaxybang.universe.errors import ConfigurationError
from galaxybang.universe.rng import RandomStream

Link = Tuple[int, int]


def normalize_link(a: int, b: int) -> Link:
    return (a, b) if a < b else (b, a)


@dataclass(frozen=True)
class SectorGraph:
    """Immutable undirected warp graph over sectors 1..sector_count."""

    sector_count: int
    adjacency: Mapping[int, FrozenSet[int]]

    @classmethod
    def from_adjacency(cls, sector_count: int, warps: Mapping[int, Iterable[int]]) -> "SectorGraph":
        frozen = {s: frozenset(warps.get(s, ())) for s in range(1, sector_count + 1)}
        return cls(sector_count=sector_count, adjacency=MappingProxyType(frozen))

    def sectors(self) -> range:
        return range(1, self.sector_count + 1)

    def neighbors(self, sector_id: int) -> FrozenSet[int]:
        return self.adjacency.get(sector_id, frozenset())

    def degree(self, sector_id: int) -> int:
        return len(self.neighbors(sector_id))

    def links(self) -> List[Link]:
        """Every undirected link once, as sorted ``(low, high)`` pairs."""
        pairs: Set[Link] = set()
        for s, neighbors in self.adjacency.items():
            for t in neighbors:
                pairs.add(normalize_link(s, t))
        return sorted(pairs)

    @property
    def link_count(self) -> int:
        return sum(len(n) for n in self.adjacency.values()) // 2

    @property
    def average_degree(self) -> float:
        return 2 * self.link_count / self.sector_count if self.sector_count else 0.0

    def thaw(self) -> Dict[int, Set[int]]:
        """Mutable copy of the adjacency for the next stage to work on."""
        return {s: set(neighbors) for s, neighbors in self.adjacency.items()}


def bfs_distances(
    adjacency: Mapping[int, Iterable[int]],
    start: int,
    cutoff: Optional[int] = None,
) -> Dict[int, int]:
    """Hop distance from ``start`` to every reachable sector (up to ``cutoff``)."""
    distances: Dict[int, int] = {start: 0}
    queue: deque[int] = deque([start])
    while queue:
        current = queue.popleft()
        current_distance = distances[current]
        if cutoff is not None and current_distance >= cutoff:
            continue
        # Sorted so traversal order never depends on set iteration order
        for neighbor in sorted(adjacency.get(current, ())):
            if neighbor in distances:
                continue
            distances[neighbor] = current_distance + 1
            queue.append(neighbor)
    return distances


def add_link(warps: Dict[int, Set[int]], a: int, b: int) -> None:
    warps[a].add(b)
    warps[b].add(a)


class _OpenSectors:
    """Sectors still below the degree cap, with O(1) random pick and removal."""

    def __init__(self) -> None:
        self._items: List[int] = []
        self._index: Dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._items)

    def add(self, sector_id: int) -> None:
        if sector_id in self._index:
            return
        self._index[sector_id] = len(self._items)
        self._items.append(sector_id)

    def discard(self, sector_id: int) -> None:
        idx = self._index.pop(sector_id, None)
        if idx is None:
            return
        last = self._items.pop()
        if last != sector_id:
            self._items[idx] = last
            self._index[last] = idx

    def pick(self, rng: RandomStream) -> int:
        return rng.choice(self._items)


def _attach_spanning_tree(warps: Dict[int, Set[int]], rng: RandomStream, max_degree: int) -> None:
    sector_count = len(warps)
    open_sectors = _OpenSectors()
    open_sectors.add(HOME_SECTOR)
    for sector_id in range(HOME_SECTOR + 1, sector_count + 1):
        parent = open_sectors.pick(rng)
        add_link(warps, sector_id, parent)
        if len(warps[parent]) >= max_degree:
            open_sectors.discard(parent)
        open_sectors.add(sector_id)


def _ensure_entry_degree(warps: Dict[int, Set[int]], rng: RandomStream, max_degree: int) -> None:
    """Sector 1 must never be a dead end."""
    home = warps[HOME_SECTOR]
    while len(home) < HOME_MIN_DEGREE and len(warps) > HOME_MIN_DEGREE:
        candidates = [
            s for s in sorted(warps)
            if s != HOME_SECTOR and s not in home and len(warps[s]) < max_degree
        ]
        if not candidates:
            candidates = [s for s in sorted(warps) if s != HOME_SECTOR and s not in home]
        add_link(warps, HOME_SECTOR, rng.choice(candidates))


def _add_random_links(
    warps: Dict[int, Set[int]],
    rng: RandomStream,
    target_links: int,
    max_degree: int,
    max_attempts: int,
) -> int:
    sector_count = len(warps)
    link_count = sum(len(v) for v in warps.values()) // 2
    added = 0
    attempts = 0
    while link_count < target_links and attempts < max_attempts:
        attempts += 1
        a = rng.integer(1, sector_count)
        b = rng.integer(1, sector_count)
        if a == b or b in warps[a]:
            continue
        if len(warps[a]) >= max_degree or len(warps[b]) >= max_degree:
            continue
        add_link(warps, a, b)
        link_count += 1
        added += 1

    if link_count < target_links:
        logger.debug(
            f"Link budget exhausted after {attempts} attempts: "
            f"{link_count} of {target_links} target links"
        )
    return added


def build_sector_graph(config: UniverseConfig, rng: RandomStream) -> SectorGraph:
    """Build a connected, degree-capped random warp graph for ``config``.

    Raises:
        ConfigurationError: if ``sector_count`` is below the minimum.
    """
    sector_count = config.sector_count
    if sector_count < MIN_SECTOR_COUNT:
        raise ConfigurationError(
            f"sector_count ({sector_count}) is below the minimum of {MIN_SECTOR_COUNT}"
        )

    warps: Dict[int, Set[int]] = {s: set() for s in range(1, sector_count + 1)}

    _attach_spanning_tree(warps, rng, config.max_degree)
    _ensure_entry_degree(warps, rng, config.max_degree)

    target_links = math.ceil(config.target_average_degree * sector_count / 2)
    added = _add_random_links(
        warps,
        rng,
        target_links=target_links,
        max_degree=config.max_degree,
        max_attempts=MAX_EDGE_ATTEMPTS_PER_SECTOR * sector_count,
    )

    graph = SectorGraph.from_adjacency(sector_count, warps)
    logger.info(
        f"Built sector graph: {sector_count} sectors, {graph.link_count} warps "
        f"({added} beyond the spanning tree, avg degree {graph.average_degree:.2f})"
    )
    return graph
