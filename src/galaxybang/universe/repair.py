"""Connectivity repair pass.

Guarantees every sector is reachable from sector 1 and, unless dead ends are
allowed, that no sector is left with a single warp.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Set, Tuple

from loguru import logger

from galaxybang.universe.config import DEGREE_CAP, HOME_SECTOR, MAX_REPAIR_ROUNDS
from galaxybang.universe.graph import Link, SectorGraph, add_link, bfs_distances, normalize_link
from galaxybang.universe.rng import RandomStream

# Random draws tried before falling back to a full scan for a partner sector
PARTNER_DRAWS = 32


@dataclass(frozen=True)
class RepairResult:
    graph: SectorGraph
    added_links: Tuple[Link, ...] = ()
    unresolved_dead_ends: Tuple[int, ...] = ()
    rounds: int = 0


def _reconnect_unreachable(warps: Dict[int, Set[int]], rng: RandomStream) -> List[Link]:
    """Link each unreachable component back to the reachable set."""
    added: List[Link] = []
    reached = bfs_distances(warps, HOME_SECTOR)
    while len(reached) < len(warps):
        stranded = min(s for s in warps if s not in reached)
        anchor = rng.choice(sorted(reached))
        add_link(warps, stranded, anchor)
        added.append(normalize_link(stranded, anchor))
        logger.debug(f"Reconnected stranded sector {stranded} via sector {anchor}")
        reached = bfs_distances(warps, HOME_SECTOR)
    return added


def _pick_partner(
    warps: Dict[int, Set[int]],
    sector_id: int,
    rng: RandomStream,
    max_degree: int,
) -> int | None:
    neighbors = warps[sector_id]
    for _ in range(PARTNER_DRAWS):
        candidate = rng.integer(1, len(warps))
        if candidate != sector_id and candidate not in neighbors and len(warps[candidate]) < max_degree:
            return candidate
    eligible = [s for s in sorted(warps) if s != sector_id and s not in neighbors]
    under_cap = [s for s in eligible if len(warps[s]) < max_degree]
    pool = under_cap or eligible
    return rng.choice(pool) if pool else None


def _resolve_dead_ends(
    warps: Dict[int, Set[int]],
    rng: RandomStream,
    max_degree: int,
) -> Tuple[List[Link], List[int], int]:
    added: List[Link] = []
    rounds = 0
    dead_ends = sorted(s for s, n in warps.items() if len(n) < 2)
    while dead_ends and rounds < MAX_REPAIR_ROUNDS:
        rounds += 1
        for sector_id in dead_ends:
            # An earlier fix this round may already have given it a second warp
            if len(warps[sector_id]) >= 2:
                continue
            partner = _pick_partner(warps, sector_id, rng, max_degree)
            if partner is None:
                continue
            add_link(warps, sector_id, partner)
            added.append(normalize_link(sector_id, partner))
        logger.debug(f"Dead-end round {rounds}: {len(dead_ends)} sectors below two warps")
        dead_ends = sorted(s for s, n in warps.items() if len(n) < 2)
    return added, dead_ends, rounds


def repair_connectivity(
    graph: SectorGraph,
    rng: RandomStream,
    *,
    allow_dead_ends: bool = False,
    max_degree: int = DEGREE_CAP,
) -> RepairResult:
    """Return a repaired copy of ``graph``; the input is left untouched.

    Unreachable sectors are always reconnected. Dead ends are removed when
    ``allow_dead_ends`` is false, for at most ``MAX_REPAIR_ROUNDS`` rounds;
    anything still left is reported in ``unresolved_dead_ends``.
    """
    warps = graph.thaw()

    added = _reconnect_unreachable(warps, rng)
    if added:
        logger.info(f"Connected {len(added)} stranded sectors back to sector {HOME_SECTOR}")

    unresolved: List[int] = []
    rounds = 0
    if not allow_dead_ends:
        dead_end_links, unresolved, rounds = _resolve_dead_ends(warps, rng, max_degree)
        added.extend(dead_end_links)
        if dead_end_links:
            logger.info(f"Added {len(dead_end_links)} warps to remove dead ends in {rounds} round(s)")
        if unresolved:
            logger.warning(
                f"{len(unresolved)} dead-end sectors left after {rounds} repair rounds: "
                f"{unresolved[:10]}"
            )

    return RepairResult(
        graph=SectorGraph.from_adjacency(graph.sector_count, warps),
        added_links=tuple(added),
        unresolved_dead_ends=tuple(unresolved),
        rounds=rounds,
    )
