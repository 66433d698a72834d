"""Structural checks over a universe's warp graph.

Used by the assembler's final invariant check and by ``galaxybang validate``
on persisted universes. Checks for:
- Self-loop and duplicate warps
- Warps listed on one side only
- Sectors unreachable from sector 1
- Sectors below the minimum warp count (dead ends)
- Sectors carrying more than one feature
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

import networkx as nx

from galaxybang.universe.config import HOME_MIN_DEGREE, HOME_SECTOR
from galaxybang.universe.graph import Link, normalize_link


@dataclass(frozen=True)
class Finding:
    """One failed structural check."""

    check: str
    detail: str
    sectors: Tuple[int, ...] = ()


def build_graph(sector_ids: Iterable[int], links: Iterable[Link]) -> nx.Graph:
    """Build an undirected NetworkX graph from sector ids and warp pairs."""
    G = nx.Graph()
    G.add_nodes_from(sector_ids)
    G.add_edges_from(links)
    return G


def find_self_loops(links: Iterable[Link]) -> List[int]:
    return sorted({a for a, b in links if a == b})


def find_duplicate_links(links: Iterable[Link]) -> List[Link]:
    counts = Counter(normalize_link(a, b) for a, b in links)
    return sorted(pair for pair, n in counts.items() if n > 1)


def find_asymmetric_warps(adjacency: Mapping[int, Sequence[int]]) -> List[Link]:
    """Warps present in one sector's list but missing from the other side."""
    problems = []
    for s, targets in adjacency.items():
        for t in targets:
            if s not in adjacency.get(t, ()):
                problems.append((s, t))
    return sorted(problems)


def find_unreachable_from_start(G: nx.Graph, start: int = HOME_SECTOR) -> List[int]:
    if start not in G:
        return sorted(G.nodes())
    reachable = nx.node_connected_component(G, start)
    return sorted(set(G.nodes()) - reachable)


def find_isolated_clusters(G: nx.Graph, start: int = HOME_SECTOR) -> List[List[int]]:
    """Connected components that do not contain ``start``."""
    return [
        sorted(component)
        for component in nx.connected_components(G)
        if start not in component
    ]


def find_low_degree(G: nx.Graph, min_degree: int) -> List[int]:
    return sorted(node for node, degree in G.degree() if degree < min_degree)


def find_stacked_features(entries: Iterable[Tuple[int, str]]) -> List[int]:
    """Sectors that appear with more than one feature."""
    counts = Counter(sector_id for sector_id, _kind in entries)
    return sorted(s for s, n in counts.items() if n > 1)


def check_structure(
    sector_ids: Sequence[int],
    links: Sequence[Link],
    *,
    min_degree: int,
    accepted_dead_ends: Iterable[int] = (),
) -> List[Finding]:
    """Run the graph invariants (simple graph, connectivity, degree) in order."""
    findings: List[Finding] = []

    loops = find_self_loops(links)
    if loops:
        findings.append(Finding("no_self_loops", f"{len(loops)} self-loop warp(s)", tuple(loops)))

    duplicates = find_duplicate_links(links)
    if duplicates:
        flat = sorted({s for pair in duplicates for s in pair})
        findings.append(
            Finding("no_duplicate_links", f"{len(duplicates)} duplicate warp(s)", tuple(flat))
        )

    G = build_graph(sector_ids, links)
    unreachable = find_unreachable_from_start(G)
    if unreachable:
        clusters = find_isolated_clusters(G)
        findings.append(
            Finding(
                "connected",
                f"{len(unreachable)} sector(s) unreachable from sector {HOME_SECTOR} "
                f"in {len(clusters)} cluster(s)",
                tuple(unreachable),
            )
        )

    accepted = set(accepted_dead_ends)
    low = [s for s in find_low_degree(G, min_degree) if s not in accepted or G.degree(s) < 1]
    if low:
        findings.append(
            Finding("min_degree", f"{len(low)} sector(s) with fewer than {min_degree} warps", tuple(low))
        )

    return findings


def _read_sectors(
    sectors: Sequence[Mapping[str, Any]],
) -> Tuple[List[int], Dict[int, List[int]], List[Tuple[int, str]]]:
    """Raw sector ids, merged adjacency and (sector, feature kind) entries."""
    raw_ids: List[int] = []
    adjacency: Dict[int, List[int]] = {}
    entries: List[Tuple[int, str]] = []
    for sector in sectors:
        sector_id = sector["id"]
        raw_ids.append(sector_id)
        adjacency.setdefault(sector_id, []).extend(warp["to"] for warp in sector.get("warps", []))
        if sector.get("feature"):
            entries.append((sector_id, sector["feature"]["kind"]))
    return raw_ids, adjacency, entries


def analyze_payload(payload: Mapping[str, Any]) -> List[Finding]:
    """Re-run every structural check on a serialized universe document."""
    if "meta" not in payload or "sectors" not in payload:
        return [Finding("format", "universe document missing required keys: meta, sectors")]

    meta = payload["meta"]
    try:
        raw_ids, adjacency, entries = _read_sectors(payload["sectors"])
        sector_ids = sorted(adjacency)
    except (KeyError, TypeError, AttributeError) as exc:
        return [Finding("format", f"malformed sector entry: missing or invalid {exc}")]

    findings: List[Finding] = []

    repeated = sorted(s for s, n in Counter(raw_ids).items() if n > 1)
    if repeated:
        findings.append(
            Finding("dense_ids", f"{len(repeated)} sector id(s) listed more than once", tuple(repeated))
        )
    expected = meta.get("sector_count")
    if expected is not None and (len(raw_ids) != expected or sector_ids != list(range(1, expected + 1))):
        findings.append(
            Finding("dense_ids", f"expected sectors 1..{expected}, found {len(raw_ids)} sector(s)")
        )

    asymmetric = find_asymmetric_warps(adjacency)
    if asymmetric:
        findings.append(
            Finding(
                "two_way_warps",
                f"{len(asymmetric)} warp(s) listed on one side only",
                tuple(sorted({s for pair in asymmetric for s in pair})),
            )
        )

    # Each undirected warp is listed once per endpoint; keep the low->high side
    links = [(s, t) for s, targets in adjacency.items() for t in targets if s <= t]
    min_degree = 1 if meta.get("allow_dead_ends", False) else 2
    findings.extend(
        check_structure(
            sector_ids,
            links,
            min_degree=min_degree,
            accepted_dead_ends=meta.get("accepted_dead_ends", ()),
        )
    )

    stacked = find_stacked_features(entries)
    if stacked:
        findings.append(
            Finding("exclusive_features", f"{len(stacked)} sector(s) carry several features", tuple(stacked))
        )

    home_features = [kind for sector_id, kind in entries if sector_id == HOME_SECTOR]
    if home_features:
        findings.append(
            Finding("home_sector_free", f"sector {HOME_SECTOR} carries {home_features[0]}", (HOME_SECTOR,))
        )
    home_degree = len(set(adjacency.get(HOME_SECTOR, ())))
    if home_degree < HOME_MIN_DEGREE:
        findings.append(
            Finding("home_sector_degree", f"sector {HOME_SECTOR} has {home_degree} warp(s)", (HOME_SECTOR,))
        )

    for kind, target in (meta.get("targets") or {}).items():
        placed = sum(1 for _sector_id, k in entries if k == kind)
        if kind in ("stardock", "alien_planet") and placed != target:
            findings.append(
                Finding("feature_counts", f"{kind}: expected exactly {target}, found {placed}")
            )

    return findings
