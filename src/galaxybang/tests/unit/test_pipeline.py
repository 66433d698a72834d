from datetime import datetime, timezone

import networkx as nx
import pytest

from galaxybang.universe import (
    CapacityError,
    ConfigurationError,
    PersistenceFailure,
    RandomStream,
    UniverseConfig,
    generate_universe,
    generate_universe_async,
)
from galaxybang.universe import repair
from galaxybang.universe.features import HubStation, Port, SpawnSite

FIXED_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _nx(universe) -> nx.Graph:
    G = nx.Graph()
    G.add_nodes_from(s.id for s in universe.sectors)
    G.add_edges_from(universe.edge_list())
    return G


def _assignments(universe):
    return [(s.id, s.feature) for s in universe.sectors if s.feature is not None]


def test_scenario_a(scenario_a):
    universe = generate_universe(scenario_a)
    counts = universe.feature_counts()

    assert abs(counts[Port.kind] - 4) <= 1
    assert counts[HubStation.kind] == 1
    assert counts[SpawnSite.kind] == 1
    assert len(nx.node_connected_component(_nx(universe), 1)) == 20
    assert min(s.degree for s in universe.sectors) >= 2


def test_scenario_b_stardocks_exceed_sectors():
    with pytest.raises(ConfigurationError, match="stardock_count"):
        generate_universe({"sectorCount": 10, "stardockCount": 15})


def test_scenario_c_same_seed_same_universe(make_config):
    config = make_config(sector_count=250, seed=31337)
    first = generate_universe(config, now=FIXED_TIME)
    second = generate_universe(config, now=FIXED_TIME)

    assert first.edge_list() == second.edge_list()
    assert _assignments(first) == _assignments(second)
    assert first.to_payload() == second.to_payload()


def test_different_seeds_differ(make_config):
    first = generate_universe(make_config(seed=1))
    second = generate_universe(make_config(seed=2))
    assert first.edge_list() != second.edge_list()


def test_explicit_stream_overrides_config_seed(make_config):
    universe = generate_universe(make_config(seed=1), rng=RandomStream(555))
    assert universe.seed == 555
    assert universe.edge_list() == generate_universe(make_config(seed=555)).edge_list()


def test_unseeded_generation_records_its_seed(make_config):
    universe = generate_universe(make_config(seed=None, sector_count=40))
    replay = generate_universe(make_config(seed=universe.seed, sector_count=40))
    assert replay.edge_list() == universe.edge_list()


@pytest.mark.parametrize("sector_count", [50, 200, 1000])
def test_reachable_and_no_dead_ends(make_config, sector_count):
    universe = generate_universe(make_config(sector_count=sector_count, seed=sector_count))
    G = _nx(universe)
    assert len(nx.node_connected_component(G, 1)) == sector_count
    assert min(d for _, d in G.degree()) >= 2
    assert universe.accepted_dead_ends == ()


@pytest.mark.parametrize("sector_count", [10, 37, 500, 5000])
def test_no_duplicate_or_self_links(make_config, sector_count):
    universe = generate_universe(
        make_config(sector_count=sector_count, alien_planet_count=1, seed=sector_count)
    )
    pairs = universe.edge_list()
    assert len(pairs) == len(set(pairs))
    assert all(a < b for a, b in pairs)


def test_dead_ends_allowed_still_connected(make_config):
    universe = generate_universe(make_config(sector_count=300, allow_dead_ends=True, seed=3))
    G = _nx(universe)
    assert nx.is_connected(G)
    assert min(d for _, d in G.degree()) >= 1


@pytest.mark.parametrize("percentage", [0, 5, 12.5, 40, 75])
def test_port_count_matches_density(make_config, percentage):
    universe = generate_universe(make_config(sector_count=400, port_percentage=percentage))
    expected = round(percentage / 100 * 400)
    assert abs(universe.feature_counts()[Port.kind] - expected) <= 1


@pytest.mark.parametrize("stardocks,aliens", [(0, 0), (1, 3), (5, 5), (12, 20)])
def test_exact_scarce_feature_counts(make_config, stardocks, aliens):
    universe = generate_universe(
        make_config(sector_count=120, stardock_count=stardocks, alien_planet_count=aliens)
    )
    counts = universe.feature_counts()
    assert counts[HubStation.kind] == stardocks
    assert counts[SpawnSite.kind] == aliens


def test_hub_and_spawn_never_share_a_sector(make_config):
    universe = generate_universe(make_config(stardock_count=10, alien_planet_count=10))
    hubs = set(universe.sectors_with(HubStation.kind))
    spawns = set(universe.sectors_with(SpawnSite.kind))
    assert not hubs & spawns


def test_capacity_error_when_pool_runs_out():
    with pytest.raises(CapacityError) as excinfo:
        generate_universe({"sector_count": 10, "stardock_count": 6, "alien_planet_count": 4, "seed": 1})
    assert excinfo.value.shortfall == 1


@pytest.mark.parametrize(
    "params",
    [
        {"sector_count": 9},
        {"sector_count": 100, "port_percentage": 101},
        {"sector_count": 100, "alien_planet_count": -1},
        {"sector_count": 100, "target_average_degree": 7, "max_degree": 6},
        {"port_percentage": 10},
        {"sector_count": 100, "unknown_option": True},
    ],
)
def test_bad_parameters_raise_configuration_error(params):
    with pytest.raises(ConfigurationError):
        generate_universe(params)


def test_camel_case_parameters_are_accepted():
    config = UniverseConfig.model_validate(
        {"sectorCount": 30, "portPercentage": 10, "allowDeadEnds": True, "alienPlanetCount": 2}
    )
    assert config.sector_count == 30
    assert config.allow_dead_ends is True
    assert config.port_target == 3


def test_unresolved_dead_ends_become_warnings(make_config, monkeypatch):
    monkeypatch.setattr(repair, "MAX_REPAIR_ROUNDS", 0)
    universe = generate_universe(make_config(sector_count=80, seed=4, target_average_degree=2))
    assert universe.accepted_dead_ends
    assert any("dead-end" in w for w in universe.warnings)
    assert universe.to_payload()["meta"]["accepted_dead_ends"] == list(universe.accepted_dead_ends)


class _RecordingStore:
    def __init__(self):
        self.saved = []

    def save(self, universe):
        self.saved.append(universe)


class _BrokenStore:
    def save(self, universe):
        raise ConnectionError("database went away")


def test_store_receives_finished_universe(make_config):
    store = _RecordingStore()
    universe = generate_universe(make_config(), store=store)
    assert store.saved == [universe]


def test_store_failure_surfaces_as_persistence_failure(make_config):
    with pytest.raises(PersistenceFailure) as excinfo:
        generate_universe(make_config(), store=_BrokenStore())
    assert excinfo.value.store == "_BrokenStore"
    assert isinstance(excinfo.value.__cause__, ConnectionError)


@pytest.mark.asyncio
async def test_async_generation_matches_sync(make_config):
    config = make_config(sector_count=150, seed=808)
    async_universe = await generate_universe_async(config, now=FIXED_TIME)
    sync_universe = generate_universe(config, now=FIXED_TIME)
    assert async_universe.to_payload() == sync_universe.to_payload()
