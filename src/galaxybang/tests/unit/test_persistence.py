import json

import pytest

from galaxybang.universe import persistence
from galaxybang.universe.analysis import analyze_payload
from galaxybang.universe.errors import PersistenceFailure
from galaxybang.universe.features import Port
from galaxybang.universe.persistence import JsonUniverseStore, SupabaseUniverseStore, to_rows


class _FakeRpcCall:
    def __init__(self, error=None):
        self._error = error

    def execute(self):
        if self._error is not None:
            raise self._error
        return {"data": None}


class _FakeSupabase:
    def __init__(self, error=None):
        self.calls = []
        self._error = error

    def rpc(self, name, params):
        self.calls.append((name, params))
        return _FakeRpcCall(self._error)


def test_json_store_writes_valid_universe(tmp_path, small_universe):
    path = tmp_path / "world-data" / "universe.json"
    JsonUniverseStore(path).save(small_universe)

    payload = json.loads(path.read_text())
    assert payload["meta"]["seed"] == small_universe.seed
    assert len(payload["sectors"]) == small_universe.sector_count
    assert analyze_payload(payload) == []
    assert list(path.parent.iterdir()) == [path]


def test_json_store_refuses_to_regenerate(tmp_path, small_universe):
    path = tmp_path / "universe.json"
    path.write_text("{}")
    with pytest.raises(PersistenceFailure, match="already exists"):
        JsonUniverseStore(path).save(small_universe)
    assert path.read_text() == "{}"


def test_json_store_force_overwrites(tmp_path, small_universe):
    path = tmp_path / "universe.json"
    path.write_text("{}")
    JsonUniverseStore(path, force=True).save(small_universe)
    assert json.loads(path.read_text())["meta"]["sector_count"] == small_universe.sector_count


def test_json_store_leaves_nothing_behind_on_failure(tmp_path, small_universe, monkeypatch):
    def _explode(*args, **kwargs):
        raise TypeError("not serializable")

    monkeypatch.setattr(persistence.json, "dump", _explode)
    path = tmp_path / "universe.json"
    with pytest.raises(PersistenceFailure) as excinfo:
        JsonUniverseStore(path).save(small_universe)
    assert isinstance(excinfo.value.__cause__, TypeError)
    assert list(tmp_path.iterdir()) == []


def test_rows_cover_every_table(small_universe):
    rows = to_rows(small_universe)
    counts = small_universe.feature_counts()

    assert len(rows["universe_config"]) == 1
    assert len(rows["sectors"]) == small_universe.sector_count
    assert len(rows["warp_links"]) == len(small_universe.warp_links)
    assert len(rows["ports"]) == counts["port"]
    assert len(rows["stardocks"]) == counts["stardock"]
    assert len(rows["alien_planets"]) == counts["alien_planet"]
    # Earth in the home sector is stored alongside the placed planets
    assert len(rows["planets"]) == counts["planet"] + 1
    assert all(r["sector_a"] < r["sector_b"] for r in rows["warp_links"])


def test_port_rows_convert_demand_to_stock(small_universe):
    rows = to_rows(small_universe)
    port_sector = small_universe.sectors_with(Port.kind)[0]
    port = small_universe.sector(port_sector).feature
    row = next(r for r in rows["ports"] if r["sector_id"] == port_sector)
    for idx, key in enumerate(("fo", "og", "eq")):
        assert row[f"max_{key}"] == port.capacity[idx]
        expected = port.capacity[idx] if port.archetype[idx] == "S" else 0
        assert row[f"stock_{key}"] == expected


def test_supabase_store_sends_one_rpc(small_universe):
    client = _FakeSupabase()
    SupabaseUniverseStore(client).save(small_universe)

    assert len(client.calls) == 1
    name, params = client.calls[0]
    assert name == "persist_universe"
    assert params["universe"] == to_rows(small_universe)


def test_supabase_failure_becomes_persistence_failure(small_universe):
    store = SupabaseUniverseStore(_FakeSupabase(error=RuntimeError("permission denied")))
    with pytest.raises(PersistenceFailure, match="permission denied"):
        store.save(small_universe)


def test_supabase_store_requires_credentials(monkeypatch):
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
    with pytest.raises(PersistenceFailure, match="SUPABASE_URL"):
        SupabaseUniverseStore.from_env()

    monkeypatch.setenv("SUPABASE_URL", "http://localhost:54321")
    with pytest.raises(PersistenceFailure, match="SUPABASE_SERVICE_ROLE_KEY"):
        SupabaseUniverseStore.from_env()


def test_home_planet_row_is_unclaimable(small_universe):
    planets = to_rows(small_universe)["planets"]
    earth = [row for row in planets if row["sector_id"] == 1]
    assert earth == [
        {"sector_id": 1, "name": "Earth", "owner_name": "Terra Corp", "is_claimable": False}
    ]
    assert all(row["is_claimable"] for row in planets if row["sector_id"] != 1)


def test_alien_planet_rows_carry_stock(small_universe):
    rows = to_rows(small_universe)["alien_planets"]
    assert len(rows) == 2
    for row in rows:
        assert row["fuel_ore"] == row["organics"] == row["equipment"] == 10000
        assert row["production_type"] == "balanced"


def test_analysis_flags_sector_listed_twice(small_universe):
    payload = small_universe.to_payload()
    port_sector = next(s for s in payload["sectors"] if (s["feature"] or {}).get("kind") == "port")
    copy = dict(port_sector, feature={"kind": "planet", "name": "Nova Prime", "claimable": True})
    payload["sectors"].append(copy)

    checks = {finding.check for finding in analyze_payload(payload)}
    assert "dense_ids" in checks
    assert "exclusive_features" in checks


def test_analysis_reports_malformed_sector(small_universe):
    payload = small_universe.to_payload()
    del payload["sectors"][5]["id"]

    findings = analyze_payload(payload)
    assert [f.check for f in findings] == ["format"]
    assert "'id'" in findings[0].detail


def test_analysis_flags_home_sector_dead_end(small_universe):
    payload = small_universe.to_payload()
    payload["meta"]["allow_dead_ends"] = True
    home = payload["sectors"][0]
    dropped = [w["to"] for w in home["warps"][1:]]
    home["warps"] = home["warps"][:1]
    for sector in payload["sectors"]:
        if sector["id"] in dropped:
            sector["warps"] = [w for w in sector["warps"] if w["to"] != 1]

    checks = {finding.check for finding in analyze_payload(payload)}
    assert "home_sector_degree" in checks
