"""Shared fixtures for universe generation tests."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from galaxybang.universe import RandomStream, UniverseConfig, build_sector_graph, generate_universe


@pytest.fixture()
def make_config() -> Callable[..., UniverseConfig]:
    def _make(**overrides: Any) -> UniverseConfig:
        params = {
            "sector_count": 200,
            "port_percentage": 12,
            "stardock_count": 1,
            "alien_planet_count": 2,
            "allow_dead_ends": False,
            "seed": 1234,
        }
        params.update(overrides)
        return UniverseConfig(**params)

    return _make


@pytest.fixture()
def scenario_a() -> UniverseConfig:
    return UniverseConfig(
        sector_count=20,
        port_percentage=20,
        stardock_count=1,
        alien_planet_count=1,
        allow_dead_ends=False,
        seed=20,
    )


@pytest.fixture()
def raw_graph(make_config):
    config = make_config()
    return build_sector_graph(config, RandomStream(config.seed))


@pytest.fixture()
def small_universe(make_config):
    return generate_universe(make_config(sector_count=60, seed=7))
