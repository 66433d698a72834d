"""Main Typer application for the galaxybang CLI."""

import json
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from galaxybang.universe import (
    JsonUniverseStore,
    SupabaseUniverseStore,
    Universe,
    UniverseGenerationError,
    generate_universe,
)
from galaxybang.universe.analysis import analyze_payload
from galaxybang.universe.assembler import summarize
from galaxybang.universe.config import (
    DEFAULT_PLANET_PERCENTAGE,
    DEFAULT_PORT_PERCENTAGE,
    DEFAULT_SPAWN_MIN_SEPARATION,
    DEFAULT_STARDOCK_COUNT,
)
from galaxybang.utils.config import get_log_level, get_universe_path

console = Console()

app = typer.Typer(
    name="galaxybang",
    help="galaxybang - generate and validate space-trading universes.",
    rich_markup_mode="rich",
    no_args_is_help=True,
)


def configure_logging(level: Optional[str] = None) -> None:
    logger.remove()
    logger.add(sys.stderr, level=(level or get_log_level()).upper())


def print_summary(universe: Universe) -> None:
    table = Table(title=f"Universe '{universe.config.name}'", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for key, value in summarize(universe).items():
        table.add_row(key.replace("_", " "), str(value))
    console.print(table)
    for warning in universe.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


@app.command()
def generate(
    sector_count: int = typer.Argument(..., help="Number of sectors to generate"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Random seed (optional)"),
    port_percentage: float = typer.Option(
        DEFAULT_PORT_PERCENTAGE, "--port-percentage", "-p", help="Percent of sectors with ports"
    ),
    stardocks: int = typer.Option(
        DEFAULT_STARDOCK_COUNT, "--stardocks", help="Exact number of StarDock hub stations"
    ),
    alien_planets: int = typer.Option(0, "--alien-planets", help="Exact number of alien spawn sites"),
    planet_percentage: float = typer.Option(
        DEFAULT_PLANET_PERCENTAGE, "--planet-percentage", help="Percent of sectors with unclaimed planets"
    ),
    spawn_separation: int = typer.Option(
        DEFAULT_SPAWN_MIN_SEPARATION, "--spawn-separation", help="Preferred hops between spawn sites"
    ),
    allow_dead_ends: bool = typer.Option(
        False, "--allow-dead-ends", help="Tolerate sectors with a single warp"
    ),
    name: str = typer.Option("Universe", "--name", "-n", help="Universe name"),
    out: Optional[Path] = typer.Option(
        None, "--out", "-o", help="Output JSON path (default: world-data/universe.json)"
    ),
    force: bool = typer.Option(
        False, "--force", help="Overwrite an existing universe file"
    ),
    supabase: bool = typer.Option(
        False, "--supabase", help="Store in Supabase (SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY)"
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Loguru level (default INFO)"),
) -> None:
    """Generate a universe and persist it once.

    Examples:
        galaxybang generate 1000 --seed 42
        galaxybang generate 200 --stardocks 2 --alien-planets 3 -o world-data/test.json
    """
    configure_logging(log_level)

    params = {
        "sector_count": sector_count,
        "seed": seed,
        "port_percentage": port_percentage,
        "stardock_count": stardocks,
        "alien_planet_count": alien_planets,
        "planet_percentage": planet_percentage,
        "spawn_min_separation": spawn_separation,
        "allow_dead_ends": allow_dead_ends,
        "name": name,
    }

    try:
        if supabase:
            store = SupabaseUniverseStore.from_env()
        else:
            path = out or get_universe_path()
            if path.exists() and not force:
                console.print(f"Universe already exists at [bold]{path}[/bold]")
                console.print("Use --force to regenerate and overwrite it")
                raise typer.Exit(code=0)
            store = JsonUniverseStore(path, force=force)
        universe = generate_universe(params, store=store)
    except UniverseGenerationError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)

    print_summary(universe)


@app.command()
def validate(
    path: Optional[Path] = typer.Argument(
        None, help="Universe JSON file (default: world-data/universe.json)"
    ),
) -> None:
    """Re-check a persisted universe for connectivity and placement problems."""
    path = path or get_universe_path()
    if not path.exists():
        console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(code=1)

    try:
        payload = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        console.print(f"[red]Error:[/red] {path} is not valid JSON: {exc}")
        raise typer.Exit(code=1)

    findings = analyze_payload(payload)
    sector_total = len(payload.get("sectors", []))
    if not findings:
        console.print(f"[green]✅ Universe passed all checks[/green] ({sector_total} sectors)")
        return

    table = Table(title=f"{len(findings)} problem(s) in {path}")
    table.add_column("Check", style="bold red")
    table.add_column("Detail")
    table.add_column("Sectors")
    for finding in findings:
        shown = ", ".join(str(s) for s in finding.sectors[:10])
        if len(finding.sectors) > 10:
            shown += "..."
        table.add_row(finding.check, finding.detail, shown)
    console.print(table)
    raise typer.Exit(code=1)
