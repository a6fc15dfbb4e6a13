"""Command line helpers for CaseForge."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from random import Random

from rich.console import Console
from rich.table import Table

from .app import LedgerApp
from .config import CaseForgeConfig
from .diagnostics.checklist import run_checklist
from .diagnostics.economy_simulator import EconomySimulator, SimulationResult, expected_value
from .domain.exceptions import LedgerError
from .loaders import load_catalog_from_json, validate_catalog_file

console = Console()


def run_bot() -> None:
    from .bootstrap import main

    main()


def run_simulate() -> None:
    parser = argparse.ArgumentParser(description="CaseForge case simulator")
    parser.add_argument("case_id", help="Case identifier to simulate")
    parser.add_argument("--openings", type=int, default=10_000, help="Количество открытий")
    parser.add_argument("--catalog", help="JSON catalog to load before simulating")
    parser.add_argument("--seed", type=int, help="Seed for reproducible runs")
    args = parser.parse_args()

    app = LedgerApp(CaseForgeConfig.from_env())
    try:
        asyncio.run(_prepare(app, args.catalog))
        simulator = EconomySimulator(app, rng=Random(args.seed) if args.seed is not None else None)
        result = simulator.simulate(args.case_id, openings=args.openings)
        case = app.store.get_case(args.case_id)
    except LedgerError as exc:
        console.print(f"[bold red]Ошибка:[/bold red] {exc}")
        sys.exit(1)
    expected = expected_value(case, variation_chance=app.config.roll.variation_chance)
    console.print(render_simulation(result, expected=expected))


def run_validate() -> None:
    parser = argparse.ArgumentParser(description="CaseForge validator")
    parser.add_argument("--catalog", help="Path to catalog JSON file for validation")
    args = parser.parse_args()

    config = CaseForgeConfig.from_env()
    if args.catalog:
        errors = validate_catalog_file(Path(args.catalog), tolerance=config.roll.weight_tolerance)
        if errors:
            console.print("[bold red]Ошибки каталога:[/bold red]")
            for err in errors:
                console.print(f"- {err}")
            sys.exit(1)
        console.print("Каталог валиден ✅")
        return

    app = LedgerApp(config)
    asyncio.run(_prepare(app, None))
    issues = run_checklist(app)
    if not issues:
        console.print("Проблем не обнаружено ✅")
        return
    for issue in issues:
        color = "red" if issue.severity == "error" else "yellow"
        console.print(f"[{color}][{issue.severity.upper()}][/{color}] {issue.message}")
    if any(issue.severity == "error" for issue in issues):
        sys.exit(1)


def render_simulation(result: SimulationResult, *, expected: float | None = None) -> Table:
    table = Table(title=f"Кейс {result.case_id}: {result.openings} открытий")
    table.add_column("Показатель")
    table.add_column("Значение", justify="right")
    table.add_row("Цена", str(result.price))
    table.add_row("Средняя стоимость", f"{result.average_value:.2f}")
    if expected is not None:
        table.add_row("Ожидаемая стоимость", f"{expected:.2f}")
    table.add_row("RTP", f"{result.return_to_player:.1%}")
    table.add_row("Лучший предмет", str(result.best_value))
    table.add_row("Вариации", str(result.variation_hits))
    for rarity, hits in result.rarities.most_common():
        table.add_row(f"Редкость {rarity}", f"{hits} ({hits / result.openings:.2%})")
    return table


async def _prepare(app: LedgerApp, catalog: str | None) -> None:
    await app.init_backend()
    await app.store.load()
    if catalog:
        await load_catalog_from_json(app, catalog)
