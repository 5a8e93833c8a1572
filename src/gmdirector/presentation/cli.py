from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from gmdirector.application.services.emission_sim import run_emission_sim
from gmdirector.application.services.game_master import GameMaster
from gmdirector.bootstrap import create_game_master


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gmdirector", description="Game master pacing director tools")
    sub = parser.add_subparsers(dest="command", required=True)

    simulate = sub.add_parser("simulate", help="Run deterministic emission scenarios and seeded playthroughs")
    simulate.add_argument("--seeds", default="101,202,303", help="Comma-separated seed list")
    simulate.add_argument("--turns", type=int, default=600, help="Turns per playthrough")
    simulate.add_argument("--skip-scenarios", action="store_true", help="Only run the seeded playthroughs")
    simulate.add_argument("--output", default="", help="Optional JSON artifact path")
    simulate.add_argument("--json", action="store_true", help="Print the full report as JSON")

    inspect = sub.add_parser("inspect", help="Show the persisted director state for the configured run")
    inspect.add_argument("--run-id", default=None, help="Run identity; defaults to GM_RUN_ID")
    inspect.add_argument("--json", action="store_true", help="Print the snapshot as JSON")

    reset = sub.add_parser("reset", help="Discard the persisted director state for the configured run")
    reset.add_argument("--run-id", default=None, help="Run identity; defaults to GM_RUN_ID")
    return parser


def _parse_seeds(value: str) -> list[int]:
    parts = [item.strip() for item in str(value or "").split(",") if item.strip()]
    if not parts:
        raise ValueError("At least one seed is required.")
    return [int(item) for item in parts]


def write_report_artifact(output_path: str | Path, report: dict) -> Path:
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(report, handle, indent=2, sort_keys=True, default=list)
        handle.write("\n")
    return path


def render_simulation(console: Console, report: dict) -> None:
    if report.get("scenarios"):
        scenarios = Table(title="Emission scenarios")
        scenarios.add_column("Scenario")
        scenarios.add_column("Result")
        scenarios.add_column("ms", justify="right")
        for row in report["scenarios"]:
            verdict = "[green]ok[/green]" if row["ok"] else f"[red]failed[/red] {row.get('error', '')}"
            scenarios.add_row(row["id"], verdict, str(row["ms"]))
        console.print(scenarios)

    runs = Table(title="Seeded playthroughs")
    for column in ("Seed", "Entrance", "Hints", "Faction events", "Mood", "Boredom"):
        runs.add_column(column)
    for row in report.get("playthroughs", []):
        channels = row["channels"]
        entrance = channels.get("entrance", {"emitted": 0, "none": 0})
        hints = channels.get("mechanic_hint", {"emitted": 0, "none": 0})
        runs.add_row(
            str(row["seed"]),
            f"{entrance['emitted']}/{entrance['emitted'] + entrance['none']}",
            f"{hints['emitted']}/{hints['emitted'] + hints['none']}",
            ", ".join(str(item.get("encounter_id") or item.get("kind")) for item in row["faction_deliveries"]) or "-",
            row["final_mood"],
            f"{row['boredom']:.2f}",
        )
    console.print(runs)


def render_state(console: Console, master: GameMaster) -> None:
    state = master.state
    profile = master.profile()
    lines = [
        f"run_seed={state.run_seed} enabled={state.enabled} last_mode={state.last_mode}",
        f"mood={state.mood.primary.value} valence={state.mood.valence:.2f} arousal={state.mood.arousal:.2f}",
        f"boredom={state.boredom.level:.2f} turns_since_interesting={state.boredom.turns_since_last_interesting_event}",
        f"total_turns={profile.total_turns} rng_calls={state.rng.calls}",
    ]
    if profile.active_traits:
        lines.append("traits: " + ", ".join(f"{row.key} ({row.score:.2f})" for row in profile.active_traits))
    console.print(Panel.fit("\n".join(lines), title="Director"))

    slots = Table(title="Faction travel events")
    for column in ("Slot", "Status", "Window"):
        slots.add_column(column)
    for name, slot in master.faction_event_slots().items():
        window = "-" if slot["earliest_turn"] is None else f"{slot['earliest_turn']}..{slot['latest_turn']}"
        slots.add_row(name, slot["status"], window)
    console.print(slots)

    history = Table(title="Recent intents")
    for column in ("Turn", "Channel", "Kind", "Detail", "Reason"):
        history.add_column(column)
    for row in state.debug.intent_history[:10]:
        detail = row.get("topic") or row.get("target") or row.get("encounter_id") or ""
        history.add_row(str(row.get("turn")), str(row.get("channel")), str(row.get("kind")), str(detail), str(row.get("reason") or ""))
    console.print(history)


def main(argv: Sequence[str] | None = None, *, console: Console | None = None) -> int:
    logging.basicConfig(level=os.getenv("GM_LOG_LEVEL", "WARNING").upper())
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    console = console or Console()

    if args.command == "simulate":
        try:
            seeds = _parse_seeds(args.seeds)
        except ValueError as exc:
            parser.error(str(exc))
            return 2
        if args.turns <= 0:
            parser.error("--turns must be positive.")
            return 2
        report = run_emission_sim(seeds, turns=args.turns, scenarios=not args.skip_scenarios)
        if args.output:
            path = write_report_artifact(args.output, report)
            console.print(f"Emission report written: {path}")
        if args.json:
            console.print_json(json.dumps(report, sort_keys=True, default=list))
        else:
            render_simulation(console, report)
        return 0 if report["ok"] else 1

    master = create_game_master(run_id=args.run_id)
    if args.command == "reset":
        state = master.reset()
        master.flush()
        console.print(f"Director state reset for run seed {state.run_seed}.")
        return 0

    if args.json:
        console.print_json(json.dumps(master.snapshot(), sort_keys=True, default=list))
    else:
        render_state(console, master)
    return 0
