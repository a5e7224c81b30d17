#!/usr/bin/env python3
"""
OrderBots — Robot Fleet Dispatch Simulator
==========================================

Run the fleet scenarios (Steady / Lunch Rush / Downsizing / Cancellation
Storm), print per-scenario fleet and KPI tables and a cross-scenario
comparison, then save Matplotlib dashboards to ./reports/.

Usage
-----
    python main.py                        # run all scenarios
    python main.py --scenario rush        # single scenario
    python main.py --seed 99              # different random seed
    python main.py --no-charts            # skip chart generation
    python main.py --log-level DEBUG      # every assignment and completion
"""

import argparse
import logging
import time
from typing import Dict, List, Optional, Tuple

import simpy
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from orderbots.config import MINUTE_MS, SCENARIOS, SIM_DURATION, SIM_MINUTES
from orderbots.reports import (
    SCENARIO_COLORS,
    console,
    plot_comparison_chart,
    plot_scenario_dashboard,
    print_banner,
    print_comparison_table,
    print_fleet_table,
    print_kpi_table,
)
from orderbots.simulation import FleetSimulation

REPORT_DIR = "reports"

log = logging.getLogger("orderbots")


# ─────────────────────────────────────────────────────────────────────────────
# Simulation runner
# ─────────────────────────────────────────────────────────────────────────────

def run_scenario(
    scenario_id: str,
    seed: int = 42,
    progress: Progress | None = None,
    task_id=None,
    check_invariants: bool = True,
) -> Tuple[FleetSimulation, dict]:
    """
    Run one full shift.

    The simulation is advanced one simulated minute at a time so we can
    update a progress bar without multi-threading.
    """
    env = simpy.Environment()
    sim = FleetSimulation(env, scenario=scenario_id, seed=seed,
                          check_invariants=check_invariants)
    sim.register_processes()

    for minute in range(SIM_MINUTES):
        env.run(until=(minute + 1) * MINUTE_MS)
        if progress and task_id is not None:
            progress.advance(task_id, 1)

    sim.record_sample()
    kpis = sim.metrics.compute_kpis(SIM_DURATION)
    log.info("[%s] finished: %d/%d orders completed",
             scenario_id, kpis["completed_orders"], kpis["total_orders"])
    return sim, kpis


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


# ─────────────────────────────────────────────────────────────────────────────
# Main
# ─────────────────────────────────────────────────────────────────────────────

def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="OrderBots — Robot Fleet Dispatch Sim")
    parser.add_argument("--scenario", choices=list(SCENARIOS.keys()),
                        default=None, help="Run a single scenario (default: all)")
    parser.add_argument("--seed",     type=int, default=42,
                        help="Random seed for reproducibility (default: 42)")
    parser.add_argument("--no-charts", action="store_true",
                        help="Skip Matplotlib chart generation")
    parser.add_argument("--report-dir", default=REPORT_DIR,
                        help=f"Directory for chart PNGs (default: {REPORT_DIR})")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging verbosity (default: WARNING)")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    print_banner()

    scenario_ids = [args.scenario] if args.scenario else list(SCENARIOS.keys())
    results: Dict[str, Tuple[FleetSimulation, dict]] = {}

    # ── Run simulations with a progress bar ──────────────────────────────────
    console.print("[bold]Running simulations…[/bold]\n")
    wall_start = time.perf_counter()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(bar_width=35),
        MofNCompleteColumn(),
        TextColumn("minutes"),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    ) as progress:
        tasks = {}
        for sid in scenario_ids:
            label  = SCENARIOS[sid]["label"]
            colour = SCENARIO_COLORS.get(sid, "white")
            tasks[sid] = progress.add_task(
                f"[{colour}]{label:<22}[/{colour}]",
                total=SIM_MINUTES,
            )

        for sid in scenario_ids:
            sim, kpis = run_scenario(
                sid, seed=args.seed,
                progress=progress, task_id=tasks[sid],
            )
            results[sid] = (sim, kpis)

    wall_elapsed = time.perf_counter() - wall_start
    console.print(
        f"\n[dim]All simulations finished in {wall_elapsed:.1f}s "
        f"(simulated {SIM_MINUTES * len(scenario_ids)} fleet-minutes)[/dim]\n"
    )

    # ── Print per-scenario tables ─────────────────────────────────────────────
    for sid in scenario_ids:
        sim, kpis = results[sid]
        print_kpi_table(sid, kpis)
        print_fleet_table(sim.dispatcher.snapshot())

    # ── Print cross-scenario comparison ──────────────────────────────────────
    if len(results) > 1:
        print_comparison_table(results)

    # ── Generate Matplotlib dashboards ───────────────────────────────────────
    if not args.no_charts:
        console.print("[bold]Generating charts…[/bold]")
        for sid, (sim, kpis) in results.items():
            path = plot_scenario_dashboard(sim, kpis, sid, args.report_dir)
            if path:
                console.print(f"  [green]✓[/green]  {path}")

        if len(results) > 1:
            path = plot_comparison_chart(results, args.report_dir)
            if path:
                console.print(f"  [green]✓[/green]  {path}")

        console.print()


if __name__ == "__main__":
    main()
