"""
Rich console output and Matplotlib dashboard generation.
"""

from __future__ import annotations

import os
from typing import Dict, Tuple

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import (
    FLEET_NAME, FLEET_VERSION, MINUTE_MS, PROCESSING_TIME, SCENARIOS, SIM_MINUTES,
)

console = Console()

# Colour palette
SCENARIO_COLORS = {
    "steady":             "#2E86AB",
    "rush":               "#F4A261",
    "downsizing":         "#E63946",
    "cancellation_storm": "#A23B72",
}
PRIORITY_COLORS = {
    "standard":  "#708090",
    "expedited": "#F18F01",
}


# ─────────────────────────────────────────────────────────────────────────────
# Banner
# ─────────────────────────────────────────────────────────────────────────────

def print_banner() -> None:
    lines = [
        f"[bold white]{FLEET_NAME}[/bold white]",
        "",
        "[bold cyan]Robot Dispatch Discrete-Event Simulation[/bold cyan]",
        f"[dim]OrderBots v{FLEET_VERSION}  ·  SimPy engine  ·  "
        f"{SIM_MINUTES}-minute shift  ·  {PROCESSING_TIME / 1000:.0f} s per order[/dim]",
    ]
    console.print(Panel("\n".join(lines), style="bold blue", expand=False))
    console.print()


# ─────────────────────────────────────────────────────────────────────────────
# Fleet state
# ─────────────────────────────────────────────────────────────────────────────

def _progress_bar(value: float, width: int = 20) -> str:
    filled = int(round(min(max(value, 0.0), 100.0) / 100 * width))
    return "█" * filled + "·" * (width - filled)


def print_fleet_table(snapshot: dict) -> None:
    """Robots, pending queue and completed orders at one instant."""
    t = Table(box=box.SIMPLE_HEAD, show_header=True, header_style="bold magenta",
              title=f"Fleet at {snapshot['sim_time'] / 1000:,.1f} s")
    t.add_column("Robot",    style="cyan", justify="right")
    t.add_column("Status",   min_width=6)
    t.add_column("Progress", min_width=26)
    t.add_column("Order",    style="white")

    for r in snapshot["robots"]:
        if r["status"] == "idle":
            t.add_row(str(r["id"]), "[dim]idle[/dim]", "", "")
        else:
            t.add_row(str(r["id"]), "[green]busy[/green]",
                      f"{_progress_bar(r['progress'])} {r['progress']:5.1f}%",
                      r["order"] or "")
    console.print(t)

    pending   = ", ".join(
        f"[dim]{o['label']}[/dim]" if o["reserved"] else o["label"]
        for o in snapshot["pending"]
    ) or "—"
    completed = ", ".join(o["label"] for o in snapshot["completed"]) or "—"
    console.print(f"  [bold]Pending[/bold]   ({len(snapshot['pending'])}): {pending}")
    console.print(f"  [bold]Complete[/bold]  ({len(snapshot['completed'])}): {completed}")
    console.print()


# ─────────────────────────────────────────────────────────────────────────────
# Per-scenario KPI summary
# ─────────────────────────────────────────────────────────────────────────────

def print_kpi_table(scenario_id: str, kpis: dict) -> None:
    scen = SCENARIOS[scenario_id]
    title = f"[bold]{scen['label']}[/bold]  —  {scen['description']}"
    console.rule(title)

    t = Table(box=box.SIMPLE_HEAD, show_header=True, header_style="bold magenta")
    t.add_column("KPI",        style="cyan",  min_width=32)
    t.add_column("Value",      style="white", justify="right", min_width=16)
    t.add_column("Assessment", style="dim",   min_width=20)

    def row(label, value, assessment=""):
        t.add_row(label, value, assessment)

    def pct_style(v, good_above=90):
        colour = "green" if v >= good_above else ("yellow" if v >= 75 else "red")
        return f"[{colour}]{v:.1f}%[/{colour}]"

    def secs(ms):
        return f"{ms / 1000:>10.1f} s"

    # Orders
    row("── Orders ──────────────────────", "", "")
    row("  Orders received",
        f"{kpis['total_orders']:>12,d}",
        f"{kpis['expedited_orders']:,d} expedited")
    row("  Orders completed",
        f"{kpis['completed_orders']:>12,d}",
        f"{kpis['throughput_per_min']:.1f} / min")
    row("  Completion rate",
        pct_style(kpis["completion_pct"]), "")
    row("  Still open at end",
        f"{kpis['open_orders']:>12,d}", "")

    # Timing
    row("── Timing ──────────────────────", "", "")
    row("  Avg wait for a robot",  secs(kpis["avg_wait_ms"]), "")
    row("  Avg turnaround",        secs(kpis["avg_turnaround_ms"]), "")
    row("  Worst turnaround",      secs(kpis["max_turnaround_ms"]), "")
    for prio, sub in kpis["by_priority"].items():
        row(f"  Avg turnaround ({prio})",
            secs(sub["avg_turnaround_ms"]),
            f"{sub['completed']:,d} orders")

    # Fleet
    row("── Fleet ───────────────────────", "", "")
    row("  Robot utilisation",
        pct_style(kpis["utilization_pct"], good_above=80), "")
    row("  Robots added / removed",
        f"{kpis['robots_added']:>5,d} / {kpis['robots_removed']:<5,d}", "")
    row("  Orders returned to queue",
        f"{kpis['cancellations']:>12,d}",
        "[yellow]rework[/yellow]" if kpis["cancellations"] else "")

    # Queue
    row("── Queue ───────────────────────", "", "")
    row("  Peak queue length",   f"{kpis['peak_queue_length']:>12,d}", "")
    row("  Avg queue length",    f"{kpis['avg_queue_length']:>12.1f}", "")

    # Guards
    if kpis["duplicate_finals"] or kpis["stale_timers"]:
        row("── Guards ──────────────────────", "", "")
        row("  Duplicate completions", f"{kpis['duplicate_finals']:>12,d}", "[red]defect[/red]")
        row("  Stale timer wake-ups",  f"{kpis['stale_timers']:>12,d}", "")

    console.print(t)
    console.print()


# ─────────────────────────────────────────────────────────────────────────────
# Cross-scenario comparison table
# ─────────────────────────────────────────────────────────────────────────────

def print_comparison_table(results: Dict[str, Tuple]) -> None:
    console.rule(f"[bold yellow]Scenario Comparison ({SIM_MINUTES}-minute shift)[/bold yellow]")

    t = Table(box=box.DOUBLE_EDGE, show_header=True, header_style="bold yellow")
    t.add_column("Metric", style="cyan", min_width=30)

    scen_ids = list(results.keys())
    for sid in scen_ids:
        colour = SCENARIO_COLORS.get(sid, "white")
        t.add_column(
            Text(SCENARIOS[sid]["label"], style=f"bold {colour}"),
            justify="right", min_width=16,
        )

    kpis_list = [results[s][1] for s in scen_ids]

    rows = [
        ("Orders received",       "total_orders",       ","),
        ("Orders completed",      "completed_orders",   ","),
        ("Completion rate",       "completion_pct",     "pct"),
        ("Throughput (/min)",     "throughput_per_min", "f1"),
        ("Avg wait (s)",          "avg_wait_ms",        "s"),
        ("Avg turnaround (s)",    "avg_turnaround_ms",  "s"),
        ("Utilisation",           "utilization_pct",    "pct"),
        ("Returned to queue",     "cancellations",      ","),
        ("Peak queue",            "peak_queue_length",  ","),
    ]

    for label, key, fmt in rows:
        vals = []
        for k in kpis_list:
            v = k.get(key, 0)
            if fmt == "pct":
                colour = "green" if v >= 90 else ("yellow" if v >= 75 else "red")
                vals.append(f"[{colour}]{v:.1f}%[/{colour}]")
            elif fmt == "f1":
                vals.append(f"{v:.1f}")
            elif fmt == "s":
                vals.append(f"{v / 1000:.1f}")
            else:
                vals.append(f"{v:,.0f}")
        t.add_row(label, *vals)

    console.print(t)
    console.print()


# ─────────────────────────────────────────────────────────────────────────────
# Matplotlib dashboard
# ─────────────────────────────────────────────────────────────────────────────

def _style_ax(ax, title):
    ax.set_title(title, fontsize=9, fontweight="bold", pad=6)
    ax.tick_params(labelsize=7)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.grid(axis="y", alpha=0.3)


def plot_scenario_dashboard(sim, kpis: dict, scenario_id: str, out_dir: str) -> str:
    """
    Generate a 2×2 matplotlib dashboard for a single scenario.
    Returns the saved file path.
    """
    samples = sim.metrics.samples
    if not samples:
        return ""

    minutes = np.array([s["time"] for s in samples]) / MINUTE_MS
    colour  = SCENARIO_COLORS.get(scenario_id, "#2E86AB")

    fig, axes = plt.subplots(2, 2, figsize=(12, 8))
    fig.suptitle(
        f"{FLEET_NAME}  ·  {SCENARIOS[scenario_id]['label']}\n"
        f"{SCENARIOS[scenario_id]['description']}",
        fontsize=11, fontweight="bold", y=1.01,
    )
    plt.subplots_adjust(hspace=0.45, wspace=0.30)

    # ── (0,0) Pending queue length ─────────────────────────────────────────
    ax = axes[0][0]
    queue = np.array([s["queue_length"] for s in samples])
    exped = np.array([s["expedited"] for s in samples])
    ax.fill_between(minutes, 0, exped, color=PRIORITY_COLORS["expedited"],
                    alpha=0.6, label="Expedited")
    ax.fill_between(minutes, exped, queue, color=PRIORITY_COLORS["standard"],
                    alpha=0.4, label="Standard")
    ax.set_ylabel("Orders waiting", fontsize=8)
    ax.set_xlabel("Minute", fontsize=8)
    ax.legend(fontsize=6)
    _style_ax(ax, "Pending Queue")

    # ── (0,1) Fleet size vs. busy robots ───────────────────────────────────
    ax = axes[0][1]
    ax.step(minutes, [s["fleet_size"] for s in samples], where="post",
            color="#333333", linewidth=1.2, label="Fleet size")
    ax.plot(minutes, [s["busy"] for s in samples], color=colour,
            linewidth=1.4, label="Busy")
    for e in sim.metrics.fleet_events:
        if e["change"] < 0:
            ax.axvline(e["time"] / MINUTE_MS, color="#E63946",
                       linewidth=0.6, linestyle="--", alpha=0.5)
    ax.set_ylabel("Robots", fontsize=8)
    ax.set_xlabel("Minute", fontsize=8)
    ax.legend(fontsize=6)
    _style_ax(ax, "Fleet Activity (dashed = robot removed)")

    # ── (1,0) Per-robot utilisation ────────────────────────────────────────
    ax = axes[1][0]
    util = kpis["robot_utilization"]
    if util:
        ids  = list(util.keys())
        vals = [util[i] * 100 for i in ids]
        bars = ax.bar([f"R{i}" for i in ids], vals, color=colour, alpha=0.85)
        for bar, v in zip(bars, vals):
            ax.text(bar.get_x() + bar.get_width() / 2, v + 1,
                    f"{v:.0f}%", ha="center", fontsize=7)
        ax.set_ylim(0, 110)
    ax.set_ylabel("Utilisation (%)", fontsize=8)
    _style_ax(ax, "Robot Utilisation")

    # ── (1,1) Turnaround distribution by priority ──────────────────────────
    ax = axes[1][1]
    done = [a for a in sim.metrics.assignments if a.outcome == "completed"]
    if done:
        upper = max(a.turnaround for a in done) / 1000
        bins  = np.linspace(PROCESSING_TIME / 1000, max(upper, PROCESSING_TIME / 1000 + 1), 25)
        for prio, col in PRIORITY_COLORS.items():
            vals = np.array([a.turnaround / 1000 for a in done if a.priority.value == prio])
            if vals.size:
                ax.hist(vals, bins=bins, color=col, alpha=0.6,
                        label=f"{prio} (n={vals.size})")
        ax.set_xlabel("Turnaround (s)", fontsize=8)
        ax.set_ylabel("Orders", fontsize=8)
        ax.legend(fontsize=6)
    _style_ax(ax, "Turnaround by Priority")

    os.makedirs(out_dir, exist_ok=True)
    path = os.path.join(out_dir, f"dashboard_{scenario_id}.png")
    fig.savefig(path, dpi=130, bbox_inches="tight")
    plt.close(fig)
    return path


def plot_comparison_chart(results: Dict[str, Tuple], out_dir: str) -> str:
    """
    Side-by-side bar chart comparing scenarios on the headline KPIs.
    Returns the saved file path.
    """
    scen_ids = list(results.keys())
    labels   = [SCENARIOS[s]["label"] for s in scen_ids]
    colors   = [SCENARIO_COLORS.get(s, "#2E86AB") for s in scen_ids]

    metrics_to_compare = [
        ("throughput_per_min", "Throughput\n(orders/min)",   None,  1),
        ("completion_pct",     "Completion Rate\n(%)",       90,    1),
        ("avg_turnaround_ms",  "Avg Turnaround\n(s)",        None,  1000),
        ("utilization_pct",    "Robot Utilisation\n(%)",     None,  1),
        ("cancellations",      "Orders Returned\nto Queue",  None,  1),
        ("peak_queue_length",  "Peak Queue\nLength",         None,  1),
    ]

    fig, axes = plt.subplots(2, 3, figsize=(14, 7))
    fig.suptitle(
        f"{FLEET_NAME}  ·  Scenario Comparison",
        fontsize=12, fontweight="bold",
    )
    plt.subplots_adjust(hspace=0.55, wspace=0.40)

    for idx, (key, title, target, scale) in enumerate(metrics_to_compare):
        ax   = axes[idx // 3][idx % 3]
        vals = [results[s][1].get(key, 0) / scale for s in scen_ids]
        bars = ax.bar(labels, vals, color=colors, alpha=0.85, edgecolor="white")

        if target is not None:
            ax.axhline(target, color="red", linewidth=1.0,
                       linestyle="--", alpha=0.7, label=f"Target {target}")
            ax.legend(fontsize=6)

        for bar, v in zip(bars, vals):
            fmt = f"{v:,.0f}" if abs(v) >= 100 else f"{v:.1f}"
            ax.text(
                bar.get_x() + bar.get_width() / 2,
                bar.get_height() * 1.01,
                fmt, ha="center", va="bottom", fontsize=7,
            )

        ax.set_xticks(range(len(labels)))
        ax.set_xticklabels(labels, fontsize=7, rotation=15, ha="right")
        _style_ax(ax, title)

    os.makedirs(out_dir, exist_ok=True)
    path = os.path.join(out_dir, "scenario_comparison.png")
    fig.savefig(path, dpi=130, bbox_inches="tight")
    plt.close(fig)
    return path
