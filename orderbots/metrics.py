"""Metrics collection and KPI computation."""

from __future__ import annotations
from typing import Dict, List, TYPE_CHECKING

if TYPE_CHECKING:
    import simpy

from .config import MINUTE_MS
from .models import AssignmentRecord, Order, Priority, Robot


class MetricsCollector:
    """Accumulates every event that happens during a simulation run."""

    def __init__(self, env: "simpy.Environment") -> None:
        self.env = env

        # ── Event logs ────────────────────────────────────────────────────────
        self.orders:      List[Order]            = []
        self.assignments: List[AssignmentRecord] = []
        self.robots:      List[Robot]            = []   # every robot ever added

        # ── Aggregate counters ────────────────────────────────────────────────
        self.cancellations:     int = 0
        self.duplicate_finals:  int = 0    # completions suppressed by the guard
        self.stale_timers:      int = 0    # timer wake-ups after a cancellation

        # ── Fleet size changes: {"time", "robot_id", "change"} ────────────────
        self.fleet_events: List[dict] = []

        # ── Periodic samples (added by FleetSimulation.sampler) ───────────────
        self.samples: List[dict] = []

    # ── Recording ─────────────────────────────────────────────────────────────

    def record_order(self, order: Order) -> None:
        self.orders.append(order)

    def record_robot(self, robot: Robot, change: int) -> None:
        if change > 0:
            self.robots.append(robot)
        self.fleet_events.append({
            "time":     self.env.now,
            "robot_id": robot.id,
            "change":   change,
        })

    def record_assignment(self, order: Order, robot: Robot) -> AssignmentRecord:
        rec = AssignmentRecord(
            order_id   = order.id,
            robot_id   = robot.id,
            priority   = order.priority,
            created_at = order.created_at,
            started_at = self.env.now,
        )
        self.assignments.append(rec)
        return rec

    def record_outcome(self, rec: AssignmentRecord, outcome: str) -> None:
        rec.ended_at = self.env.now
        rec.outcome  = outcome
        if outcome == "cancelled":
            self.cancellations += 1

    def record_sample(self, sample: dict) -> None:
        self.samples.append(dict(sample, time=self.env.now))

    # ── KPI computation ───────────────────────────────────────────────────────

    def compute_kpis(self, duration: float) -> dict:
        k: dict = {}
        now = self.env.now

        completed = [a for a in self.assignments if a.outcome == "completed"]
        k["total_orders"]      = len(self.orders)
        k["expedited_orders"]  = sum(1 for o in self.orders if o.is_expedited)
        k["completed_orders"]  = len(completed)
        k["open_orders"]       = len(self.orders) - len(completed)
        k["cancellations"]     = self.cancellations
        k["duplicate_finals"]  = self.duplicate_finals
        k["stale_timers"]      = self.stale_timers
        k["completion_pct"]    = (len(completed) / len(self.orders) * 100
                                  if self.orders else 0.0)
        k["throughput_per_min"] = (len(completed) / (duration / MINUTE_MS)
                                   if duration > 0 else 0.0)

        # ── Waiting & turnaround (ms), overall and by priority ───────────────
        k["avg_wait_ms"]       = _mean([a.wait_time for a in completed])
        k["avg_turnaround_ms"] = _mean([a.turnaround for a in completed])
        k["max_turnaround_ms"] = max((a.turnaround for a in completed), default=0.0)

        k["by_priority"] = {}
        for prio in Priority:
            sub = [a for a in completed if a.priority is prio]
            k["by_priority"][prio.value] = {
                "completed":         len(sub),
                "avg_wait_ms":       _mean([a.wait_time for a in sub]),
                "avg_turnaround_ms": _mean([a.turnaround for a in sub]),
            }

        # ── Fleet ─────────────────────────────────────────────────────────────
        busy    = sum(r.busy_time_at(now) for r in self.robots)
        service = sum(r.service_time_at(now) for r in self.robots)
        k["robots_added"]    = sum(1 for e in self.fleet_events if e["change"] > 0)
        k["robots_removed"]  = sum(1 for e in self.fleet_events if e["change"] < 0)
        k["utilization_pct"] = busy / service * 100 if service > 0 else 0.0
        k["robot_utilization"] = _robot_utilization(self.robots, now)

        # ── Queue ─────────────────────────────────────────────────────────────
        q = [s["queue_length"] for s in self.samples]
        k["peak_queue_length"] = max(q, default=0)
        k["avg_queue_length"]  = _mean(q)

        return k


def _mean(values) -> float:
    vals = [v for v in values if v is not None]
    return sum(vals) / len(vals) if vals else 0.0


def _robot_utilization(robots: List[Robot], now: float) -> Dict[int, float]:
    """Busy fraction of each robot's own time in the fleet."""
    util = {}
    for r in robots:
        service = r.service_time_at(now)
        util[r.id] = min(1.0, r.busy_time_at(now) / service) if service > 0 else 0.0
    return util
