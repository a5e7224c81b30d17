"""
FleetSimulation — drives an OrderDispatcher through a scripted scenario.

Processes registered on the shared environment:

  order_generator   Poisson arrivals, standard or expedited
  fleet_controller  timed robot additions / removals from the scenario
  sampler           periodic queue / fleet snapshot for charts and KPIs

The dispatcher itself has no schedule of its own; everything it does is a
reaction to these processes or to its own job timers.
"""

from __future__ import annotations

import logging
import random
from typing import Optional

import simpy

from .config import (
    MINUTE_MS, PROCESSING_TIME, SAMPLE_INTERVAL, SCENARIOS, TICK_INTERVAL,
)
from .dispatcher import OrderDispatcher
from .metrics import MetricsCollector
from .models import Priority

log = logging.getLogger(__name__)


class FleetSimulation:
    """
    One scenario run.

    Usage::

        env = simpy.Environment()
        sim = FleetSimulation(env, scenario="rush", seed=42)
        sim.register_processes()
        env.run(until=SIM_DURATION)
        kpis = sim.metrics.compute_kpis(SIM_DURATION)
    """

    def __init__(
        self,
        env: simpy.Environment,
        scenario: str = "steady",
        seed: int = 42,
        processing_time: float = PROCESSING_TIME,
        tick_interval: float = TICK_INTERVAL,
        sample_interval: float = SAMPLE_INTERVAL,
        check_invariants: bool = False,
    ) -> None:
        self.env      = env
        self.scenario = scenario
        self.scen     = SCENARIOS[scenario]
        self.sample_interval  = sample_interval
        self.check_invariants = check_invariants

        random.seed(seed)

        self.metrics    = MetricsCollector(env)
        self.dispatcher = OrderDispatcher(
            env,
            processing_time = processing_time,
            tick_interval   = tick_interval,
            initial_robots  = self.scen["initial_robots"],
            metrics         = self.metrics,
        )

    # =========================================================================
    # Processes
    # =========================================================================

    def order_generator(self, until: Optional[float] = None):
        """
        New orders arrive as a Poisson process.

        Inter-arrival times are Exponential(λ) with λ = orders per ms.
        """
        rate_ms = self.scen["orders_per_minute"] / MINUTE_MS
        if rate_ms <= 0:
            return
        while True:
            yield self.env.timeout(random.expovariate(rate_ms))
            if until is not None and self.env.now >= until:
                return
            is_expedited = random.random() < self.scen["expedited_fraction"]
            self.dispatcher.enqueue_order(
                Priority.EXPEDITED if is_expedited else Priority.STANDARD
            )

    def fleet_controller(self):
        """Apply the scenario's timed fleet changes, in time order."""
        for at, delta in sorted(self.scen["fleet_changes"], key=lambda c: c[0]):
            if at > self.env.now:
                yield self.env.timeout(at - self.env.now)
            if delta > 0:
                robot = self.dispatcher.add_robot()
                log.info("[%s] robot %d added at %.0f ms", self.scenario, robot.id, self.env.now)
            else:
                robot = self.dispatcher.remove_robot()
                if robot is not None:
                    log.info("[%s] robot %d removed at %.0f ms", self.scenario,
                             robot.id, self.env.now)

    def sampler(self):
        """Snapshot queue and fleet state every ``sample_interval`` ms."""
        while True:
            self.record_sample()
            yield self.env.timeout(self.sample_interval)

    def record_sample(self) -> None:
        d = self.dispatcher
        if self.check_invariants:
            d.check_invariants()
        self.metrics.record_sample({
            "queue_length": len(d.queue),
            "expedited":    sum(1 for o in d.queue if o.is_expedited),
            "busy":         len(d.pool.busy_robots()),
            "fleet_size":   len(d.pool),
            "completed":    sum(1 for a in self.metrics.assignments
                                if a.outcome == "completed"),
        })

    # =========================================================================
    # Bootstrap
    # =========================================================================

    def register_processes(self, order_cutoff: Optional[float] = None) -> None:
        """
        Register every SimPy process.  Call this before ``env.run()``.

        *order_cutoff* stops new arrivals at that time so the fleet can
        drain its queue.
        """
        env = self.env
        log.info("[%s] starting with %d robot(s)", self.scenario, len(self.dispatcher.pool))
        env.process(self.order_generator(until=order_cutoff))
        env.process(self.fleet_controller())
        env.process(self.sampler())
