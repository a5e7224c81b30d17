"""
ProcessingJob — one robot working one order on the SimPy clock.

Each job owns two processes:

  ticker      every ``step`` ms, advance the robot's progress bar
  completion  a single ``duration`` timeout; on expiry hands the job back
              to the dispatcher for finalisation

The completion timer does not count ticks, so it fires exactly once however
the ticks drift.  Either process may be interrupted by the dispatcher; a
process that wakes after its job has left the RUNNING state does nothing.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

import simpy

from .config import PROCESSING_TIME, PROGRESS_MAX, TICK_INTERVAL

if TYPE_CHECKING:
    from .models import AssignmentRecord, Order, Robot

log = logging.getLogger(__name__)


class JobState(str, Enum):
    RUNNING    = "running"
    COMPLETING = "completing"
    DONE       = "done"
    CANCELLED  = "cancelled"


class ProcessingJob:
    """
    Progress simulation for a single (robot, order) assignment.

    Usage::

        job = ProcessingJob(env, robot, order, on_complete=dispatcher._finalize)
        job.start()
        ...
        job.cancel()      # robot removed before the order finished
    """

    def __init__(
        self,
        env: simpy.Environment,
        robot: "Robot",
        order: "Order",
        on_complete: Callable[["ProcessingJob"], None],
        duration: float = PROCESSING_TIME,
        step: float = TICK_INTERVAL,
        record: Optional["AssignmentRecord"] = None,
    ) -> None:
        if duration <= 0 or step <= 0:
            raise ValueError("duration and step must be positive")

        self.env         = env
        self.robot       = robot
        self.order       = order
        self.duration    = duration
        self.step        = step
        self.record      = record
        self._on_complete = on_complete

        self.steps      = max(1, round(duration / step))
        self.increment  = PROGRESS_MAX / self.steps
        self.ticks      = 0
        self.elapsed    = 0.0
        self.started_at = env.now
        self.state      = JobState.RUNNING

        self.ticker:     Optional[simpy.Process] = None
        self.completion: Optional[simpy.Process] = None

    def __repr__(self) -> str:
        return (f"<ProcessingJob robot={self.robot.id} order={self.order.id} "
                f"state={self.state.value} ticks={self.ticks}/{self.steps}>")

    @property
    def is_running(self) -> bool:
        return self.state is JobState.RUNNING

    @property
    def due_at(self) -> float:
        return self.started_at + self.duration

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> "ProcessingJob":
        self.ticker     = self.env.process(self._tick())
        self.completion = self.env.process(self._complete())
        return self

    def stop_ticker(self) -> None:
        self._halt(self.ticker, "stopped")

    def cancel(self) -> None:
        """Stop both timers; the job never reports completion afterwards."""
        if self.state in (JobState.DONE, JobState.CANCELLED):
            return
        self.state = JobState.CANCELLED
        self._halt(self.ticker, "cancelled")
        self._halt(self.completion, "cancelled")
        log.debug("job for order %d on robot %d cancelled at %.0f after %d ticks",
                  self.order.id, self.robot.id, self.env.now, self.ticks)

    def _halt(self, process: Optional[simpy.Process], cause: str) -> None:
        if process is None or not process.is_alive:
            return
        if process is self.env.active_process:
            # Returning from the generator ends it; a process cannot interrupt itself.
            return
        process.interrupt(cause)

    # =========================================================================
    # Processes
    # =========================================================================

    def _tick(self):
        try:
            while self.elapsed < self.duration:
                yield self.env.timeout(self.step)
                if not self.is_running:
                    return
                self.ticks   += 1
                self.elapsed += self.step
                if self.robot.order is self.order:
                    self.robot.progress = min(self.ticks * self.increment, PROGRESS_MAX)
        except simpy.Interrupt:
            return

    def _complete(self):
        try:
            yield self.env.timeout(self.duration)
        except simpy.Interrupt:
            return
        self._on_complete(self)

    def mark_completing(self) -> None:
        self.state = JobState.COMPLETING

    def mark_done(self) -> None:
        self.state = JobState.DONE
