"""
OrderDispatcher — the fleet's single owner of simulation state.

Every mutation goes through one of four entry points:

  enqueue_order(priority)   new order into the pending queue
  add_robot()               new idle robot at the end of the fleet
  remove_robot()            newest robot leaves; its order goes back to the front
  clear_completed()         empties the completed list

The first three are followed by a reconciliation pass that pairs idle robots
with pending orders.  A robot's job calls back into ``_finalize`` when its
completion timer expires, which frees the robot and reconciles again.

All of this runs inside one ``simpy.Environment``: handlers never overlap,
but timers of different robots interleave freely, so every timer callback
re-checks the order status before acting.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set, Tuple, Union

import simpy

from .config import INITIAL_ROBOTS, PROCESSING_TIME, TICK_INTERVAL
from .fleet import RobotPool
from .jobs import JobState, ProcessingJob
from .metrics import MetricsCollector
from .models import Order, OrderStatus, Priority, Robot
from .order_queue import OrderQueue

log = logging.getLogger(__name__)


class InvariantError(AssertionError):
    """The dispatcher's bookkeeping disagrees with itself."""


class OrderDispatcher:
    """
    Pairs robots with orders and simulates the processing on *env*.

    Usage::

        env        = simpy.Environment()
        dispatcher = OrderDispatcher(env)          # seeded with one idle robot
        dispatcher.enqueue_order("standard")       # robot 1 picks up order 1
        env.run(until=10_000)                      # order 1 is complete
    """

    def __init__(
        self,
        env: simpy.Environment,
        processing_time: float = PROCESSING_TIME,
        tick_interval: float = TICK_INTERVAL,
        initial_robots: int = INITIAL_ROBOTS,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.env             = env
        self.processing_time = processing_time
        self.tick_interval   = tick_interval
        self.metrics         = metrics if metrics is not None else MetricsCollector(env)

        self.queue = OrderQueue()
        self.pool  = RobotPool()
        self._completed: List[Order] = []
        self._jobs: Dict[int, ProcessingJob] = {}    # robot id → running job

        self._next_order_id = 1
        self._reconciling   = False

        for _ in range(initial_robots):
            robot = self.pool.add_robot(now=env.now)
            self.metrics.record_robot(robot, +1)

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def robots(self) -> List[Robot]:
        return list(self.pool)

    @property
    def pending(self) -> List[Order]:
        return list(self.queue)

    @property
    def completed(self) -> List[Order]:
        return list(self._completed)

    @property
    def jobs(self) -> Dict[int, ProcessingJob]:
        return dict(self._jobs)

    @property
    def reserved_ids(self) -> Set[int]:
        """Orders currently held by a busy robot."""
        return {
            r.order.id for r in self.pool.busy_robots()
            if r.order is not None and r.order.status is OrderStatus.RESERVED
        }

    @property
    def finalized_ids(self) -> Set[int]:
        """Completed orders still shown in the completed list."""
        return {o.id for o in self._completed if o.status is OrderStatus.COMPLETED}

    def is_reserved(self, order_id: int) -> bool:
        return order_id in self.reserved_ids

    def snapshot(self) -> dict:
        """Serializable view of the fleet for reports and callers."""
        return {
            "sim_time": self.env.now,
            "robots": [
                {
                    "id":       r.id,
                    "status":   r.status.value,
                    "progress": round(r.progress, 3),
                    "order_id": r.order.id if r.order else None,
                    "order":    r.order.label if r.order else None,
                }
                for r in self.pool
            ],
            "pending": [
                {
                    "id":       o.id,
                    "priority": o.priority.value,
                    "label":    o.label,
                    "reserved": o.is_reserved,
                }
                for o in self.queue
            ],
            "completed": [
                {"id": o.id, "priority": o.priority.value, "label": o.label}
                for o in self._completed
            ],
        }

    # =========================================================================
    # Inbound actions
    # =========================================================================

    def enqueue_order(self, priority: Union[Priority, str] = Priority.STANDARD) -> Order:
        order = Order(
            id         = self._next_order_id,
            priority   = Priority(priority),
            created_at = self.env.now,
        )
        self._next_order_id += 1
        self.queue.enqueue(order)
        self.metrics.record_order(order)
        log.debug("order %s queued at %.0f", order.label, self.env.now)

        self.reconcile()
        return order

    def add_robot(self) -> Robot:
        robot = self.pool.add_robot(now=self.env.now)
        self.metrics.record_robot(robot, +1)
        self.reconcile()
        return robot

    def remove_robot(self) -> Optional[Robot]:
        """Remove the newest robot; a no-op returning ``None`` on an empty fleet."""
        robot = self.pool.remove_last_robot(on_cancel=self._cancel)
        if robot is None:
            return None

        robot.removed_at = self.env.now
        self.metrics.record_robot(robot, -1)
        self.reconcile()
        return robot

    def clear_completed(self) -> None:
        self._completed.clear()

    # =========================================================================
    # Assignment engine
    # =========================================================================

    def reconcile(self) -> List[Tuple[Robot, Order]]:
        """
        One greedy pass: each idle robot, in fleet order, takes the next
        pending order until either side runs out.
        """
        if self._reconciling:
            return []

        self._reconciling = True
        try:
            pairs: List[Tuple[Robot, Order]] = []
            for robot in self.pool.idle_robots():
                order = self.queue.take_next_eligible()
                if order is None:
                    break
                self._assign(robot, order)
                pairs.append((robot, order))
            return pairs
        finally:
            self._reconciling = False

    def _assign(self, robot: Robot, order: Order) -> None:
        order.status = OrderStatus.RESERVED
        self.queue.remove(order.id)
        robot.start(order, now=self.env.now)

        job = ProcessingJob(
            self.env, robot, order,
            on_complete = self._finalize,
            duration    = self.processing_time,
            step        = self.tick_interval,
            record      = self.metrics.record_assignment(order, robot),
        )
        self._jobs[robot.id] = job.start()
        log.debug("robot %d picked up order %s at %.0f",
                  robot.id, order.label, self.env.now)

    # =========================================================================
    # Completion & cancellation
    # =========================================================================

    def _finalize(self, job: ProcessingJob) -> None:
        """Completion timer expired: record the order and free the robot."""
        order, robot = job.order, job.robot

        if (order.status is not OrderStatus.RESERVED
                or not job.is_running
                or self._jobs.get(robot.id) is not job):
            job.stop_ticker()
            if order.status is OrderStatus.COMPLETED:
                self.metrics.duplicate_finals += 1
            else:
                self.metrics.stale_timers += 1
            log.debug("ignoring completion of order %s on robot %d (status %s, job %s)",
                      order.label, robot.id, order.status.value, job.state.value)
            return

        job.mark_completing()
        order.status = OrderStatus.COMPLETED
        job.stop_ticker()

        if all(o.id != order.id for o in self._completed):
            self._completed.append(order)

        robot.release(now=self.env.now)
        robot.orders_done += 1
        del self._jobs[robot.id]
        self.queue.remove(order.id)

        job.mark_done()
        if job.record is not None:
            self.metrics.record_outcome(job.record, "completed")
        log.debug("robot %d finished order %s at %.0f", robot.id, order.label, self.env.now)

        self.reconcile()

    def _cancel(self, robot: Robot) -> None:
        """
        Hand a removed robot's order back as if it had never been started.
        Called while the robot is still in the pool.
        """
        order = robot.order
        if order is None:
            return

        self.queue.requeue_front(order)
        order.status = OrderStatus.PENDING

        job = self._jobs.pop(robot.id, None)
        if job is not None:
            job.cancel()
            if job.record is not None:
                self.metrics.record_outcome(job.record, "cancelled")

        robot.release(now=self.env.now)
        log.debug("order %s returned to the front of the queue from robot %d",
                  order.label, robot.id)

    # =========================================================================
    # Consistency check
    # =========================================================================

    def check_invariants(self) -> None:
        """Raise :class:`InvariantError` if the fleet state is inconsistent."""
        def require(cond: bool, msg: str) -> None:
            if not cond:
                raise InvariantError(msg)

        robots    = list(self.pool)
        pending   = list(self.queue)
        busy      = [r for r in robots if r.is_busy]
        held_ids  = [r.order.id for r in busy if r.order is not None]
        pend_ids  = [o.id for o in pending]
        done_ids  = [o.id for o in self._completed]
        reserved  = self.reserved_ids
        finalized = self.finalized_ids

        # Ids never repeat
        robot_ids = [r.id for r in robots]
        require(len(set(robot_ids)) == len(robot_ids), f"duplicate robot ids {robot_ids}")
        require(robot_ids == sorted(robot_ids), f"robot ids out of order {robot_ids}")
        require(len(set(pend_ids)) == len(pend_ids), f"duplicate pending ids {pend_ids}")
        require(len(set(done_ids)) == len(done_ids), f"duplicate completed ids {done_ids}")
        require(all(0 < i < self._next_order_id for i in pend_ids + held_ids + done_ids),
                "order id outside the allocated range")

        # Reserved vs. finalized, busy robot ↔ reserved order
        require(not (reserved & finalized), f"reserved and finalized: {reserved & finalized}")
        require(len(set(held_ids)) == len(held_ids), f"order held by two robots: {held_ids}")
        require(set(held_ids) == reserved, f"busy orders {held_ids} != reserved {reserved}")

        # Each order lives in exactly one place
        require(not (set(pend_ids) & set(held_ids)), "order both pending and in flight")
        require(not (set(pend_ids) & set(done_ids)), "order both pending and completed")
        require(not (set(held_ids) & set(done_ids)), "order both in flight and completed")
        require(all(o.status is OrderStatus.PENDING for o in pending),
                "non-pending order in the queue")

        for r in robots:
            if r.is_idle:
                require(r.order is None and r.progress == 0.0,
                        f"idle robot {r.id} holds state")
                require(r.id not in self._jobs, f"idle robot {r.id} has a job")
            else:
                job = self._jobs.get(r.id)
                require(r.order is not None, f"busy robot {r.id} without an order")
                require(0.0 <= r.progress <= 100.0, f"robot {r.id} progress {r.progress}")
                require(job is not None and job.order is r.order
                        and job.state is JobState.RUNNING,
                        f"busy robot {r.id} without a running job")

        require(set(self._jobs) == {r.id for r in busy}, "job table out of sync with fleet")
