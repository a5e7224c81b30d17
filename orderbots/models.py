"""Data-model classes shared across the simulation."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .config import ORDER_ID_WIDTH


class Priority(str, Enum):
    STANDARD  = "standard"
    EXPEDITED = "expedited"


class OrderStatus(str, Enum):
    """Lifecycle of an order: pending → reserved → completed.

    A reserved order drops back to pending when its robot is removed
    before the order finishes.
    """

    PENDING   = "pending"
    RESERVED  = "reserved"
    COMPLETED = "completed"


class RobotStatus(str, Enum):
    IDLE = "idle"
    BUSY = "busy"


@dataclass(eq=False)
class Order:
    """A unit of work waiting for, held by, or finished by a robot."""

    id:         int
    priority:   Priority    = Priority.STANDARD
    created_at: float       = 0.0          # simulation time (ms)
    status:     OrderStatus = OrderStatus.PENDING

    @property
    def is_expedited(self) -> bool:
        return self.priority is Priority.EXPEDITED

    @property
    def is_reserved(self) -> bool:
        return self.status is OrderStatus.RESERVED

    @property
    def is_completed(self) -> bool:
        return self.status is OrderStatus.COMPLETED

    @property
    def label(self) -> str:
        """Display form used by the reports, e.g. ``0003 (VIP)``."""
        text = str(self.id).zfill(ORDER_ID_WIDTH)
        return f"{text} (VIP)" if self.is_expedited else text


@dataclass(eq=False)
class Robot:
    """A processing unit; holds at most one order at a time."""

    id:       int
    status:   RobotStatus     = RobotStatus.IDLE
    progress: float           = 0.0        # percent, only meaningful while busy
    order:    Optional[Order] = None

    # Bookkeeping for utilisation KPIs
    added_at:      float = 0.0
    removed_at:    Optional[float] = None
    busy_time:     float = 0.0
    orders_done:   int   = 0
    busy_since:    Optional[float] = field(default=None, repr=False)

    @property
    def is_idle(self) -> bool:
        return self.status is RobotStatus.IDLE

    @property
    def is_busy(self) -> bool:
        return self.status is RobotStatus.BUSY

    def start(self, order: Order, now: float) -> None:
        self.status     = RobotStatus.BUSY
        self.progress   = 0.0
        self.order      = order
        self.busy_since = now

    def release(self, now: float) -> None:
        """Return to idle, dropping the current order and progress."""
        if self.busy_since is not None:
            self.busy_time += now - self.busy_since
        self.status     = RobotStatus.IDLE
        self.progress   = 0.0
        self.order      = None
        self.busy_since = None

    def busy_time_at(self, now: float) -> float:
        """Busy time including the assignment still in progress at *now*."""
        if self.busy_since is not None:
            return self.busy_time + (now - self.busy_since)
        return self.busy_time

    def service_time_at(self, now: float) -> float:
        end = self.removed_at if self.removed_at is not None else now
        return max(0.0, end - self.added_at)


@dataclass
class AssignmentRecord:
    """One robot working one order, from pick-up to completion or cancellation."""

    order_id:   int
    robot_id:   int
    priority:   Priority
    created_at: float                     # when the order entered the queue
    started_at: float                     # when the robot picked it up
    ended_at:   Optional[float] = None
    outcome:    str             = "running"   # running | completed | cancelled

    @property
    def wait_time(self) -> float:
        return self.started_at - self.created_at

    @property
    def turnaround(self) -> Optional[float]:
        """Queue entry to completion; only for completed assignments."""
        if self.outcome == "completed" and self.ended_at is not None:
            return self.ended_at - self.created_at
        return None

    @property
    def worked_time(self) -> Optional[float]:
        if self.ended_at is not None:
            return self.ended_at - self.started_at
        return None
