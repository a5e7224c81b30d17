"""The robot pool: robots are added at the end and removed from the end."""

from __future__ import annotations

import logging
from typing import Callable, Iterator, List, Optional

from .models import Robot

log = logging.getLogger(__name__)


class RobotPool:
    """Robots in the order they joined the fleet.  Ids are never reused."""

    def __init__(self) -> None:
        self._robots: List[Robot] = []
        self._next_id = 1

    def __iter__(self) -> Iterator[Robot]:
        return iter(list(self._robots))

    def __len__(self) -> int:
        return len(self._robots)

    def get(self, robot_id: int) -> Optional[Robot]:
        for robot in self._robots:
            if robot.id == robot_id:
                return robot
        return None

    def idle_robots(self) -> List[Robot]:
        return [r for r in self._robots if r.is_idle]

    def busy_robots(self) -> List[Robot]:
        return [r for r in self._robots if r.is_busy]

    def add_robot(self, now: float = 0.0) -> Robot:
        robot = Robot(id=self._next_id, added_at=now)
        self._next_id += 1
        self._robots.append(robot)
        log.info("robot %d joined the fleet (size %d)", robot.id, len(self._robots))
        return robot

    def remove_last_robot(
        self,
        on_cancel: Optional[Callable[[Robot], None]] = None,
    ) -> Optional[Robot]:
        """
        Pop the most recently added robot.

        A busy robot is handed to *on_cancel* while it is still part of the
        pool, so its order can be returned before the robot disappears.
        Returns ``None`` when the pool is already empty.
        """
        if not self._robots:
            log.debug("remove requested on an empty fleet, ignoring")
            return None

        robot = self._robots[-1]
        if robot.is_busy and robot.order is not None and on_cancel is not None:
            on_cancel(robot)

        self._robots.pop()
        log.info("robot %d left the fleet (size %d)", robot.id, len(self._robots))
        return robot
