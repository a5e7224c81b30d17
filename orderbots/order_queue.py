"""Pending-order queue with expedited-first, FIFO-within-class ordering."""

from __future__ import annotations
from typing import Iterator, List, Optional

from .models import Order, OrderStatus


class OrderQueue:
    """
    Ordered sequence of orders waiting for a robot.

    Expedited orders are kept ahead of every standard order.  Within a
    priority class the arrival order is preserved, except for orders handed
    back by a removed robot, which go to the very front so they are served
    next.
    """

    def __init__(self) -> None:
        self._orders: List[Order] = []

    def __iter__(self) -> Iterator[Order]:
        return iter(list(self._orders))

    def __len__(self) -> int:
        return len(self._orders)

    def __contains__(self, order_id: object) -> bool:
        return any(o.id == order_id for o in self._orders)

    def ids(self) -> List[int]:
        return [o.id for o in self._orders]

    def enqueue(self, order: Order) -> None:
        """
        Insert *order* according to its priority.

        Expedited: after the last expedited order already queued (stable
        partition, no re-sort).  Standard: appended at the end.
        """
        if not order.is_expedited:
            self._orders.append(order)
            return

        expedited = [o for o in self._orders if o.is_expedited]
        standard  = [o for o in self._orders if not o.is_expedited]
        self._orders = expedited + [order] + standard

    def take_next_eligible(self) -> Optional[Order]:
        """First queued order that is not reserved; nothing is removed."""
        for order in self._orders:
            if order.status is OrderStatus.PENDING:
                return order
        return None

    def remove(self, order_id: int) -> None:
        self._orders = [o for o in self._orders if o.id != order_id]

    def requeue_front(self, order: Order) -> None:
        self.remove(order.id)
        self._orders.insert(0, order)

    def clear(self) -> None:
        self._orders.clear()
