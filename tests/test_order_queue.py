import random

from orderbots.models import Order, OrderStatus, Priority
from orderbots.order_queue import OrderQueue


def _order(order_id, priority=Priority.STANDARD):
    return Order(id=order_id, priority=priority)


def test_standard_orders_append_in_arrival_order():
    q = OrderQueue()
    for i in (1, 2, 3):
        q.enqueue(_order(i))
    assert q.ids() == [1, 2, 3]


def test_expedited_goes_behind_expedited_and_ahead_of_standard():
    q = OrderQueue()
    q.enqueue(_order(1))
    q.enqueue(_order(2, Priority.EXPEDITED))
    q.enqueue(_order(3))
    q.enqueue(_order(4, Priority.EXPEDITED))
    assert q.ids() == [2, 4, 1, 3]


def test_random_sequences_partition_stably():
    for seed in range(20):
        rng = random.Random(seed)
        q = OrderQueue()
        expected_exp, expected_std = [], []
        for i in range(1, 60):
            if rng.random() < 0.4:
                q.enqueue(_order(i, Priority.EXPEDITED))
                expected_exp.append(i)
            else:
                q.enqueue(_order(i))
                expected_std.append(i)
        assert q.ids() == expected_exp + expected_std


def test_take_next_eligible_skips_reserved_without_removing():
    q = OrderQueue()
    first, second = _order(1), _order(2)
    q.enqueue(first)
    q.enqueue(second)
    first.status = OrderStatus.RESERVED

    assert q.take_next_eligible() is second
    assert q.ids() == [1, 2]


def test_take_next_eligible_on_empty_or_all_reserved():
    q = OrderQueue()
    assert q.take_next_eligible() is None
    o = _order(1)
    o.status = OrderStatus.RESERVED
    q.enqueue(o)
    assert q.take_next_eligible() is None


def test_remove_is_idempotent():
    q = OrderQueue()
    q.enqueue(_order(1))
    q.enqueue(_order(2))
    q.remove(1)
    q.remove(1)
    q.remove(99)
    assert q.ids() == [2]
    assert 2 in q and 1 not in q


def test_requeue_front_beats_expedited_and_never_duplicates():
    q = OrderQueue()
    returned = _order(1)
    q.enqueue(_order(2, Priority.EXPEDITED))
    q.requeue_front(returned)
    q.requeue_front(returned)
    assert q.ids() == [1, 2]
    assert len(q) == 2
