import logging
import random

import pytest

from orderbots.config import PROCESSING_TIME
from orderbots.dispatcher import InvariantError, OrderDispatcher
from orderbots.jobs import JobState
from orderbots.models import OrderStatus, Priority, RobotStatus

DONE = PROCESSING_TIME + 1     # just past one full processing interval


def _ids(orders):
    return [o.id for o in orders]


# ── End-to-end scenarios ──────────────────────────────────────────────────────

def test_single_order_is_processed_and_completed(env, dispatcher):
    order = dispatcher.enqueue_order(Priority.STANDARD)
    robot = dispatcher.robots[0]

    assert order.id == 1
    assert robot.status is RobotStatus.BUSY
    assert robot.order is order
    assert robot.progress == 0.0
    assert _ids(dispatcher.pending) == []

    env.run(until=DONE)

    assert robot.status is RobotStatus.IDLE
    assert robot.progress == 0.0
    assert robot.order is None
    assert _ids(dispatcher.pending) == []
    assert _ids(dispatcher.completed) == [1]
    assert order.status is OrderStatus.COMPLETED
    dispatcher.check_invariants()


def test_expedited_jumps_ahead_of_waiting_standard(env, dispatcher):
    dispatcher.enqueue_order("standard")
    dispatcher.enqueue_order("standard")
    dispatcher.enqueue_order("expedited")

    assert dispatcher.robots[0].order.id == 1
    assert _ids(dispatcher.pending) == [3, 2]
    dispatcher.check_invariants()


def test_two_robots_take_the_first_two_orders(env):
    d = OrderDispatcher(env, initial_robots=2)
    for _ in range(3):
        d.enqueue_order("standard")

    assert [r.order.id for r in d.robots] == [1, 2]
    assert _ids(d.pending) == [3]
    d.check_invariants()


def test_removed_robot_returns_its_order_and_a_new_robot_restarts_it(env, dispatcher):
    order = dispatcher.enqueue_order("standard")
    env.run(until=5_050)
    assert dispatcher.robots[0].progress == pytest.approx(50.0)

    removed = dispatcher.remove_robot()

    assert removed.id == 1
    assert dispatcher.robots == []
    assert dispatcher.pending == [order]
    assert order.status is OrderStatus.PENDING
    assert dispatcher.reserved_ids == set()
    dispatcher.check_invariants()

    robot = dispatcher.add_robot()
    assert robot.id == 2
    assert robot.order is order
    assert robot.progress == 0.0
    assert dispatcher.pending == []

    # The cancelled job's timer (due at 10 000) must not complete the order.
    env.run(until=DONE)
    assert dispatcher.completed == []
    assert robot.order is order
    assert dispatcher.metrics.stale_timers == 0

    env.run(until=5_050 + DONE)
    assert _ids(dispatcher.completed) == [1]
    assert robot.is_idle
    dispatcher.check_invariants()


# ── Reconciliation ────────────────────────────────────────────────────────────

def test_completion_frees_robot_for_the_next_order(env, dispatcher):
    dispatcher.enqueue_order("standard")
    dispatcher.enqueue_order("standard")
    robot = dispatcher.robots[0]

    env.run(until=DONE)
    assert _ids(dispatcher.completed) == [1]
    assert robot.order.id == 2
    assert robot.progress == 0.0

    env.run(until=2 * PROCESSING_TIME + 1)
    assert _ids(dispatcher.completed) == [1, 2]
    assert robot.is_idle


def test_returned_order_is_served_first_by_the_next_free_robot(env):
    d = OrderDispatcher(env, initial_robots=2)
    for _ in range(3):
        d.enqueue_order("standard")
    env.run(until=4_000)

    d.remove_robot()                       # robot 2 drops order 2
    assert _ids(d.pending) == [2, 3]

    env.run(until=DONE)                    # robot 1 finishes order 1
    assert d.robots[0].order.id == 2
    assert _ids(d.pending) == [3]
    d.check_invariants()


def test_returned_order_goes_ahead_of_expedited(env, dispatcher):
    dispatcher.enqueue_order("standard")
    dispatcher.enqueue_order("expedited")
    dispatcher.remove_robot()
    assert _ids(dispatcher.pending) == [1, 2]


def test_new_robot_picks_up_waiting_orders(env, empty_fleet):
    empty_fleet.enqueue_order("standard")
    empty_fleet.enqueue_order("expedited")
    assert _ids(empty_fleet.pending) == [2, 1]

    robot = empty_fleet.add_robot()
    assert robot.order.id == 2
    assert _ids(empty_fleet.pending) == [1]


def test_reconcile_reports_pairings(env, empty_fleet):
    empty_fleet.enqueue_order("standard")
    empty_fleet.enqueue_order("standard")
    empty_fleet.pool.add_robot()
    empty_fleet.pool.add_robot()
    empty_fleet.pool.add_robot()

    pairs = empty_fleet.reconcile()
    assert [(r.id, o.id) for r, o in pairs] == [(1, 1), (2, 2)]
    assert empty_fleet.reconcile() == []


def test_progress_is_reported_while_busy(env, dispatcher):
    dispatcher.enqueue_order("standard")
    env.run(until=2_550)
    snap = dispatcher.snapshot()
    assert snap["robots"][0]["progress"] == pytest.approx(25.0)
    env.run(until=9_950)
    assert dispatcher.robots[0].progress == pytest.approx(99.0)


# ── Guards ────────────────────────────────────────────────────────────────────

def test_finalizing_the_same_job_twice_records_one_completion(env, dispatcher):
    dispatcher.enqueue_order("standard")
    job = dispatcher.jobs[1]
    env.run(until=DONE)

    dispatcher._finalize(job)

    assert _ids(dispatcher.completed) == [1]
    assert dispatcher.metrics.duplicate_finals == 1
    assert job.state is JobState.DONE
    dispatcher.check_invariants()


def test_stale_completion_after_cancellation_is_ignored(env, dispatcher):
    order = dispatcher.enqueue_order("standard")
    job = dispatcher.jobs[1]
    env.run(until=1_000)
    dispatcher.remove_robot()

    dispatcher._finalize(job)

    assert dispatcher.completed == []
    assert dispatcher.pending == [order]
    assert order.status is OrderStatus.PENDING
    assert dispatcher.metrics.stale_timers == 1
    dispatcher.check_invariants()


def test_remove_robot_on_empty_fleet_is_a_noop(env, empty_fleet):
    empty_fleet.enqueue_order("standard")
    assert empty_fleet.remove_robot() is None
    assert _ids(empty_fleet.pending) == [1]


def test_unknown_priority_is_rejected(dispatcher):
    with pytest.raises(ValueError):
        dispatcher.enqueue_order("vip")


def test_check_invariants_detects_corruption(env, dispatcher):
    order = dispatcher.enqueue_order("standard")
    order.status = OrderStatus.COMPLETED
    with pytest.raises(InvariantError):
        dispatcher.check_invariants()


# ── Completed collection ──────────────────────────────────────────────────────

def test_clear_completed_is_idempotent(env, dispatcher):
    dispatcher.enqueue_order("standard")
    env.run(until=DONE)
    assert len(dispatcher.completed) == 1

    dispatcher.clear_completed()
    assert dispatcher.completed == []
    dispatcher.clear_completed()
    assert dispatcher.completed == []
    assert dispatcher.finalized_ids == set()


def test_cleared_orders_keep_their_ids(env, dispatcher):
    dispatcher.enqueue_order("standard")
    env.run(until=DONE)
    dispatcher.clear_completed()
    assert dispatcher.enqueue_order("standard").id == 2


# ── Read access ───────────────────────────────────────────────────────────────

def test_snapshot_shape(env):
    d = OrderDispatcher(env, initial_robots=1)
    d.enqueue_order("standard")
    d.enqueue_order("standard")
    d.enqueue_order("expedited")
    env.run(until=DONE)

    snap = d.snapshot()
    assert snap["sim_time"] == DONE
    assert snap["robots"] == [{
        "id": 1, "status": "busy", "progress": pytest.approx(0.0),
        "order_id": 3, "order": "0003 (VIP)",
    }]
    assert snap["pending"] == [
        {"id": 2, "priority": "standard", "label": "0002", "reserved": False},
    ]
    assert snap["completed"] == [{"id": 1, "priority": "standard", "label": "0001"}]


def test_reserved_and_finalized_views(env, dispatcher):
    dispatcher.enqueue_order("standard")
    dispatcher.enqueue_order("standard")
    assert dispatcher.reserved_ids == {1}
    assert dispatcher.is_reserved(1)
    assert not dispatcher.is_reserved(2)

    env.run(until=DONE)
    assert dispatcher.reserved_ids == {2}
    assert dispatcher.finalized_ids == {1}


def test_assignments_are_logged(env, dispatcher, caplog):
    with caplog.at_level(logging.DEBUG, logger="orderbots.dispatcher"):
        dispatcher.enqueue_order("expedited")
        env.run(until=DONE)
    assert "robot 1 picked up order 0001 (VIP)" in caplog.text
    assert "robot 1 finished order 0001 (VIP)" in caplog.text


# ── Random interleavings ──────────────────────────────────────────────────────

@pytest.mark.parametrize("seed", range(8))
def test_invariants_hold_under_random_actions(env, seed):
    rng = random.Random(seed)
    d = OrderDispatcher(env)
    seen_robot_ids = [r.id for r in d.robots]
    order_ids = []

    for _ in range(250):
        action = rng.choice(["std", "exp", "add", "remove", "clear", "wait", "wait"])
        if action == "std":
            order_ids.append(d.enqueue_order("standard").id)
        elif action == "exp":
            order_ids.append(d.enqueue_order("expedited").id)
        elif action == "add":
            seen_robot_ids.append(d.add_robot().id)
        elif action == "remove":
            d.remove_robot()
        elif action == "clear":
            d.clear_completed()
        else:
            env.run(until=env.now + rng.randint(1, 4_000))
        d.check_invariants()

    assert seen_robot_ids == sorted(set(seen_robot_ids))
    assert order_ids == list(range(1, len(order_ids) + 1))
    assert d.metrics.duplicate_finals == 0

    # Every order completes exactly once when the fleet is left to drain.
    finished = []
    d.add_robot()
    while d.pending or d.pool.busy_robots():
        env.run(until=env.now + PROCESSING_TIME)
        finished.extend(_ids(d.completed))
        d.clear_completed()
        d.check_invariants()
    completed_ids = [a.order_id for a in d.metrics.assignments if a.outcome == "completed"]
    assert sorted(completed_ids) == order_ids
    assert len(set(finished)) == len(finished)
