import pytest
import simpy

from orderbots.dispatcher import OrderDispatcher


@pytest.fixture
def env():
    return simpy.Environment()


@pytest.fixture
def dispatcher(env):
    """Default fleet: one seeded idle robot, 10 s per order, 100 ms ticks."""
    return OrderDispatcher(env)


@pytest.fixture
def empty_fleet(env):
    return OrderDispatcher(env, initial_robots=0)
