"""
Shared pytest fixtures for kubesim tests.
"""

import logging
import random
from pathlib import Path

import pytest

from kubesim.simulation import create_simulation


class StubJitter:
    """Jitter source that always returns the same value."""

    def __init__(self, value: float = 0.0):
        self.value = value

    def random(self) -> float:
        return self.value


@pytest.fixture
def zero_jitter() -> StubJitter:
    return StubJitter(0.0)


@pytest.fixture
def jitter_of():
    """Factory for a jitter source pinned to one value."""
    return StubJitter


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def drive():
    """Run a simulation tick by tick, firing events on schedule.

    ``events`` maps a tick to the event types triggered while the
    simulation sits at that tick. Returns the states indexed by tick.

    Example:
        states = drive("canary", events={0: ["deploy_v2"]}, ticks=20)
        assert states[3].v2_traffic == 5
    """

    def _drive(kind, config=None, events=None, ticks=20, seed=1):
        sim = create_simulation(kind, config, seed=seed)
        events = events or {}
        states = [sim.get_state()]
        for _ in range(ticks):
            for event_type in events.get(sim.get_state().tick, ()):
                sim.trigger_event(event_type)
            states.append(sim.tick())
        return states

    return _drive


@pytest.fixture(scope="session")
def test_output_root() -> Path:
    """
    Returns the root test_output directory. Created once per test session.
    Files here persist after tests complete for easy access.
    """
    output_dir = Path(__file__).parent.parent / "test_output"
    output_dir.mkdir(exist_ok=True)
    return output_dir


@pytest.fixture
def test_output_dir(request, test_output_root) -> Path:
    """
    Returns a directory for the current test to write output files.
    Directory structure: test_output/<module_name>/<test_name>/
    """
    module_name = request.module.__name__.split(".")[-1]
    test_name = request.node.name

    test_dir = test_output_root / module_name / test_name
    test_dir.mkdir(parents=True, exist_ok=True)
    return test_dir


@pytest.fixture(autouse=True)
def reset_kubesim_logging():
    """Reset the kubesim logger before and after each test.

    Removes every handler except the library NullHandler and resets the
    level so one test's logging setup never leaks into another.
    """
    logger = logging.getLogger("kubesim")

    def _reset():
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            if not isinstance(handler, logging.NullHandler):
                handler.close()
        logger.addHandler(logging.NullHandler())
        logger.setLevel(logging.NOTSET)
        logger.propagate = True

    _reset()
    yield
    _reset()
