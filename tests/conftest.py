import io
import sys
import time

import psutil
import pytest

from devloop.process import Supervisor

SLEEPER = "import time\nwhile True:\n    time.sleep(0.1)\n"


@pytest.fixture
def sinks():
    """(stdout, stderr) byte sinks standing in for the parent's streams."""
    return io.BytesIO(), io.BytesIO()


@pytest.fixture
def supervisor(sinks):
    sup = Supervisor(stdout=sinks[0], stderr=sinks[1], drain_timeout=5)
    yield sup
    sup.shutdown()


@pytest.fixture
def python_child():
    """Build (command, args) running a Python snippet."""

    def build(code: str):
        return sys.executable, ["-u", "-c", code]

    return build


@pytest.fixture
def sleeper(python_child):
    return python_child(SLEEPER)


def wait_until(predicate, timeout: float = 10.0, interval: float = 0.05) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def is_gone(pid: int) -> bool:
    try:
        return psutil.Process(pid).status() == psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return True


@pytest.fixture
def until():
    return wait_until


@pytest.fixture
def gone():
    return is_gone
