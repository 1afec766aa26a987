"""Shared helpers for tests that wait on background threads."""

import time
from collections.abc import Callable


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll ``predicate`` until it holds or ``timeout`` seconds pass.

    Returns
    -------
    bool
        Final value of the predicate
    """
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()
