"""Signal helpers shared by the tunnel and client launchers."""

import signal
from collections.abc import Iterator
from contextlib import contextmanager


@contextmanager
def ignoring_sigint() -> Iterator[None]:
    """Ignore SIGINT in this process for the duration of the block.

    Children spawned inside the block inherit the ignored disposition.
    """
    previous = signal.signal(signal.SIGINT, signal.SIG_IGN)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)
