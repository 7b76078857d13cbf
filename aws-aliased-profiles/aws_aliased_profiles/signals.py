from __future__ import annotations

import logging
import signal
import threading
from contextlib import contextmanager
from typing import Iterator

from .errors import cancelled

logger = logging.getLogger(__name__)

CANCEL_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancellationToken:
    """One-shot flag shared by every worker of a run."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep for `timeout` seconds; return True early if cancelled."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise cancelled()


@contextmanager
def cancel_on_signals(token: CancellationToken) -> Iterator[CancellationToken]:
    """Trigger `token` on SIGINT/SIGTERM while the block runs."""

    def handler(signum, frame) -> None:
        logger.info("Received %s, cancelling", signal.Signals(signum).name)
        token.cancel()

    previous = {}
    for signum in CANCEL_SIGNALS:
        previous[signum] = signal.signal(signum, handler)
    try:
        yield token
    finally:
        for signum, old in previous.items():
            signal.signal(signum, old)
