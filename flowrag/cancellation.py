"""Cancellation token with optional deadline, checked at pipeline batch boundaries"""

import time
from typing import Optional

from flowrag.errors import OperationCancelledError


class CancelToken:
    """
    Cooperative cancellation for index() and search().

    Cancel explicitly with cancel(), or give a timeout in seconds at
    construction. Pipelines call raise_if_cancelled() between batches.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._cancelled = False
        self._reason: Optional[str] = None
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self, reason: str = "cancelled") -> None:
        self._cancelled = True
        self._reason = reason

    @property
    def cancelled(self) -> bool:
        if self._cancelled:
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._cancelled = True
            self._reason = "deadline exceeded"
            return True
        return False

    @property
    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, or None without one"""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelledError(f"Operation {self._reason}")


def check_cancelled(token: Optional[CancelToken]) -> None:
    if token is not None:
        token.raise_if_cancelled()
