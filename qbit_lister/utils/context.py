"""Cancellation and deadline handle passed into blocking WebUI calls."""

from __future__ import annotations

import threading
import time

from qbit_lister.utils.qbit_lister_errors import RequestCancelledError


class RequestContext:
    def __init__(
        self,
        deadline: float | None = None,
        parent: RequestContext | None = None,
    ) -> None:
        self._cancelled: threading.Event = threading.Event()
        self._parent = parent
        self.deadline = deadline

    @classmethod
    def background(cls) -> RequestContext:
        """A context that is never cancelled and has no deadline."""
        return cls()

    def with_timeout(self, seconds: float) -> RequestContext:
        deadline = time.monotonic() + seconds
        if self.deadline is not None:
            deadline = min(deadline, self.deadline)
        return RequestContext(deadline=deadline, parent=self)

    def cancel(self) -> None:
        self._cancelled.set()

    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent is not None and self._parent.cancelled()

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """
        Raise if the context can no longer be used for a request.

        Raises:
            RequestCancelledError: If cancelled or past the deadline
        """
        if self.cancelled():
            raise RequestCancelledError("context cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise RequestCancelledError("deadline exceeded")
