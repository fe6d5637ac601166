"""
Cancellation and deadline handling for outbound requests.

A Context carries an optional deadline (on the monotonic clock) and a
cancellation scope. Child contexts created with `with_timeout` share the
parent's scope, so cancelling the parent also cancels every child, and
their deadline is never later than the parent's.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable


class Cancelled(Exception):
    """Raised when work is attempted on a cancelled context."""

    pass


class DeadlineExceeded(Exception):
    """Raised when work is attempted after a context's deadline."""

    pass


class _CancelScope:
    """Cancellation flag shared by a context and all of its children."""

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def is_set(self) -> bool:
        return self._event.is_set()

    def add(self, callback: Callable[[], None]) -> Callable[[], None]:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._remove(callback)
        callback()
        return lambda: None

    def _remove(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)


class Context:
    """Deadline and cancellation scope passed down to a request."""

    def __init__(self, deadline: float | None = None, scope: _CancelScope | None = None):
        self.deadline = deadline
        self._scope = scope or _CancelScope()

    @classmethod
    def background(cls) -> Context:
        """Return a context with no deadline that is never cancelled by its parent."""
        return cls()

    @classmethod
    def with_deadline_in(cls, seconds: float) -> Context:
        """Return a root context expiring `seconds` from now."""
        return cls(deadline=time.monotonic() + seconds)

    def with_timeout(self, seconds: float) -> Context:
        """
        Derive a child context bounded by `seconds` from now.

        The child's deadline is the earlier of the parent's deadline and
        now + seconds. Cancelling the parent cancels the child.
        """
        deadline = time.monotonic() + seconds
        if self.deadline is not None:
            deadline = min(deadline, self.deadline)
        return Context(deadline=deadline, scope=self._scope)

    def cancel(self) -> None:
        self._scope.cancel()

    @property
    def cancelled(self) -> bool:
        return self._scope.is_set()

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Call `callback` once when the context is cancelled.

        Runs immediately if the context is already cancelled. Returns a
        function that unregisters the callback.
        """
        return self._scope.add(callback)

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when there is none."""
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    def check(self) -> None:
        """
        Raise if the context can no longer be used.

        Raises:
            Cancelled: If the context (or an ancestor) was cancelled.
            DeadlineExceeded: If the deadline has passed.
        """
        if self.cancelled:
            raise Cancelled("context cancelled")
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise DeadlineExceeded("context deadline exceeded")

    def run(self, func: Callable[..., Any], *args: Any) -> Any:
        """
        Run `func(*args)` on a worker thread, bounded by this context.

        Returns as soon as the call finishes, the context is cancelled or
        the deadline passes, whichever comes first. An abandoned call keeps
        running in the background and should check the context itself.

        Raises:
            Cancelled: If the context was cancelled before the call finished.
            DeadlineExceeded: If the deadline passed before the call finished.
            Exception: Whatever `func` raised.
        """
        self.check()

        done = threading.Event()
        outcome: dict[str, Any] = {}

        def target() -> None:
            try:
                outcome["result"] = func(*args)
            except Exception as e:
                outcome["error"] = e
            finally:
                done.set()

        unregister = self.on_cancel(done.set)
        worker = threading.Thread(target=target, name="opa-report-call", daemon=True)
        worker.start()
        try:
            done.wait(self.remaining())
        finally:
            unregister()

        if "error" in outcome:
            raise outcome["error"]
        if "result" in outcome:
            return outcome["result"]

        self.check()
        raise DeadlineExceeded("context deadline exceeded")
