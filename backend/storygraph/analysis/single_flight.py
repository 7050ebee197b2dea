"""Collapse concurrent identical computations into one."""

from __future__ import annotations

from collections.abc import Callable
from threading import Event, Lock
from typing import Generic, TypeVar

from storygraph.errors import AnalysisCancelledError

T = TypeVar("T")

_WAIT_POLL_SECONDS = 0.1


class _Call(Generic[T]):
    __slots__ = ("done", "result", "error", "waiters")

    def __init__(self) -> None:
        self.done = Event()
        self.result: T | None = None
        self.error: BaseException | None = None
        self.waiters = 0


class SingleFlight(Generic[T]):
    """At most one in-flight computation per key; late arrivals wait for its outcome.

    The leader's result (or exception) is fanned out to every caller that joined
    while it was running. Once the leader finishes, the key is released and the
    next call starts a fresh computation. A waiter whose own cancel event is set
    stops waiting and raises AnalysisCancelledError; the leader keeps running.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._calls: dict[str, _Call[T]] = {}

    def do(
        self,
        key: str,
        fn: Callable[[], T],
        *,
        cancel_event: Event | None = None,
    ) -> tuple[T, bool]:
        """Run fn for key, or wait for the running one. Returns (result, shared)."""

        with self._lock:
            call = self._calls.get(key)
            if call is not None:
                call.waiters += 1
                leader = False
            else:
                call = _Call()
                self._calls[key] = call
                leader = True

        if not leader:
            self._wait(call, key, cancel_event)
            if call.error is not None:
                raise call.error
            return call.result, True  # type: ignore[return-value]

        try:
            call.result = fn()
        except BaseException as exc:
            call.error = exc
            raise
        finally:
            with self._lock:
                self._calls.pop(key, None)
            call.done.set()
        return call.result, call.waiters > 0

    def _wait(self, call: _Call[T], key: str, cancel_event: Event | None) -> None:
        if cancel_event is None:
            call.done.wait()
            return
        while not call.done.wait(_WAIT_POLL_SECONDS):
            if cancel_event.is_set():
                with self._lock:
                    call.waiters -= 1
                raise AnalysisCancelledError(f"Stopped waiting for in-flight analysis {key}")

    def in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._calls
