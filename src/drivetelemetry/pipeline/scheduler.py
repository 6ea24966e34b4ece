from __future__ import annotations

from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Any, Callable, Dict


@dataclass
class _Timer:
    timer_id: int
    interval_s: float
    next_s: float
    callback: Callable[[float], None]


class Scheduler:
    """
    Periodic timers driven by sample time instead of the wall clock.

    ``advance(now_s)`` fires every due period in time order, catching up when samples
    arrive late. Timers are detached with ``cancel`` / ``cancel_all``.
    """

    def __init__(self) -> None:
        self._timers: Dict[int, _Timer] = {}
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._timers)

    def every(self, now_s: float, interval_s: float, callback: Callable[[float], None]) -> int:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        timer_id = self._next_id
        self._next_id += 1
        self._timers[timer_id] = _Timer(timer_id, float(interval_s), float(now_s) + float(interval_s), callback)
        return timer_id

    def cancel(self, timer_id: int) -> None:
        self._timers.pop(int(timer_id), None)

    def cancel_all(self) -> None:
        self._timers.clear()

    def advance(self, now_s: float) -> int:
        fired = 0
        while True:
            due = [t for t in self._timers.values() if t.next_s <= now_s]
            if not due:
                return fired
            timer = min(due, key=lambda t: (t.next_s, t.timer_id))
            at = timer.next_s
            timer.next_s += timer.interval_s
            timer.callback(at)
            fired += 1


class InlineExecutor(Executor):
    """Run submitted work immediately on the calling thread; used for deterministic replay."""

    def __init__(self) -> None:
        self._shutdown = False

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> "Future[Any]":
        if self._shutdown:
            raise RuntimeError("cannot schedule new futures after shutdown")
        f: "Future[Any]" = Future()
        try:
            f.set_result(fn(*args, **kwargs))
        except Exception as e:
            f.set_exception(e)
        return f

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        self._shutdown = True
