"""Shared run counters and the periodic progress reporter."""
from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass, field

from helm_pusher.config import FailurePolicy


@dataclass(frozen=True)
class RunSummary:
    requested: int
    successes: int
    errors: int
    conflicts: int
    elapsed: float
    policy: FailurePolicy
    error_kinds: dict[str, int] = field(default_factory=dict)

    @property
    def rate(self) -> float:
        if self.elapsed > 0:
            return self.successes / self.elapsed
        return 0.0


class ProgressCounters:
    """Counters shared by every worker. All updates take the same lock."""

    def __init__(self, remaining: int) -> None:
        self._lock = threading.Lock()
        self._remaining = remaining
        self._successes = 0
        self._conflicts = 0
        self._errors = 0
        self._error_kinds: Counter[str] = Counter()

    def claim(self) -> bool:
        """Take one unit off the countdown. False once nothing is left."""
        with self._lock:
            if self._remaining <= 0:
                return False
            self._remaining -= 1
            return True

    def requeue(self) -> None:
        with self._lock:
            self._remaining += 1

    def add_success(self) -> None:
        with self._lock:
            self._successes += 1

    def add_conflict(self) -> None:
        with self._lock:
            self._conflicts += 1

    def add_error(self, message: str) -> None:
        with self._lock:
            self._errors += 1
            self._error_kinds[message] += 1

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def successes(self) -> int:
        return self._successes

    @property
    def conflicts(self) -> int:
        return self._conflicts

    @property
    def errors(self) -> int:
        return self._errors

    def summary(self, requested: int, elapsed: float, policy: FailurePolicy) -> RunSummary:
        with self._lock:
            return RunSummary(
                requested=requested,
                successes=self._successes,
                errors=self._errors,
                conflicts=self._conflicts,
                elapsed=elapsed,
                policy=policy,
                error_kinds=dict(self._error_kinds),
            )


class ProgressReporter(threading.Thread):
    """Prints remaining work every ``interval`` seconds until stopped.

    Reads the counters without locking; a line may be slightly stale.
    """

    def __init__(self, counters: ProgressCounters, interval: float, verbose: bool = False) -> None:
        super().__init__(name="progress-reporter", daemon=True)
        self.counters = counters
        self.interval = interval
        self.verbose = verbose
        self._stopped = threading.Event()
        self._ticks = 0

    def run(self) -> None:
        while not self._stopped.wait(self.interval):
            self._ticks += 1
            if self.verbose:
                remaining = max(self.counters.remaining, 0)
                print(f"{remaining} chart versions remaining ({self.counters.conflicts} conflicts)", flush=True)
            else:
                print(".", end="", flush=True)
        if self._ticks and not self.verbose:
            print()
        print(f"Total conflicts: {self.counters.conflicts}", flush=True)

    def stop(self) -> None:
        self._stopped.set()
        if self.is_alive():
            self.join()
