"""Random chart names and versions.

Names are short and ordered ("a", "b", ..., "z", "aa", ...) with a random
per-generator prefix so that two runs against the same registry rarely
collide. Versions cover what shows up in the wild: plain releases and
prereleases with a varying number of mixed numeric/string segments.
Small numbers are much more likely than large ones, which keeps the strings
readable while leaving enough entropy for a low duplicate rate.
"""
from __future__ import annotations

import base64
import bisect
import itertools
import logging
import os
import random
import threading

from helm_pusher.errors import GenerationError, ValidationError

PRERELEASE_STRINGS = [
    "a", "b", "c", "d",
    "alpha", "beta", "rc", "dev", "devel",
    "tp", "pre", "preview",
]

# Chosen through experimentation to hit an acceptably low rate of duplicates.
VERSION_ZIPF = (1.1, 5, 30)
PRERELEASE_ZIPF = (1.1, 10, 99)
SEGMENTS_ZIPF = (1.2, 3, 6)

PRERELEASE_ODDS = (19, 20)
NUMERIC_SEGMENT_ODDS = (9, 10)

logger = logging.getLogger(__name__)


class Zipf:
    """Bounded Zipf distribution over [0, imax] with P(k) ~ (v + k) ** -s."""

    def __init__(self, s: float, v: float, imax: int) -> None:
        if s <= 1 or v < 1 or imax < 0:
            raise ValueError(f"invalid zipf parameters s={s} v={v} imax={imax}")
        self.imax = imax
        weights = [(v + k) ** -s for k in range(imax + 1)]
        self._cumulative = list(itertools.accumulate(weights))

    def draw(self, rng: random.Random) -> int:
        point = rng.random() * self._cumulative[-1]
        return min(bisect.bisect_right(self._cumulative, point), self.imax)


def base26_name(index: int) -> str:
    """Return the bijective base-26 name for ``index`` (0 -> "a", 26 -> "aa")."""
    letters = []
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters.append(chr(ord("a") + rem))
    return "".join(reversed(letters))


def random_prefix(rng: random.Random) -> str:
    return base64.b32encode(rng.randbytes(5)).decode("ascii").lower()


class ChartGenerator:
    """Generates chart names and semantic versions. Safe for concurrent use."""

    def __init__(self, charts: int, seed: int | None = None) -> None:
        if charts < 1:
            raise ValidationError("charts cannot be < 1")
        if seed is None:
            try:
                seed = int.from_bytes(os.urandom(16), "big")
            except NotImplementedError as e:
                raise GenerationError(f"no entropy source available: {e}") from e
        self.seed = seed
        self._rng = random.Random(seed)
        self._lock = threading.Lock()

        self.prefix = random_prefix(self._rng)
        self.names = [f"{self.prefix}-{base26_name(i)}" for i in range(charts)]

        self._ver = Zipf(*VERSION_ZIPF)
        self._pre = Zipf(*PRERELEASE_ZIPF)
        self._npre = Zipf(*SEGMENTS_ZIPF)
        logger.debug("generator prefix=%s charts=%d seed=%d", self.prefix, charts, seed)

    def chart_name(self) -> str:
        with self._lock:
            return self._rng.choice(self.names)

    def version(self) -> str:
        with self._lock:
            rng = self._rng
            major, minor, patch = (self._ver.draw(rng) for _ in range(3))
            version = f"{major}.{minor}.{patch}"
            if rng.randrange(PRERELEASE_ODDS[1]) < PRERELEASE_ODDS[0]:
                segments = []
                for _ in range(self._npre.draw(rng) + 1):
                    if rng.randrange(NUMERIC_SEGMENT_ODDS[1]) < NUMERIC_SEGMENT_ODDS[0]:
                        segments.append(str(self._pre.draw(rng)))
                    else:
                        segments.append(rng.choice(PRERELEASE_STRINGS))
                version = f"{version}-{'.'.join(segments)}"
            return version

    def identity(self) -> tuple[str, str]:
        return self.chart_name(), self.version()

    def randint(self, low: int, high: int) -> int:
        """Inclusive random integer drawn from the generator's own source."""
        with self._lock:
            return self._rng.randint(low, high)
