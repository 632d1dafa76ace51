"""
Unit tests for chart name and version generation.

Covers the name pool layout, the shape of generated versions and the
statistical duplicate rate that makes the generator usable for large runs.
"""

from __future__ import annotations

import random
import re
import threading
from collections import Counter

import pytest

from helm_pusher.errors import ValidationError
from helm_pusher.generator import PRERELEASE_STRINGS, ChartGenerator, Zipf, base26_name

pytestmark = pytest.mark.unit

SEMVER = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|[a-zA-Z-][0-9a-zA-Z-]*)(?:\.(?:0|[1-9]\d*|[a-zA-Z-][0-9a-zA-Z-]*))*))?$"
)


@pytest.mark.parametrize(
    "index, expected",
    [(0, "a"), (1, "b"), (25, "z"), (26, "aa"), (27, "ab"), (51, "az"), (52, "ba"), (701, "zz"), (702, "aaa")],
)
def test_base26_name_is_bijective_order(index, expected):
    assert base26_name(index) == expected


@pytest.mark.parametrize("charts", [1, 2, 26, 27, 1000])
def test_pool_has_exactly_c_distinct_prefixed_names(charts):
    """Test that the pool holds C distinct names sharing one prefix."""
    # Act
    gen = ChartGenerator(charts, seed=7)

    # Assert
    assert len(gen.names) == charts
    assert len(set(gen.names)) == charts
    assert all(name.startswith(gen.prefix + "-") for name in gen.names)
    assert gen.names[0] == f"{gen.prefix}-a"
    assert re.fullmatch(r"[a-z2-7]{8}", gen.prefix)


def test_chart_name_is_always_from_pool():
    gen = ChartGenerator(30, seed=1)
    pool = set(gen.names)

    drawn = {gen.chart_name() for _ in range(2000)}

    assert drawn <= pool
    # 2000 uniform draws over 30 names reach every name.
    assert drawn == pool


def test_pool_size_below_one_is_rejected():
    with pytest.raises(ValidationError):
        ChartGenerator(0)


def test_versions_are_valid_semver():
    """Test that every generated version is MAJOR.MINOR.PATCH[-PRERELEASE]."""
    gen = ChartGenerator(10, seed=99)

    versions = [gen.version() for _ in range(5000)]

    for version in versions:
        assert SEMVER.match(version), version
        core = version.split("-", 1)[0]
        assert all(0 <= int(part) <= 30 for part in core.split("."))


def test_version_prerelease_shape():
    """Test prerelease frequency, segment count bounds and segment vocabulary."""
    gen = ChartGenerator(10, seed=5)
    versions = [gen.version() for _ in range(5000)]

    prereleases = [v.split("-", 1)[1] for v in versions if "-" in v]
    # 19/20 expected; leave a wide margin for randomness.
    assert 0.9 < len(prereleases) / len(versions) < 0.99

    segments = [seg for pre in prereleases for seg in pre.split(".")]
    assert all(1 <= len(pre.split(".")) <= 7 for pre in prereleases)
    words = [seg for seg in segments if not seg.isdigit()]
    assert set(words) <= set(PRERELEASE_STRINGS)
    assert 0.03 < len(words) / len(segments) < 0.2
    assert all(int(seg) <= 99 for seg in segments if seg.isdigit())


def test_unique_enough():
    """Test the duplicate rate for 100 versions per chart on average."""
    # Arrange
    gen = ChartGenerator(1000)

    # Act
    seen = Counter(f"{gen.chart_name()}-{gen.version()}" for _ in range(100_000))

    # Assert
    repeats = [value for value, n in seen.items() if n > 1]
    assert len(repeats) <= 10, repeats
    assert max(seen.values()) <= 2


def test_same_seed_reproduces_identities():
    a = ChartGenerator(50, seed=42)
    b = ChartGenerator(50, seed=42)

    assert a.prefix == b.prefix
    assert [a.identity() for _ in range(100)] == [b.identity() for _ in range(100)]


def test_different_generators_get_different_prefixes():
    prefixes = {ChartGenerator(1).prefix for _ in range(20)}

    assert len(prefixes) == 20


def test_concurrent_callers_get_valid_values():
    """Test that the shared lock keeps draws valid across threads."""
    gen = ChartGenerator(100, seed=3)
    pool = set(gen.names)
    results: list[tuple[str, str]] = []
    lock = threading.Lock()

    def draw():
        local = [gen.identity() for _ in range(500)]
        with lock:
            results.extend(local)

    threads = [threading.Thread(target=draw) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 4000
    assert all(name in pool and SEMVER.match(version) for name, version in results)


def test_zipf_stays_in_bounds_and_favours_small_values():
    rng = random.Random(0)
    zipf = Zipf(1.1, 5, 30)

    draws = [zipf.draw(rng) for _ in range(20_000)]

    assert min(draws) >= 0 and max(draws) <= 30
    counts = Counter(draws)
    assert counts[0] > counts[10] > counts[30]


@pytest.mark.parametrize("params", [(1.0, 5, 30), (1.1, 0.5, 30), (1.1, 5, -1)])
def test_zipf_rejects_invalid_parameters(params):
    with pytest.raises(ValueError):
        Zipf(*params)
