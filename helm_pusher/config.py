"""Run configuration passed explicitly to the dispatchers."""
from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from urllib.parse import unquote, urlsplit, urlunsplit

from helm_pusher.errors import ValidationError

# --- Constants ---

DEFAULT_VERSIONS = 1000
DEFAULT_CHARTS = 100
DEFAULT_ROUTINES = 20
MAX_ATTEMPTS = 5
REPORT_INTERVAL = 5.0

# Transport timeouts in seconds.
HANDSHAKE_TIMEOUT = 5.0
RESPONSE_HEADER_TIMEOUT = 10.0
REQUEST_TIMEOUT = 30.0

ENV_PREFIX = "HELM_PUSHER_"


class FailurePolicy(Enum):
    """What a worker does with a unit after a non-conflict failure.

    FAIL_FAST retries the unit and fails the whole run once the attempt
    ceiling is exceeded. ABANDON counts the error and drops the unit.
    REQUEUE counts the error and puts the unit back on the countdown.
    """

    FAIL_FAST = "fail-fast"
    ABANDON = "abandon"
    REQUEUE = "requeue"


def env(name: str, default: str | None = None) -> str | None:
    return os.environ.get(ENV_PREFIX + name, default)


def split_credentials(url: str) -> tuple[str, str | None, str | None]:
    """Strip ``user:pass@`` from a URL. Returns (url, username, password)."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        raise ValidationError(f"invalid destination URL: {url!r}")
    if parts.username is None:
        return url, None, None

    netloc = parts.hostname
    if ":" in netloc:
        netloc = f"[{netloc}]"
    if parts.port is not None:
        netloc = f"{netloc}:{parts.port}"
    clean = urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
    password = unquote(parts.password) if parts.password is not None else None
    return clean, unquote(parts.username), password


@dataclass
class PusherConfig:
    url: str
    charts: int = DEFAULT_CHARTS
    versions: int = DEFAULT_VERSIONS
    routines: int = DEFAULT_ROUTINES
    username: str | None = None
    password: str | None = None
    policy: FailurePolicy = FailurePolicy.FAIL_FAST
    force: bool = False
    max_attempts: int = MAX_ATTEMPTS
    template_path: str | None = None
    seed: int | None = None
    verbose: bool = False
    report_interval: float = REPORT_INTERVAL
    verify_tls: bool = False
    handshake_timeout: float = HANDSHAKE_TIMEOUT
    response_header_timeout: float = RESPONSE_HEADER_TIMEOUT
    request_timeout: float = REQUEST_TIMEOUT

    def __post_init__(self) -> None:
        url, username, password = split_credentials(self.url)
        self.url = url
        if self.username is None:
            self.username = username
        if self.password is None:
            self.password = password

    @property
    def auth(self) -> tuple[str, str] | None:
        if not self.username:
            return None
        return self.username, self.password or ""
