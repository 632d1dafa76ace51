"""HTTP client that uploads packaged charts to a registry."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum

import requests
import urllib3
from requests.adapters import HTTPAdapter
from requests.auth import HTTPBasicAuth

from helm_pusher.config import PusherConfig
from helm_pusher.errors import ConflictError, TransportError, UnexpectedStatusError

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/octet-stream"
CONFLICT_STATUSES = (409, 422)
CHUNK_SIZE = 8192


class PushOutcome(Enum):
    CREATED = "created"
    CONFLICT = "conflict"
    OTHER = "other"


@dataclass(frozen=True)
class PushResult:
    outcome: PushOutcome
    status_code: int
    body: str = ""

    @classmethod
    def from_status(cls, status_code: int, body: str = "") -> PushResult:
        if status_code == 201:
            outcome = PushOutcome.CREATED
        elif status_code in CONFLICT_STATUSES:
            outcome = PushOutcome.CONFLICT
        else:
            outcome = PushOutcome.OTHER
        return cls(outcome, status_code, body)

    def raise_for_outcome(self) -> None:
        if self.outcome is PushOutcome.CONFLICT:
            raise ConflictError(self.status_code, self.body)
        if self.outcome is PushOutcome.OTHER:
            raise UnexpectedStatusError(self.status_code, self.body)


class PushClient:
    """POSTs chart archives to one destination URL.

    The session is shared by all workers; its pool is sized to the number of
    workers so connections are reused instead of re-established per push.
    """

    def __init__(
        self,
        url: str,
        auth: tuple[str, str] | None = None,
        pool_size: int = 10,
        verify_tls: bool = False,
        connect_timeout: float = 5.0,
        read_timeout: float = 10.0,
        total_timeout: float = 30.0,
    ) -> None:
        self.url = url
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.total_timeout = total_timeout

        self.session = requests.Session()
        if auth is not None:
            self.session.auth = HTTPBasicAuth(*auth)
        self.session.verify = verify_tls
        if not verify_tls:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size, max_retries=0)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    @classmethod
    def from_config(cls, config: PusherConfig) -> PushClient:
        return cls(
            config.url,
            auth=config.auth,
            pool_size=config.routines,
            verify_tls=config.verify_tls,
            connect_timeout=config.handshake_timeout,
            read_timeout=config.response_header_timeout,
            total_timeout=config.request_timeout,
        )

    def push(self, data: bytes, force: bool = False) -> PushResult:
        """Upload one archive. Raises TransportError if no response arrives.

        ``total_timeout`` bounds the whole exchange: the header wait is capped
        by it and the deadline is checked again once headers and each body
        chunk arrive.
        """
        params = {"force": ""} if force else None
        deadline = time.monotonic() + self.total_timeout
        timeout = (self.connect_timeout, min(self.read_timeout, self.total_timeout))
        try:
            response = self.session.post(
                self.url,
                data=data,
                params=params,
                headers={"Content-Type": CONTENT_TYPE},
                timeout=timeout,
                stream=True,
            )
        except requests.RequestException as e:
            raise TransportError(str(e)) from e

        try:
            if time.monotonic() > deadline:
                raise TransportError(f"request exceeded {self.total_timeout}s timeout")
            # Read the whole body so the connection goes back to the pool.
            chunks = []
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                chunks.append(chunk)
                if time.monotonic() > deadline:
                    raise TransportError(f"request exceeded {self.total_timeout}s timeout")
            body = b"".join(chunks).decode("utf-8", errors="replace")
        except requests.RequestException as e:
            raise TransportError(str(e)) from e
        finally:
            response.close()

        logger.debug("POST %s -> %d", self.url, response.status_code)
        return PushResult.from_status(response.status_code, body)

    def close(self) -> None:
        self.session.close()
