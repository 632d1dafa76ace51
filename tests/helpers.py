"""Test doubles and archive helpers shared by the test suites."""

from __future__ import annotations

import io
import json
import tarfile
import threading
from collections.abc import Callable
from pathlib import Path

import yaml

from helm_pusher.client import PushResult
from helm_pusher.errors import TransportError

REGISTRY_URL = "http://registry.test/api/charts"

CHART_YAML = """\
apiVersion: v2
name: demo
description: A Helm chart for Kubernetes
type: application
version: 0.1.0
appVersion: "1.16.0"
dependencies:
  - name: sub
    version: 0.2.0
"""

SUB_CHART_YAML = """\
apiVersion: v2
name: sub
version: 0.2.0
"""

VALUES_YAML = "replicaCount: 1\nimage:\n  repository: nginx\n"

DEPLOYMENT_YAML = """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: {{ .Release.Name }}
"""

SCHEMA = {"$schema": "https://json-schema.org/draft-07/schema#", "type": "object"}


def write_chart(root: Path) -> Path:
    """Write the demo chart under ``root/demo`` and return its path."""
    chart = root / "demo"
    (chart / "templates" / "tests").mkdir(parents=True)
    (chart / "charts" / "sub" / "templates").mkdir(parents=True)

    (chart / "Chart.yaml").write_text(CHART_YAML)
    (chart / "Chart.lock").write_text("dependencies:\n- name: sub\n  version: 0.2.0\ndigest: sha256:abc\n")
    (chart / "values.yaml").write_text(VALUES_YAML)
    (chart / "values.schema.json").write_text(json.dumps(SCHEMA))
    (chart / ".helmignore").write_text(".git/\n")
    (chart / "README.md").write_text("# demo\n")
    (chart / "templates" / "deployment.yaml").write_text(DEPLOYMENT_YAML)
    (chart / "templates" / "_helpers.tpl").write_text('{{- define "demo.name" -}}demo{{- end }}\n')
    (chart / "templates" / "tests" / "test-connection.yaml").write_text("kind: Pod\n")
    (chart / "charts" / "sub" / "Chart.yaml").write_text(SUB_CHART_YAML)
    (chart / "charts" / "sub" / "templates" / "cm.yaml").write_text("kind: ConfigMap\n")
    (chart / "charts" / "packaged-0.1.0.tgz").write_bytes(b"not really a tarball")
    return chart


def read_archive(data: bytes) -> dict[str, bytes]:
    """Return ``{entry name: contents}`` for a .tgz produced by the packager."""
    entries: dict[str, bytes] = {}
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
        for member in tar.getmembers():
            entries[member.name] = tar.extractfile(member).read()
    return entries


def archive_names(data: bytes) -> list[str]:
    """Return entry names in archive order."""
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
        return tar.getnames()


def chart_identity(data: bytes) -> tuple[str, str]:
    """Return (name, version) from the top-level Chart.yaml of an archive."""
    for name, body in read_archive(data).items():
        if name.count("/") == 1 and name.endswith("/Chart.yaml"):
            md = yaml.safe_load(body)
            return md["name"], md["version"]
    raise AssertionError("archive has no top-level Chart.yaml")


class FakeRegistry:
    """Stand-in for ``PushClient`` that answers from a callable.

    ``respond(call_index, data)`` returns a status code or raises. Every
    call is recorded; recording is thread-safe since workers share one client.
    """

    def __init__(self, respond: Callable[[int, bytes], int]):
        self._respond = respond
        self._lock = threading.Lock()
        self.calls: list[bytes] = []
        self.forced: list[bool] = []

    def push(self, data: bytes, force: bool = False) -> PushResult:
        with self._lock:
            index = len(self.calls)
            self.calls.append(data)
            self.forced.append(force)
        return PushResult.from_status(self._respond(index, data))

    def close(self) -> None:
        pass


def always(status: int) -> Callable[[int, bytes], int]:
    return lambda _index, _data: status


def transport_failure(_index: int, _data: bytes) -> int:
    raise TransportError("connection refused")


class ConflictThenCreated:
    """Conflict on every worker's odd-numbered push, Created on the next.

    Each worker pushes its units one after another, so this makes the first
    attempt of every unit conflict and the retry succeed.
    """

    def __init__(self):
        self._local = threading.local()

    def __call__(self, _index: int, _data: bytes) -> int:
        count = getattr(self._local, "count", 0)
        self._local.count = count + 1
        return 422 if count % 2 == 0 else 201


class OneWorkerDown:
    """Transport failure for whichever thread pushes first, Created for the rest."""

    def __init__(self):
        self._lock = threading.Lock()
        self._failing: int | None = None

    def __call__(self, _index: int, _data: bytes) -> int:
        caller = threading.get_ident()
        with self._lock:
            if self._failing is None:
                self._failing = caller
        if caller == self._failing:
            raise TransportError("connection refused")
        return 201
