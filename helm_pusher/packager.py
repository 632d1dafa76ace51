"""Serialize a chart template into a helm-compatible .tgz archive."""
from __future__ import annotations

import io
import json
import posixpath
import tarfile
import time

import yaml

from helm_pusher.chart import (
    API_VERSION_V1,
    API_VERSION_V2,
    CHARTFILE_NAME,
    CHARTS_DIR,
    LOCKFILE_NAME,
    SCHEMAFILE_NAME,
    VALUESFILE_NAME,
    ChartTemplate,
    validate_chart,
)
from helm_pusher.errors import PackageIOError, SchemaError

FILE_MODE = 0o644


def package_chart(template: ChartTemplate, name: str, version: str) -> bytes:
    """Package ``template`` as chart ``name`` at ``version``.

    Raises ValidationError for a malformed chart, SchemaError for an invalid
    values.schema.json and PackageIOError if the archive cannot be written.
    Nothing is returned unless the whole archive was written.
    """
    chart = template.with_identity(name, version)
    validate_chart(chart)

    buf = io.BytesIO()
    try:
        with tarfile.open(mode="w:gz", fileobj=buf) as tar:
            _write_tar_contents(tar, chart, "")
    except (OSError, tarfile.TarError) as e:
        raise PackageIOError(f"failed to write chart archive: {e}") from e
    return buf.getvalue()


def _write_tar_contents(tar: tarfile.TarFile, chart: ChartTemplate, prefix: str) -> None:
    base = posixpath.join(prefix, chart.name) if prefix else chart.name
    md = chart.metadata

    # v1 charts keep dependencies in requirements.yaml, not Chart.yaml.
    include_deps = md.api_version != API_VERSION_V1
    chartfile = yaml.safe_dump(md.to_dict(include_dependencies=include_deps), sort_keys=False)
    _write_to_tar(tar, posixpath.join(base, CHARTFILE_NAME), chartfile.encode("utf-8"))

    if md.api_version == API_VERSION_V2 and chart.lock is not None:
        lockfile = yaml.safe_dump(dict(chart.lock), sort_keys=False)
        _write_to_tar(tar, posixpath.join(base, LOCKFILE_NAME), lockfile.encode("utf-8"))

    if chart.values is not None:
        _write_to_tar(tar, posixpath.join(base, VALUESFILE_NAME), chart.values)

    if chart.schema is not None:
        try:
            json.loads(chart.schema)
        except ValueError as e:
            raise SchemaError(f"Invalid JSON in {SCHEMAFILE_NAME}: {e}") from e
        _write_to_tar(tar, posixpath.join(base, SCHEMAFILE_NAME), chart.schema)

    for f in chart.templates:
        _write_to_tar(tar, posixpath.join(base, f.name), f.data)

    for f in chart.files:
        _write_to_tar(tar, posixpath.join(base, f.name), f.data)

    for dep in chart.dependencies:
        _write_tar_contents(tar, dep, posixpath.join(base, CHARTS_DIR))


def _write_to_tar(tar: tarfile.TarFile, name: str, body: bytes) -> None:
    info = tarfile.TarInfo(name.replace("\\", "/"))
    info.mode = FILE_MODE
    info.size = len(body)
    info.mtime = int(time.time())
    tar.addfile(info, io.BytesIO(body))
