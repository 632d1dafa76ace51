"""In-memory Helm chart templates.

A ``ChartTemplate`` is loaded once and shared read-only between workers.
Every push works on ``template.with_identity(name, version)``, a shallow
copy whose metadata carries the generated name and version.
"""
from __future__ import annotations

import logging
import re
import shutil
import subprocess
import tempfile
from fnmatch import fnmatchcase
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from helm_pusher.errors import HelmError, TemplateLoadError, ValidationError

logger = logging.getLogger(__name__)

API_VERSION_V1 = "v1"
API_VERSION_V2 = "v2"

CHARTFILE_NAME = "Chart.yaml"
LOCKFILE_NAME = "Chart.lock"
VALUESFILE_NAME = "values.yaml"
SCHEMAFILE_NAME = "values.schema.json"
HELMIGNORE_NAME = ".helmignore"
TEMPLATES_DIR = "templates"
CHARTS_DIR = "charts"

CHART_TYPES = {"application", "library"}

# Order in which helm writes Chart.yaml fields.
METADATA_FIELD_ORDER = [
    "name", "home", "sources", "version", "description", "keywords",
    "maintainers", "icon", "apiVersion", "condition", "tags", "appVersion",
    "deprecated", "annotations", "kubeVersion", "dependencies", "type",
]

SEMVER_RE = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)


@dataclass(frozen=True)
class ChartFile:
    name: str
    data: bytes


@dataclass(frozen=True)
class ChartMetadata:
    """The contents of Chart.yaml."""

    name: str
    version: str
    api_version: str = API_VERSION_V2
    description: str = ""
    type: str = ""
    app_version: str = ""
    dependencies: tuple[Mapping[str, Any], ...] = ()
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ChartMetadata:
        known = {"name", "version", "apiVersion", "description", "type", "appVersion", "dependencies"}
        return cls(
            name=str(data.get("name") or ""),
            version=str(data.get("version") or ""),
            api_version=str(data.get("apiVersion") or ""),
            description=str(data.get("description") or ""),
            type=str(data.get("type") or ""),
            app_version=str(data.get("appVersion") or ""),
            dependencies=tuple(data.get("dependencies") or ()),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self, include_dependencies: bool = True) -> dict[str, Any]:
        """Render in helm's field order, dropping empty values."""
        values: dict[str, Any] = dict(self.extra)
        values.update({
            "name": self.name,
            "version": self.version,
            "apiVersion": self.api_version,
            "description": self.description,
            "type": self.type,
            "appVersion": self.app_version,
        })
        if include_dependencies and self.dependencies:
            values["dependencies"] = [dict(d) for d in self.dependencies]

        ordered = {k: values[k] for k in METADATA_FIELD_ORDER if values.get(k) not in (None, "", [], {})}
        for key, value in values.items():
            if key not in ordered and value not in (None, "", [], {}):
                ordered[key] = value
        return ordered


@dataclass(frozen=True)
class ChartTemplate:
    metadata: ChartMetadata
    lock: Mapping[str, Any] | None = None
    values: bytes | None = None
    schema: bytes | None = None
    templates: tuple[ChartFile, ...] = ()
    files: tuple[ChartFile, ...] = ()
    dependencies: tuple[ChartTemplate, ...] = ()

    @property
    def name(self) -> str:
        return self.metadata.name

    def with_identity(self, name: str, version: str) -> ChartTemplate:
        """Return a copy with name and version replaced; self is untouched."""
        return replace(self, metadata=replace(self.metadata, name=name, version=version))


# --- Validation ---


def validate_chart(chart: ChartTemplate) -> None:
    """Raise ValidationError when the chart metadata is not well formed."""
    md = chart.metadata
    if not md.api_version:
        raise ValidationError("chart.metadata.apiVersion is required")
    if not md.name:
        raise ValidationError("chart.metadata.name is required")
    if "/" in md.name or "\\" in md.name or md.name in (".", "..") or ".." in md.name:
        raise ValidationError(f"chart.metadata.name {md.name!r} is not a valid chart name")
    if not md.version:
        raise ValidationError("chart.metadata.version is required")
    if not SEMVER_RE.match(md.version):
        raise ValidationError(f"chart.metadata.version {md.version!r} is invalid")
    if md.type and md.type not in CHART_TYPES:
        raise ValidationError(f"chart.metadata.type {md.type!r} must be one of {sorted(CHART_TYPES)}")
    for dep in md.dependencies:
        if not isinstance(dep, Mapping) or not dep.get("name"):
            raise ValidationError("dependencies must have a name")
    for sub in chart.dependencies:
        validate_chart(sub)


# --- Loading ---


def read_helmignore(root: Path) -> list[str]:
    """Return the patterns of ``root/.helmignore``, without blanks and comments."""
    path = root / HELMIGNORE_NAME
    if not path.is_file():
        return []
    patterns = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            patterns.append(line)
    return patterns


def is_ignored(rel: str, patterns: list[str]) -> bool:
    """Match a chart-relative file path against .helmignore patterns.

    A pattern without ``/`` matches the name of the file or of any parent
    directory; one with ``/`` matches the path from the chart root. A
    trailing ``/`` matches directories only and ``!`` re-includes. The last
    matching pattern wins.
    """
    parts = rel.split("/")
    ignored = False
    for pattern in patterns:
        negate = pattern.startswith("!")
        if negate:
            pattern = pattern[1:]
        dir_only = pattern.endswith("/")
        pattern = pattern.strip("/")
        if not pattern:
            continue

        depth = len(parts) - 1 if dir_only else len(parts)
        candidates = ["/".join(parts[:i]) for i in range(1, depth + 1)]
        if "/" in pattern:
            matched = any(fnmatchcase(c, pattern) for c in candidates)
        else:
            matched = any(fnmatchcase(c.rsplit("/", 1)[-1], pattern) for c in candidates)
        if matched:
            ignored = not negate
    return ignored


def _read_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise TemplateLoadError(f"cannot read {path}: {e}") from e


def load_template(path: str | Path) -> ChartTemplate:
    """Load a chart directory (as written by ``helm create``).

    Files matched by the chart's .helmignore are left out, as helm does.
    """
    root = Path(path)
    chartfile = root / CHARTFILE_NAME
    if not chartfile.is_file():
        raise TemplateLoadError(f"{root} is not a chart directory: missing {CHARTFILE_NAME}")

    raw_metadata = _read_yaml(chartfile)
    if not isinstance(raw_metadata, Mapping):
        raise TemplateLoadError(f"{chartfile} does not contain a mapping")
    metadata = ChartMetadata.from_dict(raw_metadata)

    lock = None
    values = None
    schema = None
    templates: list[ChartFile] = []
    files: list[ChartFile] = []
    subcharts: list[ChartTemplate] = []
    seen_subcharts: set[str] = set()
    ignore = read_helmignore(root)

    for entry in sorted(root.rglob("*")):
        if entry.is_dir():
            continue
        rel = entry.relative_to(root).as_posix()
        parts = rel.split("/")
        if rel != CHARTFILE_NAME and is_ignored(rel, ignore):
            logger.debug("skipping %s (matched %s)", rel, HELMIGNORE_NAME)
            continue

        if parts[0] == CHARTS_DIR:
            if len(parts) == 2:
                logger.debug("skipping packaged dependency %s", rel)
            elif parts[1] not in seen_subcharts and (root / CHARTS_DIR / parts[1] / CHARTFILE_NAME).is_file():
                seen_subcharts.add(parts[1])
                subcharts.append(load_template(root / CHARTS_DIR / parts[1]))
            continue

        if rel == CHARTFILE_NAME:
            continue
        if rel == LOCKFILE_NAME:
            lock = _read_yaml(entry)
        elif rel == VALUESFILE_NAME:
            values = entry.read_bytes()
        elif rel == SCHEMAFILE_NAME:
            schema = entry.read_bytes()
        elif parts[0] == TEMPLATES_DIR:
            templates.append(ChartFile(rel, entry.read_bytes()))
        else:
            files.append(ChartFile(rel, entry.read_bytes()))

    return ChartTemplate(
        metadata=metadata,
        lock=lock,
        values=values,
        schema=schema,
        templates=tuple(templates),
        files=tuple(files),
        dependencies=tuple(subcharts),
    )


def helm_command(*args: str) -> str:
    """Run the helm CLI and return its stdout."""
    try:
        result = subprocess.run(["helm", *args], capture_output=True, text=True, check=True)
    except FileNotFoundError as e:
        raise HelmError("helm is not installed; pass --template to use an existing chart") from e
    except subprocess.CalledProcessError as e:
        raise HelmError(f"helm error: {(e.stderr or '').strip()}") from e
    return result.stdout


def create_template_chart(name: str = "helm-pusher-template") -> ChartTemplate:
    """Scaffold a chart with ``helm create`` in a temp dir and load it."""
    tmpdir = tempfile.mkdtemp(prefix="helm-pusher-")
    try:
        chart_dir = Path(tmpdir) / name
        helm_command("create", str(chart_dir))
        return load_template(chart_dir)
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def load_or_create_template(path: str | Path | None) -> ChartTemplate:
    if path:
        return load_template(path)
    return create_template_chart()
