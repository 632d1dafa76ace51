"""Exceptions raised by helm-pusher."""
from __future__ import annotations


class PusherError(RuntimeError):
    """Base class for every helm-pusher error."""


class ValidationError(PusherError):
    """A chart template or run parameter is malformed."""


class SchemaError(ValidationError):
    """values.schema.json is present but is not valid JSON."""


class TemplateLoadError(PusherError):
    """A chart directory could not be read."""


class HelmError(PusherError):
    """The helm CLI failed or is not installed."""


class GenerationError(PusherError):
    """The identity generator could not obtain entropy."""


class PackageIOError(PusherError):
    """Writing the chart archive failed."""


class TransportError(PusherError):
    """The push request did not complete (connection, TLS, timeout)."""


class ConflictError(PusherError):
    """The registry already holds this chart name and version."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__("chart conflicts with an existing chart version")


class UnexpectedStatusError(PusherError):
    """The registry answered with something other than 201 Created."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        message = f"returned with status {status_code}"
        if body:
            message = f"{message}: {body.strip()[:200]}"
        super().__init__(message)


class ExhaustedAttemptsError(PusherError):
    """A work unit did not succeed within the attempt ceiling."""

    def __init__(self, attempts: int, last_error: BaseException | None = None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        message = f"too many failed attempts ({attempts}); giving up"
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message)


class RunCancelled(PusherError):
    """The run was cancelled before every unit was pushed."""
