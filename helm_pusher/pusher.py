"""Concurrent chart pusher.

Workers share one countdown of chart versions still to push. Each worker
claims a unit, then generates an identity, packages the template and pushes
it, retrying on conflicts (and, under FAIL_FAST, on errors) until the unit
succeeds or runs out of attempts.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum

from helm_pusher.chart import ChartTemplate, load_or_create_template
from helm_pusher.client import PushClient
from helm_pusher.config import FailurePolicy, PusherConfig
from helm_pusher.errors import (
    ConflictError,
    ExhaustedAttemptsError,
    PusherError,
    RunCancelled,
    ValidationError,
)
from helm_pusher.generator import ChartGenerator
from helm_pusher.packager import package_chart
from helm_pusher.progress import ProgressCounters, ProgressReporter, RunSummary

logger = logging.getLogger(__name__)


class UnitState(Enum):
    PENDING = "pending"
    ATTEMPTING = "attempting"
    CONFLICTED = "conflicted"
    SUCCEEDED = "succeeded"
    ABANDONED = "abandoned"
    REQUEUED = "requeued"
    EXHAUSTED = "exhausted"


TERMINAL_STATES = {UnitState.SUCCEEDED, UnitState.ABANDONED, UnitState.REQUEUED, UnitState.EXHAUSTED}


@dataclass
class WorkUnit:
    """Attempt bookkeeping for one chart version."""

    max_attempts: int
    state: UnitState = UnitState.PENDING
    attempts: int = 0
    last_error: Exception | None = None

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    def begin_attempt(self) -> bool:
        """Start another try; False (and EXHAUSTED) once the ceiling is hit."""
        if self.attempts >= self.max_attempts:
            self.state = UnitState.EXHAUSTED
            return False
        self.attempts += 1
        self.state = UnitState.ATTEMPTING
        return True

    def succeed(self) -> None:
        self.state = UnitState.SUCCEEDED

    def conflict(self, error: ConflictError) -> None:
        self.last_error = error
        self.state = UnitState.CONFLICTED

    def fail(self, error: Exception, policy: FailurePolicy) -> None:
        self.last_error = error
        if policy is FailurePolicy.ABANDON:
            self.state = UnitState.ABANDONED
        elif policy is FailurePolicy.REQUEUE:
            self.state = UnitState.REQUEUED
        else:
            self.state = UnitState.PENDING


def push_unit(
    template: ChartTemplate,
    generator: ChartGenerator,
    client: PushClient,
    counters: ProgressCounters,
    cancel_event: threading.Event,
    policy: FailurePolicy,
    max_attempts: int,
    force: bool = False,
    name: str | None = None,
) -> WorkUnit:
    """Drive one unit to a terminal state and update ``counters``.

    ``name`` pins the chart name; otherwise each attempt draws a new one.
    A unit that runs out of attempts raises ExhaustedAttemptsError under
    FAIL_FAST; the other policies count it as an error. Under REQUEUE a
    failed unit goes back on the countdown.
    """
    unit = WorkUnit(max_attempts)
    while not unit.done:
        if cancel_event.is_set():
            raise RunCancelled("run cancelled")
        if not unit.begin_attempt():
            break

        chart_name = name or generator.chart_name()
        version = generator.version()
        try:
            data = package_chart(template, chart_name, version)
            client.push(data, force=force).raise_for_outcome()
        except ConflictError as e:
            counters.add_conflict()
            unit.conflict(e)
            logger.debug("conflict on %s-%s (attempt %d)", chart_name, version, unit.attempts)
            continue
        except ValidationError:
            # A broken template fails every attempt the same way.
            raise
        except PusherError as e:
            counters.add_error(str(e))
            unit.fail(e, policy)
            if unit.state is UnitState.REQUEUED:
                counters.requeue()
            logger.debug("push of %s-%s failed (attempt %d): %s", chart_name, version, unit.attempts, e)
            continue
        counters.add_success()
        unit.succeed()

    if unit.state is UnitState.EXHAUSTED:
        exhausted = ExhaustedAttemptsError(unit.attempts, unit.last_error)
        if policy is FailurePolicy.FAIL_FAST:
            raise exhausted
        counters.add_error(str(exhausted))
        if policy is FailurePolicy.REQUEUE:
            counters.requeue()
    return unit


class Pusher:
    """Pushes ``versions`` chart versions spread over ``charts`` names."""

    def __init__(
        self,
        config: PusherConfig,
        template: ChartTemplate | None = None,
        client: PushClient | None = None,
        generator: ChartGenerator | None = None,
    ) -> None:
        self.validate(config)
        self.config = config
        self.template = template
        self._owns_client = client is None
        self.client = client or PushClient.from_config(config)
        self.generator = generator or self.shared_generator(config)
        self.cancel_event = threading.Event()
        self.counters = ProgressCounters(self.requested)
        self.summary: RunSummary | None = None

    @staticmethod
    def validate(config: PusherConfig) -> None:
        if config.routines <= 0:
            raise ValidationError("routines cannot be <= 0")
        if config.charts <= 0:
            raise ValidationError("charts cannot be <= 0")
        if config.versions <= 0:
            raise ValidationError("versions cannot be <= 0")
        if config.versions < config.charts:
            raise ValidationError("versions cannot be less than charts")
        if config.max_attempts <= 0:
            raise ValidationError("max attempts cannot be <= 0")

    @staticmethod
    def shared_generator(config: PusherConfig) -> ChartGenerator | None:
        return ChartGenerator(config.charts, seed=config.seed)

    @property
    def requested(self) -> int:
        return self.config.versions

    def _routine(self, routine_id: int, template: ChartTemplate) -> None:
        while not self.cancel_event.is_set() and self.counters.claim():
            push_unit(
                template,
                self.generator,
                self.client,
                self.counters,
                self.cancel_event,
                self.config.policy,
                self.config.max_attempts,
                force=self.config.force,
            )

    def _work(self, routine_id: int, template: ChartTemplate) -> None:
        try:
            self._routine(routine_id, template)
            if self.cancel_event.is_set():
                raise RunCancelled("run cancelled")
        except RunCancelled:
            raise
        except Exception:
            # First fatal error stops every other worker.
            self.cancel_event.set()
            raise

    def run(self, cancel_event: threading.Event | None = None) -> RunSummary:
        """Push until every unit is done.

        Raises the first fatal worker error, or RunCancelled when
        ``cancel_event`` was set before the work was done.
        """
        if cancel_event is not None:
            self.cancel_event = cancel_event
        template = self.template or load_or_create_template(self.config.template_path)
        self.template = template

        logger.info(
            "pushing %d chart versions to %s with %d routines (%s)",
            self.requested, self.config.url, self.config.routines, self.config.policy.value,
        )
        reporter = ProgressReporter(self.counters, self.config.report_interval, self.config.verbose)
        first_error: Exception | None = None
        cancelled = False

        start = time.perf_counter()
        reporter.start()
        try:
            with ThreadPoolExecutor(max_workers=self.config.routines, thread_name_prefix="pusher") as pool:
                futures = [pool.submit(self._work, i, template) for i in range(self.config.routines)]
                for future in as_completed(futures):
                    try:
                        future.result()
                    except RunCancelled:
                        cancelled = True
                    except Exception as e:
                        if first_error is None:
                            first_error = e
        finally:
            reporter.stop()
            if self._owns_client:
                self.client.close()
        elapsed = time.perf_counter() - start

        self.summary = self.counters.summary(self.requested, elapsed, self.config.policy)
        if first_error is not None:
            raise first_error
        if cancelled:
            raise RunCancelled(f"run cancelled with {max(self.counters.remaining, 0)} chart versions remaining")
        return self.summary
