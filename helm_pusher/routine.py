"""Per-routine quota mode.

Instead of one shared countdown, ``charts`` artifacts are split up front
between the routines. Each routine keeps its own generator and picks a chart
name, decides how many versions of it to push (up to ``versions``) and
pushes them. Units that run out of attempts are counted as errors and the
routine moves on; nothing here fails the run.
"""
from __future__ import annotations

import logging

from helm_pusher.chart import ChartTemplate
from helm_pusher.config import FailurePolicy, PusherConfig
from helm_pusher.errors import RunCancelled, ValidationError
from helm_pusher.generator import ChartGenerator
from helm_pusher.pusher import Pusher, UnitState, push_unit

logger = logging.getLogger(__name__)


def split_quota(total: int, routines: int) -> list[int]:
    """Split ``total`` units over ``routines``, spreading the remainder."""
    base, extra = divmod(total, routines)
    return [base + (1 if i < extra else 0) for i in range(routines)]


def versions_to_create(generator: ChartGenerator, cap: int, remaining: int) -> int:
    if cap <= 1:
        return min(1, remaining)
    if cap > remaining:
        return remaining
    return generator.randint(1, cap)


class RoutinePusher(Pusher):
    """Pushes ``charts`` artifacts, each name getting 1..``versions`` versions."""

    @staticmethod
    def validate(config: PusherConfig) -> None:
        if config.routines <= 0:
            raise ValidationError("routines cannot be <= 0")
        if config.charts <= 0:
            raise ValidationError("charts cannot be <= 0")
        if config.versions <= 0:
            raise ValidationError("versions cannot be <= 0")
        if config.routines > config.charts:
            raise ValidationError("routines cannot be greater than charts")
        if config.max_attempts <= 0:
            raise ValidationError("max attempts cannot be <= 0")
        if config.policy is FailurePolicy.FAIL_FAST:
            raise ValidationError("per-routine mode absorbs failures; use abandon or requeue")

    @staticmethod
    def shared_generator(config: PusherConfig) -> None:
        # Each routine builds its own generator.
        return None

    @property
    def requested(self) -> int:
        return self.config.charts

    def _routine(self, routine_id: int, template: ChartTemplate) -> None:
        quota = split_quota(self.config.charts, self.config.routines)[routine_id]
        seed = None if self.config.seed is None else self.config.seed + routine_id + 1
        generator = ChartGenerator(quota, seed=seed)
        logger.debug("routine %d: %d charts, prefix %s", routine_id, quota, generator.prefix)

        while quota > 0:
            if self.cancel_event.is_set():
                raise RunCancelled("run cancelled")
            name = generator.chart_name()
            count = versions_to_create(generator, self.config.versions, quota)
            quota -= count

            for _ in range(count):
                self.counters.claim()
                unit = push_unit(
                    template,
                    generator,
                    self.client,
                    self.counters,
                    self.cancel_event,
                    self.config.policy,
                    self.config.max_attempts,
                    force=self.config.force,
                    name=name,
                )
                if self.config.policy is FailurePolicy.REQUEUE and unit.state is not UnitState.SUCCEEDED:
                    quota += 1
