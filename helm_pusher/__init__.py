"""Stress-test a Helm chart registry with generated chart pushes."""
from __future__ import annotations

from helm_pusher.chart import ChartTemplate, create_template_chart, load_template
from helm_pusher.client import PushClient, PushOutcome, PushResult
from helm_pusher.config import FailurePolicy, PusherConfig
from helm_pusher.generator import ChartGenerator
from helm_pusher.packager import package_chart
from helm_pusher.pusher import Pusher
from helm_pusher.routine import RoutinePusher

__version__ = "0.1.0"

__all__ = [
    "ChartGenerator",
    "ChartTemplate",
    "FailurePolicy",
    "PushClient",
    "PushOutcome",
    "PushResult",
    "Pusher",
    "PusherConfig",
    "RoutinePusher",
    "create_template_chart",
    "load_template",
    "package_chart",
]
