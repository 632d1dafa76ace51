"""Push benchmark — POST generated chart archives to the registry.

Configured through the environment set by ``helm-pusher bench``:
HELM_PUSHER_TEMPLATE, HELM_PUSHER_PATH, HELM_PUSHER_CHARTS and optionally
HELM_PUSHER_USERNAME / HELM_PUSHER_PASSWORD / HELM_PUSHER_VERIFY_TLS.
"""
from __future__ import annotations

import os

from locust import HttpUser, task, constant

from helm_pusher.chart import ChartTemplate, load_template
from helm_pusher.client import CONFLICT_STATUSES, CONTENT_TYPE
from helm_pusher.generator import ChartGenerator
from helm_pusher.packager import package_chart

_template_cache: ChartTemplate | None = None
_generator: ChartGenerator | None = None


def shared_template() -> ChartTemplate:
    """Load the chart template. Cached at module level (once per process)."""
    global _template_cache
    if _template_cache is None:
        _template_cache = load_template(os.environ["HELM_PUSHER_TEMPLATE"])
    return _template_cache


def shared_generator() -> ChartGenerator:
    global _generator
    if _generator is None:
        _generator = ChartGenerator(int(os.environ.get("HELM_PUSHER_CHARTS", "100")))
    return _generator


class ChartPusher(HttpUser):
    wait_time = constant(0)

    def on_start(self) -> None:
        self.template = shared_template()
        self.generator = shared_generator()
        self.path: str = os.environ.get("HELM_PUSHER_PATH", "/")
        username = os.environ.get("HELM_PUSHER_USERNAME")
        if username:
            self.client.auth = (username, os.environ.get("HELM_PUSHER_PASSWORD", ""))
        self.client.verify = os.environ.get("HELM_PUSHER_VERIFY_TLS") == "1"

    @task
    def push_chart(self) -> None:
        name, version = self.generator.identity()
        data = package_chart(self.template, name, version)
        with self.client.post(
            self.path,
            data=data,
            headers={"Content-Type": CONTENT_TYPE},
            name="chart POST",
            catch_response=True,
        ) as response:
            if response.status_code in CONFLICT_STATUSES:
                response.failure("conflict")
            elif response.status_code != 201:
                response.failure(f"HTTP {response.status_code}")
