from __future__ import annotations

import threading

import pytest

from caddycfg.caddy_api import CaddyAdminApi, CaddyRemoteError
from caddycfg.models import reverse_proxy_route
from caddycfg.reconciler import ReconcileOutcome, RouteReconciler
from caddycfg.refresher import RouteRefresher

from tests.conftest import FakeCaddy


def test_run_once_reports_each_route(caddy_api: CaddyAdminApi, fake_caddy: FakeCaddy) -> None:
    refresher = RouteRefresher(
        RouteReconciler(caddy_api),
        "myserver",
        [
            ("a.example", reverse_proxy_route(8080, ["a.example"])),
            ("b.example", reverse_proxy_route(8081, ["b.example"])),
        ],
        interval_s=60,
    )
    assert refresher.run_once() == {
        "a.example": ReconcileOutcome.CREATED,
        "b.example": ReconcileOutcome.CREATED,
    }
    assert refresher.run_once() == {
        "a.example": ReconcileOutcome.UNCHANGED,
        "b.example": ReconcileOutcome.UNCHANGED,
    }
    assert len(fake_caddy.routes()) == 2


def test_failing_route_does_not_stop_the_others(caddy_api: CaddyAdminApi, fake_caddy: FakeCaddy) -> None:
    fake_caddy.config["apps"]["http"]["servers"]["other"] = {"routes": []}
    refresher = RouteRefresher(
        RouteReconciler(caddy_api),
        "other",
        [
            ("a.example", {"handle": [object()]}),
            ("b.example", reverse_proxy_route(8081, ["b.example"])),
        ],
        interval_s=60,
    )
    results = refresher.run_once()
    assert isinstance(results["a.example"], ValueError)
    assert results["b.example"] is ReconcileOutcome.CREATED


def test_remote_errors_are_collected(caddy_api: CaddyAdminApi) -> None:
    refresher = RouteRefresher(
        RouteReconciler(caddy_api),
        "missing-server",
        [("a.example", reverse_proxy_route(8080, ["a.example"]))],
        interval_s=60,
    )
    assert isinstance(refresher.run_once()["a.example"], CaddyRemoteError)


def test_interval_must_be_positive(caddy_api: CaddyAdminApi) -> None:
    with pytest.raises(ValueError):
        RouteRefresher(RouteReconciler(caddy_api), "myserver", [], interval_s=0)


class _CountingReconciler:
    def __init__(self) -> None:
        self.calls = 0
        self.ticked = threading.Event()

    def reconcile(self, server_key, route_id, desired):  # type: ignore[no-untyped-def]
        self.calls += 1
        if self.calls >= 3:
            self.ticked.set()
        return ReconcileOutcome.UNCHANGED


def test_background_loop_runs_until_stopped() -> None:
    rec = _CountingReconciler()
    refresher = RouteRefresher(
        rec,  # type: ignore[arg-type]
        "myserver",
        [("a.example", reverse_proxy_route(8080, ["a.example"]))],
        interval_s=0.01,
    )
    refresher.start()
    try:
        assert rec.ticked.wait(5)
        assert refresher.running
    finally:
        refresher.stop()
        refresher.join(5)
    assert not refresher.running
