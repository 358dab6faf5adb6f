from __future__ import annotations

import threading
from collections.abc import Mapping, Sequence
from typing import Any

from .configmanager import ConfigManager
from .models.route import ReverseProxyRoute
from .reconciler import ReconcileOutcome, RouteReconciler

logger = ConfigManager.get_logger(__name__)

DesiredRoutes = Sequence[tuple[str, ReverseProxyRoute | Mapping[str, Any]]]


class RouteRefresher:
    """Periodically reconciles a fixed set of routes on one background thread."""

    def __init__(
        self,
        reconciler: RouteReconciler,
        server_key: str,
        routes: DesiredRoutes,
        interval_s: float,
    ):
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self.reconciler = reconciler
        self.server_key = server_key
        self.routes = list(routes)
        self.interval_s = float(interval_s)
        self._stop = threading.Event()
        self._thr: threading.Thread | None = None

    def run_once(self) -> dict[str, ReconcileOutcome | Exception]:
        results: dict[str, ReconcileOutcome | Exception] = {}
        for route_id, desired in self.routes:
            try:
                results[route_id] = self.reconciler.reconcile(self.server_key, route_id, desired)
            except Exception as e:
                # One broken route must not keep the others stale.
                logger.error("Reconcile of route %s failed: %s: %s", route_id, type(e).__name__, e)
                results[route_id] = e
        return results

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop.clear()
        self._thr = threading.Thread(target=self._loop, name="caddycfg-refresher", daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thr is not None:
            self._thr.join(timeout)

    @property
    def running(self) -> bool:
        return self._thr is not None and self._thr.is_alive()

    def _loop(self) -> None:
        logger.info(
            "Refresher started: %s route(s) every %ss on server %s",
            len(self.routes),
            self.interval_s,
            self.server_key,
        )
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(self.interval_s)
        logger.info("Refresher stopped")
