from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from enum import Enum
from typing import Any

import httpx

from .caddy_api import CaddyAdminApi, CaddyError, NotFoundIdError
from .compare import routes_equal
from .configmanager import ConfigManager
from .models.route import IdentifiedRoute, ReverseProxyRoute

logger = ConfigManager.get_logger(__name__)


class RouteSerializationError(ValueError):
    pass


class ReconcileOutcome(str, Enum):
    UNCHANGED = "unchanged"
    CREATED = "created"
    REPLACED = "replaced"


class RouteReconciler:
    """Keeps one `@id`-tagged route per identifier in a Caddy server's routes.

    Calls for different identifiers never block each other. Calls for the same
    identifier through the same reconciler run one at a time. A lock lives only
    while some call holds or waits for it.
    """

    def __init__(self, api: CaddyAdminApi):
        self.api = api
        # route_id -> (lock, number of calls holding or waiting for it)
        self._locks: dict[str, tuple[threading.Lock, int]] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _route_lock(self, route_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock, users = self._locks.get(route_id) or (threading.Lock(), 0)
            self._locks[route_id] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                lock, users = self._locks[route_id]
                if users == 1:
                    del self._locks[route_id]
                else:
                    self._locks[route_id] = (lock, users - 1)

    def reconcile(
        self,
        server_key: str,
        route_id: str,
        desired: ReverseProxyRoute | Mapping[str, Any],
    ) -> ReconcileOutcome:
        """Make the route stored under `route_id` equal to `desired`.

        Fetches the current object first and does nothing when it already matches.
        Otherwise the old object is deleted (failures ignored) and the desired one
        appended to `apps.http.servers.<server_key>.routes`.

        A good candidate for route_id is the domain name the route serves.
        """
        if not route_id:
            raise ValueError("route_id is required")
        try:
            wanted = IdentifiedRoute(route_id, desired).dumps()
        except (TypeError, ValueError) as e:
            raise RouteSerializationError(f"Cannot serialize route {route_id!r}: {e}") from e

        with self._route_lock(route_id):
            current: str | None
            try:
                current = self.api.config_by_id(route_id)
            except NotFoundIdError:
                current = None

            if current is not None:
                if routes_equal(wanted, current):
                    logger.debug("Route %s is up to date", route_id)
                    return ReconcileOutcome.UNCHANGED
                try:
                    self.api.delete_by_id(route_id)
                except NotFoundIdError:
                    logger.debug("Route %s vanished before delete", route_id)
                except (CaddyError, httpx.TransportError) as e:
                    logger.warning("Ignoring failed delete of route %s (%s)", route_id, str(e))

            self.api.append_route(server_key, wanted)

        if current is None:
            logger.info("Created route %s in server %s", route_id, server_key)
            return ReconcileOutcome.CREATED
        logger.info("Replaced route %s in server %s", route_id, server_key)
        return ReconcileOutcome.REPLACED

    def remove(self, route_id: str) -> bool:
        """Delete the route stored under `route_id`. Returns False if there was none."""
        with self._route_lock(route_id):
            try:
                self.api.delete_by_id(route_id)
            except NotFoundIdError:
                return False
        logger.info("Deleted route %s", route_id)
        return True
