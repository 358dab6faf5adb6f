from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from .configmanager import DEFAULT_ADMIN_URL, ConfigManager
from .identifiers import escape_path_segment, join_url_path

logger = ConfigManager.get_logger(__name__)

UNKNOWN_OBJECT_ID = "unknown object ID"


class CaddyError(RuntimeError):
    pass


class NotFoundIdError(CaddyError, LookupError):
    """Caddy has no object with this `@id`."""

    def __init__(self, route_id: str) -> None:
        super().__init__(f"not found ID '{route_id}'")
        self.route_id = route_id


class CaddyRemoteError(CaddyError):
    """Caddy answered with an error message."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _normalize_admin_url(admin_url: str) -> str:
    url = admin_url.strip()
    if not url:
        raise ValueError("admin_url is required")
    if "://" not in url:
        url = "http://" + url
    return url.rstrip("/")


def _is_unknown_object_id(body: str) -> bool:
    try:
        payload = json.loads(body)
    except ValueError:
        return False
    if not isinstance(payload, dict):
        return False
    error = payload.get("error")
    return isinstance(error, str) and error.startswith(UNKNOWN_OBJECT_ID)


@dataclass
class CaddyAdminApi:
    """Caddy admin API wrapper.

    Covers the endpoints needed to manage routes by `@id`:
    `/load`, `/config/...`, `/id/...`.
    See https://caddyserver.com/docs/api
    """

    admin_url: str = DEFAULT_ADMIN_URL
    timeout_s: float = 10.0
    transport: httpx.BaseTransport | None = None

    def __post_init__(self) -> None:
        self.admin_url = _normalize_admin_url(self.admin_url)
        logger.debug(
            "Initializing CaddyAdminApi admin_url=%s timeout_s=%s",
            self.admin_url,
            self.timeout_s,
        )
        self._request_seq = 0

        def _log_request(request: httpx.Request) -> None:
            if not logger.isEnabledFor(logging.DEBUG):
                return
            self._request_seq += 1
            req_id = self._request_seq
            request.extensions["caddycfg.req_id"] = req_id
            request.extensions["caddycfg.start"] = time.perf_counter()
            logger.debug(
                "HTTP -> #%s %s %s body_bytes=%s",
                req_id,
                request.method,
                request.url,
                len(request.content),
            )

        def _log_response(response: httpx.Response) -> None:
            if not logger.isEnabledFor(logging.DEBUG):
                return
            req = response.request
            req_id = req.extensions.get("caddycfg.req_id")
            start = req.extensions.get("caddycfg.start")
            ms: float | None = None
            if isinstance(start, (int, float)):
                ms = (time.perf_counter() - float(start)) * 1000.0
            logger.debug(
                "HTTP <- #%s %s %s status=%s elapsed_ms=%s",
                req_id,
                req.method,
                req.url,
                response.status_code,
                f"{ms:.1f}" if ms is not None else None,
            )

        self._client = httpx.Client(
            base_url=self.admin_url,
            timeout=self.timeout_s,
            headers={"accept": "application/json"},
            transport=self.transport,
            event_hooks={"request": [_log_request], "response": [_log_response]},
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> CaddyAdminApi:
        return self

    def __exit__(self, _exc_type, _exc, _tb) -> None:  # type: ignore[no-untyped-def]
        self.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> tuple[httpx.Response, str]:
        resp = self._client.request(method, url, **kwargs)
        return resp, resp.text

    @staticmethod
    def _raise_for_status(resp: httpx.Response, body: str) -> None:
        if resp.status_code < 400:
            return
        msg = f"HTTP {resp.status_code} for {resp.request.method} {resp.request.url}"
        text = body.strip()
        raise CaddyRemoteError(f"{msg}: {text}" if text else msg, status_code=resp.status_code)

    def upload_to(self, admin_url: str, config_json: str) -> None:
        """Load a full configuration through another admin endpoint.

        Useful to seed a `caddy run` started without configuration, which listens on
        the default admin address until the new config moves `admin.listen`.
        """
        url = join_url_path(_normalize_admin_url(admin_url), "load")
        logger.info("Loading configuration via %s", url)
        resp, body = self._request(
            "POST", url, content=config_json.encode("utf-8"), headers={"content-type": "application/json"}
        )
        if body.strip():
            raise CaddyRemoteError(body.strip(), status_code=resp.status_code)

    def load(self, config_json: str) -> None:
        """Replace the whole configuration ("load" in Caddy terms)."""
        self.upload_to(self.admin_url, config_json)

    def config(self) -> str:
        """Return the full configuration, root node included.

        The body is returned whatever the status; only transport errors raise.
        """
        _, body = self._request("GET", "config/")
        return body.removesuffix("\n")

    def config_by_id(self, route_id: str) -> str:
        """Return the configuration object marked with `"@id": route_id`.

        Raises NotFoundIdError when Caddy reports the id as unknown. Any other
        answer, error bodies included, is returned as is; callers comparing it
        against a desired route will see a mismatch and replace it.
        """
        _, body = self._request("GET", f"id/{escape_path_segment(route_id)}")
        if _is_unknown_object_id(body):
            raise NotFoundIdError(route_id)
        return body.removesuffix("\n")

    def delete_by_id(self, route_id: str) -> None:
        """Delete the object marked with `"@id": route_id`.

        Raises NotFoundIdError when there is no such object. Other error answers are
        logged and not raised.
        """
        resp, body = self._request("DELETE", f"id/{escape_path_segment(route_id)}")
        if _is_unknown_object_id(body):
            raise NotFoundIdError(route_id)
        if resp.status_code >= 400 or body.strip():
            logger.warning(
                "DELETE id/%s answered status_code=%s: %s",
                route_id,
                resp.status_code,
                body.strip(),
            )

    def append_route(self, server_key: str, route_json: str) -> None:
        """Append one route object to the routes of `apps.http.servers.<server_key>`."""
        path = f"config/apps/http/servers/{escape_path_segment(server_key)}/routes"
        resp, body = self._request(
            "POST", path, content=route_json.encode("utf-8"), headers={"content-type": "application/json"}
        )
        self._raise_for_status(resp, body)
