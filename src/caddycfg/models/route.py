from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .. import utils
from ..identifiers import ID_FIELD

REVERSE_PROXY_HANDLER = "reverse_proxy"


@dataclass(frozen=True)
class ReverseProxyRoute:
    """A route that matches hosts and paths and proxies to upstream dial targets.

    See https://caddyserver.com/docs/json/apps/http/servers/routes/
    """

    hosts: tuple[str, ...]
    upstreams: tuple[str, ...]
    paths: tuple[str, ...] = ("/*",)
    protocol: str = "http"

    def __post_init__(self) -> None:
        # Accept any sequence from callers but keep the instance immutable.
        for name in ("hosts", "upstreams", "paths"):
            value = getattr(self, name)
            if isinstance(value, str):
                raise TypeError(f"{name} must be a sequence of strings, not str")
            object.__setattr__(self, name, tuple(value))
        if not self.hosts:
            raise ValueError("hosts must not be empty")
        if not self.upstreams:
            raise ValueError("upstreams must not be empty")

    def to_json(self) -> dict[str, Any]:
        return {
            "match": [
                {
                    "host": list(self.hosts),
                    "path": list(self.paths),
                }
            ],
            "handle": [
                {
                    "handler": REVERSE_PROXY_HANDLER,
                    "transport": {"protocol": self.protocol},
                    "upstreams": [{"dial": d} for d in self.upstreams],
                }
            ],
        }


def reverse_proxy_route(
    backend_port: int,
    match_hosts: Sequence[str],
    path_match: str = "/*",
    *,
    backend_host: str = "localhost",
) -> ReverseProxyRoute:
    """Build a route proxying `match_hosts` + `path_match` to `backend_host:backend_port`.

    `path_match` is usually "/*" for matching any path.
    """
    port = utils.parse_port(backend_port, field="backend_port")
    return ReverseProxyRoute(
        hosts=tuple(match_hosts),
        paths=(path_match,),
        upstreams=(utils.join_host_port(backend_host, port),),
    )


@dataclass(frozen=True)
class IdentifiedRoute:
    """A route payload stamped with its `@id`, which is always the first key."""

    route_id: str
    route: ReverseProxyRoute | Mapping[str, Any]

    def to_json(self) -> dict[str, Any]:
        if isinstance(self.route, ReverseProxyRoute):
            body = self.route.to_json()
        else:
            body = dict(self.route)
        out: dict[str, Any] = {ID_FIELD: self.route_id}
        out.update((k, v) for k, v in body.items() if k != ID_FIELD)
        return out

    def dumps(self) -> str:
        return json.dumps(self.to_json(), ensure_ascii=False, separators=(",", ":"), allow_nan=False)
