from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from . import utils
from .models.route import ReverseProxyRoute


@dataclass
class RoutesFile:
    """Desired routes read from a YAML file.

    Example:

        server: myserver
        routes:
          - id: example.net
            hosts: [example.net, www.example.net]
            path: /*
            upstreams: [localhost:8080]
    """

    server: str | None = None
    routes: list[tuple[str, ReverseProxyRoute]] = field(default_factory=list)


def _first(entry: Mapping[str, Any], *keys: str) -> Any:
    for k in keys:
        if entry.get(k) is not None:
            return entry[k]
    return None


def parse_route_entry(entry: object, *, index: int = 0) -> tuple[str, ReverseProxyRoute]:
    where = f"routes[{index}]"
    if not isinstance(entry, Mapping):
        raise ValueError(f"{where}: expected a mapping")
    route_id = str(entry.get("id") or "").strip()
    if not route_id:
        raise ValueError(f"{where}: id is required")
    where = f"{where} ({route_id})"
    try:
        hosts = utils.parse_str_list(_first(entry, "hosts", "host"), field="hosts")
        paths_v = _first(entry, "paths", "path")
        paths = ("/*",) if paths_v is None else utils.parse_str_list(paths_v, field="paths")
        upstreams = tuple(
            utils.parse_dial(u) for u in utils.parse_str_list(_first(entry, "upstreams", "upstream"), field="upstreams")
        )
        protocol = str(entry.get("protocol") or "http").strip().lower()
    except ValueError as e:
        raise ValueError(f"{where}: {e}") from None
    return route_id, ReverseProxyRoute(hosts=hosts, paths=paths, upstreams=upstreams, protocol=protocol)


def load_routes_file(path: Path) -> RoutesFile:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return RoutesFile()
    if not isinstance(data, Mapping):
        raise ValueError(f"{path}: expected a mapping at top level")

    server = data.get("server")
    routes_v = data.get("routes") or []
    if not isinstance(routes_v, list):
        raise ValueError(f"{path}: routes must be a list")

    routes: list[tuple[str, ReverseProxyRoute]] = []
    seen: set[str] = set()
    for i, entry in enumerate(routes_v):
        route_id, route = parse_route_entry(entry, index=i)
        if route_id in seen:
            raise ValueError(f"{path}: duplicate route id {route_id}")
        seen.add(route_id)
        routes.append((route_id, route))
    return RoutesFile(server=str(server).strip() if server else None, routes=routes)
