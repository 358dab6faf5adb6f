from __future__ import annotations

import json
import time
import uuid
from collections.abc import Generator
from typing import Any
from urllib.parse import unquote

import httpx
import pytest

from caddycfg.base_config import base_config
from caddycfg.caddy_api import CaddyAdminApi

ADMIN_URL = "http://localhost:2019"
SERVER_KEY = "myserver"


class FakeCaddy:
    """In-memory stand-in for the Caddy admin API.

    Answers like Caddy does: objects come back with sorted keys and a trailing
    newline, unknown ids yield `{"error":"unknown object ID ..."}`.
    """

    def __init__(self, config: Any = None) -> None:
        self.config = config
        self.requests: list[tuple[str, str]] = []

    @staticmethod
    def dumps(value: Any) -> str:
        return json.dumps(value, sort_keys=True, separators=(",", ":")) + "\n"

    @staticmethod
    def _error(status: int, message: str) -> httpx.Response:
        return httpx.Response(status, text=json.dumps({"error": message}) + "\n")

    def _walk(self, parts: list[str]) -> Any:
        node = self.config
        for p in parts:
            if isinstance(node, dict) and p in node:
                node = node[p]
            elif isinstance(node, list) and p.isdigit() and int(p) < len(node):
                node = node[int(p)]
            else:
                raise KeyError(p)
        return node

    def _find(self, node: Any, route_id: str) -> tuple[Any, Any] | None:
        children: list[tuple[Any, Any]] = []
        if isinstance(node, dict):
            children = list(node.items())
        elif isinstance(node, list):
            children = list(enumerate(node))
        for key, child in children:
            if isinstance(child, dict) and child.get("@id") == route_id:
                return node, key
            found = self._find(child, route_id)
            if found is not None:
                return found
        return None

    def routes(self, server_key: str = SERVER_KEY) -> list[dict[str, Any]]:
        return self.config["apps"]["http"]["servers"][server_key]["routes"]

    def mutations(self) -> list[tuple[str, str]]:
        return [(m, p) for m, p in self.requests if m != "GET"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.raw_path.decode("ascii").split("?", 1)[0]
        self.requests.append((method, path))

        if path == "/load" and method == "POST":
            self.config = json.loads(request.content)
            return httpx.Response(200)

        if path == "/config" or path.startswith("/config/"):
            parts = [unquote(p) for p in path[len("/config") :].split("/") if p]
            try:
                node = self._walk(parts)
            except KeyError as e:
                return self._error(400, f"invalid traversal path at: {e.args[0]}")
            if method == "GET":
                return httpx.Response(200, text=self.dumps(node))
            if method == "POST" and isinstance(node, list):
                node.append(json.loads(request.content))
                return httpx.Response(200)
            return self._error(400, f"unsupported {method} on {path}")

        if path.startswith("/id/"):
            route_id = unquote(path[len("/id/") :])
            found = self._find(self.config, route_id)
            if found is None:
                return self._error(404, f"unknown object ID '{route_id}'")
            parent, key = found
            if method == "GET":
                return httpx.Response(200, text=self.dumps(parent[key]))
            if method == "DELETE":
                del parent[key]
                return httpx.Response(200)

        return self._error(404, "not found")


@pytest.fixture
def fake_caddy() -> FakeCaddy:
    return FakeCaddy(json.loads(base_config(ADMIN_URL, SERVER_KEY)))


@pytest.fixture
def caddy_api(fake_caddy: FakeCaddy) -> Generator[CaddyAdminApi, None, None]:
    with CaddyAdminApi(admin_url=ADMIN_URL, transport=httpx.MockTransport(fake_caddy.handler)) as api:
        yield api


@pytest.fixture
def unique_suffix() -> str:
    return uuid.uuid4().hex[:12]


def docker_available() -> bool:
    try:
        import docker

        client = docker.from_env()
        client.ping()
        return True
    except Exception:
        return False


@pytest.fixture(scope="session")
def require_docker() -> bool:
    if not docker_available():
        pytest.skip("Docker daemon not available")
    return True


@pytest.fixture
def caddy_container(require_docker: bool, unique_suffix: str) -> Generator[str, None, None]:
    """Run an empty `caddy` whose admin API listens on all interfaces; yields its admin URL."""
    import docker

    client = docker.from_env()
    seed = json.dumps({"admin": {"listen": "0.0.0.0:2019"}})
    try:
        container = client.containers.run(
            "caddy:2",
            ["sh", "-c", f"echo '{seed}' > /tmp/seed.json && caddy run --config /tmp/seed.json"],
            detach=True,
            ports={"2019/tcp": None},
            name=f"caddy-cfg-it-{unique_suffix}",
        )
    except Exception as e:
        pytest.skip(f"Failed to start caddy container: {e}")
    try:
        admin_url = ""
        for _ in range(50):
            container.reload()
            bindings = (container.ports or {}).get("2019/tcp")
            if bindings:
                admin_url = f"http://127.0.0.1:{bindings[0]['HostPort']}"
                try:
                    httpx.get(f"{admin_url}/config/", timeout=1.0)
                    break
                except httpx.TransportError:
                    pass
            time.sleep(0.2)
        else:
            pytest.skip("caddy admin API did not come up")
        yield admin_url
    finally:
        container.remove(force=True)
