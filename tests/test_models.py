from __future__ import annotations

import json

import pytest

from caddycfg.models import IdentifiedRoute, ReverseProxyRoute, reverse_proxy_route


def test_reverse_proxy_route_wire_shape() -> None:
    route = reverse_proxy_route(8080, ["example.com", "www.example.com"], "/*")
    assert route.to_json() == {
        "match": [
            {
                "host": ["example.com", "www.example.com"],
                "path": ["/*"],
            }
        ],
        "handle": [
            {
                "handler": "reverse_proxy",
                "transport": {"protocol": "http"},
                "upstreams": [{"dial": "localhost:8080"}],
            }
        ],
    }


def test_reverse_proxy_route_ipv6_backend() -> None:
    route = reverse_proxy_route(9000, ["example.com"], backend_host="::1")
    assert route.upstreams == ("[::1]:9000",)


@pytest.mark.parametrize("port", [0, 70000, "x"])
def test_reverse_proxy_route_rejects_bad_port(port: object) -> None:
    with pytest.raises(ValueError, match="backend_port"):
        reverse_proxy_route(port, ["example.com"])  # type: ignore[arg-type]


def test_route_is_immutable_and_stores_tuples() -> None:
    route = ReverseProxyRoute(hosts=["a.example"], upstreams=["localhost:1"])  # type: ignore[arg-type]
    assert route.hosts == ("a.example",)
    with pytest.raises(AttributeError):
        route.protocol = "https"  # type: ignore[misc]


def test_route_validation() -> None:
    with pytest.raises(ValueError, match="hosts"):
        ReverseProxyRoute(hosts=(), upstreams=("localhost:1",))
    with pytest.raises(ValueError, match="upstreams"):
        ReverseProxyRoute(hosts=("a.example",), upstreams=())
    with pytest.raises(TypeError):
        ReverseProxyRoute(hosts="a.example", upstreams=("localhost:1",))  # type: ignore[arg-type]


def test_identified_route_puts_id_first() -> None:
    stamped = IdentifiedRoute("example.net", reverse_proxy_route(8080, ["example.net"])).dumps()
    assert stamped.startswith('{"@id":"example.net",')
    assert list(json.loads(stamped).keys()) == ["@id", "match", "handle"]


def test_identified_route_accepts_plain_mappings() -> None:
    payload = {"handle": [{"handler": "static_response", "body": "hi"}], "@id": "stale"}
    doc = IdentifiedRoute("hello", payload).to_json()
    assert list(doc.keys()) == ["@id", "handle"]
    assert doc["@id"] == "hello"


def test_identified_route_empty_payload() -> None:
    assert IdentifiedRoute("x", {}).dumps() == '{"@id":"x"}'


def test_identified_route_rejects_unserializable_payloads() -> None:
    with pytest.raises(TypeError):
        IdentifiedRoute("x", {"handle": object()}).dumps()
    with pytest.raises(ValueError):
        IdentifiedRoute("x", {"weight": float("nan")}).dumps()
