from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from ..identifiers import ID_FIELD

T = TypeVar("T")


class RouteDecodeError(ValueError):
    pass


def _as_str(value: object, *, field: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise RouteDecodeError(f"{field}: expected string, got {type(value).__name__}")
    return value


def _as_obj(value: object, *, field: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise RouteDecodeError(f"{field}: expected object, got {type(value).__name__}")
    return value


def _as_list(value: object, *, field: str) -> list[Any] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise RouteDecodeError(f"{field}: expected array, got {type(value).__name__}")
    return value


def _str_tuple(value: object, *, field: str) -> tuple[str, ...] | None:
    items = _as_list(value, field=field)
    if items is None:
        return None
    return tuple(_as_str(v, field=f"{field}[{i}]") for i, v in enumerate(items))


def _obj_tuple(
    value: object, *, field: str, parse: Callable[[Mapping[str, Any], str], T]
) -> tuple[T, ...] | None:
    items = _as_list(value, field=field)
    if items is None:
        return None
    out: list[T] = []
    for i, v in enumerate(items):
        where = f"{field}[{i}]"
        out.append(parse(_as_obj(v, field=where), where))
    return tuple(out)


@dataclass(frozen=True)
class MatchGroup:
    host: tuple[str, ...] | None = None
    path: tuple[str, ...] | None = None

    @classmethod
    def from_json(cls, payload: Mapping[str, Any], where: str = "match") -> MatchGroup:
        return cls(
            host=_str_tuple(payload.get("host"), field=f"{where}.host"),
            path=_str_tuple(payload.get("path"), field=f"{where}.path"),
        )


@dataclass(frozen=True)
class HandleEntry:
    handler: str = ""
    protocol: str = ""
    upstreams: tuple[str, ...] | None = None

    @classmethod
    def from_json(cls, payload: Mapping[str, Any], where: str = "handle") -> HandleEntry:
        transport = _as_obj(payload.get("transport"), field=f"{where}.transport")
        upstreams = _obj_tuple(
            payload.get("upstreams"),
            field=f"{where}.upstreams",
            parse=lambda u, w: _as_str(u.get("dial"), field=f"{w}.dial"),
        )
        return cls(
            handler=_as_str(payload.get("handler"), field=f"{where}.handler"),
            protocol=_as_str(transport.get("protocol"), field=f"{where}.transport.protocol"),
            upstreams=upstreams,
        )


@dataclass(frozen=True)
class CanonicalRoute:
    """The fields of a route document that take part in equality checks.

    Lists keep their order, and a missing list is not the same as an empty one.
    Fields outside this projection are ignored.
    """

    id: str = ""
    match: tuple[MatchGroup, ...] | None = None
    handle: tuple[HandleEntry, ...] | None = None

    @classmethod
    def from_json(cls, payload: object) -> CanonicalRoute:
        if not isinstance(payload, Mapping):
            raise RouteDecodeError(f"route: expected object, got {type(payload).__name__}")
        return cls(
            id=_as_str(payload.get(ID_FIELD), field=ID_FIELD),
            match=_obj_tuple(payload.get("match"), field="match", parse=MatchGroup.from_json),
            handle=_obj_tuple(payload.get("handle"), field="handle", parse=HandleEntry.from_json),
        )

    @classmethod
    def loads(cls, text: str) -> CanonicalRoute:
        try:
            payload = json.loads(text)
        except ValueError as e:
            raise RouteDecodeError(f"invalid JSON: {e}") from e
        return cls.from_json(payload)
