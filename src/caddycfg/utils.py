from __future__ import annotations

from collections.abc import Sequence


def parse_port(value: object, *, field: str) -> int:
    if value is None:
        raise ValueError(f"Missing {field}")
    try:
        port = int(str(value).strip())
    except Exception as e:
        raise ValueError(f"Invalid {field}") from e
    if port <= 0 or port > 65535:
        raise ValueError(f"Invalid {field}")
    return port


def parse_str_list(value: str | Sequence[object] | None, *, field: str) -> tuple[str, ...]:
    """Accept a comma separated string or a list; order is kept, blanks dropped."""
    if value is None:
        raise ValueError(f"Missing {field}")
    if isinstance(value, str):
        items = tuple(s for part in value.split(",") if (s := part.strip()))
    else:
        items = tuple(s for v in value if (s := str(v).strip()))
    if not items:
        raise ValueError(f"{field} must not be empty")
    return items


def join_host_port(host: str, port: int | str) -> str:
    h = host.strip()
    if ":" in h and not h.startswith("["):
        h = f"[{h}]"
    return f"{h}:{port}"


def parse_dial(value: object, *, field: str = "upstream") -> str:
    """Validate a `host:port` dial target, e.g. `localhost:8080`."""
    raw = str(value or "").strip()
    host, sep, port_s = raw.rpartition(":")
    if not sep or not host:
        raise ValueError(f"{field} must be in format host:port, got {raw!r}")
    port = parse_port(port_s, field=f"{field} port")
    return join_host_port(host.strip("[]"), port)
