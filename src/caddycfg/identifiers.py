from __future__ import annotations

import json
import posixpath
import re
from urllib.parse import quote, urlsplit, urlunsplit

ID_FIELD = "@id"

# Characters kept as-is inside a single path segment; "/" and "?" are always escaped.
_PATH_SEGMENT_SAFE = "$&+:=@"


def encode_id_field(route_id: str) -> str:
    """Return `"@id":"<route_id>"` with JSON string escaping applied to the id.

    Only what JSON requires is escaped. `<`, `>`, `&`, U+2028 and U+2029 stay
    literal, where Go's encoder writes them as unicode escapes; both forms
    decode to the same id.
    """
    encoded = json.dumps({ID_FIELD: route_id}, ensure_ascii=False, separators=(",", ":"))
    return encoded[1:-1]


def encode_json_string(value: str) -> str:
    """Return `value` as a quoted, escaped JSON string literal."""
    return encode_id_field(value).removeprefix(f'"{ID_FIELD}":')


def escape_path_segment(value: str) -> str:
    return quote(value, safe=_PATH_SEGMENT_SAFE)


def _clean_path(parts: list[str]) -> str:
    joined = "/".join(p for p in parts if p)
    if not joined:
        return ""
    return posixpath.normpath(re.sub(r"/{2,}", "/", joined))


def join_url_path(url: str, *paths: str) -> str:
    """Join path segments onto `url`.

    Segments are joined as-is, so escape them first. A url that does not parse is
    joined as plain text.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return url.rstrip("/") + "/" + _clean_path(list(paths))
    path = _clean_path([parts.path, *paths])
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))
