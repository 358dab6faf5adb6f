from __future__ import annotations

from .configmanager import ConfigManager
from .models.canonical import CanonicalRoute, RouteDecodeError

logger = ConfigManager.get_logger(__name__)


def routes_equal(cfg0: str, cfg1: str) -> bool:
    """Compare two route documents, ignoring key order and whitespace.

    Documents that fail to decode are never equal, so a broken or unexpected
    payload leads to a replace rather than a skip.
    """
    if cfg0 == cfg1:
        # Rare: Caddy re-serializes routes differently from how they were posted.
        return True
    try:
        a = CanonicalRoute.loads(cfg0)
        b = CanonicalRoute.loads(cfg1)
    except RouteDecodeError as e:
        logger.debug("Route documents not comparable: %s", e)
        return False
    return a == b
