from .canonical import CanonicalRoute, HandleEntry, MatchGroup, RouteDecodeError
from .route import IdentifiedRoute, ReverseProxyRoute, reverse_proxy_route

__all__ = [
    "CanonicalRoute",
    "HandleEntry",
    "IdentifiedRoute",
    "MatchGroup",
    "ReverseProxyRoute",
    "RouteDecodeError",
    "reverse_proxy_route",
]
