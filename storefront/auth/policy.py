"""Per-route access configuration.

Routes declare their gates explicitly::

    @router.get("/me", dependencies=gates(PROTECTED))

``gates`` returns the dependencies in pipeline order (rate limit, then
authentication, then role), and FastAPI resolves route dependencies in
that order before the handler's own parameters.
"""

from dataclasses import dataclass, replace
from enum import Enum

from fastapi import Depends
from fastapi.params import Depends as DependsParam

from .middleware import get_current_user, require_admin
from .rate_limit import RateLimit, require_rate_limit


class Access(str, Enum):
    PUBLIC = "public"
    PROTECTED = "protected"
    ADMIN = "admin"


@dataclass(frozen=True)
class RoutePolicy:
    access: Access = Access.PROTECTED
    rate_limit: RateLimit | None = None

    def limited(self, max_requests: int | None = None, window_seconds: int | None = None) -> "RoutePolicy":
        """Copy of this policy with a rate limit attached."""
        return replace(self, rate_limit=RateLimit(max_requests, window_seconds))


PUBLIC = RoutePolicy(Access.PUBLIC)
PROTECTED = RoutePolicy(Access.PROTECTED)
ADMIN = RoutePolicy(Access.ADMIN)


def gates(policy: RoutePolicy) -> list[DependsParam]:
    """Ordered gate dependencies for ``policy``."""
    dependencies = []
    if policy.rate_limit is not None:
        dependencies.append(Depends(require_rate_limit(policy.rate_limit)))
    if policy.access is not Access.PUBLIC:
        dependencies.append(Depends(get_current_user))
    if policy.access is Access.ADMIN:
        dependencies.append(Depends(require_admin))
    return dependencies
