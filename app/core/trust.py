"""Trust tiers carried by every call into the services layer.

Row ownership is not enforced by the database here, so each service
operation states the tier it needs and asserts it on the ``Caller`` it is
handed. The API dependencies in ``app.api.deps`` are the only place a
``Caller`` is built from request credentials.
"""

import enum
from dataclasses import dataclass

from app.core.exceptions import UnauthorizedError


class TrustTier(str, enum.Enum):
    ANONYMOUS = "anonymous"
    SESSION = "session"
    SERVICE = "service"


_RANK = {
    TrustTier.ANONYMOUS: 0,
    TrustTier.SESSION: 1,
    TrustTier.SERVICE: 2,
}


@dataclass(frozen=True)
class Caller:
    tier: TrustTier
    user_id: str | None = None
    email: str | None = None

    def require(self, tier: TrustTier) -> "Caller":
        """Raise UnauthorizedError unless this caller holds at least ``tier``."""
        if _RANK[self.tier] < _RANK[tier]:
            raise UnauthorizedError(f"This operation requires {tier.value}-level trust")
        return self

    def require_identity(self) -> str:
        """Return the caller's user id, raising if the call is not bound to one."""
        if not self.user_id:
            raise UnauthorizedError("This operation requires a signed-in user")
        return self.user_id


ANONYMOUS = Caller(tier=TrustTier.ANONYMOUS)
