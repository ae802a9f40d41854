from dataclasses import dataclass, field

from fastapi import Depends, HTTPException, Request

from app.core.config import settings


@dataclass(frozen=True)
class AdminPolicy:
    """Who may use the admin API. Supplied from configuration, never hardcoded."""

    allowed: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_settings(cls) -> "AdminPolicy":
        return cls(frozenset(e.strip().lower() for e in settings.admin_emails if e.strip()))

    def permits(self, identity: str) -> bool:
        return identity.strip().lower() in self.allowed


def get_admin_policy() -> AdminPolicy:
    return AdminPolicy.from_settings()


def require_admin(request: Request, policy: AdminPolicy = Depends(get_admin_policy)) -> str:
    # Session handling happens upstream; we only see the authenticated identity
    identity = request.headers.get(settings.auth_header)
    if not identity:
        raise HTTPException(401, "Unauthorized")
    if not policy.permits(identity):
        raise HTTPException(403, "Forbidden")
    return identity
