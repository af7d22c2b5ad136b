from __future__ import annotations

"""API key resolution and per-route access guards.

Keys come from ``CONTEXT_API_KEY_MAP`` (key to role) or ``CONTEXT_API_KEYS``
(every key is an admin). With neither configured the service is closed unless
``CONTEXT_ALLOW_ANONYMOUS`` is set.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable

from fastapi import HTTPException, Request, status

from context_engine.app.settings import settings

logger = logging.getLogger(__name__)

ANONYMOUS_ROLE = "admin"
PLAIN_KEY_ROLE = "admin"
READ_ROLES = frozenset({"reader", "writer", "admin"})
WRITE_ROLES = frozenset({"writer", "admin"})


@dataclass(frozen=True)
class AuthContext:
    """Caller identity attached to a request."""
    api_key: str | None
    role: str

    def can(self, roles: Iterable[str]) -> bool:
        return self.role in roles


def resolve_role(api_key: str | None) -> str | None:
    """Role granted to a presented key, or None when the key is rejected."""
    key_map = settings.api_key_map
    plain_keys = settings.api_keys
    if not key_map and not plain_keys:
        return ANONYMOUS_ROLE if settings.allow_anonymous else None
    if not api_key:
        return None
    if key_map:
        role = key_map.get(api_key)
        return role.strip().lower() if role and role.strip() else None
    return PLAIN_KEY_ROLE if api_key in plain_keys else None


def presented_key(request: Request) -> str | None:
    """Key from ``X-API-Key`` or an ``Authorization: Bearer`` header."""
    header_key = (request.headers.get("x-api-key") or "").strip()
    if header_key:
        return header_key
    scheme, _, token = (request.headers.get("authorization") or "").strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip() or " " in token.strip():
        return None
    return token.strip()


def authenticate(request: Request) -> AuthContext:
    """Resolve the caller, raising 401 when no role can be granted."""
    api_key = presented_key(request)
    role = resolve_role(api_key)
    if role is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return AuthContext(api_key=api_key, role=role)


def require_access(roles: Iterable[str]) -> Callable[[Request], Awaitable[AuthContext]]:
    """Build a dependency admitting only callers holding one of ``roles``."""
    allowed = frozenset(roles)

    async def guard(request: Request) -> AuthContext:
        auth = authenticate(request)
        if not auth.can(allowed):
            logger.info(
                "access_denied",
                extra={"role": auth.role, "path": request.url.path, "method": request.method},
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return auth

    return guard


require_read = require_access(READ_ROLES)
require_write = require_access(WRITE_ROLES)
