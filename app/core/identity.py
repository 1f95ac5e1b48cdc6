"""Caller identity forwarded by the upstream session layer.

Authentication happens in front of this service. The session layer forwards
the resolved user as trusted headers; this module only parses them and
enforces role allow-lists, failing closed before any query runs.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from fastapi import Depends, Header

from app.core.config import Settings
from app.core.database import get_app_settings
from app.core.exceptions import ForbiddenError, UnauthorizedError
from app.core.logging import get_logger

logger = get_logger(__name__)


class Role(str, Enum):
    """Portal roles."""

    ADMIN = "admin"
    MANAGER = "manager"
    VENDOR = "vendor"
    TAILOR = "tailor"


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as supplied by the session layer.

    Attributes:
        user_id: User identifier.
        role: Portal role.
        tenant_id: Tenant the user belongs to.
        vendor_id: Own vendor id (vendor role only).
        tailor_id: Own tailor id (tailor role only).
    """

    user_id: str
    role: Role
    tenant_id: str | None = None
    vendor_id: int | None = None
    tailor_id: int | None = None

    @property
    def is_staff(self) -> bool:
        """Admins and managers see tenant-wide data."""
        return self.role in (Role.ADMIN, Role.MANAGER)

    def require_tenant(self) -> str:
        """Return the tenant id or refuse the request."""
        if not self.tenant_id:
            raise ForbiddenError("No tenant associated with this user")
        return self.tenant_id


def _parse_int(value: str | None, header: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError as e:
        raise UnauthorizedError(f"Malformed {header} header") from e


async def get_principal(
    x_user_id: str | None = Header(None),
    x_user_role: str | None = Header(None),
    x_tenant_id: str | None = Header(None),
    x_vendor_id: str | None = Header(None),
    x_tailor_id: str | None = Header(None),
) -> Principal:
    """Build the caller from forwarded identity headers.

    Raises:
        UnauthorizedError: If the user id or role is missing or unknown.
    """
    if not x_user_id or not x_user_role:
        raise UnauthorizedError("Missing session")
    try:
        role = Role(x_user_role.lower())
    except ValueError as e:
        raise UnauthorizedError(f"Unknown role '{x_user_role}'") from e

    return Principal(
        user_id=x_user_id,
        role=role,
        tenant_id=x_tenant_id or None,
        vendor_id=_parse_int(x_vendor_id, "X-Vendor-Id"),
        tailor_id=_parse_int(x_tailor_id, "X-Tailor-Id"),
    )


def require_roles(*roles: Role) -> Callable[..., Principal]:
    """Dependency factory restricting an endpoint to the given roles."""
    allowed = frozenset(roles)

    async def dependency(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in allowed:
            logger.warning(
                "identity.role_rejected",
                user_id=principal.user_id,
                role=principal.role.value,
                allowed=sorted(r.value for r in allowed),
            )
            raise ForbiddenError(f"Role '{principal.role.value}' may not perform this action")
        return principal

    return dependency


async def verify_cron_secret(
    authorization: str | None = Header(None),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Check the bearer shared secret used by the scheduler.

    An unset secret rejects every call rather than allowing all of them.
    """
    secret = settings.cron_secret
    expected = f"Bearer {secret}"
    if not secret or authorization is None or not secrets.compare_digest(
        authorization.encode(), expected.encode()
    ):
        raise UnauthorizedError("Invalid cron credentials")
