# backend/franchise_booking/api/dependencies/auth.py
"""
Caller identity dependency.

Authentication happens upstream (API gateway); it forwards the verified
caller as ``X-User-Id`` and ``X-User-Role`` headers. This module only
turns those headers into a ``CallerIdentity``.
"""

import logging
from typing import Optional

from fastapi import Header

from ...core.enums import RoleName
from ...core.exceptions import UnauthorizedException
from ...principal import CallerIdentity

logger = logging.getLogger(__name__)


def get_current_caller(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> CallerIdentity:
    """
    Resolve the authenticated caller.

    Raises:
        HTTPException: 401 if either header is missing or the role is unknown
    """
    user_id = (x_user_id or "").strip()
    role_value = (x_user_role or "").strip().lower()
    if not user_id or not role_value:
        raise UnauthorizedException("Authentication required").to_http_exception()

    try:
        role = RoleName(role_value)
    except ValueError:
        logger.warning(f"Rejected request with unknown role {role_value!r}")
        raise UnauthorizedException(
            "Unknown caller role", details={"role": role_value}
        ).to_http_exception()

    return CallerIdentity(id=user_id, role=role)
