"""
Endpoint Dependencies

Shared dependencies for billing API endpoints.
"""

import logging
from typing import Optional

from fastapi import Depends, Header

from imagegen.common.security.jwt import TokenPayload, get_token, jwt_decode

logger = logging.getLogger(__name__)


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> TokenPayload:
    """
    Verify the bearer token and return its claims.

    This is a dependency that can be overridden in tests.
    """
    token = get_token(authorization)
    user = jwt_decode(token)
    logger.debug(f"[AUTH] Authenticated {user.user_id}")
    return user


async def get_current_user_id(user: TokenPayload = Depends(get_current_user)) -> str:
    """Authenticated user id."""
    return user.user_id
