import logging

from typing import Optional

import jwt

from fastapi import HTTPException
from pydantic import BaseModel

from imagegen.core.conf import settings

logger = logging.getLogger(__name__)


class TokenPayload(BaseModel):
    """Claims we rely on from an end-user access token"""

    user_id: str
    email: Optional[str] = None
    role: Optional[str] = None


def get_token(authorization: Optional[str]) -> str:
    """
    Extract the bearer token from an Authorization header value

    :param authorization: raw header value
    :return:
    """
    if not authorization:
        raise HTTPException(status_code=401, detail='Missing authorization header')
    scheme, _, token = authorization.partition(' ')
    if scheme.lower() != 'bearer' or not token:
        raise HTTPException(status_code=401, detail='Invalid authorization header')
    return token.strip()


def jwt_decode(token: str) -> TokenPayload:
    """
    Verify and decode an access token issued by the auth provider

    :param token: encoded JWT
    :return:
    """
    if not settings.TOKEN_SECRET_KEY:
        logger.error('[AUTH] TOKEN_SECRET_KEY not configured')
        raise HTTPException(status_code=401, detail='Auth not configured')

    try:
        payload = jwt.decode(
            token,
            settings.TOKEN_SECRET_KEY,
            algorithms=[settings.TOKEN_ALGORITHM],
            audience=settings.TOKEN_AUDIENCE,
            options={'verify_aud': settings.TOKEN_AUDIENCE is not None},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='Token expired')
    except jwt.InvalidTokenError as e:
        logger.warning(f'[AUTH] Invalid token: {e}')
        raise HTTPException(status_code=401, detail='Invalid token')

    user_id = payload.get('sub') or payload.get('user_id')
    if not user_id:
        raise HTTPException(status_code=401, detail='Invalid token')

    return TokenPayload(user_id=str(user_id), email=payload.get('email'), role=payload.get('role'))
