"""
Token utilities.

Access tokens are HS256 JWTs carrying the user id and the user's
``token_version``. Bumping ``users.token_version`` revokes every token issued
before the change.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, TypedDict

import jwt

from core.config import settings

logger = logging.getLogger(__name__)


class JWTPayload(TypedDict, total=False):
    """Claims carried by an access token."""
    user_id: str
    token_version: int
    iat: int
    exp: int


def create_access_token(
    user_id: str,
    token_version: int = 0,
    expires_delta: Optional[timedelta] = None,
    secret: Optional[str] = None,
    algorithm: Optional[str] = None,
) -> str:
    """
    Issue a signed access token.

    Args:
        user_id: Subject user id
        token_version: Current ``users.token_version``
        expires_delta: Lifetime, defaults to ``ACCESS_TOKEN_EXPIRE_MINUTES``
        secret: Signing key, defaults to ``JWT_SECRET_KEY``
        algorithm: Signing algorithm, defaults to ``JWT_ALGORITHM``

    Returns:
        Encoded JWT
    """
    now = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    payload: JWTPayload = {
        "user_id": user_id,
        "token_version": token_version,
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
    }
    return jwt.encode(
        payload,
        secret or settings.jwt_secret_key,
        algorithm=algorithm or settings.jwt_algorithm,
    )


def verify_jwt_token(
    token: str,
    secret: Optional[str] = None,
    algorithm: Optional[str] = None,
) -> JWTPayload:
    """
    Verify signature and expiry of an access token.

    Raises:
        jwt.ExpiredSignatureError: If the token has expired
        jwt.InvalidTokenError: If the token is malformed or badly signed
    """
    return jwt.decode(
        token,
        secret or settings.jwt_secret_key,
        algorithms=[algorithm or settings.jwt_algorithm],
        options={"require": ["exp", "user_id"]},
    )
