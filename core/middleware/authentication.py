"""
Authentication middleware for verifying user identity.

This middleware:
1. Validates JWT tokens from Authorization headers
2. Checks the token version against the user row (revocation)
3. Loads the user and decodes its scope into a principal
4. Injects both into the request scope for the route dependencies
"""

import logging
from typing import Callable, Optional
from datetime import datetime, timezone
import jwt
from fastapi import Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.engine import AsyncSessionLocal
from database.models.users import User
from core.scoping import Principal, ScopeParseError, UnknownRoleError, principal_from_user
from core.security import verify_jwt_token, JWTPayload

logger = logging.getLogger(__name__)

# Public endpoints that don't require authentication
PUBLIC_ENDPOINTS = [
    "/",
    "/health",
    "/ready",
    "/docs",
    "/redoc",
    "/openapi.json",
]

# Public (method, path) pairs, e.g. the careers page application form
PUBLIC_ROUTES = {
    ("POST", "/api/v1/applicants"),
}


class AuthenticationError(Exception):
    """Base exception for authentication errors."""
    pass


class AuthenticationRequired(AuthenticationError):
    """Raised when a protected dependency runs without an authenticated user."""
    pass


class TokenExpiredError(AuthenticationError):
    """Raised when JWT token has expired."""
    pass


class TokenInvalidError(AuthenticationError):
    """Raised when JWT token is invalid."""
    pass


class TokenRevokedError(AuthenticationError):
    """Raised when the token version no longer matches the user."""
    pass


class UserNotFoundError(AuthenticationError):
    """Raised when user is not found."""
    pass


class UserInactiveError(AuthenticationError):
    """Raised when user account is inactive."""
    pass


class AuthenticationMiddleware:
    """
    Authentication middleware that validates tokens and loads the caller.

    Attaches ``scope["user"]``, ``scope["principal"]`` and ``scope["jwt_payload"]``.
    """

    def __init__(
        self,
        app: Callable,
        jwt_secret: str,
        jwt_algorithm: str = "HS256",
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        """
        Initialize authentication middleware.

        Args:
            app: ASGI application
            jwt_secret: Secret key for JWT verification
            jwt_algorithm: JWT signing algorithm
            session_factory: Session factory used to load the user
        """
        self.app = app
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.session_factory = session_factory or AsyncSessionLocal

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)

        # Skip authentication for public endpoints
        if self._is_public_endpoint(request.method, request.url.path):
            await self.app(scope, receive, send)
            return

        try:
            token = self._extract_token(request)
            if not token:
                raise TokenInvalidError("No authentication token provided")

            try:
                payload = verify_jwt_token(token, self.jwt_secret, self.jwt_algorithm)
            except jwt.ExpiredSignatureError:
                raise TokenExpiredError("Token has expired")
            except jwt.InvalidTokenError as e:
                raise TokenInvalidError(f"Invalid token: {str(e)}")

            async with self.session_factory() as db:
                user = await self._load_user(db, payload)

            scope["user"] = user
            scope["principal"] = principal_from_user(user)
            scope["jwt_payload"] = payload

        except TokenExpiredError:
            await self._send_error_response(
                send,
                status_code=status.HTTP_401_UNAUTHORIZED,
                code="TOKEN_EXPIRED",
                message="Authentication token has expired. Please log in again.",
            )
            return
        except (TokenInvalidError, TokenRevokedError) as e:
            logger.warning(f"Rejected token: {str(e)}")
            await self._send_error_response(
                send,
                status_code=status.HTTP_401_UNAUTHORIZED,
                code="TOKEN_INVALID",
                message="Invalid authentication token.",
            )
            return
        except UserNotFoundError:
            logger.error("User not found for valid token")
            await self._send_error_response(
                send,
                status_code=status.HTTP_401_UNAUTHORIZED,
                code="USER_NOT_FOUND",
                message="User account not found.",
            )
            return
        except UserInactiveError:
            logger.warning("Inactive user attempted access")
            await self._send_error_response(
                send,
                status_code=status.HTTP_403_FORBIDDEN,
                code="USER_INACTIVE",
                message="User account is inactive. Please contact support.",
            )
            return
        except (ScopeParseError, UnknownRoleError) as e:
            # Malformed scope must never widen access
            logger.error(f"Cannot decode user scope: {str(e)}")
            await self._send_error_response(
                send,
                status_code=status.HTTP_403_FORBIDDEN,
                code="SCOPE_INVALID",
                message="User access scope is misconfigured.",
            )
            return

        await self.app(scope, receive, send)

    def _is_public_endpoint(self, method: str, path: str) -> bool:
        if path in PUBLIC_ENDPOINTS or (method, path.rstrip("/")) in PUBLIC_ROUTES:
            return True

        # Prefix match for docs
        public_prefixes = ["/docs", "/redoc", "/openapi"]
        return any(path.startswith(prefix) for prefix in public_prefixes)

    def _extract_token(self, request: Request) -> Optional[str]:
        auth_header = request.headers.get("Authorization")

        if auth_header and auth_header.startswith("Bearer "):
            return auth_header[7:]  # Remove "Bearer " prefix

        return None

    async def _load_user(self, db: AsyncSession, payload: JWTPayload) -> User:
        """
        Load the token's user and check it is still allowed in.

        Raises:
            TokenInvalidError: If the token has no user id
            UserNotFoundError: If the user doesn't exist
            UserInactiveError: If the user is inactive
            TokenRevokedError: If the token version is stale
        """
        user_id = payload.get("user_id")
        if not user_id:
            raise TokenInvalidError("Token missing user_id")

        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()

        if not user:
            raise UserNotFoundError(f"User {user_id} not found")

        if not user.is_active:
            raise UserInactiveError(f"User {user_id} is inactive")

        if payload.get("token_version", 0) != user.token_version:
            raise TokenRevokedError(f"Token version for user {user_id} is stale")

        return user

    async def _send_error_response(
        self,
        send: Callable,
        status_code: int,
        code: str,
        message: str,
    ) -> None:
        error_response = {
            "error": {
                "code": code,
                "message": message,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        }

        response = JSONResponse(
            status_code=status_code,
            content=error_response,
        )

        await response({"type": "http", "method": "GET"}, None, send)


def get_current_user(request: Request) -> User:
    """
    Get current authenticated user from request scope.

    Raises:
        AuthenticationRequired: If user not found in scope
    """
    user = request.scope.get("user")
    if not user:
        raise AuthenticationRequired("User not authenticated")
    return user


def get_current_principal(request: Request) -> Principal:
    """
    Get the decoded principal of the authenticated user.

    Raises:
        AuthenticationRequired: If no principal is attached
    """
    principal = request.scope.get("principal")
    if principal is None:
        raise AuthenticationRequired("User not authenticated")
    return principal
