"""
Tests for authentication middleware.

Tests:
- Public endpoint exemptions
- Token validation from Authorization header
- User loading, deactivation and token revocation
- Misconfigured scopes fail closed
"""

from datetime import timedelta

import pytest
from unittest.mock import Mock
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from core.config import settings
from core.middleware.authentication import (
    AuthenticationMiddleware,
    AuthenticationRequired,
    get_current_principal,
    get_current_user,
)
from core.scoping import HiringManagerPrincipal
from core.security import create_access_token
from database.models.users import UserRole


@pytest.fixture
def app(session_factory):
    """Create test FastAPI app."""
    app = FastAPI()

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    @app.post("/api/v1/applicants")
    async def apply():
        return {"status": "received"}

    @app.get("/protected")
    async def protected(request: Request):
        principal = get_current_principal(request)
        return {"user_id": principal.user_id, "role": principal.role.value}

    app.add_middleware(
        AuthenticationMiddleware,
        jwt_secret=settings.jwt_secret_key,
        jwt_algorithm=settings.jwt_algorithm,
        session_factory=session_factory,
    )
    return app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestPublicEndpoints:
    @pytest.mark.asyncio
    async def test_health_needs_no_token(self, client):
        response = await client.get("/health")

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_public_application_needs_no_token(self, client):
        response = await client.post("/api/v1/applicants")

        assert response.status_code == 200


class TestTokenValidation:
    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/protected")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "TOKEN_INVALID"

    @pytest.mark.asyncio
    async def test_malformed_header(self, client):
        response = await client.get("/protected", headers={"Authorization": "Token abc"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token(self, client, make_user):
        user = await make_user(UserRole.ADMIN)
        token = create_access_token(user.id, expires_delta=timedelta(seconds=-1))

        response = await client.get("/protected", headers=_auth(token))

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "TOKEN_EXPIRED"

    @pytest.mark.asyncio
    async def test_invalid_signature(self, client, make_user):
        user = await make_user(UserRole.ADMIN)
        token = create_access_token(user.id, secret="wrong-secret-wrong-secret-wrong-secret")

        response = await client.get("/protected", headers=_auth(token))

        assert response.status_code == 401


class TestUserLoading:
    @pytest.mark.asyncio
    async def test_valid_token_attaches_principal(self, client, make_user):
        user = await make_user(UserRole.HIRING_MANAGER, departments=["Interiors"])

        response = await client.get("/protected", headers=_auth(create_access_token(user.id)))

        assert response.status_code == 200
        assert response.json() == {"user_id": user.id, "role": "hiring_manager"}

    @pytest.mark.asyncio
    async def test_unknown_user(self, client):
        response = await client.get("/protected", headers=_auth(create_access_token("ghost")))

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "USER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_inactive_user(self, client, make_user):
        user = await make_user(UserRole.ADMIN, is_active=False)

        response = await client.get("/protected", headers=_auth(create_access_token(user.id)))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "USER_INACTIVE"

    @pytest.mark.asyncio
    async def test_stale_token_version_is_revoked(self, client, db, make_user):
        user = await make_user(UserRole.ADMIN)
        token = create_access_token(user.id, token_version=0)
        user.token_version = 1
        await db.commit()

        response = await client.get("/protected", headers=_auth(token))

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "TOKEN_INVALID"

    @pytest.mark.asyncio
    async def test_malformed_scope_fails_closed(self, client, db, make_user):
        user = await make_user(UserRole.HIRING_MANAGER)
        user.scoped_offices = "office-biloxi"
        await db.commit()

        response = await client.get("/protected", headers=_auth(create_access_token(user.id)))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "SCOPE_INVALID"


class TestRequestHelpers:
    def test_get_current_user_requires_authentication(self):
        with pytest.raises(AuthenticationRequired):
            get_current_user(Mock(scope={}))

    def test_get_current_principal(self):
        principal = HiringManagerPrincipal(user_id="m")

        assert get_current_principal(Mock(scope={"principal": principal})) is principal
