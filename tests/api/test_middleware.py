"""Tests for RequestIDMiddleware and TenantContextMiddleware."""

import pytest
from uuid import UUID, uuid4
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.testclient import TestClient

from api.middleware import RequestIDMiddleware, TenantContextMiddleware, get_tenant_context


@pytest.fixture
def app():
    """Minimal FastAPI app with both middlewares in production order."""
    app = FastAPI()
    app.add_middleware(TenantContextMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/test")
    async def test_endpoint(request: Request):
        ctx = get_tenant_context(request)
        return JSONResponse({
            "request_id": request.state.request_id,
            "tenant_id": str(ctx.tenant_id),
            "user_id": str(ctx.user_id) if ctx.user_id else None,
        })

    @app.get("/health")
    async def health():
        return JSONResponse({"status": "ok"})

    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def tenant_headers(tenant):
    return {"X-Tenant-ID": str(tenant.tenant_id)}


class TestRequestIDMiddleware:
    """Tests for RequestIDMiddleware."""

    def test_response_has_request_id_header(self, client, tenant_headers):
        """Response includes X-Request-ID header."""
        response = client.get("/test", headers=tenant_headers)

        assert "X-Request-ID" in response.headers
        # Should be a valid UUID
        UUID(response.headers["X-Request-ID"])

    def test_request_state_has_request_id(self, client, tenant_headers):
        """request.state.request_id is set and matches header."""
        response = client.get("/test", headers=tenant_headers)

        header_id = response.headers["X-Request-ID"]
        body_id = response.json()["request_id"]
        assert header_id == body_id

    def test_each_request_gets_unique_id(self, client, tenant_headers):
        """Different requests get different IDs."""
        r1 = client.get("/test", headers=tenant_headers)
        r2 = client.get("/test", headers=tenant_headers)

        assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]


class TestTenantContextMiddleware:
    """Tests for TenantContextMiddleware."""

    def test_builds_context_from_headers(self, client, tenant):
        response = client.get("/test", headers={
            "X-Tenant-ID": str(tenant.tenant_id),
            "X-User-ID": str(tenant.user_id),
        })

        assert response.status_code == 200
        assert response.json()["tenant_id"] == str(tenant.tenant_id)
        assert response.json()["user_id"] == str(tenant.user_id)

    def test_user_is_optional(self, client, tenant_headers):
        response = client.get("/test", headers=tenant_headers)

        assert response.status_code == 200
        assert response.json()["user_id"] is None

    def test_invalid_user_id_is_ignored(self, client, tenant_headers):
        response = client.get("/test", headers={**tenant_headers, "X-User-ID": "not-a-uuid"})

        assert response.status_code == 200
        assert response.json()["user_id"] is None

    def test_missing_tenant_returns_401(self, client):
        response = client.get("/test")

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "NOT_AUTHENTICATED"

    def test_invalid_tenant_returns_401(self, client):
        response = client.get("/test", headers={"X-Tenant-ID": "tenant-a"})

        assert response.status_code == 401

    def test_rejection_carries_request_id(self, client):
        response = client.get("/test")

        assert response.json()["meta"]["request_id"] == response.headers["X-Request-ID"]

    def test_public_path_needs_no_tenant(self, client):
        response = client.get("/health")

        assert response.status_code == 200

    def test_any_valid_uuid_is_accepted(self, client):
        tenant_id = uuid4()

        response = client.get("/test", headers={"X-Tenant-ID": str(tenant_id)})

        assert response.json()["tenant_id"] == str(tenant_id)
