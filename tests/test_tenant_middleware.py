"""Tests for tenant resolution."""

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from roomkey.middleware.tenant import TenantResolutionMiddleware, extract_subdomain


class TestExtractSubdomain:
    """Tests for subdomain extraction from the Host header."""

    @pytest.mark.parametrize(
        "host,expected",
        [
            ("acme.example.com", "acme"),
            ("ACME.Example.com", "acme"),
            ("acme.localhost", "acme"),
            ("acme.example.com.", "acme"),
            ("localhost", None),
            ("", None),
            (None, None),
        ],
    )
    def test_without_base_domain(self, host, expected):
        assert extract_subdomain(host) == expected

    @pytest.mark.parametrize(
        "host,expected",
        [
            ("acme.rooms.example.com", "acme"),
            ("rooms.example.com", None),
            ("a.b.rooms.example.com", None),
            ("acme.other.com", None),
        ],
    )
    def test_with_base_domain(self, host, expected):
        assert extract_subdomain(host, "rooms.example.com") == expected


@pytest.fixture
def probe_app(session_factory) -> FastAPI:
    """Minimal app that echoes the resolved tenant."""
    app = FastAPI()
    app.add_middleware(TenantResolutionMiddleware, session_factory=session_factory, base_domain="")

    @app.get("/{path:path}")
    async def echo(path: str, request: Request):
        tenant = request.state.tenant
        return {
            "organization_id": str(tenant.organization_id) if tenant.organization_id else None,
            "is_platform_scope": tenant.is_platform_scope,
        }

    return app


async def probe(app: FastAPI, url: str):
    async with AsyncClient(transport=ASGITransport(app=app)) as client:
        return await client.get(url)


class TestTenantResolutionMiddleware:
    """Tests for the middleware against a real organization table."""

    @pytest.mark.asyncio
    async def test_platform_paths(self, probe_app):
        response = await probe(probe_app, "http://acme.example.com/api/platform/auth/me")
        assert response.status_code == 200
        assert response.json() == {"organization_id": None, "is_platform_scope": True}

    @pytest.mark.asyncio
    async def test_org_path_resolves_subdomain(self, probe_app, organization_factory):
        org = await organization_factory("acme")
        response = await probe(probe_app, "http://acme.example.com/api/org/auth/me")
        assert response.status_code == 200
        assert response.json() == {"organization_id": str(org.id), "is_platform_scope": False}

    @pytest.mark.asyncio
    async def test_unknown_tenant_is_404(self, probe_app):
        response = await probe(probe_app, "http://nope.example.com/api/org/auth/me")
        assert response.status_code == 404
        assert response.json() == {"detail": "Tenant not found", "code": "TenantNotFound"}

    @pytest.mark.asyncio
    async def test_inactive_tenant_is_404(self, probe_app, organization_factory):
        await organization_factory("acme", is_active=False)
        response = await probe(probe_app, "http://acme.example.com/api/org/auth/me")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_org_path_without_subdomain_is_404(self, probe_app):
        response = await probe(probe_app, "http://localhost/api/org/auth/me")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_legacy_paths_get_empty_context(self, probe_app, organization_factory):
        await organization_factory("acme")
        response = await probe(probe_app, "http://acme.example.com/api/auth/me")
        assert response.status_code == 200
        assert response.json() == {"organization_id": None, "is_platform_scope": False}

    @pytest.mark.asyncio
    async def test_prefix_match_respects_segments(self, probe_app):
        response = await probe(probe_app, "http://localhost/api/organizations")
        assert response.status_code == 200
        assert response.json()["organization_id"] is None
