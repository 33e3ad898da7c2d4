"""Tenant resolution middleware.

Runs before any authentication logic and stores a ``TenantContext`` on
``request.state.tenant``:

- ``/api/platform/*`` gets platform scope
- ``/api/org/*`` is bound to the organization named by the first label of
  the Host header; unknown or inactive organizations get a 404
- every other path gets an empty (legacy) context
"""

import logging

from fastapi import Request, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse
from starlette.types import ASGIApp

from roomkey.core import async_session_maker, settings
from roomkey.services.directory import MembershipDirectory
from roomkey.services.tenancy import TenantContext

logger = logging.getLogger(__name__)

PLATFORM_PREFIX = "/api/platform"
ORG_PREFIX = "/api/org"


def _under(path: str, prefix: str) -> bool:
    """Segment-boundary prefix match, case-insensitive."""
    path = path.lower()
    return path == prefix or path.startswith(prefix + "/")


def extract_subdomain(host: str | None, base_domain: str = "") -> str | None:
    """Return the tenant slug encoded in ``host``.

    Without a base domain the first label of any multi-label host is used.
    With one, the host must be exactly ``<slug>.<base_domain>``.
    """
    if not host:
        return None
    host = host.strip().rstrip(".").lower()
    if base_domain:
        suffix = "." + base_domain
        if not host.endswith(suffix):
            return None
        slug = host[: -len(suffix)]
        return slug if slug and "." not in slug else None

    parts = [p for p in host.split(".") if p]
    if len(parts) < 2:
        return None
    return parts[0]


def tenant_not_found() -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"detail": "Tenant not found", "code": "TenantNotFound"},
    )


class TenantResolutionMiddleware(BaseHTTPMiddleware):
    """Resolve the tenant scope of each request."""

    def __init__(
        self,
        app: ASGIApp,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        base_domain: str | None = None,
    ):
        super().__init__(app)
        self._session_factory = session_factory
        self._base_domain = settings.tenant_base_domain if base_domain is None else base_domain

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path

        if _under(path, PLATFORM_PREFIX):
            request.state.tenant = TenantContext.platform()
            return await call_next(request)

        if _under(path, ORG_PREFIX):
            slug = extract_subdomain(request.url.hostname, self._base_domain)
            if not slug:
                logger.debug(f"No tenant subdomain for {request.method} {path}")
                return tenant_not_found()

            session_factory = self._session_factory or async_session_maker
            async with session_factory() as db:
                org = await MembershipDirectory(db).get_organization_by_slug(slug)

            if org is None or not org.is_active:
                logger.info(f"Tenant not found or inactive: {slug}")
                return tenant_not_found()

            request.state.tenant = TenantContext.for_organization(org.id)
            return await call_next(request)

        request.state.tenant = TenantContext()
        return await call_next(request)
