"""
HTTP middleware of the ledger API

Every ledger route (accounts, finance, pricing, invoices) acts on behalf of
exactly one dental laboratory. Authentication lives in front of this service
and forwards the laboratory as the X-Organization-ID header; the middleware
turns it into ``request.state.organization_id``, which the ``OrganizationId``
dependency hands to the services.
"""
from fastapi import Request, status
from fastapi.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware
from uuid import UUID
import logging

logger = logging.getLogger(__name__)


class OrganizationMiddleware(BaseHTTPMiddleware):
    """
    Resolves the laboratory a request is scoped to.

    Missing or malformed headers are answered with 400 before any session is
    opened. Docs and the health check are exempt. The resolved id is echoed
    back in the X-Organization-ID response header.
    """

    # Paths that don't require organization context
    EXEMPT_PATHS = [
        "/docs",
        "/redoc",
        "/openapi.json",
        "/health",
    ]

    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/" or any(request.url.path.startswith(path) for path in self.EXEMPT_PATHS):
            return await call_next(request)

        # CORS preflight
        if request.method == "OPTIONS":
            return await call_next(request)

        org_header = request.headers.get("X-Organization-ID")

        if not org_header:
            return Response(
                content='{"detail":"Missing X-Organization-ID header"}',
                status_code=status.HTTP_400_BAD_REQUEST,
                media_type="application/json"
            )

        try:
            organization_id = UUID(org_header)
        except ValueError:
            return Response(
                content='{"detail":"Invalid X-Organization-ID format. Must be a valid UUID"}',
                status_code=status.HTTP_400_BAD_REQUEST,
                media_type="application/json"
            )

        request.state.organization_id = organization_id
        logger.debug(f"Request to {request.url.path} with organization_id: {organization_id}")

        response = await call_next(request)
        response.headers["X-Organization-ID"] = str(organization_id)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds browser hardening headers to every response, including the
    exempt docs and health routes
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response
