"""Request-scoped middleware for API requests."""

from uuid import UUID, uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from utils.tenant_context import TenantContext

TENANT_HEADER = "X-Tenant-ID"
USER_HEADER = "X-User-ID"

# Paths that don't belong to a tenant
_PUBLIC_PATHS = {"/health", "/docs", "/openapi.json"}


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a unique request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


def _parse_uuid(value: str | None) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        return None


class TenantContextMiddleware(BaseHTTPMiddleware):
    """
    Builds the TenantContext for a request.

    Authentication happens upstream; the gateway forwards the authenticated
    tenant (and optionally the user) as headers. Requests without a valid
    tenant id never reach a service.
    """

    async def dispatch(self, request: Request, call_next):
        if request.url.path in _PUBLIC_PATHS:
            return await call_next(request)

        tenant_id = _parse_uuid(request.headers.get(TENANT_HEADER))
        if tenant_id is None:
            return JSONResponse(
                status_code=401,
                content=error_response(
                    ErrorCodes.NOT_AUTHENTICATED,
                    f"Missing or invalid {TENANT_HEADER} header",
                    request_id=getattr(request.state, "request_id", None),
                ).model_dump(mode="json"),
            )

        request.state.tenant = TenantContext(
            tenant_id=tenant_id,
            user_id=_parse_uuid(request.headers.get(USER_HEADER)),
        )
        return await call_next(request)


def get_tenant_context(request: Request) -> TenantContext:
    """TenantContext set by TenantContextMiddleware."""
    return request.state.tenant
