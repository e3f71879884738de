"""
Laundry Service — JWT Authentication Middleware
Validates Bearer token on all protected routes; returns 401 on failure.

Claims only establish identity. Role and active flag are re-read from the
database by the `require_role` dependency on every request.
"""
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware

from laundry.core.security import decode_token

# Paths that do NOT require authentication
PUBLIC_PATHS = {
    "/",
    "/health",
    "/metrics",
    "/docs",
    "/openapi.json",
    "/auth/login",
    "/auth/register",
    "/auth/refresh",
    "/pricing/catalog",
    "/pricing/quote",
    "/access/check",
}
PUBLIC_PREFIXES = ("/metrics", "/auth/invitations/")

# EventSource cannot set headers, so the stream may carry its token in the query.
QUERY_TOKEN_PATHS = {"/notifications/stream"}


def _unauthorized(detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"detail": detail, "code": "unauthenticated", "redirect_to": "/login"},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _bearer(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1]
    if request.url.path in QUERY_TOKEN_PATHS:
        return request.query_params.get("token")
    return None


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """
    Intercepts every request. Validates JWT Bearer token.
    Attaches decoded claims to request.state.user on success.
    Public paths still get request.state.user when a valid token is sent.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.user = None
        if request.method == "OPTIONS":
            return await call_next(request)

        path = request.url.path.rstrip("/") or "/"
        public = path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)
        token = _bearer(request)

        if token is None:
            if public:
                return await call_next(request)
            return _unauthorized("Missing or invalid Authorization header. Expected: Bearer <token>")

        try:
            request.state.user = decode_token(token)
        except JWTError as exc:
            if not public:
                return _unauthorized(f"Invalid or expired JWT: {exc}")

        return await call_next(request)
