import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.auth.base import InvalidToken

logger = logging.getLogger("tripsplit")

SKIP_LOG_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


class AuthMiddleware(BaseHTTPMiddleware):
    """Verifies the bearer token, if any, and exposes the identity to routes.

    A missing or invalid token leaves ``request.state.identity`` as None;
    routes that need a user reject the request themselves.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.identity = None

        # Skip token processing for CORS preflight requests
        if request.method != "OPTIONS":
            token = _bearer_token(request)
            if token:
                verifier = request.app.state.token_verifier
                try:
                    request.state.identity = verifier.verify(token)
                except InvalidToken as e:
                    logger.info("Rejected auth token", extra={"extra_data": {"reason": str(e)}})

        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status code, duration, and user id for each request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = round((time.time() - start) * 1000)

        path = request.url.path
        if path in SKIP_LOG_PATHS:
            return response

        identity = getattr(request.state, "identity", None)
        logger.info(
            f"{request.method} {path} {response.status_code}",
            extra={"extra_data": {
                "method": request.method,
                "path": path,
                "status": response.status_code,
                "duration_ms": duration_ms,
                "uid": identity.uid if identity else None,
            }},
        )
        return response
