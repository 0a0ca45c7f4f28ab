"""FastAPI application factory and error envelopes.

Every response, including failures, is a JSON envelope with ``success``.
Handshake errors map to their own status codes; anything unexpected is
logged and returned as a bare ``500 {success: false}``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from consignproxy import __version__
from consignproxy.api.routes import router
from consignproxy.core.errors import ProxyError
from consignproxy.core.handshake import HandshakeService
from consignproxy.models.responses import ErrorEnvelope

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str | None = None) -> JSONResponse:
    envelope = ErrorEnvelope(error=message)
    return JSONResponse(
        content=envelope.model_dump(exclude_none=True), status_code=status_code
    )


# --- Error Handling ---

async def _proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    if exc.status_code >= 500:
        return error_response(exc.status_code)
    return error_response(exc.status_code, exc.message)


async def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.debug("Invalid request to %s: %s", request.url.path, exc.errors())
    return error_response(400, "Invalid request!")


async def _http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else None
    return error_response(exc.status_code, message)


async def _catch_unhandled(request: Request, call_next) -> Response:
    # Handled here rather than as an Exception handler: Starlette re-raises
    # after running those, and the server would log the error again.
    try:
        return await call_next(request)
    except Exception:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500)


def register_error_handlers(target_app: FastAPI) -> None:
    target_app.add_exception_handler(ProxyError, _proxy_error_handler)
    target_app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    target_app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    target_app.middleware("http")(_catch_unhandled)


# --- App Factory ---

def create_app(service: HandshakeService) -> FastAPI:
    """Build the HTTP app around an already-wired HandshakeService."""
    app = FastAPI(title="Consignment Proxy", version=__version__)
    app.state.service = service

    register_error_handlers(app)
    app.include_router(router)
    return app
