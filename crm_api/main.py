"""
FastAPI application entrypoint for the CRM integration backend.
"""

from __future__ import annotations

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from crm_api.api.routes import error_response, router as api_router
from crm_api.core.config import get_settings
from crm_api.core.errors import CalendarAuthError, InvalidRequestError
from crm_api.core.logging import configure_logging
from crm_api.schemas import ErrorResponse

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,OPTIONS,PATCH,DELETE,POST,PUT",
    "Access-Control-Allow-Headers": (
        "X-CSRF-Token, X-Requested-With, Accept, Accept-Version, Content-Length, "
        "Content-MD5, Content-Type, Date, X-Api-Version"
    ),
}


async def _cors(request: Request, call_next) -> Response:
    """Allow every origin; answer preflights with an empty 200."""
    if request.method == "OPTIONS":
        response: Response = Response(status_code=200)
    else:
        response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


async def _handle_calendar_auth_error(request: Request, exc: CalendarAuthError) -> JSONResponse:
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return error_response(exc)


async def _handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return error_response(InvalidRequestError(str(exc.errors())))


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    # Runs in the outermost middleware, outside _cors, so the CORS headers are
    # added here.
    logger.exception("%s %s failed unexpectedly", request.method, request.url.path)
    body = ErrorResponse(error="Authentication failed", code="internal_error", details=str(exc))
    return JSONResponse(
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        content=body.to_content(),
        headers=CORS_HEADERS,
    )


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Inmuebles CRM Integrations API",
        version="0.1.0",
        description="Google Calendar credential lifecycle and Drive upload proxy.",
    )
    app.middleware("http")(_cors)
    app.add_exception_handler(CalendarAuthError, _handle_calendar_auth_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
