"""
FastAPI routes for the calendar authorization endpoint and the Drive proxy.
"""

from __future__ import annotations

import json
import logging
from http import HTTPStatus
from typing import Annotated, Any, Awaitable, Callable

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import JSONResponse

from crm_api.core.config import AppSettings
from crm_api.core.errors import CalendarAuthError, ConfigurationError, InvalidRequestError
from crm_api.dependencies import (
    SettingsDependency,
    get_calendar_auth_service,
    get_drive_client,
)
from crm_api.models.credentials import IssuedAccessToken
from crm_api.schemas import (
    DriveUploadResponse,
    ErrorResponse,
    ExchangeCodeRequest,
    RefreshTokenRequest,
    SignOutRequest,
    SignOutResponse,
    TokenResponse,
    parse_calendar_auth_request,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def error_response(exc: CalendarAuthError) -> JSONResponse:
    """Render a taxonomy error as the endpoint's JSON failure body."""
    body = ErrorResponse(error=exc.public_message, code=exc.code, details=exc.details)
    return JSONResponse(status_code=int(exc.status_code), content=body.to_content())


async def _guarded(
    operation: str, call: Callable[[], Awaitable[Any]]
) -> tuple[Any, JSONResponse | None]:
    # The browser side always parses JSON, so nothing may escape as a bare 500.
    try:
        return await call(), None
    except CalendarAuthError as exc:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log("%s failed: %s (%s)", operation, exc.public_message, exc)
        return None, error_response(exc)
    except Exception as exc:
        logger.exception("Unexpected error during %s", operation)
        body = ErrorResponse(
            error="Authentication failed", code="internal_error", details=str(exc)
        )
        return None, JSONResponse(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR, content=body.to_content()
        )


def _token_response(issued: IssuedAccessToken) -> JSONResponse:
    body = TokenResponse(access_token=issued.access_token, expiry_date=issued.expiry_date)
    return JSONResponse(content=body.model_dump())


async def _exchange(service: Any, payload: ExchangeCodeRequest) -> JSONResponse:
    issued, failure = await _guarded(
        "exchange_code",
        lambda: service.exchange_code(code=payload.code, uid=payload.uid),
    )
    if failure is not None:
        return failure
    return _token_response(issued)


async def _refresh(service: Any, payload: RefreshTokenRequest) -> JSONResponse:
    issued, failure = await _guarded(
        "refresh_access_token", lambda: service.refresh_token(uid=payload.uid)
    )
    if failure is not None:
        return failure
    return _token_response(issued)


async def _sign_out(service: Any, payload: SignOutRequest) -> JSONResponse:
    _, failure = await _guarded(
        "sign_out", lambda: service.sign_out(uid=payload.uid, revoke=payload.revoke)
    )
    if failure is not None:
        return failure
    return JSONResponse(content=SignOutResponse().model_dump())


_DISPATCH = {
    ExchangeCodeRequest: _exchange,
    RefreshTokenRequest: _refresh,
    SignOutRequest: _sign_out,
}


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(settings: AppSettings = SettingsDependency) -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok", "environment": settings.environment}


@router.post("/calendar-auth")
async def calendar_auth(
    request: Request,
    service: Annotated[Any, Depends(get_calendar_auth_service)],
) -> JSONResponse:
    """Single entry point for all token operations.

    Accepts ``{"operation": ...}`` bodies as well as the older
    ``{code, uid}`` / ``{uid}`` shapes.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return error_response(InvalidRequestError("Request body is not valid JSON."))

    try:
        payload = parse_calendar_auth_request(body)
    except InvalidRequestError as exc:
        return error_response(exc)

    logger.info(
        "Calendar auth request: operation=%s uid=%s", payload.operation, payload.uid
    )
    return await _DISPATCH[type(payload)](service, payload)


@router.post("/calendar-auth/exchange")
async def calendar_auth_exchange(
    payload: ExchangeCodeRequest,
    service: Annotated[Any, Depends(get_calendar_auth_service)],
) -> JSONResponse:
    return await _exchange(service, payload)


@router.post("/calendar-auth/refresh")
async def calendar_auth_refresh(
    payload: RefreshTokenRequest,
    service: Annotated[Any, Depends(get_calendar_auth_service)],
) -> JSONResponse:
    return await _refresh(service, payload)


@router.post("/calendar-auth/sign-out")
async def calendar_auth_sign_out(
    payload: SignOutRequest,
    service: Annotated[Any, Depends(get_calendar_auth_service)],
) -> JSONResponse:
    return await _sign_out(service, payload)


@router.post("/upload-to-drive")
async def upload_to_drive(
    drive_client: Annotated[Any, Depends(get_drive_client)],
    file: UploadFile | None = File(default=None),
) -> JSONResponse:
    """Proxy a multipart upload into the shared Drive folder."""
    try:
        drive_client.ensure_configured()
    except ConfigurationError as exc:
        logger.error("Drive upload rejected: %s", exc)
        return JSONResponse(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            content={"error": "Server configuration error: Missing Google Credentials"},
        )

    if file is None:
        return JSONResponse(
            status_code=HTTPStatus.BAD_REQUEST, content={"error": "No file uploaded"}
        )

    try:
        content = await file.read()
        created = await drive_client.upload_bytes(
            file_name=file.filename or "uploaded_file",
            content=content,
            mime_type=file.content_type or "application/octet-stream",
        )
    except Exception as exc:
        logger.exception("Google Drive upload failed")
        return JSONResponse(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            content={"error": "Upload failed", "details": str(exc)},
        )

    result = DriveUploadResponse(
        file_id=created["id"],
        name=created.get("name") or file.filename or "uploaded_file",
        web_view_link=created.get("webViewLink"),
    )
    return JSONResponse(content=result.model_dump(by_alias=True))


__all__ = ["error_response", "router"]
