"""Google Drive client wrapper for the upload proxy."""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Any, Callable, Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.http import MediaIoBaseUpload

from crm_api.core.config import DriveSettings
from crm_api.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

DRIVE_SCOPES = ("https://www.googleapis.com/auth/drive",)


def normalize_private_key(raw_key: str) -> str:
    """Undo the quoting and ``\\n`` escaping env files apply to PEM keys."""
    key = raw_key.strip()
    if len(key) >= 2 and key[0] in "'\"" and key[-1] == key[0]:
        key = key[1:-1]
    return key.replace("\\n", "\n").strip()


class GoogleDriveClient:
    """Upload files into the brokerage's shared Drive folder."""

    def __init__(
        self,
        settings: DriveSettings,
        *,
        service_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self._settings = settings
        self._service_factory = service_factory or self._build_service

    def ensure_configured(self) -> None:
        if not self._settings.service_account_email or not self._settings.private_key:
            raise ConfigurationError("Missing Google Credentials")

    def _build_service(self) -> Any:
        self.ensure_configured()
        credentials = service_account.Credentials.from_service_account_info(
            {
                "type": "service_account",
                "client_email": self._settings.service_account_email,
                "private_key": normalize_private_key(self._settings.private_key),
                "token_uri": "https://oauth2.googleapis.com/token",
            },
            scopes=list(DRIVE_SCOPES),
        )
        return build("drive", "v3", credentials=credentials, cache_discovery=False)

    async def upload_bytes(
        self,
        *,
        file_name: str,
        content: bytes,
        mime_type: str,
    ) -> dict:
        """Upload raw bytes and return the created file's id, name and link."""

        def _execute_upload() -> dict:
            service = self._service_factory()
            file_metadata: dict = {"name": file_name}
            if self._settings.folder_id:
                file_metadata["parents"] = [self._settings.folder_id]

            media = MediaIoBaseUpload(io.BytesIO(content), mimetype=mime_type, resumable=False)
            created = (
                service.files()
                .create(
                    body=file_metadata,
                    media_body=media,
                    fields="id, name, webViewLink, webContentLink",
                )
                .execute()
            )
            logger.info("Uploaded %s to Drive as %s", file_name, created.get("id"))
            return created

        return await asyncio.to_thread(_execute_upload)


__all__ = ["DRIVE_SCOPES", "GoogleDriveClient", "normalize_private_key"]
