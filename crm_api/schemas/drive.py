"""Schemas for the Drive upload proxy."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class DriveUploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: Literal[True] = True
    file_id: str = Field(..., alias="fileId")
    name: str
    web_view_link: Optional[str] = Field(None, alias="webViewLink")


__all__ = ["DriveUploadResponse"]
