"""Material schemas."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class MaterialRead(BaseModel):
    """Material reference embedded in class details."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    original_filename: str
    file_url: str
    mime_type: str
