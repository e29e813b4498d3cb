"""Material repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import storage_operation
from app.modules.materials.models import Material


class MaterialsRepository:
    """Read-only DB access to class materials."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @storage_operation("load material")
    async def get_material_by_id(self, material_id: UUID) -> Material | None:
        stmt = select(Material).where(Material.id == material_id)
        return await self.session.scalar(stmt)
