"""
Tariff configuration repository.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..base import utc_now
from ..entities.tarifas import EstadoTarifa, TarifaConfig
from .base import BaseRepository


class TarifaConfigRepository(BaseRepository[TarifaConfig]):
    """Repository for tariff configurations."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, TarifaConfig)

    async def list_flagged_active(self) -> List[TarifaConfig]:
        """Every row with ``activa = True``, most recent validity first."""
        stmt = (
            select(TarifaConfig)
            .where(TarifaConfig.activa == True)  # noqa: E712
            .order_by(TarifaConfig.fecha_vigencia.desc(), TarifaConfig.id.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def pause_others(self, keep_id: Optional[int]) -> int:
        """Pause every active tariff except ``keep_id``; the caller commits."""
        now = utc_now()
        stmt = (
            update(TarifaConfig)
            .where(TarifaConfig.activa == True)  # noqa: E712
            .values(activa=False, estado=EstadoTarifa.PAUSADA.value, fecha_pausa=now, updated_at=now)
            .execution_options(synchronize_session="fetch")
        )
        if keep_id is not None:
            stmt = stmt.where(TarifaConfig.id != keep_id)
        result = await self.session.execute(stmt)
        return result.rowcount or 0
