"""
Boleta repository.

Besides CRUD it provides the aggregate queries used for debt reconciliation
and the administration statistics.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..entities.boletas import Boleta, EstadoBoleta
from .base import BaseRepository, QueryBuilder


class BoletaRepository(BaseRepository[Boleta]):
    """Repository for boletas."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Boleta)

    async def get_by_numero(self, numero_boleta: str) -> Optional[Boleta]:
        result = await self.session.execute(select(Boleta).where(Boleta.numero_boleta == numero_boleta))
        return result.scalar_one_or_none()

    async def count_with_prefix(self, prefix: str) -> int:
        """Number of boletas whose number starts with ``prefix`` (``YYYYMM``)."""
        stmt = select(func.count()).select_from(Boleta).where(Boleta.numero_boleta.startswith(prefix))
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def list_for_socio(self, socio_id: int, estado: Optional[str] = None) -> List[Boleta]:
        stmt = select(Boleta).where(Boleta.socio_id == socio_id)
        if estado:
            stmt = stmt.where(Boleta.estado == estado)
        stmt = stmt.order_by(Boleta.fecha_emision.desc(), Boleta.id.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    def _filtered(self, stmt, estado: Optional[str], socio_id: Optional[int], periodo: Optional[str]):
        stmt = QueryBuilder.apply_filters(stmt, Boleta, {"estado": estado, "socio_id": socio_id, "periodo": periodo})
        if estado is None:
            # Archived boletas only show up when asked for explicitly
            stmt = stmt.where(Boleta.estado != EstadoBoleta.ARCHIVADA.value)
        return stmt

    async def list_filtered(
        self,
        estado: Optional[str] = None,
        socio_id: Optional[int] = None,
        periodo: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Boleta]:
        stmt = self._filtered(select(Boleta), estado, socio_id, periodo)
        stmt = stmt.order_by(Boleta.fecha_emision.desc(), Boleta.id.desc())
        stmt = QueryBuilder.apply_pagination(stmt, limit, offset)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_filtered(
        self, estado: Optional[str] = None, socio_id: Optional[int] = None, periodo: Optional[str] = None
    ) -> int:
        stmt = self._filtered(select(func.count()).select_from(Boleta), estado, socio_id, periodo)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def list_newly_overdue(self, now: datetime) -> List[Boleta]:
        """Unpaid ``pendiente`` boletas whose due date has passed."""
        stmt = (
            select(Boleta)
            .where(Boleta.estado == EstadoBoleta.PENDIENTE.value)
            .where(Boleta.fecha_vencimiento < now)
            .where(Boleta.pagada == False)  # noqa: E712
            .order_by(Boleta.fecha_vencimiento)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def overdue_totals_by_socio(self) -> Dict[int, float]:
        """Sum of ``monto_total`` of ``vencida`` boletas per socio."""
        stmt = (
            select(Boleta.socio_id, func.coalesce(func.sum(Boleta.monto_total), 0))
            .where(Boleta.estado == EstadoBoleta.VENCIDA.value)
            .group_by(Boleta.socio_id)
        )
        result = await self.session.execute(stmt)
        return {socio_id: float(total) for socio_id, total in result.all()}

    async def totals_by_estado(self) -> Dict[str, Tuple[int, float]]:
        """``estado -> (count, amount)`` over every boleta."""
        stmt = select(Boleta.estado, func.count(), func.coalesce(func.sum(Boleta.monto_total), 0)).group_by(
            Boleta.estado
        )
        result = await self.session.execute(stmt)
        return {estado: (int(count), float(total)) for estado, count, total in result.all()}
