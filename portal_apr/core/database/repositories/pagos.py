"""
Pago repository.

Includes the queries the reconciliation jobs rely on: completed payments
whose boleta is still unpaid, and lookups by gateway references.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..entities.boletas import PAYABLE_ESTADOS, Boleta
from ..entities.pagos import EstadoPago, MetodoPago, Pago
from .base import BaseRepository, QueryBuilder


class PagoRepository(BaseRepository[Pago]):
    """Repository for pagos."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Pago)

    async def get_by_transaction_id(self, transaction_id: str) -> Optional[Pago]:
        result = await self.session.execute(select(Pago).where(Pago.transaction_id == transaction_id))
        return result.scalar_one_or_none()

    async def list_by_external_reference(self, reference: str, estado: Optional[str] = None) -> List[Pago]:
        stmt = select(Pago).where(Pago.external_reference == reference)
        if estado:
            stmt = stmt.where(Pago.estado_pago == estado)
        result = await self.session.execute(stmt.order_by(Pago.id))
        return list(result.scalars().all())

    async def list_by_metadata(self, metodo: MetodoPago, key: str, value: str) -> List[Pago]:
        """Pagos of a gateway whose metadata ``key`` equals ``value``.

        The JSON filter runs in Python so the query stays portable across
        PostgreSQL and SQLite.
        """
        result = await self.session.execute(select(Pago).where(Pago.metodo_pago == metodo.value).order_by(Pago.id))
        return [pago for pago in result.scalars().all() if (pago.metadata_json or {}).get(key) == value]

    async def list_for_socio(self, socio_id: int, limit: Optional[int] = None, offset: Optional[int] = None) -> List[Pago]:
        stmt = select(Pago).where(Pago.socio_id == socio_id).order_by(Pago.fecha_pago.desc(), Pago.id.desc())
        stmt = QueryBuilder.apply_pagination(stmt, limit, offset)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_filtered(
        self,
        estado_pago: Optional[str] = None,
        metodo_pago: Optional[str] = None,
        socio_id: Optional[int] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Pago]:
        stmt = QueryBuilder.apply_filters(
            select(Pago), Pago, {"estado_pago": estado_pago, "metodo_pago": metodo_pago, "socio_id": socio_id}
        )
        stmt = QueryBuilder.apply_pagination(stmt.order_by(Pago.fecha_pago.desc(), Pago.id.desc()), limit, offset)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_completed_with_unpaid_boleta(self, limit: Optional[int] = None) -> List[Pago]:
        """Completed pagos whose boleta is still ``pendiente`` or ``vencida``."""
        stmt = (
            select(Pago)
            .join(Boleta, Boleta.id == Pago.boleta_id)
            .where(Pago.estado_pago == EstadoPago.COMPLETADO.value)
            .where(Boleta.estado.in_(PAYABLE_ESTADOS))
            .order_by(Pago.id)
        )
        stmt = QueryBuilder.apply_pagination(stmt, limit, None)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def has_completed_for_boleta(self, boleta_id: int) -> bool:
        stmt = (
            select(func.count())
            .select_from(Pago)
            .where(Pago.boleta_id == boleta_id)
            .where(Pago.estado_pago == EstadoPago.COMPLETADO.value)
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one()) > 0

    async def list_for_boleta(self, boleta_id: int) -> List[Pago]:
        result = await self.session.execute(select(Pago).where(Pago.boleta_id == boleta_id).order_by(Pago.id))
        return list(result.scalars().all())

    async def totals_by(self, column: str) -> Dict[str, Tuple[int, float]]:
        """``value -> (count, amount)`` grouped by ``metodo_pago`` or ``estado_pago``."""
        group_col = getattr(Pago, column)
        stmt = select(group_col, func.count(), func.coalesce(func.sum(Pago.monto), 0)).group_by(group_col)
        result = await self.session.execute(stmt)
        return {key: (int(count), float(total)) for key, count, total in result.all()}
