"""
Overdue boleta check.

Moves unpaid ``pendiente`` boletas past their due date to ``vencida`` and
tells the socio about it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal_apr.billing.tarifa import formato_clp
from portal_apr.core.database.base import utc_now
from portal_apr.core.database.entities.boletas import EstadoBoleta
from portal_apr.core.database.entities.notifications import TipoNotificacion
from portal_apr.core.database.repositories.boletas import BoletaRepository
from portal_apr.core.logging_config import get_logger

from .boletas import BoletaService
from .notifications import NotificationService
from .realtime import EventHub
from .workers import PeriodicWorker

logger = get_logger(__name__)


async def check_and_notify_overdue(
    session: AsyncSession, now: Optional[datetime] = None, hub: Optional[EventHub] = None
) -> Tuple[int, int]:
    """
    Mark overdue boletas and notify their socios.

    Each boleta is committed on its own so one failure does not undo the
    others.

    Returns:
        ``(updated, notified)``
    """
    now = now or utc_now()
    boletas = BoletaRepository(session)
    boleta_service = BoletaService(session, hub)
    notifications = NotificationService(session, hub)

    updated = notified = 0
    # A rollback expires loaded rows, so keep plain values and reload per boleta
    pendientes = [(b.id, b.numero_boleta) for b in await boletas.list_newly_overdue(now)]
    for boleta_id, numero in pendientes:
        try:
            boleta = await boletas.get_by_id(boleta_id)
            if boleta is None:
                continue
            await boleta_service.cambiar_estado(boleta, EstadoBoleta.VENCIDA)
            await notifications.notify(
                boleta.socio_id,
                "Boleta vencida",
                f"Su boleta #{boleta.numero_boleta} del período {boleta.periodo} ha vencido. "
                f"Monto: ${formato_clp(boleta.monto_total)}",
                tipo=TipoNotificacion.BOLETA,
                referencia_tipo="boleta",
                referencia_id=boleta.id,
                commit=False,
            )
            await session.commit()
        except Exception as e:
            await session.rollback()
            notifications.discard_events()
            logger.error(f"Could not mark boleta {numero} as overdue: {e}", exc_info=True)
            continue
        notifications.flush_events()
        updated += 1
        notified += 1

    if updated:
        logger.info(f"Overdue check: {updated} boleta(s) marked vencida, {notified} notification(s) sent")
    return updated, notified


class OverdueWorker(PeriodicWorker):
    """Runs the overdue check at startup and then on an interval."""

    name = "overdue-check"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: float,
        hub: Optional[EventHub] = None,
    ) -> None:
        super().__init__(session_factory, interval_seconds, run_on_start=True)
        self._hub = hub

    async def run_once(self, session: AsyncSession) -> int:
        updated, _ = await check_and_notify_overdue(session, hub=self._hub)
        return updated
