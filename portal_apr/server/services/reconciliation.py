"""
Payment and debt reconciliation.

Gateways confirm payments asynchronously, so a pago can end up completed
while its boleta is still pending (a crash between the two writes, a
webhook retried out of order). These routines repair that state and
recompute socio debt from the boletas themselves:

- sync_boletas_with_completed_payments: mark the boletas of completed pagos paid
- auto_sync_pass: the same over every inconsistent pago, run by AutoSyncWorker
- sync_user_debt: rewrite ``deuda_total`` as the sum of overdue boletas
- validate_debt_consistency: report socios whose stored debt is off
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal_apr.billing.tarifa import redondear
from portal_apr.core.database.entities.boletas import EstadoBoleta
from portal_apr.core.database.entities.pagos import EstadoPago, MetodoPago
from portal_apr.core.database.repositories.boletas import BoletaRepository
from portal_apr.core.database.repositories.pagos import PagoRepository
from portal_apr.core.database.repositories.users import UserRepository
from portal_apr.core.logging_config import get_logger
from portal_apr.core.models.io.admin import (
    DebtInconsistency,
    DebtStatistics,
    DebtSyncError,
    DebtSyncResult,
    DebtValidation,
    OverdueBoletaStats,
    UserDebtStats,
)

from .boletas import BoletaService
from .realtime import EventHub
from .workers import PeriodicWorker

logger = get_logger(__name__)

DEBT_TOLERANCE = 0.01


class ReconciliationService:
    def __init__(self, session: AsyncSession, hub: Optional[EventHub] = None) -> None:
        self.session = session
        self.pagos = PagoRepository(session)
        self.boletas = BoletaRepository(session)
        self.users = UserRepository(session)
        self.boleta_service = BoletaService(session, hub)

    async def sync_boletas_with_completed_payments(self, pago_ids: Iterable[int]) -> int:
        """
        Mark paid the boletas of the given pagos that are completed.

        Pagos that are not completed are ignored and missing boletas are
        logged and skipped.

        Returns:
            Number of boletas moved to ``pagada``
        """
        changed = 0
        for pago in await self.pagos.get_many(list(pago_ids)):
            if pago.estado_pago != EstadoPago.COMPLETADO.value:
                continue
            boleta = await self.boletas.get_by_id(pago.boleta_id)
            if boleta is None:
                logger.warning(f"Pago {pago.id} references missing boleta {pago.boleta_id}, skipping")
                continue
            if boleta.pagada:
                continue
            await self.boleta_service.cambiar_estado(boleta, EstadoBoleta.PAGADA)
            changed += 1
            logger.info(f"Boleta {boleta.numero_boleta} marked paid from completed pago {pago.id}")

        if changed:
            await self.session.commit()
        return changed

    async def sync_by_external_reference(self, external_reference: str) -> int:
        pagos = await self.pagos.list_by_external_reference(external_reference, EstadoPago.COMPLETADO.value)
        return await self.sync_boletas_with_completed_payments(p.id for p in pagos)

    async def sync_by_paypal_order_id(self, order_id: str) -> int:
        pagos = await self.pagos.list_by_metadata(MetodoPago.PAYPAL, "paypal_order_id", order_id)
        return await self.sync_boletas_with_completed_payments(
            p.id for p in pagos if p.estado_pago == EstadoPago.COMPLETADO.value
        )

    async def auto_sync_pass(self) -> int:
        """Repair every completed pago whose boleta is still payable. Idempotent."""
        pagos = await self.pagos.list_completed_with_unpaid_boleta()
        if not pagos:
            return 0
        logger.info(f"Found {len(pagos)} completed pago(s) with unpaid boletas")
        return await self.sync_boletas_with_completed_payments(p.id for p in pagos)

    async def sync_user_debt(self) -> DebtSyncResult:
        """Recompute every socio's debt as the sum of their overdue boletas."""
        result = DebtSyncResult()
        totals = await self.boletas.overdue_totals_by_socio()

        for socio in await self.users.all_socios():
            result.users_processed += 1
            antes = socio.deuda_total or 0.0
            result.total_debt_before += antes
            try:
                calculada = redondear(totals.get(socio.id, 0.0), 2)
                if abs(calculada - antes) > DEBT_TOLERANCE:
                    socio.deuda_total = calculada
                    await self.users.add(socio)
                    result.users_with_changes += 1
                    logger.info(f"Socio {socio.rut}: debt {antes} -> {calculada}")
                result.total_debt_after += calculada
            except Exception as e:
                logger.error(f"Debt sync failed for user {socio.id}: {e}")
                result.errors.append(DebtSyncError(user_id=socio.id, error=str(e)))
                result.total_debt_after += antes

        await self.session.commit()
        result.total_debt_before = redondear(result.total_debt_before, 2)
        result.total_debt_after = redondear(result.total_debt_after, 2)
        logger.info(
            f"Debt sync finished: {result.users_processed} socios, {result.users_with_changes} changed, "
            f"{len(result.errors)} error(s)"
        )
        return result

    async def get_debt_statistics(self) -> DebtStatistics:
        socios = await self.users.all_socios()
        deudas = [s.deuda_total or 0.0 for s in socios]
        con_deuda = [d for d in deudas if d > 0]
        total_deuda = sum(deudas)

        vencidas = await self.boletas.list_filtered(estado=EstadoBoleta.VENCIDA.value)
        monto_vencido = sum(b.monto_total for b in vencidas)

        return DebtStatistics(
            users=UserDebtStats(
                total_users=len(socios),
                users_with_debt=len(con_deuda),
                total_debt=redondear(total_deuda, 2),
                average_debt=redondear(total_deuda / len(con_deuda), 2) if con_deuda else 0.0,
                max_debt=max(deudas, default=0.0),
            ),
            overdue_boletas=OverdueBoletaStats(
                count=len(vencidas),
                total_amount=redondear(monto_vencido, 2),
                average_amount=redondear(monto_vencido / len(vencidas), 2) if vencidas else 0.0,
            ),
        )

    async def validate_debt_consistency(self) -> DebtValidation:
        totals = await self.boletas.overdue_totals_by_socio()
        inconsistencies: List[DebtInconsistency] = []
        for socio in await self.users.all_socios():
            calculada = redondear(totals.get(socio.id, 0.0), 2)
            almacenada = socio.deuda_total or 0.0
            if abs(calculada - almacenada) > DEBT_TOLERANCE:
                inconsistencies.append(
                    DebtInconsistency(
                        user_id=socio.id,
                        rut=socio.rut,
                        stored_debt=almacenada,
                        calculated_debt=calculada,
                        difference=redondear(almacenada - calculada, 2),
                    )
                )
        return DebtValidation(consistent=not inconsistencies, inconsistencies=inconsistencies)


class AutoSyncWorker(PeriodicWorker):
    """Runs :meth:`ReconciliationService.auto_sync_pass` on an interval."""

    name = "payment-auto-sync"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: float,
        hub: Optional[EventHub] = None,
    ) -> None:
        super().__init__(session_factory, interval_seconds)
        self._hub = hub

    async def run_once(self, session: AsyncSession) -> int:
        return await ReconciliationService(session, self._hub).auto_sync_pass()
