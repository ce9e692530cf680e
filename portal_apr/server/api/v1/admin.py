"""
Administration Endpoints.

Debt reconciliation, payment/boleta synchronization and the manual overdue
check. Every route here is also available from the ``portal-apr`` CLI.
"""

from fastapi import APIRouter

from portal_apr.core.logging_config import get_logger
from portal_apr.core.models.io.admin import (
    DebtStatistics,
    DebtSyncResult,
    DebtValidation,
    OverdueCheckResult,
    SyncPaymentsResult,
)
from portal_apr.server.services.deps import AdminUser, EventHubDep, SessionDep
from portal_apr.server.services.overdue import check_and_notify_overdue
from portal_apr.server.services.reconciliation import ReconciliationService

logger = get_logger(__name__)
router = APIRouter()


@router.get("/debt/statistics", response_model=DebtStatistics, summary="Debt Statistics")
async def debt_statistics(_: AdminUser, session: SessionDep):
    return await ReconciliationService(session).get_debt_statistics()


@router.post(
    "/debt/sync",
    response_model=DebtSyncResult,
    summary="Recalculate Debt",
    description="Rewrite every socio's `deuda_total` as the sum of their overdue boletas.",
)
async def sync_debt(admin: AdminUser, session: SessionDep):
    logger.info(f"Debt sync requested by user {admin.id}")
    return await ReconciliationService(session).sync_user_debt()


@router.get("/debt/validate", response_model=DebtValidation, summary="Validate Debt")
async def validate_debt(_: AdminUser, session: SessionDep):
    return await ReconciliationService(session).validate_debt_consistency()


@router.post(
    "/sync/payments",
    response_model=SyncPaymentsResult,
    summary="Sync Payments",
    description="Mark paid every boleta that has a completed payment but is still unpaid.",
)
async def sync_payments(_: AdminUser, session: SessionDep, hub: EventHubDep):
    return SyncPaymentsResult(boletas_updated=await ReconciliationService(session, hub).auto_sync_pass())


@router.post("/overdue/check", response_model=OverdueCheckResult, summary="Check Overdue Boletas")
async def overdue_check(_: AdminUser, session: SessionDep, hub: EventHubDep):
    updated, notified = await check_and_notify_overdue(session, hub=hub)
    return OverdueCheckResult(updated=updated, notified=notified)
