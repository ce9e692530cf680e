"""
Payment Endpoints.

Socios register payments for their own boletas and read their history.
Admins record offline payments, confirm or refund them and consult
statistics.
"""

from typing import List, Optional

from fastapi import APIRouter, Query, status

from portal_apr.core.models.io.pagos import (
    PagoCreate,
    PagoManualCreate,
    PagoPage,
    PagoRead,
    PagoStats,
    PaymentRefundRequest,
)
from portal_apr.server.services.deps import AdminUser, EventHubDep, SessionDep, SocioUser
from portal_apr.server.services.pagos import PagoService

router = APIRouter()


@router.post(
    "",
    response_model=List[PagoRead],
    status_code=status.HTTP_201_CREATED,
    summary="Register Payment",
    description="Register a pending payment for one or more of the caller's unpaid boletas.",
)
async def create_pago(data: PagoCreate, socio: SocioUser, session: SessionDep, hub: EventHubDep):
    return await PagoService(session, hub).registrar_pago(
        socio, data.boleta_ids, data.metodo_pago, data.transaction_id, data.detalles_pago
    )


@router.get("/history", response_model=List[PagoRead], summary="Payment History")
async def history(
    socio: SocioUser,
    session: SessionDep,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    return await PagoService(session).historial(socio, limit, offset)


@router.post(
    "/admin/manual",
    response_model=List[PagoRead],
    status_code=status.HTTP_201_CREATED,
    summary="Record Offline Payment",
    description="Record a cash, transfer or WebPay payment received outside the portal. It is completed immediately.",
)
async def create_manual_pago(data: PagoManualCreate, _: AdminUser, session: SessionDep, hub: EventHubDep):
    return await PagoService(session, hub).registrar_pago_manual(
        data.socio_id, data.boleta_ids, data.metodo_pago, data.transaction_id, data.detalles_pago, data.monto
    )


@router.get("/admin/all", response_model=PagoPage, summary="All Payments")
async def list_all_pagos(
    _: AdminUser,
    session: SessionDep,
    estado_pago: Optional[str] = None,
    metodo_pago: Optional[str] = None,
    socio_id: Optional[int] = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    items, total = await PagoService(session).list_admin(estado_pago, metodo_pago, socio_id, limit, offset)
    return PagoPage(items=[PagoRead.model_validate(p) for p in items], total=total, limit=limit, offset=offset)


@router.get("/admin/stats", response_model=PagoStats, summary="Payment Statistics")
async def pago_stats(_: AdminUser, session: SessionDep):
    return await PagoService(session).estadisticas()


@router.post("/admin/{pago_id}/complete", response_model=PagoRead, summary="Complete Payment")
async def complete_pago(pago_id: int, _: AdminUser, session: SessionDep, hub: EventHubDep):
    service = PagoService(session, hub)
    return await service.completar_pago(await service.get(pago_id))


@router.post("/admin/{pago_id}/refund", response_model=PagoRead, summary="Refund Payment")
async def refund_pago(
    pago_id: int, data: PaymentRefundRequest, _: AdminUser, session: SessionDep
):
    service = PagoService(session)
    return await service.reembolsar_pago(await service.get(pago_id), data.motivo)


@router.get("/{pago_id}", response_model=PagoRead, summary="Get Payment")
async def get_pago(pago_id: int, socio: SocioUser, session: SessionDep):
    return await PagoService(session).get_for_socio(socio, pago_id)
