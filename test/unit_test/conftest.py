"""Shared fixtures for unit tests.

Every test gets its own in-memory SQLite database (aiosqlite + StaticPool so
all sessions share the one connection) and its own ``EventHub``. The
``make_*`` fixtures insert rows directly, skipping bcrypt hashing where the
password does not matter.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from itertools import count
from typing import AsyncGenerator, Awaitable, Callable, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlmodel.pool import StaticPool

from portal_apr.core.database import create_all, create_sessionmaker, utc_now
from portal_apr.core.database.entities import (
    Boleta,
    EstadoBoleta,
    EstadoPago,
    EstadoTarifa,
    MetodoPago,
    Pago,
    TarifaConfig,
    User,
    UserRole,
)
from portal_apr.server.services.realtime import EventHub

TEST_DATABASE_URL = "sqlite+aiosqlite://"

# Residential: 2.000 fixed, 500/m3 for 1-10 m3, 800/m3 above
SAMPLE_TARIFA = {
    "cargo_fijo": {"residencial": 2000, "comercial": 5000, "industrial": 8000, "tercera_edad": 1000},
    "escalones": [
        {"desde": 1, "hasta": 10, "tarifa_residencial": 500, "tarifa_comercial": 700},
        {"desde": 11, "hasta": -1, "tarifa_residencial": 800, "tarifa_comercial": 1000},
    ],
}


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_all(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_sessionmaker(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def hub() -> EventHub:
    return EventHub()


_sequence = count(1)


@pytest.fixture
def make_user(session: AsyncSession) -> Callable[..., Awaitable[User]]:
    async def factory(role: UserRole = UserRole.SOCIO, **overrides) -> User:
        n = next(_sequence)
        values = dict(
            rut=f"{10_000_000 + n}-{n % 10}",
            nombres="Socio" if role == UserRole.SOCIO else "Admin",
            apellidos=f"Prueba {n}",
            email=f"user{n}@apr.test",
            password_hash="not-a-real-hash",
            role=role.value,
            codigo_socio=f"SOC-{n:05d}" if role == UserRole.SOCIO else None,
        )
        values.update(overrides)
        user = User(**values)
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user

    return factory


@pytest_asyncio.fixture
async def socio(make_user) -> User:
    return await make_user()


@pytest_asyncio.fixture
async def admin(make_user) -> User:
    return await make_user(UserRole.ADMIN)


@pytest_asyncio.fixture
async def super_admin(make_user) -> User:
    return await make_user(UserRole.SUPER_ADMIN)


@pytest.fixture
def make_tarifa(session: AsyncSession) -> Callable[..., Awaitable[TarifaConfig]]:
    async def factory(activa: bool = True, **overrides) -> TarifaConfig:
        values = dict(
            nombre="Tarifa 2024",
            activa=activa,
            estado=EstadoTarifa.ACTIVA.value if activa else EstadoTarifa.BORRADOR.value,
            fecha_vigencia=utc_now() - timedelta(days=30),
            **SAMPLE_TARIFA,
        )
        values.update(overrides)
        tarifa = TarifaConfig(**values)
        session.add(tarifa)
        await session.commit()
        await session.refresh(tarifa)
        return tarifa

    return factory


@pytest.fixture
def make_boleta(session: AsyncSession) -> Callable[..., Awaitable[Boleta]]:
    async def factory(
        socio: User,
        monto: float = 10_000,
        estado: EstadoBoleta = EstadoBoleta.PENDIENTE,
        fecha_vencimiento: Optional[datetime] = None,
        **overrides,
    ) -> Boleta:
        n = next(_sequence)
        values = dict(
            numero_boleta=f"202401{n:03d}",
            socio_id=socio.id,
            fecha_vencimiento=fecha_vencimiento or utc_now() + timedelta(days=15),
            periodo="2024-01",
            lectura_anterior=100,
            lectura_actual=115,
            consumo_m3=15,
            monto_total=monto,
            estado=estado.value,
            pagada=estado in (EstadoBoleta.PAGADA, EstadoBoleta.ARCHIVADA),
        )
        values.update(overrides)
        boleta = Boleta(**values)
        session.add(boleta)
        await session.commit()
        await session.refresh(boleta)
        return boleta

    return factory


@pytest.fixture
def make_pago(session: AsyncSession) -> Callable[..., Awaitable[Pago]]:
    async def factory(
        boleta: Boleta,
        estado: EstadoPago = EstadoPago.PENDIENTE,
        metodo: MetodoPago = MetodoPago.TRANSFERENCIA,
        **overrides,
    ) -> Pago:
        n = next(_sequence)
        values = dict(
            boleta_id=boleta.id,
            socio_id=boleta.socio_id,
            monto=boleta.monto_total,
            metodo_pago=metodo.value,
            estado_pago=estado.value,
            transaction_id=f"TX-{n}",
            external_reference=f"APR-TEST-{n}",
        )
        values.update(overrides)
        pago = Pago(**values)
        session.add(pago)
        await session.commit()
        await session.refresh(pago)
        return pago

    return factory
