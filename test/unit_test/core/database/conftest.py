"""Test configuration for database unit tests.

The engine, session and row factories come from ``test/unit_test/conftest.py``;
this module only adds the repositories bound to the test session.
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from portal_apr.core.database.repositories import (
    BoletaRepository,
    ChatRepository,
    NotificationRepository,
    PagoRepository,
    TarifaConfigRepository,
    UserRepository,
)


@pytest.fixture
def repos(session) -> SimpleNamespace:
    return SimpleNamespace(
        users=UserRepository(session),
        tarifas=TarifaConfigRepository(session),
        boletas=BoletaRepository(session),
        pagos=PagoRepository(session),
        notifications=NotificationRepository(session),
        chat=ChatRepository(session),
    )
