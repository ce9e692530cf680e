"""
Main Application Entry Point.

This module initializes the FastAPI application, configures middleware (CORS,
request logging), registers the exception handlers and includes all API
routers. The lifespan starts the payment auto-sync and overdue workers.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portal_apr.core.database import async_session_maker, init_db
from portal_apr.core.logging_config import get_logger, setup_logging
from portal_apr.core.monitoring import initialize_logfire

from .api.v1 import (
    admin,
    auth,
    boletas,
    chat,
    events,
    gateways,
    health,
    notifications,
    pagos,
    socios,
    tarifas,
)
from .core import constant
from .core.config import settings
from .exception_handlers import setup_exception_handlers
from .middleware import RequestLoggingMiddleware
from .services.overdue import OverdueWorker
from .services.realtime import get_event_hub
from .services.reconciliation import AutoSyncWorker

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Startup initializes the database, then starts the
    background workers unless ``BACKGROUND_JOBS_ENABLED`` is false. Shutdown
    stops the workers.
    """
    # Startup
    logger.info("Starting up Portal APR Server...")
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    workers = []
    jobs = settings.jobs
    if jobs.enabled:
        hub = get_event_hub()
        workers = [
            AutoSyncWorker(async_session_maker, jobs.auto_sync_interval_seconds, hub),
            OverdueWorker(async_session_maker, jobs.overdue_check_interval_seconds, hub),
        ]
        for worker in workers:
            worker.start()
    else:
        logger.info("Background jobs are disabled")
    app.state.workers = workers

    yield

    # Shutdown
    logger.info("Shutting down Portal APR Server...")
    for worker in workers:
        await worker.stop()


app = FastAPI(
    title=constant.PROJECT_NAME,
    description="""
    Portal APR Server API

    Backend for rural drinking-water (APR) committees: socios, tariffs, boletas,
    online and offline payments, notifications, chat and realtime events.
    """,
    version=constant.VERSION,
    openapi_url=f"{constant.API_V1_STR}/openapi.json",
    docs_url=f"{constant.API_V1_STR}/docs",
    redoc_url=f"{constant.API_V1_STR}/redoc",
    lifespan=lifespan,
)

initialize_logfire(app)

# Set all CORS enabled origins
cors = settings.cors
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors.origins,
    allow_credentials=cors.allow_credentials,
    allow_methods=cors.allow_methods,
    allow_headers=cors.allow_headers,
)
app.add_middleware(RequestLoggingMiddleware)

setup_exception_handlers(app)


app.include_router(health.router, prefix=constant.API_V1_STR, tags=["health"])
app.include_router(auth.router, prefix=f"{constant.API_V1_STR}/auth", tags=["auth"])
app.include_router(socios.router, prefix=f"{constant.API_V1_STR}/socios", tags=["socios"])
app.include_router(tarifas.router, prefix=f"{constant.API_V1_STR}/tarifas", tags=["tarifas"])
app.include_router(boletas.router, prefix=f"{constant.API_V1_STR}/boletas", tags=["boletas"])
app.include_router(pagos.router, prefix=f"{constant.API_V1_STR}/pagos", tags=["pagos"])
app.include_router(gateways.flow_router, prefix=f"{constant.API_V1_STR}/flow", tags=["flow"])
app.include_router(gateways.mercadopago_router, prefix=f"{constant.API_V1_STR}/mercadopago", tags=["mercadopago"])
app.include_router(gateways.paypal_router, prefix=f"{constant.API_V1_STR}/paypal", tags=["paypal"])
app.include_router(admin.router, prefix=f"{constant.API_V1_STR}/admin", tags=["admin"])
app.include_router(notifications.router, prefix=f"{constant.API_V1_STR}/notifications", tags=["notifications"])
app.include_router(chat.router, prefix=f"{constant.API_V1_STR}/chat", tags=["chat"])
app.include_router(events.router, prefix=f"{constant.API_V1_STR}/events", tags=["events"])
