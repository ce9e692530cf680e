"""
Monitoring and Tracing Configuration Module.

This module provides the Logfire integration used by the portal:
- API endpoint tracing
- Database operation monitoring
- Outbound payment gateway calls (HTTPX)
- Reconciliation job and error events

Tracing is opt-in through ``LOGFIRE_ENABLED`` and ``LOGFIRE_TOKEN``. When it is
disabled every helper here is a no-op apart from the standard logging calls.
"""

import logging
import os
from typing import Optional

import logfire
from fastapi import FastAPI

logger = logging.getLogger(__name__)

LOGFIRE_ENABLED = os.getenv("LOGFIRE_ENABLED", "false").lower() in ("true", "1", "yes")
LOGFIRE_TOKEN = os.getenv("LOGFIRE_TOKEN", "")
LOGFIRE_ENVIRONMENT = os.getenv("LOGFIRE_ENVIRONMENT", "development")
LOGFIRE_SERVICE_NAME = os.getenv("LOGFIRE_SERVICE_NAME", "portal-apr-server")
LOGFIRE_SERVICE_VERSION = os.getenv("LOGFIRE_SERVICE_VERSION", "1.0.0")
LOGFIRE_SAMPLE_RATE = float(os.getenv("LOGFIRE_SAMPLE_RATE", "1.0"))

LOGFIRE_TRACE_SQLALCHEMY = os.getenv("LOGFIRE_TRACE_SQLALCHEMY", "true").lower() in ("true", "1", "yes")
LOGFIRE_TRACE_HTTPX = os.getenv("LOGFIRE_TRACE_HTTPX", "true").lower() in ("true", "1", "yes")
LOGFIRE_TRACE_FASTAPI = os.getenv("LOGFIRE_TRACE_FASTAPI", "true").lower() in ("true", "1", "yes")

_logfire_active = False


def is_logfire_active() -> bool:
    return _logfire_active


def initialize_logfire(app: FastAPI | None = None) -> bool:
    """
    Initialize Logfire for monitoring and tracing.

    Sets up Logfire with automatic instrumentation for SQLAlchemy, HTTPX and,
    when an application is given, FastAPI.

    Args:
        app: FastAPI application instance for endpoint instrumentation (optional).

    Returns:
        True when Logfire was configured, False when monitoring stays disabled.
    """
    global _logfire_active

    if not LOGFIRE_ENABLED:
        logger.info("Logfire monitoring is disabled. Set LOGFIRE_ENABLED=true to enable.")
        return False

    if not LOGFIRE_TOKEN:
        logger.warning(
            "Logfire is enabled but LOGFIRE_TOKEN is not set. "
            "Monitoring will not work. Set LOGFIRE_TOKEN to enable Logfire."
        )
        return False

    logfire.configure(
        token=LOGFIRE_TOKEN,
        service_name=LOGFIRE_SERVICE_NAME,
        service_version=LOGFIRE_SERVICE_VERSION,
        environment=LOGFIRE_ENVIRONMENT,
        sampling=logfire.SamplingOptions(head=LOGFIRE_SAMPLE_RATE),
    )

    if LOGFIRE_TRACE_SQLALCHEMY:
        logfire.instrument_sqlalchemy()
        logger.info("Logfire: SQLAlchemy instrumentation enabled")

    if LOGFIRE_TRACE_HTTPX:
        logfire.instrument_httpx()
        logger.info("Logfire: HTTPX instrumentation enabled")

    if LOGFIRE_TRACE_FASTAPI and app is not None:
        logfire.instrument_fastapi(app)
        logger.info("Logfire: FastAPI instrumentation enabled")

    _logfire_active = True
    logger.info(f"Logfire monitoring initialized: environment={LOGFIRE_ENVIRONMENT}, service={LOGFIRE_SERVICE_NAME}")
    return True


def log_api_request(method: str, path: str, status_code: int, duration_ms: float) -> None:
    """
    Log an API request with performance metrics.

    Args:
        method: HTTP method
        path: Request path
        status_code: HTTP status code
        duration_ms: Request duration in milliseconds
    """
    logger.debug(f"{method} {path} -> {status_code} ({duration_ms:.2f}ms)")
    if _logfire_active:
        logfire.info(
            "API request completed",
            method=method,
            path=path,
            status_code=status_code,
            duration_ms=duration_ms,
        )


def log_sync_pass(job: str, changed: int, duration_ms: float) -> None:
    """
    Log the outcome of a reconciliation job pass.

    Args:
        job: Job name (auto_sync, overdue_check, debt_sync)
        changed: Number of records the pass modified
        duration_ms: Duration of the pass in milliseconds
    """
    if _logfire_active:
        logfire.info("Reconciliation pass completed", job=job, changed=changed, duration_ms=duration_ms)


def log_error(error_type: str, error_message: str, context: Optional[dict] = None) -> None:
    """
    Log an error with context for debugging.

    Args:
        error_type: Type of error
        error_message: Error message
        context: Additional context dictionary
    """
    if _logfire_active:
        logfire.error(f"{error_type}: {error_message}", **(context or {}))
