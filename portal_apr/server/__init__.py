"""
Portal APR Server Package.

This package contains the web server implementation for the Portal APR
backend. It includes the API definition, configuration, exception handling
and the service layer.

Subpackages:
    api: FastAPI route definitions and endpoint logic.
    core: Configuration and constants.
    exception_handlers: Translation of domain errors into HTTP responses.
    middleware: Request logging and timing.
    services: Business logic, payment gateways and background workers.
"""
