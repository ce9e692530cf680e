"""
Service layer.

Each service wraps one ``AsyncSession`` and the repositories it needs. Route
handlers build a service per request; background workers build one per pass.
"""
