"""
I/O models for API requests and responses.

Each module defines the Create/Read/Update schemas of one resource. Read
models validate straight from the SQLModel entities (``from_attributes``).
"""
