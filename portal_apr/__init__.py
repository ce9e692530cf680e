"""Portal APR: billing and communication backend for rural drinking-water utilities."""

__version__ = "1.0.0"
