"""
Chilean RUT utilities.

A RUT is written ``12.345.678-5``: a numeric body followed by a mod-11 check
digit (``0``-``9`` or ``K``). Helpers accept any mix of dots, dashes and
whitespace.
"""

from __future__ import annotations

import re
from typing import List, Optional

from pydantic import BaseModel, Field

_RUT_PATTERN = re.compile(r"^\d{1,8}[0-9K]$")

INVALID_RUTS = frozenset(f"{d * 8}-{d}" for d in "1234567890")

MIN_RUT_BODY = 1_000_000
MAX_RUT_BODY = 50_000_000


class RutValidation(BaseModel):
    """Outcome of a full RUT validation."""

    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    formatted: Optional[str] = None


def clean_rut(rut: str) -> str:
    """Strip dots, dashes and surrounding whitespace."""
    return re.sub(r"[.\-\s]", "", rut or "")


def format_rut(rut: str) -> str:
    """Format a RUT as ``XX.XXX.XXX-D``."""
    cleaned = clean_rut(rut).upper()
    if len(cleaned) < 2:
        return cleaned
    body, dv = cleaned[:-1], cleaned[-1]
    if body.isdigit():
        body = f"{int(body):,}".replace(",", ".")
    return f"{body}-{dv}"


def calculate_dv(rut: str) -> str:
    """Compute the check digit for a RUT.

    ``rut`` includes its (possibly wrong) check digit; only the body is used.
    """
    body = clean_rut(rut)[:-1]
    total = 0
    multiplier = 2
    for digit in reversed(body):
        total += int(digit) * multiplier
        multiplier = 2 if multiplier == 7 else multiplier + 1

    dv = 11 - (total % 11)
    if dv == 11:
        return "0"
    if dv == 10:
        return "K"
    return str(dv)


def is_valid_dv(rut: str) -> bool:
    cleaned = clean_rut(rut).upper()
    if len(cleaned) < 2 or not cleaned[:-1].isdigit():
        return False
    return cleaned[-1] == calculate_dv(cleaned)


def is_repeated_digits_rut(rut: str) -> bool:
    body = clean_rut(rut)[:-1]
    return bool(body) and len(set(body)) == 1


def validate_rut(rut: Optional[str]) -> RutValidation:
    """Run every RUT check and collect the Spanish error messages.

    Args:
        rut: Raw RUT as typed by a user

    Returns:
        RutValidation with ``formatted`` set only when the RUT is valid
    """
    if not rut or not rut.strip():
        return RutValidation(is_valid=False, errors=["El RUT es requerido"])

    errors: List[str] = []
    cleaned = clean_rut(rut).upper()

    if len(cleaned) < 2:
        errors.append("El RUT es demasiado corto")
    elif len(cleaned) > 10:
        errors.append("El RUT es demasiado largo")

    if not _RUT_PATTERN.match(cleaned):
        errors.append("El RUT contiene caracteres inválidos")

    if not is_valid_dv(cleaned):
        errors.append("El dígito verificador es incorrecto")

    if is_repeated_digits_rut(cleaned):
        errors.append("El RUT no puede tener todos los dígitos iguales")

    if f"{cleaned[:-1]}-{cleaned[-1:]}" in INVALID_RUTS:
        errors.append("Este RUT no es válido")

    body = cleaned[:-1]
    if body.isdigit():
        number = int(body)
        if number < MIN_RUT_BODY:
            errors.append("El RUT es demasiado bajo para ser válido")
        elif number > MAX_RUT_BODY:
            errors.append("El RUT es demasiado alto para ser válido")

    return RutValidation(
        is_valid=not errors,
        errors=errors,
        formatted=format_rut(cleaned) if not errors else None,
    )


def normalize_rut(rut: str) -> str:
    """Return the canonical stored form (``XX.XXX.XXX-D``) without validating."""
    return format_rut(rut)
