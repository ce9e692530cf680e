"""
Billing domain logic.

Pure functions and Pydantic models shared by the services, the API and the
maintenance CLI:

- models: tariff configuration and calculation result types
- tarifa: tiered tariff calculation
- rut: Chilean RUT validation and formatting
"""

from .models import CalculoTarifa, CategoriaUsuario, TarifaParametros
from .rut import RutValidation, clean_rut, format_rut, validate_rut
from .tarifa import calcular_tarifa, formato_clp, seleccionar_tarifa_activa, simular_calculo

__all__ = [
    "CalculoTarifa",
    "CategoriaUsuario",
    "RutValidation",
    "TarifaParametros",
    "calcular_tarifa",
    "clean_rut",
    "format_rut",
    "formato_clp",
    "seleccionar_tarifa_activa",
    "simular_calculo",
    "validate_rut",
]
