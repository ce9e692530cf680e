"""
Tariff domain models.

These Pydantic models describe a tariff configuration (cargo fijo, consumption
bands, seasons, discounts, surcharges and calculation options) and the result
of a calculation. They are stored as JSON on the ``tarifa_configs`` table and
exchanged through the API.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CategoriaUsuario(str, Enum):
    """Billing category of a socio."""

    RESIDENCIAL = "residencial"
    COMERCIAL = "comercial"
    INDUSTRIAL = "industrial"
    TERCERA_EDAD = "tercera_edad"


class TipoDescuento(str, Enum):
    PORCENTAJE = "porcentaje"
    MONTO_FIJO = "monto_fijo"
    CONSUMO_MINIMO = "consumo_minimo"


class CargoFijo(BaseModel):
    """Monthly fixed charge per category."""

    residencial: float = Field(default=0, ge=0)
    comercial: float = Field(default=0, ge=0)
    industrial: float = Field(default=0, ge=0)
    tercera_edad: float = Field(default=0, ge=0)

    def para(self, categoria: str) -> float:
        """Fixed charge for a category; unknown categories pay the residential one."""
        try:
            return getattr(self, CategoriaUsuario(categoria).value)
        except ValueError:
            return self.residencial


class Escalon(BaseModel):
    """Consumption band. ``hasta = -1`` means the band has no upper limit."""

    desde: float = Field(ge=0, description="First m3 of the band")
    hasta: float = Field(ge=-1, description="Last m3 of the band, -1 for unbounded")
    tarifa_residencial: float = Field(default=0, ge=0)
    tarifa_comercial: float = Field(default=0, ge=0)
    tarifa_industrial: float = Field(default=0, ge=0)
    tarifa_tercera_edad: float = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_range(self) -> "Escalon":
        if self.hasta != -1 and self.hasta < self.desde:
            raise ValueError("hasta must be -1 or greater than or equal to desde")
        return self

    @property
    def sin_limite(self) -> bool:
        return self.hasta == -1

    def tarifa_para(self, categoria: str) -> float:
        mapping = {
            CategoriaUsuario.COMERCIAL.value: self.tarifa_comercial,
            CategoriaUsuario.INDUSTRIAL.value: self.tarifa_industrial,
            CategoriaUsuario.TERCERA_EDAD.value: self.tarifa_tercera_edad,
        }
        return mapping.get(categoria, self.tarifa_residencial)


class Temporada(BaseModel):
    """Seasonal multiplier for the consumption cost."""

    nombre: str
    mes_inicio: int = Field(ge=1, le=12)
    mes_fin: int = Field(ge=1, le=12)
    factor_multiplicador: float = Field(default=1.0, ge=0.5, le=3.0)

    def incluye(self, mes: int) -> bool:
        """Whether ``mes`` falls in the season; ranges like Nov-Mar wrap the year."""
        if self.mes_inicio <= self.mes_fin:
            return self.mes_inicio <= mes <= self.mes_fin
        return mes >= self.mes_inicio or mes <= self.mes_fin


class CondicionesDescuento(BaseModel):
    consumo_minimo: Optional[float] = Field(default=None, ge=0)
    consumo_maximo: Optional[float] = Field(default=None, ge=0)
    categorias: Optional[List[CategoriaUsuario]] = None
    pago_anticipado: bool = False


class Descuento(BaseModel):
    tipo: TipoDescuento
    nombre: str
    descripcion: Optional[str] = None
    valor: float = Field(ge=0)
    condiciones: CondicionesDescuento = Field(default_factory=CondicionesDescuento)
    activo: bool = True


class Recargos(BaseModel):
    """Late payment rules."""

    dias_gracia: int = Field(default=5, ge=0, le=90)
    porcentaje_mora: float = Field(default=1.5, ge=0, le=10, description="Percent per overdue day")
    porcentaje_maximo: float = Field(default=15, ge=0, le=100)
    cargo_reconexion: float = Field(default=0, ge=0)


class SubsidioEstatal(BaseModel):
    activo: bool = False
    porcentaje_descuento: float = Field(default=0, ge=0, le=100)
    consumo_maximo: float = Field(default=0, ge=0)


class ConfiguracionCalculo(BaseModel):
    redondeo_decimales: int = Field(default=0, ge=0, le=2)
    aplicar_iva: bool = False
    porcentaje_iva: float = Field(default=19, ge=0, le=100)
    subsidio_estatal: SubsidioEstatal = Field(default_factory=SubsidioEstatal)


class TarifaParametros(BaseModel):
    """Everything the calculator needs from a tariff configuration."""

    model_config = ConfigDict(from_attributes=True)

    cargo_fijo: CargoFijo = Field(default_factory=CargoFijo)
    escalones: List[Escalon] = Field(default_factory=list)
    temporadas: List[Temporada] = Field(default_factory=list)
    descuentos: List[Descuento] = Field(default_factory=list)
    recargos: Recargos = Field(default_factory=Recargos)
    configuracion: ConfiguracionCalculo = Field(default_factory=ConfiguracionCalculo)


# =====================================================================
# Calculation result
# =====================================================================


class DetalleEscalon(BaseModel):
    desde: float
    hasta: Optional[float] = Field(description="None when the band is unbounded")
    m3_consumidos: float
    tarifa_unitaria: float
    subtotal: float


class DescuentoAplicado(BaseModel):
    nombre: str
    tipo: str
    valor: float
    monto: float


class RecargoAplicado(BaseModel):
    concepto: str
    valor: float
    monto: float


class TemporadaAplicada(BaseModel):
    nombre: str
    factor: float


class DetalleCalculo(BaseModel):
    escalones: List[DetalleEscalon] = Field(default_factory=list)
    descuentos_aplicados: List[DescuentoAplicado] = Field(default_factory=list)
    recargos_aplicados: List[RecargoAplicado] = Field(default_factory=list)
    temporada_aplicada: Optional[TemporadaAplicada] = None


class CalculoTarifa(BaseModel):
    """Breakdown of a tariff calculation."""

    categoria: str
    consumo_m3: float
    cargo_fijo: float
    costo_consumo: float
    subtotal: float
    descuentos: float
    recargos: float
    iva: float
    monto_total: float
    detalle_calculo: DetalleCalculo
