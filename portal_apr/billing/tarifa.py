"""
Tiered water tariff calculation.

The calculation follows the order used by the utility's billing office:

1. fixed charge for the socio's category
2. consumption cost walked through the bands (escalones) sorted by ``desde``
3. seasonal multiplier on the consumption cost
4. automatic discounts on the subtotal (plus the state subsidy when enabled)
5. late payment surcharge once the grace days are exceeded
6. IVA on the discounted, surcharged base
7. half-up rounding of the total to the configured decimals

Every function in this module is pure: the caller passes the tariff and the
socio data and receives a :class:`CalculoTarifa`.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Protocol, Tuple

from .models import (
    CalculoTarifa,
    CategoriaUsuario,
    Descuento,
    DescuentoAplicado,
    DetalleCalculo,
    DetalleEscalon,
    RecargoAplicado,
    TarifaParametros,
    TemporadaAplicada,
    TipoDescuento,
)

logger = logging.getLogger(__name__)

CONSUMO_MINIMO_PORCENTAJE = 10.0
RECARGO_MORA_CONCEPTO = "Recargo por mora"
SUBSIDIO_NOMBRE = "Subsidio estatal"


class TarifaVigente(Protocol):
    """Attributes the active tariff selection needs."""

    activa: bool
    fecha_vigencia: datetime
    fecha_vencimiento: Optional[datetime]


def redondear(valor: float, decimales: int = 0) -> float:
    """Round half-up (1.5 -> 2, 2.5 -> 3) to ``decimales`` places."""
    quantum = Decimal(1).scaleb(-decimales)
    return float(Decimal(str(valor)).quantize(quantum, rounding=ROUND_HALF_UP))


def normalizar_categoria(categoria: Optional[str]) -> str:
    try:
        return CategoriaUsuario(categoria).value
    except ValueError:
        return CategoriaUsuario.RESIDENCIAL.value


def calcular_consumo_escalonado(
    tarifa: TarifaParametros, categoria: str, consumo_m3: float
) -> Tuple[float, List[DetalleEscalon]]:
    """Walk the bands in ascending order charging each one's unit price.

    A band from ``desde`` to ``hasta`` absorbs at most ``hasta - desde + 1`` m3.
    Bands that absorb nothing are left out of the detail.
    """
    if not tarifa.escalones:
        logger.warning("Tariff has no consumption bands configured, consumption cost is 0")
        return 0.0, []

    restante = consumo_m3
    total = 0.0
    detalle: List[DetalleEscalon] = []

    for escalon in sorted(tarifa.escalones, key=lambda e: e.desde):
        if restante <= 0:
            break
        limite = math.inf if escalon.sin_limite else escalon.hasta
        m3 = min(restante, limite - escalon.desde + 1)
        if m3 <= 0:
            continue

        unitaria = escalon.tarifa_para(categoria)
        costo = m3 * unitaria
        total += costo
        restante -= m3
        detalle.append(
            DetalleEscalon(
                desde=escalon.desde,
                hasta=None if escalon.sin_limite else escalon.hasta,
                m3_consumidos=m3,
                tarifa_unitaria=unitaria,
                subtotal=costo,
            )
        )

    return total, detalle


def aplicar_temporada(
    costo_consumo: float, tarifa: TarifaParametros, periodo: datetime
) -> Tuple[float, Optional[TemporadaAplicada]]:
    for temporada in tarifa.temporadas:
        if temporada.incluye(periodo.month):
            aplicada = TemporadaAplicada(nombre=temporada.nombre, factor=temporada.factor_multiplicador)
            return costo_consumo * temporada.factor_multiplicador, aplicada
    return costo_consumo, None


def cumple_condiciones(descuento: Descuento, categoria: str, consumo_m3: float, pago_anticipado: bool) -> bool:
    condiciones = descuento.condiciones
    # Zero or unset limits are not checked
    if condiciones.consumo_minimo and consumo_m3 < condiciones.consumo_minimo:
        return False
    if condiciones.consumo_maximo and consumo_m3 > condiciones.consumo_maximo:
        return False
    if condiciones.categorias and categoria not in {c.value for c in condiciones.categorias}:
        return False
    if condiciones.pago_anticipado and not pago_anticipado:
        return False
    return True


def aplicar_descuentos(
    tarifa: TarifaParametros,
    categoria: str,
    consumo_m3: float,
    subtotal: float,
    pago_anticipado: bool = False,
) -> Tuple[float, List[DescuentoAplicado]]:
    total = 0.0
    aplicados: List[DescuentoAplicado] = []

    for descuento in (d for d in tarifa.descuentos if d.activo):
        if not cumple_condiciones(descuento, categoria, consumo_m3, pago_anticipado):
            continue

        if descuento.tipo == TipoDescuento.PORCENTAJE:
            monto = subtotal * descuento.valor / 100
        elif descuento.tipo == TipoDescuento.MONTO_FIJO:
            monto = descuento.valor
        else:
            monto = subtotal * CONSUMO_MINIMO_PORCENTAJE / 100 if consumo_m3 <= descuento.valor else 0.0

        total += monto
        aplicados.append(
            DescuentoAplicado(nombre=descuento.nombre, tipo=descuento.tipo.value, valor=descuento.valor, monto=monto)
        )

    subsidio = tarifa.configuracion.subsidio_estatal
    if subsidio.activo and consumo_m3 <= subsidio.consumo_maximo:
        monto = subtotal * subsidio.porcentaje_descuento / 100
        total += monto
        aplicados.append(
            DescuentoAplicado(
                nombre=SUBSIDIO_NOMBRE,
                tipo=TipoDescuento.PORCENTAJE.value,
                valor=subsidio.porcentaje_descuento,
                monto=monto,
            )
        )

    return total, aplicados


def aplicar_recargos(
    tarifa: TarifaParametros, monto_base: float, dias_vencidos: int
) -> Tuple[float, List[RecargoAplicado]]:
    recargos = tarifa.recargos
    if dias_vencidos <= recargos.dias_gracia:
        return 0.0, []

    dias_mora = dias_vencidos - recargos.dias_gracia
    porcentaje = min(dias_mora * recargos.porcentaje_mora, recargos.porcentaje_maximo)
    monto = monto_base * porcentaje / 100
    return monto, [RecargoAplicado(concepto=RECARGO_MORA_CONCEPTO, valor=porcentaje, monto=monto)]


def calcular_tarifa(
    tarifa: TarifaParametros,
    categoria: Optional[str],
    consumo_m3: float,
    periodo: datetime,
    dias_vencidos: int = 0,
    pago_anticipado: bool = False,
) -> CalculoTarifa:
    """
    Calculate the amount due for a consumption under a tariff.

    Args:
        tarifa: Tariff parameters (an entity or TarifaParametros)
        categoria: Socio category; unknown values are billed as residencial
        consumo_m3: Consumption for the period in m3
        periodo: Date inside the billed period, used for seasons
        dias_vencidos: Days past the due date, drives the late surcharge
        pago_anticipado: Whether the socio pays in advance

    Returns:
        CalculoTarifa with every component and its breakdown
    """
    if consumo_m3 < 0:
        raise ValueError("consumo_m3 must not be negative")
    if not isinstance(tarifa, TarifaParametros):
        tarifa = TarifaParametros.model_validate(tarifa)

    categoria = normalizar_categoria(categoria)
    cargo_fijo = tarifa.cargo_fijo.para(categoria)

    costo_base, detalle_escalones = calcular_consumo_escalonado(tarifa, categoria, consumo_m3)
    costo_consumo, temporada = aplicar_temporada(costo_base, tarifa, periodo)

    subtotal = cargo_fijo + costo_consumo
    descuentos, descuentos_aplicados = aplicar_descuentos(tarifa, categoria, consumo_m3, subtotal, pago_anticipado)
    recargos, recargos_aplicados = aplicar_recargos(tarifa, subtotal - descuentos, dias_vencidos)

    base_iva = subtotal - descuentos + recargos
    configuracion = tarifa.configuracion
    iva = base_iva * configuracion.porcentaje_iva / 100 if configuracion.aplicar_iva else 0.0

    monto_total = max(redondear(base_iva + iva, configuracion.redondeo_decimales), 0.0)

    logger.debug(
        f"Tariff calculated: categoria={categoria}, consumo={consumo_m3}m3, "
        f"subtotal={subtotal:.2f}, descuentos={descuentos:.2f}, recargos={recargos:.2f}, total={monto_total}"
    )

    return CalculoTarifa(
        categoria=categoria,
        consumo_m3=consumo_m3,
        cargo_fijo=cargo_fijo,
        costo_consumo=costo_consumo,
        subtotal=subtotal,
        descuentos=descuentos,
        recargos=recargos,
        iva=iva,
        monto_total=monto_total,
        detalle_calculo=DetalleCalculo(
            escalones=detalle_escalones,
            descuentos_aplicados=descuentos_aplicados,
            recargos_aplicados=recargos_aplicados,
            temporada_aplicada=temporada,
        ),
    )


def simular_calculo(
    tarifa: TarifaParametros,
    categoria: Optional[str],
    consumo_m3: float,
    pago_anticipado: bool = False,
    now: Optional[datetime] = None,
) -> CalculoTarifa:
    """Calculate for the current month with no overdue days."""
    return calcular_tarifa(tarifa, categoria, consumo_m3, now or datetime.utcnow(), 0, pago_anticipado)


def esta_vigente(tarifa: TarifaVigente, now: datetime) -> bool:
    if not tarifa.activa or tarifa.fecha_vigencia > now:
        return False
    return tarifa.fecha_vencimiento is None or tarifa.fecha_vencimiento >= now


def seleccionar_tarifa_activa(tarifas: Iterable[TarifaVigente], now: datetime) -> Optional[TarifaVigente]:
    """Pick the first tariff that is active and in force at ``now``."""
    for tarifa in tarifas:
        if esta_vigente(tarifa, now):
            return tarifa
    return None


def formato_clp(monto: float) -> str:
    """Format an amount as Chilean pesos with dot thousands: 12345.6 -> ``12.346``."""
    return f"{redondear(monto):,.0f}".replace(",", ".")
