"""
Unit tests for the tiered tariff calculation.

The base tariff charges 2.000 fixed to residential socios, 500 per m3 for the
first 10 m3 and 800 per m3 above that, so 15 m3 costs 2.000 + 5.000 + 4.000.
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from portal_apr.billing.models import (
    CargoFijo,
    ConfiguracionCalculo,
    Descuento,
    Escalon,
    Recargos,
    SubsidioEstatal,
    TarifaParametros,
    Temporada,
)
from portal_apr.billing.tarifa import (
    RECARGO_MORA_CONCEPTO,
    SUBSIDIO_NOMBRE,
    calcular_consumo_escalonado,
    calcular_tarifa,
    esta_vigente,
    formato_clp,
    normalizar_categoria,
    redondear,
    seleccionar_tarifa_activa,
    simular_calculo,
)

MARZO = datetime(2024, 3, 15)
ENERO = datetime(2024, 1, 15)


@pytest.fixture
def tarifa() -> TarifaParametros:
    return TarifaParametros(
        cargo_fijo=CargoFijo(residencial=2000, comercial=5000, industrial=8000, tercera_edad=1000),
        escalones=[
            Escalon(desde=1, hasta=10, tarifa_residencial=500, tarifa_comercial=700),
            Escalon(desde=11, hasta=-1, tarifa_residencial=800, tarifa_comercial=1000),
        ],
    )


class TestHelpers:
    @pytest.mark.parametrize(
        "valor,decimales,expected",
        [(2.5, 0, 3.0), (1.5, 0, 2.0), (1234.4, 0, 1234.0), (1.005, 2, 1.01), (-2.5, 0, -3.0)],
    )
    def test_redondear_is_half_up(self, valor, decimales, expected):
        assert redondear(valor, decimales) == expected

    @pytest.mark.parametrize(
        "monto,expected",
        [(12345.6, "12.346"), (999, "999"), (1_000_000, "1.000.000"), (0, "0")],
    )
    def test_formato_clp(self, monto, expected):
        assert formato_clp(monto) == expected

    @pytest.mark.parametrize("categoria", [None, "", "rural", "RESIDENCIAL"])
    def test_unknown_categories_fall_back_to_residencial(self, categoria):
        assert normalizar_categoria(categoria) == "residencial"

    def test_known_category_kept(self):
        assert normalizar_categoria("tercera_edad") == "tercera_edad"


class TestModels:
    def test_escalon_rejects_inverted_range(self):
        with pytest.raises(ValidationError):
            Escalon(desde=10, hasta=5)

    def test_escalon_unbounded(self):
        assert Escalon(desde=11, hasta=-1).sin_limite

    def test_temporada_wraps_year(self):
        verano = Temporada(nombre="Verano", mes_inicio=12, mes_fin=2, factor_multiplicador=1.5)

        assert verano.incluye(12)
        assert verano.incluye(1)
        assert not verano.incluye(6)

    def test_temporada_factor_bounds(self):
        with pytest.raises(ValidationError):
            Temporada(nombre="x", mes_inicio=1, mes_fin=2, factor_multiplicador=5)

    def test_cargo_fijo_unknown_category(self):
        assert CargoFijo(residencial=2000, comercial=5000).para("otra") == 2000


class TestConsumoEscalonado:
    def test_walks_bands_in_order(self, tarifa):
        total, detalle = calcular_consumo_escalonado(tarifa, "residencial", 15)

        assert total == 9000
        assert [d.m3_consumidos for d in detalle] == [10, 5]
        assert detalle[1].hasta is None

    def test_unsorted_bands_give_same_result(self, tarifa):
        tarifa.escalones.reverse()

        total, _ = calcular_consumo_escalonado(tarifa, "residencial", 15)

        assert total == 9000

    def test_consumption_inside_first_band(self, tarifa):
        total, detalle = calcular_consumo_escalonado(tarifa, "residencial", 4)

        assert total == 2000
        assert len(detalle) == 1

    def test_no_bands(self):
        assert calcular_consumo_escalonado(TarifaParametros(), "residencial", 30) == (0.0, [])


class TestCalcularTarifa:
    def test_basic_residencial(self, tarifa):
        calculo = calcular_tarifa(tarifa, "residencial", 15, MARZO)

        assert calculo.cargo_fijo == 2000
        assert calculo.costo_consumo == 9000
        assert calculo.subtotal == 11000
        assert calculo.descuentos == 0
        assert calculo.recargos == 0
        assert calculo.iva == 0
        assert calculo.monto_total == 11000

    def test_comercial_prices(self, tarifa):
        assert calcular_tarifa(tarifa, "comercial", 15, MARZO).monto_total == 5000 + 7000 + 5000

    def test_zero_consumption_pays_fixed_charge(self, tarifa):
        calculo = calcular_tarifa(tarifa, "residencial", 0, MARZO)

        assert calculo.monto_total == 2000
        assert calculo.detalle_calculo.escalones == []

    def test_negative_consumption_rejected(self, tarifa):
        with pytest.raises(ValueError):
            calcular_tarifa(tarifa, "residencial", -1, MARZO)

    def test_accepts_plain_mapping(self, tarifa):
        calculo = calcular_tarifa(tarifa.model_dump(), "residencial", 15, MARZO)

        assert calculo.monto_total == 11000

    def test_season_multiplies_consumption_only(self, tarifa):
        tarifa.temporadas = [Temporada(nombre="Verano", mes_inicio=12, mes_fin=2, factor_multiplicador=1.5)]

        calculo = calcular_tarifa(tarifa, "residencial", 15, ENERO)

        assert calculo.costo_consumo == 13500
        assert calculo.monto_total == 15500
        assert calculo.detalle_calculo.temporada_aplicada.nombre == "Verano"

    def test_season_outside_months(self, tarifa):
        tarifa.temporadas = [Temporada(nombre="Verano", mes_inicio=12, mes_fin=2, factor_multiplicador=1.5)]

        calculo = calcular_tarifa(tarifa, "residencial", 15, MARZO)

        assert calculo.monto_total == 11000
        assert calculo.detalle_calculo.temporada_aplicada is None

    def test_percentage_and_fixed_discounts(self, tarifa):
        tarifa.descuentos = [
            Descuento(tipo="porcentaje", nombre="Socio fundador", valor=10),
            Descuento(tipo="monto_fijo", nombre="Campaña", valor=500),
            Descuento(tipo="monto_fijo", nombre="Inactivo", valor=9999, activo=False),
        ]

        calculo = calcular_tarifa(tarifa, "residencial", 15, MARZO)

        assert calculo.descuentos == 1600
        assert calculo.monto_total == 9400
        assert [d.nombre for d in calculo.detalle_calculo.descuentos_aplicados] == ["Socio fundador", "Campaña"]

    def test_minimum_consumption_discount(self, tarifa):
        tarifa.descuentos = [Descuento(tipo="consumo_minimo", nombre="Bajo consumo", valor=20)]

        assert calcular_tarifa(tarifa, "residencial", 15, MARZO).descuentos == 1100
        assert calcular_tarifa(tarifa, "residencial", 25, MARZO).descuentos == 0

    def test_discount_conditions(self, tarifa):
        tarifa.descuentos = [
            Descuento(tipo="monto_fijo", nombre="Comercio", valor=1000, condiciones={"categorias": ["comercial"]}),
            Descuento(tipo="monto_fijo", nombre="Anticipado", valor=300, condiciones={"pago_anticipado": True}),
            Descuento(tipo="monto_fijo", nombre="Alto", valor=200, condiciones={"consumo_minimo": 20}),
        ]

        assert calcular_tarifa(tarifa, "residencial", 15, MARZO).descuentos == 0
        assert calcular_tarifa(tarifa, "residencial", 15, MARZO, pago_anticipado=True).descuentos == 300
        assert calcular_tarifa(tarifa, "comercial", 25, MARZO).descuentos == 1200

    def test_empty_category_list_does_not_restrict(self, tarifa):
        tarifa.descuentos = [Descuento(tipo="monto_fijo", nombre="Todos", valor=100, condiciones={"categorias": []})]

        assert calcular_tarifa(tarifa, "industrial", 5, MARZO).descuentos == 100

    def test_state_subsidy(self, tarifa):
        tarifa.configuracion = ConfiguracionCalculo(
            subsidio_estatal=SubsidioEstatal(activo=True, porcentaje_descuento=50, consumo_maximo=15)
        )

        calculo = calcular_tarifa(tarifa, "residencial", 15, MARZO)

        assert calculo.monto_total == 5500
        assert calculo.detalle_calculo.descuentos_aplicados[-1].nombre == SUBSIDIO_NOMBRE
        assert calcular_tarifa(tarifa, "residencial", 16, MARZO).descuentos == 0

    @pytest.mark.parametrize(
        "dias,recargo",
        [(0, 0), (5, 0), (10, 825), (100, 1650)],
    )
    def test_late_surcharge_after_grace_days(self, tarifa, dias, recargo):
        calculo = calcular_tarifa(tarifa, "residencial", 15, MARZO, dias_vencidos=dias)

        assert calculo.recargos == pytest.approx(recargo)
        assert calculo.monto_total == 11000 + recargo

    def test_surcharge_detail(self, tarifa):
        tarifa.recargos = Recargos(dias_gracia=0, porcentaje_mora=2, porcentaje_maximo=10)

        calculo = calcular_tarifa(tarifa, "residencial", 15, MARZO, dias_vencidos=3)

        aplicado = calculo.detalle_calculo.recargos_aplicados[0]
        assert aplicado.concepto == RECARGO_MORA_CONCEPTO
        assert aplicado.valor == 6
        assert calculo.recargos == pytest.approx(660)

    def test_iva(self, tarifa):
        tarifa.configuracion = ConfiguracionCalculo(aplicar_iva=True, porcentaje_iva=19)

        calculo = calcular_tarifa(tarifa, "residencial", 15, MARZO)

        assert calculo.iva == pytest.approx(2090)
        assert calculo.monto_total == 13090

    def test_rounding_to_decimals(self, tarifa):
        tarifa.escalones = [Escalon(desde=1, hasta=-1, tarifa_residencial=0.125)]
        tarifa.configuracion = ConfiguracionCalculo(redondeo_decimales=2)

        assert calcular_tarifa(tarifa, "residencial", 1, MARZO).monto_total == 2000.13

    def test_total_never_negative(self, tarifa):
        tarifa.descuentos = [Descuento(tipo="monto_fijo", nombre="Exceso", valor=50_000)]

        assert calcular_tarifa(tarifa, "residencial", 15, MARZO).monto_total == 0

    def test_simular_uses_no_overdue_days(self, tarifa):
        calculo = simular_calculo(tarifa, "residencial", 15, now=MARZO)

        assert calculo.recargos == 0
        assert calculo.monto_total == 11000


class TestVigencia:
    def _tarifa(self, activa=True, desde_dias=-10, hasta_dias=None):
        now = datetime(2024, 6, 1)
        return SimpleNamespace(
            activa=activa,
            fecha_vigencia=now + timedelta(days=desde_dias),
            fecha_vencimiento=now + timedelta(days=hasta_dias) if hasta_dias is not None else None,
        )

    def test_in_force(self):
        assert esta_vigente(self._tarifa(), datetime(2024, 6, 1))

    def test_inactive(self):
        assert not esta_vigente(self._tarifa(activa=False), datetime(2024, 6, 1))

    def test_not_yet_in_force(self):
        assert not esta_vigente(self._tarifa(desde_dias=5), datetime(2024, 6, 1))

    def test_expired(self):
        assert not esta_vigente(self._tarifa(hasta_dias=-1), datetime(2024, 6, 1))

    def test_select_first_in_force(self):
        expirada = self._tarifa(hasta_dias=-1)
        vigente = self._tarifa()

        assert seleccionar_tarifa_activa([expirada, vigente], datetime(2024, 6, 1)) is vigente
        assert seleccionar_tarifa_activa([expirada], datetime(2024, 6, 1)) is None
