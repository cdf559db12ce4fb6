"""
Tests for country classification from fiscal indicators.
"""

import pytest

from rendicion.models.expense import Country
from rendicion.services.country import CountryClassifier, Signal, classify_country


class TestCountryClassifier:
    """Weighted signals, floor and tie order."""

    def test_argentina(self, ausol_ticket):
        """CUIT plus a toll operator reads as Argentina."""
        assert classify_country(ausol_ticket) == Country.ARG

    def test_chile(self):
        """RUT, boleta and IVA 19 read as Chile."""
        text = (
            "COPEC S.A.\n"
            "RUT 76.123.456-7\n"
            "BOLETA ELECTRONICA\n"
            "IVA 19%\n"
            "TOTAL $ 45.000"
        )
        assert classify_country(text) == Country.CHL

    def test_uruguay(self):
        """RUC, e-ticket and IVA 22 read as Uruguay."""
        text = "ANCAP\nRUC 210000000019\nE-TICKET\nIVA 22%\nMONTEVIDEO"
        assert classify_country(text) == Country.URY

    def test_accents_and_case_ignored(self):
        """Accents and lower case do not hide the country name."""
        assert classify_country("República Oriental del Uruguay") == Country.URY

    def test_river_name_is_not_uruguay(self):
        """The Uruguay river operator is Argentine."""
        assert classify_country("CAMINOS DEL RIO URUGUAY\nPEAJE") == Country.ARG

    def test_below_floor(self):
        """Text without signals stays unclassified."""
        assert classify_country("GRACIAS POR SU COMPRA") is None
        assert classify_country("") is None

    def test_floor_is_configurable(self):
        """A higher floor rejects a lone city match."""
        classifier = CountryClassifier(min_score=20)
        assert classifier.classify("SANTIAGO") is None

    def test_tie_goes_to_first_country(self):
        """Equal scores go to the first country in iteration order."""
        signals = {
            Country.ARG: [Signal('pesos', r'PESOS', 10)],
            Country.CHL: [Signal('pesos', r'PESOS', 10)],
            Country.URY: [],
        }
        assert CountryClassifier(signals=signals).classify("PESOS") == Country.ARG

        reordered = {
            Country.CHL: signals[Country.CHL],
            Country.ARG: signals[Country.ARG],
        }
        assert CountryClassifier(signals=reordered).classify("PESOS") == Country.CHL

    def test_scores_and_debug(self, ausol_ticket):
        """Per-country scores and matched signals are exposed."""
        classifier = CountryClassifier()
        scores = {s.country: s for s in classifier.score(ausol_ticket)}
        assert scores['ARG'].score == 25
        assert set(scores['ARG'].matched) == {'cuit', 'operators'}
        assert scores['CHL'].score == 0

        debug = {}
        classifier.classify(ausol_ticket, _debug=debug)
        assert debug['country_scores']['ARG'] == 25

    def test_vat_rates(self):
        """VAT rates point at their country."""
        assert classify_country("IVA 21,00 %") == Country.ARG
        assert classify_country("IVA BASICO 22%") == Country.URY


class TestCityNames:
    """City names shared across borders or embedded in other words."""

    @pytest.mark.parametrize("text", [
        "ESTACION DE SERVICIO\nSANTIAGO DEL ESTERO",
        "PEAJE CONCEPCION DEL URUGUAY",
        "COLONIA CAROYA\nPARRILLA",
        "SAN ANTONIO DE ARECO",
    ])
    def test_argentine_namesakes(self, text):
        """Argentine towns named after foreign cities stay Argentine."""
        assert classify_country(text) == Country.ARG

    def test_car_brand_is_not_a_city(self):
        """MERCEDES-BENZ does not score for Uruguay."""
        assert classify_country("MERCEDES-BENZ CONCESIONARIO") is None

    def test_city_inside_a_word(self):
        """A city name embedded in a longer word does not match."""
        assert classify_country("ASALTO\nSALTOS") is None

    def test_foreign_cities_still_match(self):
        """Unqualified Chilean and Uruguayan cities keep scoring."""
        assert classify_country("CONCEPCION") == Country.CHL
        assert classify_country("COLONIA DEL SACRAMENTO") == Country.URY
