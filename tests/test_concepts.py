"""
Tests for the concept catalog and the concept/taxonomy resolver.
"""

import pytest

from rendicion.models.concept import ConceptEntry
from rendicion.models.expense import Country, Formality
from rendicion.services.concepts import (
    ACTIVE_CONCEPTS,
    FALLBACK_CONCEPT,
    ConceptCatalog,
    ConceptResolution,
    ConceptResolver,
    ConceptRule,
    ConceptSignals,
    coerce_formality,
    resolve_concept,
)


class TestConceptCatalog:
    """Active catalog rows and lookups."""

    def test_active_concepts(self):
        """The catalog lists 25 active rows across five types."""
        catalog = ConceptCatalog()
        assert len(catalog.list_concepts()) == 25
        assert catalog.list_types() == ['TARIFA', 'HONPRO', 'NEUMAT', 'COMBLU', 'SERVIC']

    def test_concepts_for_type_case_insensitive(self):
        """Type lookup ignores case."""
        tarifas = ConceptCatalog().concepts_for_type("tarifa")
        assert len(tarifas) == 14
        assert all(c.type_code == 'TARIFA' for c in tarifas)

    def test_unknown_type(self):
        """An unknown type has no concepts."""
        assert ConceptCatalog().concepts_for_type("NOPE") == []

    def test_lookup_normalizes_codes(self):
        """Lookup trims, upper-cases and drops leading zeros."""
        entry = ConceptCatalog().lookup("tarifa", "05")
        assert entry is not None
        assert entry.description == 'Peaje Argentino'

    def test_obsolete_entry_never_loaded(self):
        """HONPRO/1 is filtered out even when supplied."""
        obsolete = ConceptEntry(
            type_code='HONPRO', article_code='1', description='Obsoleto',
            unit_of_measure='UN', usage_frequency=999,
        )
        catalog = ConceptCatalog(ACTIVE_CONCEPTS + [obsolete])
        assert catalog.lookup('HONPRO', '1') is None
        assert len(catalog.list_concepts()) == 25

    def test_keys_unique(self):
        """Every type/article pair appears once."""
        keys = [c.key for c in ACTIVE_CONCEPTS]
        assert len(keys) == len(set(keys))


class TestLexicalResolution:
    """Concept chosen from receipt text."""

    @pytest.mark.parametrize("country,article", [
        (Country.ARG, '5'),
        (Country.CHL, '4'),
        (Country.URY, '6'),
        (None, '5'),
    ])
    def test_toll_article_by_country(self, country, article):
        """Toll article depends on the country."""
        resolution = resolve_concept("PEAJE RUTA 9", country=country)
        assert resolution.key == ('TARIFA', article)
        assert resolution.source == 'lexical'

    @pytest.mark.parametrize("text,expected", [
        ("DIRECCION NACIONAL DE MIGRACIONES", ('TARIFA', '2')),
        ("PASO FRONTERA SALIDA", ('TARIFA', '2')),
        ("GASTOS EN FRONTERA", ('TARIFA', '21')),
        ("CRISTO REDENTOR", ('TARIFA', '1')),
        ("ADUANA PASO", ('TARIFA', '3')),
        ("FUMIGACION CAMION", ('TARIFA', '10')),
        ("ISCAMEN BARRERA SANITARIA", ('TARIFA', '7')),
        ("SELLADO PROVINCIAL", ('TARIFA', '8')),
        ("SENASA", ('TARIFA', '11')),
        ("ESTACIONAMIENTO", ('TARIFA', '13')),
        ("ALMUERZO", ('TARIFA', '12')),
        ("HONORARIOS PROFESIONALES", ('HONPRO', '6')),
        ("A.T.A. SERVICIO", ('HONPRO', '4')),
        ("GESTIONES ADUANERAS", ('HONPRO', '2')),
        ("SERVICIOS ADUANEROS", ('HONPRO', '3')),
        ("ALQUILER PREDIO DOCWELL", ('HONPRO', '5')),
        ("PINCHADURA", ('NEUMAT', '3')),
        ("ROTACION DE CUBIERTAS", ('NEUMAT', '2')),
        ("GOMERIA PINCHADURA Y ROTACION", ('NEUMAT', '3')),
        ("FALSO FLETE", ('SERVIC', '3')),
    ])
    def test_rule_table(self, text, expected):
        """Each rule maps its keywords to its concept."""
        assert resolve_concept(text).key == expected

    def test_accents_ignored(self):
        """Accented keywords still match."""
        assert resolve_concept("Migración").key == ('TARIFA', '2')
        assert resolve_concept("Neumático").key == ('NEUMAT', '3')

    def test_litres_route_to_comblu(self):
        """Litre-denominated items are fuel or lubricant."""
        assert resolve_concept("GASOIL 120 LTS").key == ('COMBLU', '3')
        assert resolve_concept("UREA ADBLUE").key == ('COMBLU', '3')
        assert resolve_concept("ACEITE DEXRON 4 LITROS").key == ('COMBLU', '9')

    def test_litres_win_over_later_rules(self):
        """A fuel ticket with a highway address is not a toll."""
        assert resolve_concept("YPF AUTOPISTA KM 30\nGASOIL 80 LTS").key[0] == 'COMBLU'

    def test_no_match_falls_back(self):
        """Unmatched text gets the informal fallback concept."""
        for text in ("", "XYZ", "   ", "12345"):
            resolution = resolve_concept(text)
            assert resolution.key == FALLBACK_CONCEPT
            assert resolution.formality == Formality.INFORMAL
            assert resolution.source == 'fallback'

    def test_inactive_rule_output_skipped(self):
        """A rule pointing at an inactive pair is ignored."""
        resolver = ConceptResolver(rules=[ConceptRule('old', r'VIEJO', 'HONPRO', '1')])
        resolution = resolver.resolve(ConceptSignals(free_text="VIEJO"))
        assert resolution.key == FALLBACK_CONCEPT


class TestLexicalFormality:
    """Formality and provider from text evidence."""

    def test_known_provider(self, ausol_ticket):
        """A known operator sets provider and formality."""
        resolution = resolve_concept(ausol_ticket, country=Country.ARG)
        assert resolution.key == ('TARIFA', '5')
        assert resolution.provider == 'Ausol'
        assert resolution.formality == Formality.FORMAL

    def test_provider_beats_informal_evidence(self):
        """Provider formality outranks informal wording."""
        resolution = resolve_concept("AUSOL PEAJE\nNO VALIDO COMO FACTURA")
        assert resolution.formality == Formality.FORMAL

    def test_informal_evidence_beats_formal_rate(self):
        """Informal wording outranks a formal reference rate."""
        resolution = resolve_concept("PEAJE\nNO VALIDO COMO FACTURA")
        assert resolution.key == ('TARIFA', '5')
        assert resolution.formality == Formality.INFORMAL
        assert resolution.provider == ""

    def test_formal_evidence_beats_informal_rate(self):
        """Invoice wording outranks an informal reference rate."""
        assert resolve_concept("ESTACIONAMIENTO\nFACTURA B").formality == Formality.FORMAL

    def test_reference_rate(self):
        """Without evidence the reference rate decides."""
        assert resolve_concept("ESTACIONAMIENTO").formality == Formality.INFORMAL
        assert resolve_concept("FUMIGACION").formality == Formality.FORMAL

    def test_migrations_provider(self):
        """The migrations office is a known formal provider."""
        resolution = resolve_concept("DIRECCION NACIONAL DE MIGRACIONES")
        assert resolution.provider == 'Dirección Nacional de Migraciones'
        assert resolution.formality == Formality.FORMAL


class TestAIRepair:
    """AI-proposed concepts are repaired, never trusted blindly."""

    def test_obsolete_guess_replaced(self):
        """An obsolete guess becomes the fallback with a warning."""
        resolution = resolve_concept(ai_type_guess="HONPRO", ai_article_guess="1", ai_formality_guess="FORMAL")
        assert resolution.key == FALLBACK_CONCEPT
        assert resolution.source == 'ai'
        assert resolution.formality == Formality.FORMAL
        assert any('obsolete' in w for w in resolution.warnings)

    def test_unknown_guess_replaced(self):
        """A pair outside the catalog becomes the fallback."""
        assert resolve_concept(ai_type_guess="FOO", ai_article_guess="9").key == FALLBACK_CONCEPT

    def test_valid_guess_kept_and_normalized(self):
        """A valid guess is kept with cleaned codes."""
        assert resolve_concept(ai_type_guess=" tarifa", ai_article_guess=5).key == ('TARIFA', '5')
        assert resolve_concept(ai_type_guess="TARIFA", ai_article_guess="05").key == ('TARIFA', '5')

    def test_guess_overrides_text(self):
        """A valid guess outranks the text rules."""
        assert resolve_concept("PEAJE", ai_type_guess="TARIFA", ai_article_guess="2").key == ('TARIFA', '2')

    @pytest.mark.parametrize("value,expected", [
        ("FORMAL", Formality.FORMAL),
        (" formal ", Formality.FORMAL),
        ("INFORMAL", Formality.INFORMAL),
        ("SEMI", Formality.INFORMAL),
        ("", Formality.INFORMAL),
        (None, Formality.INFORMAL),
    ])
    def test_formality_coerced(self, value, expected):
        """Anything but FORMAL reads as INFORMAL."""
        assert coerce_formality(value) == expected
        resolution = resolve_concept(ai_type_guess="TARIFA", ai_article_guess="5", ai_formality_guess=value)
        assert resolution.formality == expected

    def test_provider_never_fabricated(self):
        """A blank provider guess stays blank."""
        for provider in (None, "", "   "):
            resolution = resolve_concept(ai_type_guess="TARIFA", ai_article_guess="2", ai_provider_guess=provider)
            assert resolution.provider == ""

    def test_provider_cleaned(self):
        """Provider whitespace is collapsed."""
        resolution = resolve_concept(ai_type_guess="TARIFA", ai_article_guess="5", ai_provider_guess="  Ausol   S.A. ")
        assert resolution.provider == "Ausol S.A."

    def test_never_emits_obsolete(self):
        """No guess combination yields HONPRO/1 or blank codes."""
        guesses = [("HONPRO", "1"), ("honpro", "01"), ("HONPRO", 1), ("", "1"), ("HONPRO", "")]
        for type_guess, article_guess in guesses:
            resolution = resolve_concept(ai_type_guess=type_guess, ai_article_guess=article_guess)
            assert resolution.key != ('HONPRO', '1')
            assert all(resolution.key)


class TestCoherence:
    """Warnings for unusual concept combinations."""

    def test_unexpected_provider_flagged(self):
        """A provider foreign to the concept is flagged."""
        resolution = ConceptResolution('TARIFA', '2', Formality.FORMAL, provider='Ausol')
        warnings = ConceptResolver().check_coherence(resolution)
        assert any('unusual' in w for w in warnings)

    def test_rare_formality_flagged(self):
        """A formality contradicting a strong rate is flagged."""
        resolution = ConceptResolution('TARIFA', '2', Formality.INFORMAL)
        warnings = ConceptResolver().check_coherence(resolution)
        assert any('rare' in w for w in warnings)

    def test_coherent_resolution(self):
        """A typical resolution has no warnings."""
        resolution = ConceptResolution('TARIFA', '5', Formality.FORMAL, provider='Ausol')
        assert ConceptResolver().check_coherence(resolution) == []
