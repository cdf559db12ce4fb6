"""
Accounting concept catalog and the concept/taxonomy resolver.

The resolver maps receipt text, or an upstream AI classification guess,
onto a (type_code, article_code) pair from the active catalog, together
with a formality flag and a provider name. It never fails: anything it
cannot place resolves to the fallback concept.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Tuple, Union, Callable

from rendicion.models.concept import ConceptEntry
from rendicion.models.expense import Country, Formality
from rendicion.utils.text import fold_text, collapse_spaces

logger = logging.getLogger(__name__)


def _entry(type_code, article_code, description, unit, frequency, special=""):
    return ConceptEntry(
        type_code=type_code,
        article_code=article_code,
        description=description,
        unit_of_measure=unit,
        usage_frequency=frequency,
        special_concept=special,
    )


# Active concepts for trip expense reports, by usage frequency.
# HONPRO/1 is obsolete and intentionally absent.
ACTIVE_CONCEPTS: List[ConceptEntry] = [
    _entry('TARIFA', '2', 'Entrada / Salida (Migraciones)', 'UN', 5569),
    _entry('TARIFA', '5', 'Peaje Argentino', 'UN', 4662),
    _entry('TARIFA', '10', 'Desinfección', 'UN', 3434),
    _entry('TARIFA', '21', 'Gastos en Frontera', 'UN', 2574, 'VT-V001'),
    _entry('TARIFA', '1', 'Tunel Inter. Ruta Nac 7 Camión', 'UN', 1843),
    _entry('TARIFA', '14', 'Gastos extras (Caja Camión)', 'UN', 245),
    _entry('TARIFA', '12', 'Viaticos Chofer', 'UN', 120),
    _entry('TARIFA', '3', 'Entrada / Salida (Aduana)', 'UN', 77),
    _entry('TARIFA', '7', 'Iscamen - Control Sanitario', 'UN', 41),
    _entry('TARIFA', '8', 'Sellados', 'UN', 22, 'VT-V000'),
    _entry('TARIFA', '4', 'Peaje Chileno', 'UN', 20),
    _entry('TARIFA', '6', 'Peaje Uruguayo', 'UN', 5),
    _entry('TARIFA', '13', 'Estacionamiento / Aparcadero', 'UN', 5),
    _entry('TARIFA', '11', 'Senasa', 'UN', 2),
    _entry('HONPRO', '6', 'Honorarios Profesionales', 'UN', 478),
    _entry('HONPRO', '4', 'ATA - Agente de Transporte Aduanero', 'UN', 224),
    _entry('HONPRO', '2', 'Gestiones Aduaneras', 'UN', 12),
    _entry('HONPRO', '5', 'Alquiler Predio Docwell', 'UN', 2),
    _entry('HONPRO', '3', 'Servicios Aduaneros', 'UN', 1),
    _entry('NEUMAT', '3', 'Pinchadura y Rotación', 'UN', 157),
    _entry('NEUMAT', '1', 'Pinchadura', 'UN', 37),
    _entry('NEUMAT', '2', 'Rotación', 'UN', 30),
    _entry('COMBLU', '3', 'Urea 32% Adblue', 'LT', 1),
    _entry('COMBLU', '9', 'Aceite Hidraulico Dexron II', 'LT', 1),
    _entry('SERVIC', '3', 'Falso Flete', 'UN', 2, 'VT-V000'),
]

OBSOLETE_CONCEPTS = {('HONPRO', '1')}

# Low-specificity concept used whenever nothing better is known
FALLBACK_CONCEPT = ('TARIFA', '14')

# Share of historical receipts per concept that carried formal documentation
FORMALITY_RATES: Dict[Tuple[str, str], float] = {
    ('TARIFA', '2'): 0.97,
    ('TARIFA', '5'): 0.93,
    ('TARIFA', '10'): 0.86,
    ('TARIFA', '21'): 0.31,
    ('TARIFA', '1'): 0.90,
    ('TARIFA', '14'): 0.12,
    ('TARIFA', '12'): 0.18,
    ('TARIFA', '3'): 0.81,
    ('TARIFA', '7'): 0.76,
    ('TARIFA', '8'): 0.68,
    ('TARIFA', '4'): 0.88,
    ('TARIFA', '6'): 0.84,
    ('TARIFA', '13'): 0.35,
    ('TARIFA', '11'): 0.80,
    ('HONPRO', '6'): 0.95,
    ('HONPRO', '4'): 0.96,
    ('HONPRO', '2'): 0.91,
    ('HONPRO', '5'): 0.89,
    ('HONPRO', '3'): 0.90,
    ('NEUMAT', '3'): 0.42,
    ('NEUMAT', '1'): 0.37,
    ('NEUMAT', '2'): 0.40,
    ('COMBLU', '3'): 0.85,
    ('COMBLU', '9'): 0.79,
    ('SERVIC', '3'): 0.60,
}

# Providers the expense history expects for a concept
EXPECTED_PROVIDERS: Dict[Tuple[str, str], str] = {
    ('TARIFA', '2'): 'Dirección Nacional de Migraciones',
    ('TARIFA', '7'): 'ISCAMEN',
    ('TARIFA', '11'): 'SENASA',
    ('HONPRO', '5'): 'Docwell',
}

FORMAL_EVIDENCE = re.compile(
    r'FACTURA|\bC\.?A\.?E\b|BOLETA\s+ELECTRONICA|E-TICKET|\bCFE\b|'
    r'TIQUE\s+FACTURA|COMPROBANTE\s+FISCAL'
)

INFORMAL_EVIDENCE = re.compile(
    r'NO\s+VALIDO\s+COMO\s+FACTURA|COMPROBANTE\s+NO\s+FISCAL|'
    r'DOCUMENTO\s+NO\s+VALIDO|RECIBO\s+X\b|\bPRESUPUESTO\b'
)

PEAJE_ARTICLE_BY_COUNTRY = {
    Country.ARG: '5',
    Country.CHL: '4',
    Country.URY: '6',
}

MAX_PROVIDER = 120


@dataclass(frozen=True)
class ProviderRule:
    """Known provider recognized from receipt text."""
    name: str
    pattern: str
    formality: Formality = Formality.FORMAL
    compiled: re.Pattern = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', re.compile(self.pattern))


KNOWN_PROVIDERS: List[ProviderRule] = [
    ProviderRule('Ausol', r'AUTOPISTAS\s+DEL\s+SOL|\bAUSOL\b'),
    ProviderRule('AUBASA', r'\bAUBASA\b|AUTOPISTAS\s+DE\s+BUENOS\s+AIRES'),
    ProviderRule('Corredores Viales', r'CORREDORES\s+VIALES'),
    ProviderRule('Caminos del Río Uruguay', r'CAMINOS\s+DEL\s+RIO\s+URUGUAY'),
    ProviderRule('Dirección Nacional de Migraciones', r'(?:DIRECCION\s+NACIONAL\s+DE\s+)?MIGRACIONES'),
    ProviderRule('SENASA', r'\bSENASA\b'),
    ProviderRule('ISCAMEN', r'\bISCAMEN\b'),
    ProviderRule('Docwell', r'\bDOCWELL\b'),
    ProviderRule('YPF', r'\bYPF\b'),
    ProviderRule('Copec', r'\bCOPEC\b'),
    ProviderRule('ANCAP', r'\bANCAP\b'),
    ProviderRule('Autopista Central', r'AUTOPISTA\s+CENTRAL'),
    ProviderRule('Corporación Vial del Uruguay', r'CORPORACION\s+VIAL(?:\s+DEL\s+URUGUAY)?|\bCVU\b'),
]


ArticleChoice = Union[str, Callable[[Optional[Country]], str]]


@dataclass(frozen=True)
class ConceptRule:
    """Keyword family mapped to a concept; the table is scanned top to bottom."""
    name: str
    pattern: str
    type_code: str
    article: ArticleChoice
    compiled: re.Pattern = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', re.compile(self.pattern))

    def article_for(self, country: Optional[Country]) -> str:
        if callable(self.article):
            return self.article(country)
        return self.article


def _peaje_article(country: Optional[Country]) -> str:
    # Unclassified tolls default to the Argentine article (dominant usage)
    return PEAJE_ARTICLE_BY_COUNTRY.get(country, '5')


LITRES = r'\d\s*(?:LTS?|LITROS?)\b|\bLITROS?\b|\bLTS\b|\bLT\.'

CONCEPT_RULES: List[ConceptRule] = [
    # Litre-denominated items only ever go to COMBLU
    ConceptRule('urea', r'\bUREA\b|ADBLUE|\bARLA\b', 'COMBLU', '3'),
    ConceptRule('aceite', r'ACEITE|DEXRON|HIDRAULIC|LUBRICANTE', 'COMBLU', '9'),
    ConceptRule('litros', LITRES, 'COMBLU', '3'),
    ConceptRule('falso_flete', r'FALSO\s+FLETE', 'SERVIC', '3'),
    ConceptRule('docwell', r'DOCWELL|ALQUILER\s+(?:DE\s+)?PREDIO', 'HONPRO', '5'),
    ConceptRule('ata', r'\bA\.?T\.?A\b|AGENTE\s+DE\s+TRANSPORTE\s+ADUANERO', 'HONPRO', '4'),
    ConceptRule('gestiones_aduaneras', r'GESTION(?:ES)?\s+ADUANERAS?|DESPACHANTE', 'HONPRO', '2'),
    ConceptRule('servicios_aduaneros', r'SERVICIOS?\s+ADUANEROS?', 'HONPRO', '3'),
    ConceptRule('honorarios', r'HONORARIO', 'HONPRO', '6'),
    ConceptRule('tunel', r'\bTUNEL\b|CRISTO\s+REDENTOR', 'TARIFA', '1'),
    ConceptRule('gastos_frontera', r'GASTOS?\s+(?:EN|DE)\s+FRONTERA', 'TARIFA', '21'),
    ConceptRule('migraciones', r'MIGRACI|FRONTERA|\bENTRADA\b|\bSALIDA\b', 'TARIFA', '2'),
    ConceptRule('aduana', r'ADUANA', 'TARIFA', '3'),
    ConceptRule('peaje', r'PEAJE|AUTOPISTA|\bTAG\b|\bAUSOL\b|\bAUBASA\b|CORREDORES\s+VIALES|'
                         r'CORPORACION\s+VIAL|\bCVU\b', 'TARIFA', _peaje_article),
    ConceptRule('desinfeccion', r'DESINFEC|FUMIGA', 'TARIFA', '10'),
    ConceptRule('iscamen', r'ISCAMEN|CONTROL\s+SANITARIO|BARRERA\s+SANITARIA', 'TARIFA', '7'),
    ConceptRule('senasa', r'SENASA', 'TARIFA', '11'),
    ConceptRule('sellados', r'SELLAD', 'TARIFA', '8'),
    ConceptRule('estacionamiento', r'ESTACIONAMIENTO|PARKING|APARCADERO|PLAYA\s+DE\s+CAMIONES', 'TARIFA', '13'),
    ConceptRule('pinchadura_rotacion', r'PINCHADURA[\s\S]*ROTACION|ROTACION[\s\S]*PINCHADURA', 'NEUMAT', '3'),
    ConceptRule('rotacion', r'ROTACION', 'NEUMAT', '2'),
    ConceptRule('neumaticos', r'NEUMATIC|CUBIERTA|PINCHADURA|GOMERIA', 'NEUMAT', '3'),
    ConceptRule('viaticos', r'VIATICO|COMIDA|ALMUERZO|\bCENA\b|RESTAURANT|PARRILLA|COMEDOR|'
                            r'HOTEL|ALOJAMIENTO', 'TARIFA', '12'),
]


@dataclass
class ConceptSignals:
    """
    Inputs to the resolver.

    AI fields are optional; when either code guess is present the
    resolver validates the guess instead of reading the text.
    """
    free_text: str = ""
    ai_type_guess: Optional[str] = None
    ai_article_guess: Optional[Union[str, int]] = None
    ai_formality_guess: Optional[str] = None
    ai_provider_guess: Optional[str] = None
    country: Optional[Country] = None

    @property
    def has_ai_guess(self) -> bool:
        return bool(_clean_code(self.ai_type_guess) or _clean_code(self.ai_article_guess))


@dataclass
class ConceptResolution:
    """Resolved accounting classification for one receipt."""
    type_code: str
    article_code: str
    formality: Formality = Formality.INFORMAL
    provider: str = ""
    source: str = "fallback"  # lexical | ai | fallback
    rule: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.type_code, self.article_code)


def _clean_code(value) -> str:
    """Normalize a type or article code: trimmed, upper-case, no leading zeros."""
    if value is None:
        return ""
    code = str(value).strip().upper()
    if code.isdigit():
        code = str(int(code))
    return code


def coerce_formality(value: Optional[str]) -> Formality:
    """Map anything other than FORMAL/INFORMAL to INFORMAL."""
    if isinstance(value, Formality):
        return value
    cleaned = str(value or "").strip().upper()
    if cleaned == Formality.FORMAL.value:
        return Formality.FORMAL
    return Formality.INFORMAL


class ConceptCatalog:
    """Read-only lookup over the active concept table."""

    def __init__(self, entries: Optional[List[ConceptEntry]] = None):
        entries = entries if entries is not None else ACTIVE_CONCEPTS
        self._entries = [e for e in entries if e.key not in OBSOLETE_CONCEPTS]
        self._by_key = {e.key: e for e in self._entries}

    def list_concepts(self) -> List[ConceptEntry]:
        return list(self._entries)

    def list_types(self) -> List[str]:
        types = []
        for entry in self._entries:
            if entry.type_code not in types:
                types.append(entry.type_code)
        return types

    def concepts_for_type(self, type_code: str) -> List[ConceptEntry]:
        wanted = (type_code or "").upper()
        return [e for e in self._entries if e.type_code.upper() == wanted]

    def lookup(self, type_code, article_code) -> Optional[ConceptEntry]:
        return self._by_key.get((_clean_code(type_code), _clean_code(article_code)))

    def is_active(self, type_code, article_code) -> bool:
        return self.lookup(type_code, article_code) is not None


class ConceptResolver:
    """Service for mapping receipt signals onto the accounting taxonomy."""

    def __init__(
        self,
        catalog: Optional[ConceptCatalog] = None,
        rules: Optional[List[ConceptRule]] = None,
        providers: Optional[List[ProviderRule]] = None,
        formality_rates: Optional[Dict[Tuple[str, str], float]] = None,
    ):
        self.catalog = catalog or ConceptCatalog()
        self.rules = rules if rules is not None else CONCEPT_RULES
        self.providers = providers if providers is not None else KNOWN_PROVIDERS
        self.formality_rates = formality_rates if formality_rates is not None else FORMALITY_RATES

    def resolve(self, signals: ConceptSignals) -> ConceptResolution:
        """
        Resolve a concept from text or from an AI guess.

        Args:
            signals: Free text plus optional AI guesses

        Returns:
            ConceptResolution; never the obsolete HONPRO/1 and never empty codes
        """
        try:
            if signals.has_ai_guess:
                resolution = self.resolve_ai(signals)
            else:
                resolution = self.resolve_lexical(signals.free_text, signals.country)
        except (re.error, AttributeError, ValueError):
            logger.warning("Error resolving concept", exc_info=True)
            resolution = self._fallback()
            resolution.warnings.append('resolver error; fallback concept used')

        if resolution.key in OBSOLETE_CONCEPTS or not all(resolution.key):
            resolution.type_code, resolution.article_code = FALLBACK_CONCEPT

        resolution.warnings.extend(self.check_coherence(resolution))
        return resolution

    def resolve_lexical(self, text: str, country: Optional[Country] = None) -> ConceptResolution:
        """
        Match keyword families top to bottom; the first rule found wins.

        Args:
            text: Receipt text
            country: Classified country, used to pick the toll article

        Returns:
            ConceptResolution from the first matching rule, or the fallback
        """
        folded = fold_text(text or "")
        provider_rule = self._match_provider(folded)

        resolution = None
        for rule in self.rules:
            if not rule.compiled.search(folded):
                continue
            article = rule.article_for(country)
            if not self.catalog.is_active(rule.type_code, article):
                logger.debug("Rule produced inactive concept", extra={
                    "rule": rule.name, "type_code": rule.type_code, "article_code": article
                })
                continue
            resolution = ConceptResolution(
                type_code=rule.type_code,
                article_code=article,
                source='lexical',
                rule=rule.name,
            )
            break

        if resolution is None:
            resolution = self._fallback()

        resolution.provider = provider_rule.name if provider_rule else ""
        resolution.formality = self._formality_from_text(folded, resolution.key, provider_rule)
        return resolution

    def resolve_ai(self, signals: ConceptSignals) -> ConceptResolution:
        """
        Validate and repair an upstream AI classification.

        - Obsolete or unknown (type, article) pairs become the fallback concept.
        - Formality outside FORMAL/INFORMAL becomes INFORMAL.
        - An empty provider stays empty.
        """
        type_code = _clean_code(signals.ai_type_guess)
        article_code = _clean_code(signals.ai_article_guess)
        warnings = []

        if (type_code, article_code) in OBSOLETE_CONCEPTS:
            warnings.append(f'obsolete concept {type_code}/{article_code} replaced by fallback')
            type_code, article_code = FALLBACK_CONCEPT
        elif not self.catalog.is_active(type_code, article_code):
            warnings.append(f'unknown concept {type_code or "?"}/{article_code or "?"} replaced by fallback')
            type_code, article_code = FALLBACK_CONCEPT

        provider = collapse_spaces(signals.ai_provider_guess or "")[:MAX_PROVIDER]

        return ConceptResolution(
            type_code=type_code,
            article_code=article_code,
            formality=coerce_formality(signals.ai_formality_guess),
            provider=provider,
            source='ai',
            warnings=warnings,
        )

    def check_coherence(self, resolution: ConceptResolution) -> List[str]:
        """
        Report mismatches between the concept and its formality/provider.

        These are hints for the human reviewer, not errors.
        """
        warnings = []

        expected = EXPECTED_PROVIDERS.get(resolution.key)
        if expected and resolution.provider and resolution.provider != expected:
            warnings.append(
                f'provider "{resolution.provider}" unusual for {resolution.type_code}/{resolution.article_code}'
                f' (expected "{expected}")'
            )

        rate = self.formality_rates.get(resolution.key)
        if rate is not None:
            usual = Formality.FORMAL if rate >= 0.5 else Formality.INFORMAL
            if resolution.formality != usual and (rate >= 0.9 or rate <= 0.1):
                warnings.append(
                    f'{resolution.formality.value} is rare for {resolution.type_code}/{resolution.article_code}'
                )

        return warnings

    def formality_rate(self, key: Tuple[str, str]) -> Optional[float]:
        return self.formality_rates.get(key)

    def _match_provider(self, folded: str) -> Optional[ProviderRule]:
        for provider in self.providers:
            if provider.compiled.search(folded):
                return provider
        return None

    def _formality_from_text(
        self,
        folded: str,
        key: Tuple[str, str],
        provider_rule: Optional[ProviderRule],
    ) -> Formality:
        """
        Decide formality: known provider, then direct evidence in the text,
        then the concept's historical rate.
        """
        if provider_rule is not None:
            return provider_rule.formality
        if INFORMAL_EVIDENCE.search(folded):
            return Formality.INFORMAL
        if FORMAL_EVIDENCE.search(folded):
            return Formality.FORMAL

        rate = self.formality_rates.get(key)
        if rate is not None and rate >= 0.5:
            return Formality.FORMAL
        return Formality.INFORMAL

    def _fallback(self) -> ConceptResolution:
        type_code, article_code = FALLBACK_CONCEPT
        return ConceptResolution(
            type_code=type_code,
            article_code=article_code,
            formality=Formality.INFORMAL,
            source='fallback',
        )


def resolve_concept(
    free_text: str = "",
    ai_type_guess: Optional[str] = None,
    ai_article_guess: Optional[Union[str, int]] = None,
    ai_formality_guess: Optional[str] = None,
    ai_provider_guess: Optional[str] = None,
    country: Optional[Country] = None,
) -> ConceptResolution:
    """Module-level shortcut using the default catalog and rule table."""
    return ConceptResolver().resolve(ConceptSignals(
        free_text=free_text,
        ai_type_guess=ai_type_guess,
        ai_article_guess=ai_article_guess,
        ai_formality_guess=ai_formality_guess,
        ai_provider_guess=ai_provider_guess,
        country=country,
    ))
