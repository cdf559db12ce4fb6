"""
Country classifier for receipts from Argentina, Chile and Uruguay.

Each country has an independent list of weighted signals (tax-id
terminology, VAT rates, tax authorities, currencies, known operators and
place names). Every signal found in the uppercased text adds its weight to
that country's score; the leader is reported only above a confidence floor.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any

from rendicion.models.expense import Country
from rendicion.utils.candidates import CountryScore
from rendicion.utils.scoring import select_best_country, MIN_COUNTRY_SCORE
from rendicion.utils.text import fold_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Signal:
    """A weighted country indicator."""
    name: str
    pattern: str
    weight: int
    compiled: re.Pattern = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', re.compile(self.pattern))


def _vat(rate: str) -> str:
    return r'IVA\D{0,12}' + rate + r'(?:[.,]0+)?\s*%'


# Tax authorities and currency codes score highest, place names lowest
COUNTRY_SIGNALS: Dict[Country, List[Signal]] = {
    Country.ARG: [
        Signal('cuit', r'\bCUIT\b|\bC\.U\.I\.T\b', 15),
        Signal('afip', r'\bAFIP\b|\bARCA\b', 15),
        Signal('ars', r'\bARS\b|PESOS\s+ARGENTINOS', 12),
        Signal('iva_21', _vat(r'21'), 12),
        Signal('iva_10_5', _vat(r'10[.,]5'), 12),
        Signal('ingresos_brutos', r'INGRESOS\s+BRUTOS|\bIIBB\b|\bI\.B\.', 10),
        Signal('responsable_inscripto', r'RESP(?:ONSABLE)?\.?\s+INSCRI', 10),
        Signal('monotributo', r'MONOTRIBUT', 10),
        Signal('cae', r'\bCAE\b|C\.A\.E\.', 8),
        Signal('country_name', r'\bARGENTINA\b|REP(?:UBLICA)?\.?\s+ARGENTINA', 10),
        Signal('operators', r'AUTOPISTAS\s+DEL\s+SOL|\bAUSOL\b|\bAUBASA\b|CORREDORES\s+VIALES|'
                            r'VIALIDAD\s+NACIONAL|\bYPF\b|\bAXION\b|CAMINOS\s+DEL\s+RIO\s+URUGUAY', 10),
        Signal('customs_places', r'CRISTO\s+REDENTOR|HORCONES|USPALLATA|PASO\s+DE\s+LOS\s+LIBRES', 10),
        Signal('cities', r'\bBUENOS\s+AIRES\b|\bC\.?A\.?B\.?A\b|\bMENDOZA\b|\bROSARIO\b|\bCORDOBA\b|'
                         r'\bSAN\s+LUIS\b|\bSAN\s+JUAN\b|\bNEUQUEN\b|\bSANTA\s+FE\b|\bENTRE\s+RIOS\b|'
                         r'\bGUALEGUAYCHU\b|SANTIAGO\s+DEL\s+ESTERO|CONCEPCION\s+DEL\s+URUGUAY|'
                         r'COLONIA\s+CAROYA|SAN\s+ANTONIO\s+DE\s+ARECO', 8),
    ],
    Country.CHL: [
        Signal('rut', r'\bRUT\b|\bR\.U\.T\b', 15),
        Signal('sii', r'\bSII\b|\bS\.I\.I\b', 15),
        Signal('clp', r'\bCLP\b|PESOS\s+CHILENOS', 12),
        Signal('iva_19', _vat(r'19'), 12),
        Signal('boleta', r'BOLETA\s+ELECTRONICA|FACTURA\s+ELECTRONICA\s+AFECTA|TIMBRE\s+ELECTRONICO', 10),
        Signal('giro', r'\bGIRO\b', 5),
        Signal('country_name', r'\bCHILE\b', 10),
        Signal('operators', r'\bCOPEC\b|\bENEX\b|AUTOPISTA\s+CENTRAL|COSTANERA\s+NORTE|VESPUCIO|'
                            r'RUTA\s+68|AUTOPISTA\s+LOS\s+LIBERTADORES|TAG\s+TOTAL', 10),
        Signal('customs_places', r'LOS\s+LIBERTADORES|LOS\s+ANDES|CHACABUCO', 10),
        Signal('cities', r'\bSANTIAGO\b(?!\s+DEL\s+ESTERO)|\bVALPARAISO\b|'
                         r'\bSAN\s+ANTONIO\b(?!\s+DE\s+ARECO)|\bRANCAGUA\b|'
                         r'\bCONCEPCION\b(?!\s+DEL\s+URUGUAY)|\bLLAY\s*LLAY\b', 8),
    ],
    Country.URY: [
        Signal('ruc', r'\bRUC\b|\bR\.U\.C\b', 15),
        Signal('dgi', r'\bDGI\b|\bD\.G\.I\b', 15),
        Signal('uyu', r'\bUYU\b|\$U\b|PESOS\s+URUGUAYOS', 12),
        Signal('iva_22', _vat(r'22'), 12),
        Signal('iva_10', _vat(r'10'), 8),
        Signal('cfe', r'E-TICKET|\bCFE\b|COMPROBANTE\s+FISCAL\s+ELECTRONICO', 10),
        Signal('country_name', r'(?<!RIO\s)(?<!DEL\s)\bURUGUAY\b|REPUBLICA\s+ORIENTAL', 10),
        Signal('operators', r'\bANCAP\b|CORPORACION\s+VIAL|\bCVU\b|\bMTOP\b|\bDUCSA\b|\bTELEPEAJE\b', 10),
        Signal('cities', r'\bMONTEVIDEO\b|\bPAYSANDU\b|\bFRAY\s+BENTOS\b|\bCOLONIA\b(?!\s+CAROYA)|'
                         r'\bSALTO\b|\bRIVERA\b|\bCHUY\b', 8),
    ],
}


class CountryClassifier:
    """Service for inferring a receipt's country from fiscal indicators."""

    def __init__(self, signals: Optional[Dict[Country, List[Signal]]] = None, min_score: int = MIN_COUNTRY_SCORE):
        self.signals = signals or COUNTRY_SIGNALS
        self.min_score = min_score

    def score(self, text: str) -> List[CountryScore]:
        """
        Score the text against every country's signal list.

        Args:
            text: Receipt text

        Returns:
            One CountryScore per country, in iteration order (ARG, CHL, URY)
        """
        folded = fold_text(text or "")
        scores = []

        for country, signals in self.signals.items():
            country_score = CountryScore(country=country.value)
            for signal in signals:
                if signal.compiled.search(folded):
                    country_score.add(signal.name, signal.weight)
            scores.append(country_score)

        return scores

    def classify(self, text: str, _debug: Optional[Dict[str, Any]] = None) -> Optional[Country]:
        """
        Classify the receipt's country.

        Args:
            text: Receipt text

        Returns:
            Country, or None when no country reaches the confidence floor
        """
        try:
            scores = self.score(text)
        except (re.error, AttributeError):
            logger.warning("Error scoring country signals", exc_info=True)
            return None

        best, accepted = select_best_country(scores, self.min_score)

        if _debug is not None:
            _debug['country_scores'] = {s.country: s.score for s in scores}

        if best is None or not accepted:
            logger.debug("No confident country", extra={
                "scores": {s.country: s.score for s in scores}
            })
            return None

        logger.debug("Country classified", extra={
            "country": best.country,
            "score": best.score,
            "signals": best.matched,
        })
        return Country(best.country)


def classify_country(text: str) -> Optional[Country]:
    """Module-level shortcut using the default signal tables."""
    return CountryClassifier().classify(text)
