"""
Receipt parser service for extracting amount, date and description from OCR text.
"""

import re
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Dict, Any, List
from decimal import Decimal, InvalidOperation

from rendicion.utils.money import normalize_amount, is_plausible_amount, count_digits
from rendicion.utils.candidates import AmountCandidate, DateCandidate
from rendicion.utils.scoring import (
    select_best_amount,
    select_max_amount,
    select_top_amounts,
    select_best_date,
)
from rendicion.utils.text import fold_text, split_lines, collapse_spaces

logger = logging.getLogger(__name__)

# Numeric token: digits with optional inner separators, not part of a date or time
NUMBER = r'(\d[\d.,]*\d|\d)(?![\d/:])(?!\s*%)'

# Currency markers seen on ARG/CHL/URY receipts
CURRENCY = r'(?:U\$S|US\$|\$U|U\$|\$|(?<![A-Z])(?:ARS|CLP|UYU)(?![A-Z]))'

# Keyword, then separators, then an optional currency marker, then the number
SEPARATORS = r'[\s:=.\-]*' + CURRENCY + r'?\s*'

# Lines holding identifiers rather than money
IDENTIFIER_LINE = re.compile(
    r'CUIT|CUIL|\bRUT\b|\bRUC\b|\bCAI\b|\bCAE\b|C\.A\.E|C\.A\.I|AUTORIZ|'
    r'COD(?:IGO)?\.?\s*(?:DE\s+)?AUT|\bN\s*[°O]\s|\bNRO\b|\bNUM(?:ERO)?\b|'
    r'\bDOC(?:UMENTO)?\b|\bDNI\b|\bP\.\s*V\.|\bPTO\.?\s*(?:DE\s+)?V(?:TA|ENTA)|'
    r'PUNTO\s+DE\s+VENTA|\bTEL\b|\bTEL\.|TELEFONO|\bFONO\b|'
    r'(?:TICKET|FACTURA|RECIBO|COMPROBANTE|BOLETA)\s*(?:N|#)'
)

# Tax ids (CUIT 30-12345678-9, RUT 76.123.456-7) printed without a label
TAX_ID = re.compile(
    r'(?<![\d.\-])(?:\d{2}-\d{8}-\d|\d{1,2}\.\d{3}\.\d{3}-[\dK]|\d{7,8}-[\dK])(?![\d\-])',
    re.IGNORECASE,
)

# Hyphen-joined digit runs; more than 8 digits in total is an identifier
HYPHEN_RUN = re.compile(r'\d[\d.]*(?:-[\d.]*\d)+')

# Dates and times are removed before the bare-number fallback
DATE_OR_TIME = re.compile(
    r'\d{1,4}[/\-.]\d{1,2}[/\-.]\d{2,4}|\d{1,2}:\d{2}(?::\d{2})?'
)

# Expiry/authorization lines never hold the transaction date
EXPIRY_LINE = re.compile(
    r'\bVTO\b|\bVTO\.|VENC|\bCAI\b|\bCAE\b|C\.A\.E|C\.A\.I|VALIDO\s+HASTA|'
    r'FECHA\s+LIMITE|EXPIRA|CADUCA'
)

DATE_KEYWORD = re.compile(r'FECHA|EMISION|EMITIDO|\bDATE\b')

SPANISH_MONTHS = {
    'ENE': 1, 'ENERO': 1,
    'FEB': 2, 'FEBRERO': 2,
    'MAR': 3, 'MARZO': 3,
    'ABR': 4, 'ABRIL': 4,
    'MAY': 5, 'MAYO': 5,
    'JUN': 6, 'JUNIO': 6,
    'JUL': 7, 'JULIO': 7,
    'AGO': 8, 'AGOSTO': 8,
    'SEP': 9, 'SET': 9, 'SEPTIEMBRE': 9, 'SETIEMBRE': 9,
    'OCT': 10, 'OCTUBRE': 10,
    'NOV': 11, 'NOVIEMBRE': 11,
    'DIC': 12, 'DICIEMBRE': 12,
}

# Header lines that name the document, not the business
DOCUMENT_LABEL = re.compile(
    r'^(?:TICKET|FACTURA|ORIGINAL|DUPLICADO|TRIPLICADO|COMPROBANTE|RECIBO|BOLETA|'
    r'CONSUMIDOR\s+FINAL|E-TICKET)(?:\s+[A-Z0-9]{1,3})?\s*$'
)

MAX_DESCRIPTION = 120


@dataclass(frozen=True)
class PatternSpec:
    """A named regex pattern with example and notes for documentation."""
    name: str
    pattern: str
    example: str
    notes: Optional[str] = None
    priority: int = 0
    flags: int = re.IGNORECASE
    compiled: re.Pattern = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', re.compile(self.pattern, self.flags))


def _keyword_amount(name: str, keyword: str, example: str, priority: int, notes: str = None) -> PatternSpec:
    return PatternSpec(
        name=name,
        pattern=keyword + SEPARATORS + NUMBER,
        example=example,
        notes=notes,
        priority=priority,
    )


class ReceiptParser:
    """Service for parsing receipt text and extracting structured data."""

    def __init__(self):
        """Initialize parser with regex patterns."""
        self._init_patterns()

    def _init_patterns(self):
        """Initialize regex patterns for parsing."""

        # Keyword ladder: higher priority = more reliable total indicator
        self.amount_patterns = [
            _keyword_amount(
                'total_a_pagar', r'total\s+a\s+pagar',
                'TOTAL A PAGAR $ 12.500,00', 100,
                'Explicit amount due (highest confidence)',
            ),
            _keyword_amount(
                'importe_total', r'(?:importe|monto)\s+total',
                'IMPORTE TOTAL: 3.200', 95,
            ),
            _keyword_amount(
                'total', r'(?<![A-Z])(?<!SUB\s)(?<!SUB-)T[O0]T[A4@*][L1I|]',
                'TOTAL: $1.234,50', 90,
                'Includes OCR-garbled spellings (T0TAL, TOT*L, TOTAI); excludes subtotal',
            ),
            _keyword_amount('a_pagar', r'a\s+pagar', 'A PAGAR 850', 85),
            _keyword_amount('importe', r'importe', 'IMPORTE $ 4.100', 80),
            _keyword_amount('monto', r'monto', 'MONTO: 2500', 75),
            _keyword_amount('peaje', r'peaje', 'PEAJE $ 1.900', 70),
            _keyword_amount('tarifa', r'tarifa', 'TARIFA: 2.100', 65),
            _keyword_amount('subtotal', r'sub[\s\-]?total', 'SUBTOTAL 1.020,25', 40),
            _keyword_amount('neto', r'neto', 'NETO: 1.020,25', 35),
            _keyword_amount('bruto', r'bruto', 'BRUTO 1.234', 30),
            _keyword_amount('valor', r'valor', 'VALOR: 600', 25),
            _keyword_amount('precio', r'precio', 'PRECIO 450', 20, 'Lowest confidence'),
        ]

        self.currency_amount_pattern = PatternSpec(
            name='currency_prefixed',
            pattern=CURRENCY + r'\s*' + NUMBER,
            example='$ 1.234,50',
            notes='Fallback: largest currency-prefixed figure',
        )

        self.bare_number_pattern = PatternSpec(
            name='bare_number',
            pattern=r'(?<![\d.,])' + NUMBER,
            example='1234,50',
            notes='Last resort: largest plausible number outside identifier lines',
        )

        # Date patterns (numeric dates are day-first)
        self.date_patterns = [
            PatternSpec(
                name='iso_date',
                pattern=r'(?<!\d)(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)',
                example='2024-03-15',
                priority=90,
            ),
            PatternSpec(
                name='spanish_long_date',
                pattern=r'(?<!\d)(\d{1,2})\s+DE\s+([A-Z]+)\s+(?:DE|DEL)\s+(\d{4})(?!\d)',
                example='15 de marzo de 2024',
                priority=85,
            ),
            PatternSpec(
                name='numeric_date',
                pattern=r'(?<![\d\-])(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4}|\d{2})(?![\d\-])',
                example='15/03/2024',
                notes='DD/MM/YYYY, DD-MM-YY, DD.MM.YYYY',
                priority=80,
            ),
            PatternSpec(
                name='month_abbrev_date',
                pattern=r'(?<!\d)(\d{1,2})[\s\-/]([A-Z]{3,10})[\s\-/](\d{4}|\d{2})(?!\d)',
                example='15-MAR-2024',
                priority=70,
            ),
        ]

    def parse(self, text: str) -> Dict[str, Any]:
        """
        Parse receipt text and extract the fields this stage owns.

        Args:
            text: OCR-extracted text from receipt

        Returns:
            Dictionary with amount, date, description and debug metadata
        """
        text = self._normalize_ocr_spaces(text or "")

        debug = {
            'patterns_matched': {},
            'warnings': [],
        }

        result = {
            'amount': self.extract_amount(text, _debug=debug),
            'date': self.extract_date(text, _debug=debug),
            'description': self.extract_description(text, _debug=debug),
            'debug': debug,
        }

        if result['amount'] is None:
            debug['warnings'].append('No amount found')
        if not result['date']:
            debug['warnings'].append('No transaction date found')

        return result

    def _normalize_ocr_spaces(self, text: str) -> str:
        """
        Remove OCR-induced spaces between single characters.

        Handles cases like "T O T A L" → "TOTAL" without touching regular
        text or digit groups.
        """
        if re.search(r'\b[A-Za-z] [A-Za-z] [A-Za-z] [A-Za-z]\b', text):
            text = re.sub(r'\b([A-Za-z]) (?=[A-Za-z]\b)', r'\1', text)
        return text

    def _parse_candidate_value(self, token: str) -> Optional[Decimal]:
        value = normalize_amount(token)
        if not is_plausible_amount(value):
            return None
        return value

    def extract_amount(self, text: str, _debug=None) -> Optional[Decimal]:
        """
        Extract the total amount due using a three-tier ladder.

        Tax ids are blanked out before any tier runs.

        1. Keyword patterns over every line and over the joined text; the
           highest-priority match wins (first found on ties).
        2. Largest currency-prefixed figure.
        3. Largest bare number, skipping identifier lines and tokens with
           more than 8 digits.

        Args:
            text: Receipt text

        Returns:
            Amount as Decimal or None
        """
        try:
            lines = [scrub_identifiers(line) for line in split_lines(text)]
            blocks = lines + [' '.join(lines)] if lines else []

            candidates: List[AmountCandidate] = []
            for block in blocks:
                for spec in self.amount_patterns:
                    for match in spec.compiled.finditer(block):
                        value = self._parse_candidate_value(match.group(1))
                        if value is None:
                            continue
                        candidates.append(AmountCandidate(
                            value=value,
                            pattern_name=spec.name,
                            priority=spec.priority,
                            source_line=block,
                            tier='keyword',
                        ))

            best = select_best_amount(candidates)

            if best is None:
                candidates = self._currency_candidates(lines)
                best = select_max_amount(candidates)

            if best is None:
                candidates = self._bare_candidates(lines)
                best = select_max_amount(candidates)

            if best is None:
                return None

            if _debug is not None:
                _debug['patterns_matched']['amount'] = best.pattern_name
                _debug['amount_tier'] = best.tier
                _debug['amount_candidates'] = [
                    {
                        'value': str(c.value),
                        'priority': c.priority,
                        'pattern': c.pattern_name,
                    }
                    for c in select_top_amounts(candidates, top_n=3)
                ]

            logger.debug("Amount extracted", extra={
                "amount": str(best.value),
                "pattern": best.pattern_name,
                "tier": best.tier,
            })
            return best.value

        except (re.error, AttributeError, InvalidOperation):
            logger.warning("Error extracting amount", exc_info=True)
            return None

    def _currency_candidates(self, lines: List[str]) -> List[AmountCandidate]:
        candidates = []
        for line in lines:
            for match in self.currency_amount_pattern.compiled.finditer(line):
                value = self._parse_candidate_value(match.group(1))
                if value is None:
                    continue
                candidates.append(AmountCandidate(
                    value=value,
                    pattern_name=self.currency_amount_pattern.name,
                    source_line=line,
                    tier='currency',
                ))
        return candidates

    def _bare_candidates(self, lines: List[str]) -> List[AmountCandidate]:
        candidates = []
        for line in lines:
            if IDENTIFIER_LINE.search(fold_text(line)):
                continue
            scrubbed = DATE_OR_TIME.sub(' ', line)
            for match in self.bare_number_pattern.compiled.finditer(scrubbed):
                token = match.group(1)
                if count_digits(token) > 8:
                    continue
                value = self._parse_candidate_value(token)
                if value is None:
                    continue
                candidates.append(AmountCandidate(
                    value=value,
                    pattern_name=self.bare_number_pattern.name,
                    source_line=line,
                    tier='bare',
                ))
        return candidates

    def extract_date(self, text: str, _debug=None) -> str:
        """
        Extract the transaction date, skipping expiry and CAI/CAE dates.

        Args:
            text: Receipt text

        Returns:
            Date in YYYY-MM-DD format or ""
        """
        try:
            candidates: List[DateCandidate] = []

            for line_position, line in enumerate(split_lines(text)):
                folded = fold_text(line)
                if EXPIRY_LINE.search(folded):
                    continue

                has_keyword = bool(DATE_KEYWORD.search(folded))

                for spec in self.date_patterns:
                    for match in spec.compiled.finditer(folded):
                        parsed = self._build_date(spec.name, match.groups())
                        if parsed is None:
                            continue
                        candidates.append(DateCandidate(
                            value=parsed,
                            pattern_name=spec.name,
                            priority=spec.priority,
                            source_line=line,
                            line_position=line_position,
                            has_date_keyword=has_keyword,
                        ))

            best = select_best_date(candidates)
            if best is None:
                return ""

            if _debug is not None:
                _debug['patterns_matched']['date'] = best.pattern_name

            return best.value

        except (re.error, ValueError, AttributeError):
            logger.warning("Error extracting date", exc_info=True)
            return ""

    def _build_date(self, pattern_name: str, groups: tuple) -> Optional[str]:
        """Turn regex groups into an ISO date, or None if not a real date."""
        if pattern_name == 'iso_date':
            year, month, day = groups
        elif pattern_name in ('spanish_long_date', 'month_abbrev_date'):
            day, month_name, year = groups
            month = SPANISH_MONTHS.get(month_name)
            if month is None:
                month = SPANISH_MONTHS.get(month_name[:3])
            if month is None:
                return None
        else:
            day, month, year = groups

        return to_iso_date(year, month, day)

    def extract_description(self, text: str, _debug=None) -> str:
        """
        Extract a short description (usually the business name).

        Picks the first line with at least three letters that is not an
        identifier, amount, date or document-label line.

        Args:
            text: Receipt text

        Returns:
            Description of at most 120 characters, or ""
        """
        for line in split_lines(text):
            folded = fold_text(line)
            letters = sum(1 for ch in folded if ch.isalpha())
            visible = sum(1 for ch in folded if not ch.isspace())

            if letters < 3 or letters < visible / 2:
                continue
            if IDENTIFIER_LINE.search(folded) or DOCUMENT_LABEL.match(folded):
                continue
            if DATE_OR_TIME.search(folded):
                continue
            if any(spec.compiled.search(line) for spec in self.amount_patterns):
                continue

            description = collapse_spaces(line)[:MAX_DESCRIPTION]
            if _debug is not None:
                _debug['patterns_matched']['description'] = 'first_text_line'
            return description

        return ""


def scrub_identifiers(line: str) -> str:
    """Blank out tax ids and long hyphen-joined digit runs so they never read as money."""
    line = TAX_ID.sub(' ', line)
    return HYPHEN_RUN.sub(
        lambda m: ' ' if count_digits(m.group(0)) > 8 else m.group(0), line
    )


def to_iso_date(year, month, day) -> Optional[str]:
    """
    Build an ISO date from loose parts, accepting two-digit years.

    Returns None for impossible dates or years outside 2000-2099.
    """
    try:
        year, month, day = int(year), int(month), int(day)
    except (TypeError, ValueError):
        return None

    if year < 100:
        year += 2000
    if not 2000 <= year <= 2099:
        return None

    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None
