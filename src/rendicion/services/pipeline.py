"""
Draft pipeline: receipt text (and optionally an AI guess) to an
edit-ready expense draft.

Stages run in order: amount, country, concept, step. Date and
description are extracted alongside. Every stage has a documented
default, so any input string yields a complete draft.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from rendicion.models.expense import AIGuess, Country, ExpenseDraft
from rendicion.services.parser import ReceiptParser, to_iso_date
from rendicion.services.country import CountryClassifier
from rendicion.services.concepts import ConceptResolver, ConceptSignals, coerce_formality
from rendicion.utils.money import normalize_amount, is_plausible_amount
from rendicion.utils.steps import classify_step
from rendicion.utils.text import collapse_spaces

logger = logging.getLogger(__name__)

_parser = ReceiptParser()
_classifier = CountryClassifier()
_resolver = ConceptResolver()


def _guess_amount(value) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return None
    else:
        amount = normalize_amount(str(value))
    return amount if is_plausible_amount(amount) else None


def _guess_date(value) -> str:
    if not value or not isinstance(value, str):
        return ""
    parts = value.strip()[:10].split('-')
    if len(parts) != 3 or len(parts[0]) != 4:
        return ""
    return to_iso_date(*parts) or ""


def _guess_country(value) -> Optional[Country]:
    code = str(value or "").strip().upper()
    try:
        return Country(code)
    except ValueError:
        return None


def build_draft(text: str, guess: Optional[AIGuess] = None) -> ExpenseDraft:
    """
    Run the full pipeline over one receipt.

    Args:
        text: Recognized receipt text (may be empty)
        guess: Optional structured guess from the AI scan

    Returns:
        ExpenseDraft with every field populated or defaulted
    """
    text = text or ""
    if guess is not None and not text and guess.full_text:
        text = guess.full_text

    parsed = _parser.parse(text)
    debug = parsed['debug']

    amount = parsed['amount']
    date = parsed['date']
    description = parsed['description']
    country = _classifier.classify(text, _debug=debug)

    signals = ConceptSignals(free_text=text)

    if guess is not None:
        debug['ai_guess'] = guess.model_dump(exclude={'full_text'}, exclude_none=True)

        guessed_amount = _guess_amount(guess.amount)
        if guessed_amount is not None:
            amount = guessed_amount
            debug['patterns_matched']['amount'] = 'ai_guess'
        elif guess.amount is not None:
            debug['warnings'].append('AI amount rejected')

        guessed_date = _guess_date(guess.date)
        if guessed_date:
            date = guessed_date
            debug['patterns_matched']['date'] = 'ai_guess'

        guessed_country = _guess_country(guess.country)
        if guessed_country is not None:
            country = guessed_country

        if guess.description and guess.description.strip():
            description = collapse_spaces(guess.description)

        signals.ai_type_guess = guess.type_code
        signals.ai_article_guess = guess.article_code
        signals.ai_formality_guess = guess.formality
        signals.ai_provider_guess = guess.provider
        if not signals.has_ai_guess:
            # Nothing to repair: let the lexical rules read the text
            signals.ai_type_guess = signals.ai_article_guess = None

    signals.country = country
    concept = _resolver.resolve(signals)

    if guess is not None and concept.source != 'ai':
        # The AI named no concept; keep its formality/provider when it gave them
        if guess.formality:
            concept.formality = coerce_formality(guess.formality)
        if guess.provider and guess.provider.strip():
            concept.provider = collapse_spaces(guess.provider)[:120]

    debug['concept_source'] = concept.source
    if concept.rule:
        debug['patterns_matched']['concept'] = concept.rule
    debug['warnings'].extend(concept.warnings)

    step = classify_step(country, amount)

    draft = ExpenseDraft(
        amount=amount if amount is not None else Decimal("0"),
        date=date,
        country=country.value if country else "",
        description=description[:120],
        type_code=concept.type_code,
        article_code=concept.article_code,
        formality=concept.formality,
        provider=concept.provider,
        step=step,
        raw_text=text,
        debug=debug,
    )

    logger.info("Draft built", extra={
        "amount": str(draft.amount),
        "country": draft.country,
        "concept": f"{draft.type_code}/{draft.article_code}",
        "step": draft.step,
    })
    return draft
