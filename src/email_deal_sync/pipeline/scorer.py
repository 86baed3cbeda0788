"""
Confidence scoring for deal-name and address candidates.

Pure functions. Base score by channel:
- deal_name: 85, 90 if the fragment is contained in the deal name,
  95 if it equals the deal name (case-insensitive)
- address: 80, +5 if the street number appears in the deal's address or
  name, +5 if the matched text is longer than 25 characters

Corroboration: +10 for each identifier type beyond the first whose
extracted value is found in the corresponding deal field. Capped at 100.

Loan-number matches never reach the scorer; they are accepted at 100.
"""

import re

from ..config import MatchingConfig
from ..models.deal import DealRecord
from ..models.email import ParsedIdentifiers
from ..models.match import MatchCandidate, MatchType

MAX_SCORE = 100
DEAL_NAME_BASE = 85
DEAL_NAME_CONTAINED = 90
DEAL_NAME_EXACT = 95
ADDRESS_BASE = 80
ADDRESS_STREET_NUMBER_BONUS = 5
ADDRESS_LONG_MATCH_BONUS = 5
ADDRESS_LONG_MATCH_LENGTH = 25
CORROBORATION_BONUS = 10

_STREET_NUMBER = re.compile(r'^(\d+)')


def _first_line(value: str) -> str:
    return (value or '').split('\n')[0].strip().lower()


def count_corroborating_types(deal: DealRecord, parsed: ParsedIdentifiers) -> int:
    """Number of identifier types (0-3) with a value found in the deal."""
    loan_fields = [n.lower() for n in deal.all_loan_numbers]
    name = deal.name.lower()
    address = deal.full_address.lower()

    count = 0
    if any(ln.lower() in field for ln in parsed.loan_numbers for field in loan_fields):
        count += 1
    if any(dn.lower() in name for dn in parsed.deal_names):
        count += 1
    if any(addr.lower() in address for addr in parsed.addresses):
        count += 1
    return count


def score_candidate(
    match_type: MatchType,
    match_value: str,
    deal: DealRecord,
    parsed: ParsedIdentifiers,
) -> int:
    """
    Score a candidate deal 0-100.

    Args:
        match_type: Channel that found the deal (deal_name or address)
        match_value: Text that was searched for
        deal: Candidate deal
        parsed: Everything extracted from the email

    Returns:
        Integer confidence, capped at 100
    """
    clean_match = _first_line(match_value)
    name = deal.name.lower()

    if match_type == MatchType.LOAN_NUMBER:
        score = MAX_SCORE
    elif match_type == MatchType.DEAL_NAME:
        score = DEAL_NAME_BASE
        if name == clean_match:
            score = DEAL_NAME_EXACT
        elif clean_match in name:
            score = DEAL_NAME_CONTAINED
    elif match_type == MatchType.ADDRESS:
        score = ADDRESS_BASE
        street_number = _STREET_NUMBER.match(clean_match)
        if street_number and (
            street_number.group(1) in deal.full_address.lower()
            or street_number.group(1) in name
        ):
            score += ADDRESS_STREET_NUMBER_BONUS
        if len(clean_match) > ADDRESS_LONG_MATCH_LENGTH:
            score += ADDRESS_LONG_MATCH_BONUS
    else:
        score = 0

    corroborating = count_corroborating_types(deal, parsed)
    if corroborating > 1:
        score += (corroborating - 1) * CORROBORATION_BONUS

    return min(score, MAX_SCORE)


def rank_candidates(
    candidates: list[MatchCandidate],
    parsed: ParsedIdentifiers,
    config: MatchingConfig,
) -> list[MatchCandidate]:
    """
    Drop ineligible stages, score, and sort by descending score.

    Ties keep pooling order (deal-name channel before address channel).
    """
    scored = [
        MatchCandidate(
            deal=c.deal,
            match_type=c.match_type,
            match_value=c.match_value,
            score=score_candidate(c.match_type, c.match_value, c.deal, parsed),
        )
        for c in candidates
        if config.is_allowed_stage(c.deal.stage)
    ]
    return sorted(scored, key=lambda c: c.score, reverse=True)
