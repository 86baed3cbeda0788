"""
Multi-channel deal matching.

Channels run in fixed priority order:
1. Loan number: searched across primary and servicer loan-number fields.
   The first eligible hit is accepted at confidence 100 and no other
   channel runs.
2. Deal name: each cleaned fragment is searched against the deal name,
   then against the address when the name search is empty.
3. Address: each cleaned address is reduced to its street core and
   searched against the address, then against the deal name.

Deal-name and address results are pooled, filtered to allowed stages,
scored and ranked. The top candidate is accepted only when its score meets
the configured threshold.
"""

import re
from dataclasses import dataclass, field

import structlog

from ..clients.backoff import BackoffPolicy
from ..config import MatchingConfig
from ..models.deal import ADDRESS_PROPERTY, DEAL_NAME_PROPERTY, DealRecord
from ..models.email import ParsedIdentifiers
from ..models.match import MatchCandidate, MatchResult, MatchType
from ..repository import DealRepository
from .extractor import STREET_SUFFIXES
from .scorer import rank_candidates

logger = structlog.get_logger(__name__)

MIN_NAME_SEARCH_LENGTH = 3
MIN_ADDRESS_SEARCH_LENGTH = 5

_TRAILING_SUFFIX = re.compile(r'\s+(?:' + STREET_SUFFIXES + r')\.?\s*$', re.IGNORECASE)
_NUMBER_AND_WORD = re.compile(r'^\d+\s+\w+')


# =============================================================================
# Search Value Helpers
# =============================================================================


def clean_search_value(value: str | None) -> str:
    """First line only, whitespace collapsed, trailing dots stripped."""
    if not value:
        return ''
    first = value.split('\n')[0].split('\r')[0]
    first = re.sub(r'\s+', ' ', first)
    return re.sub(r'[.]+$', '', first).strip()


def extract_street_core(address: str) -> str:
    """
    Reduce an address to "<number> <street name>" for token search.

    "123 Main St, Springfield, IL 62701" -> "123 Main". Falls back to the
    text before the first comma when stripping the suffix would leave
    something that no longer starts with a number and a word.
    """
    before_comma = address.split(',')[0].strip()
    without_suffix = _TRAILING_SUFFIX.sub('', before_comma).strip()
    if _NUMBER_AND_WORD.match(without_suffix):
        return without_suffix
    return before_comma


# =============================================================================
# Data Structures
# =============================================================================


@dataclass
class MatchOutcome:
    """
    Everything the matcher learned about one email.

    result is None when no channel produced an acceptable match.
    """

    result: MatchResult | None
    ranked: list[MatchCandidate] = field(default_factory=list)
    loan_numbers_searched: int = 0
    searches: int = 0


# =============================================================================
# DealMatcher
# =============================================================================


class DealMatcher:
    """
    Resolves ParsedIdentifiers to a single deal.

    Separates effectful collection (collect_candidates) from pure ranking
    (select_best) so each can be tested independently.
    """

    def __init__(
        self,
        repository: DealRepository,
        config: MatchingConfig | None = None,
        backoff: BackoffPolicy | None = None,
    ):
        """
        Initialize the matcher.

        Args:
            repository: CRM repository used for searches
            config: Threshold and allowed stages (default: MatchingConfig())
            backoff: Pacing between dependent searches (default: BackoffPolicy())
        """
        self.repository = repository
        self.config = config or MatchingConfig()
        self.backoff = backoff or BackoffPolicy()

    async def find_match(self, parsed: ParsedIdentifiers) -> MatchOutcome:
        """
        Run the channels in priority order and pick a deal.

        Args:
            parsed: Identifiers extracted from the email

        Returns:
            MatchOutcome; outcome.result is None if nothing was accepted
        """
        outcome = MatchOutcome(result=None)

        loan_result = await self._match_loan_number(parsed, outcome)
        if loan_result is not None:
            outcome.result = loan_result
            return outcome

        candidates = await self.collect_candidates(parsed, outcome)
        outcome.ranked = rank_candidates(candidates, parsed, self.config)
        outcome.result = self.select_best(outcome.ranked)

        if outcome.result is None:
            logger.info(
                'matcher.no_confident_match',
                candidates=len(candidates),
                eligible=len(outcome.ranked),
                top_score=outcome.ranked[0].score if outcome.ranked else None,
                threshold=self.config.confidence_threshold,
            )
        else:
            logger.info(
                'matcher.candidate_accepted',
                deal_id=outcome.result.deal.id,
                match_type=outcome.result.match_type.value,
                confidence=outcome.result.confidence,
            )
        return outcome

    async def _match_loan_number(
        self,
        parsed: ParsedIdentifiers,
        outcome: MatchOutcome,
    ) -> MatchResult | None:
        for loan_number in sorted(parsed.loan_numbers):
            deals = await self.repository.search_deals_by_loan_number(loan_number)
            outcome.loan_numbers_searched += 1
            outcome.searches += 1
            eligible = [d for d in deals if self.config.is_allowed_stage(d.stage)]
            if eligible:
                logger.info(
                    'matcher.loan_match',
                    loan_number=loan_number,
                    deal_id=eligible[0].id,
                    hits=len(deals),
                )
                return MatchResult(
                    deal=eligible[0],
                    confidence=100,
                    match_type=MatchType.LOAN_NUMBER,
                )
        return None

    async def collect_candidates(
        self,
        parsed: ParsedIdentifiers,
        outcome: MatchOutcome | None = None,
    ) -> list[MatchCandidate]:
        """
        Pool unscored candidates from the deal-name and address channels.

        Names and addresses are stored interchangeably in the CRM, so each
        channel retries against the other field when its own is empty.
        """
        outcome = outcome or MatchOutcome(result=None)
        candidates: list[MatchCandidate] = []

        for name in sorted(parsed.deal_names):
            clean_name = clean_search_value(name)
            if len(clean_name) < MIN_NAME_SEARCH_LENGTH:
                continue
            deals = await self._search_with_fallback(
                clean_name, DEAL_NAME_PROPERTY, ADDRESS_PROPERTY, outcome
            )
            candidates.extend(
                MatchCandidate(deal=d, match_type=MatchType.DEAL_NAME, match_value=clean_name)
                for d in deals
            )

        for address in sorted(parsed.addresses):
            clean_addr = clean_search_value(address)
            if len(clean_addr) < MIN_ADDRESS_SEARCH_LENGTH:
                continue
            street = extract_street_core(clean_addr) or clean_addr
            deals = await self._search_with_fallback(
                street, ADDRESS_PROPERTY, DEAL_NAME_PROPERTY, outcome
            )
            candidates.extend(
                MatchCandidate(deal=d, match_type=MatchType.ADDRESS, match_value=address)
                for d in deals
            )

        return candidates

    async def _search_with_fallback(
        self,
        value: str,
        primary_property: str,
        fallback_property: str,
        outcome: MatchOutcome,
    ) -> list[DealRecord]:
        await self.backoff.pause_between_calls()
        deals = await self.repository.search_deals(primary_property, value)
        outcome.searches += 1
        if not deals:
            deals = await self.repository.search_deals(fallback_property, value)
            outcome.searches += 1
        logger.debug(
            'matcher.searched',
            value=value,
            primary_property=primary_property,
            hits=len(deals),
        )
        return deals

    def select_best(self, ranked: list[MatchCandidate]) -> MatchResult | None:
        """Accept the top ranked candidate if it meets the threshold."""
        if not ranked:
            return None
        top = ranked[0]
        if top.score < self.config.confidence_threshold:
            return None
        return MatchResult(deal=top.deal, confidence=top.score, match_type=top.match_type)
