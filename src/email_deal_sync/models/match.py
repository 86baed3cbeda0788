"""
Match candidates, match results and the per-email state machine.
"""

from dataclasses import dataclass
from enum import Enum

from .deal import DealRecord


class MatchType(str, Enum):
    """Which channel produced a match."""

    LOAN_NUMBER = 'loan_number'
    DEAL_NAME = 'deal_name'
    ADDRESS = 'address'
    SINGLE_CONTACT_DEAL = 'single_contact_deal'


class EmailState(str, Enum):
    """
    Per-email processing states.

    RECEIVED -> PARSED -> {LOAN_MATCHED | CANDIDATE_SCORED | FALLBACK_MATCHED
    | UNMATCHED} -> {ASSOCIATED | SKIPPED}
    """

    RECEIVED = 'received'
    PARSED = 'parsed'
    LOAN_MATCHED = 'loan_matched'
    CANDIDATE_SCORED = 'candidate_scored'
    FALLBACK_MATCHED = 'fallback_matched'
    UNMATCHED = 'unmatched'
    ASSOCIATED = 'associated'
    SKIPPED = 'skipped'

    @property
    def is_terminal(self) -> bool:
        return self in (EmailState.ASSOCIATED, EmailState.SKIPPED)


# Channels whose results bypass the acceptance threshold
FIXED_CONFIDENCE_TYPES = frozenset({MatchType.LOAN_NUMBER, MatchType.SINGLE_CONTACT_DEAL})


@dataclass(frozen=True)
class MatchCandidate:
    """A deal returned by a name or address search, with its score."""

    deal: DealRecord
    match_type: MatchType
    match_value: str
    score: int = 0


@dataclass(frozen=True)
class MatchResult:
    """The single deal chosen for an email."""

    deal: DealRecord
    confidence: int
    match_type: MatchType

    @property
    def matched_state(self) -> EmailState:
        """State the email enters when this result is produced."""
        if self.match_type == MatchType.LOAN_NUMBER:
            return EmailState.LOAN_MATCHED
        if self.match_type == MatchType.SINGLE_CONTACT_DEAL:
            return EmailState.FALLBACK_MATCHED
        return EmailState.CANDIDATE_SCORED

    def is_committable(self, threshold: int) -> bool:
        """Whether this result may be written as an association."""
        return self.match_type in FIXED_CONFIDENCE_TYPES or self.confidence >= threshold
