"""
Data models for the email-to-deal sync pipeline.

Provides CRM record models (EmailMessage, DealRecord), the extractor's
output (ParsedIdentifiers), matcher value types and webhook events.
"""

from .deal import DEAL_PROPERTIES, DealRecord
from .email import EMAIL_PROPERTIES, EmailMessage, ParsedIdentifiers
from .events import ChangeEvent, parse_events, select_events
from .match import EmailState, MatchCandidate, MatchResult, MatchType

__all__ = [
    # CRM records
    'DEAL_PROPERTIES',
    'DealRecord',
    'EMAIL_PROPERTIES',
    'EmailMessage',
    # Extraction
    'ParsedIdentifiers',
    # Matching
    'EmailState',
    'MatchCandidate',
    'MatchResult',
    'MatchType',
    # Webhook events
    'ChangeEvent',
    'parse_events',
    'select_events',
]
