"""
Email Deal Sync

Links CRM email records to deal/loan records by extracting loan numbers,
property addresses and deal-name fragments from the email text and
resolving them against HubSpot deals through prioritized search channels,
confidence scoring and a single-contact-deal fallback.
"""

__version__ = '0.1.0'

from .config import MatchingConfig, SyncSettings, get_settings
from .errors import (
    ConfigurationError,
    EmailProcessingError,
    EmailSyncError,
    HubSpotApiError,
    HubSpotRateLimitError,
    RateLimitExhaustedError,
)
from .models import (
    ChangeEvent,
    DealRecord,
    EmailMessage,
    EmailState,
    MatchCandidate,
    MatchResult,
    MatchType,
    ParsedIdentifiers,
)

__all__ = [
    # Version
    '__version__',
    # Config
    'MatchingConfig',
    'SyncSettings',
    'get_settings',
    # Errors
    'ConfigurationError',
    'EmailProcessingError',
    'EmailSyncError',
    'HubSpotApiError',
    'HubSpotRateLimitError',
    'RateLimitExhaustedError',
    # Models
    'ChangeEvent',
    'DealRecord',
    'EmailMessage',
    'EmailState',
    'MatchCandidate',
    'MatchResult',
    'MatchType',
    'ParsedIdentifiers',
]
