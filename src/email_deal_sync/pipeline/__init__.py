"""
Email-to-deal matching pipeline stages.
"""

from .committer import AssociationCommitter
from .extractor import IdentifierExtractor, extract_identifiers
from .fallback import FallbackResolver
from .matcher import DealMatcher, MatchOutcome
from .pipeline import BatchResult, EmailSyncPipeline, EmailSyncResult
from .scorer import rank_candidates, score_candidate

__all__ = [
    'AssociationCommitter',
    'BatchResult',
    'DealMatcher',
    'EmailSyncPipeline',
    'EmailSyncResult',
    'FallbackResolver',
    'IdentifierExtractor',
    'MatchOutcome',
    'extract_identifiers',
    'rank_candidates',
    'score_candidate',
]
