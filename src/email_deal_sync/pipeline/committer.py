"""
Association committer: the pipeline's only write.

Issues one email -> deal association per matched email, unconditionally.
Redelivered events repeat the write; the CRM's association PUT is
idempotent for an existing pair, so no duplicate link is created.
"""

import structlog

from ..config import MatchingConfig
from ..errors import EmailProcessingError
from ..models.match import MatchResult
from ..repository import DealRepository

logger = structlog.get_logger(__name__)


class AssociationCommitter:
    """Writes the email -> deal association for an accepted match."""

    def __init__(self, repository: DealRepository, config: MatchingConfig | None = None):
        self.repository = repository
        self.config = config or MatchingConfig()

    async def commit(self, email_id: str, match: MatchResult) -> None:
        """
        Link the email to the matched deal.

        Raises:
            EmailProcessingError: The match does not meet the acceptance rule
            HubSpotApiError: The association write failed
        """
        if not match.is_committable(self.config.confidence_threshold):
            raise EmailProcessingError(
                f'Refusing to associate email {email_id}: confidence '
                f'{match.confidence} below threshold {self.config.confidence_threshold}',
                context={'email_id': email_id, 'deal_id': match.deal.id},
            )

        await self.repository.associate_email_to_deal(email_id, match.deal.id)
        logger.info(
            'committer.associated',
            email_id=email_id,
            deal_id=match.deal.id,
            deal_name=match.deal.name,
            confidence=match.confidence,
            match_type=match.match_type.value,
        )
