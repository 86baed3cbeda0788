"""
Single-contact-deal fallback resolver.

Used only when content matching finds nothing. Walks the email's contacts
in association order; the first contact with exactly one associated deal
decides the match. Contacts with zero or several deals are ambiguous and
skipped.
"""

import structlog

from ..models.match import MatchResult, MatchType
from ..repository import DealRepository

logger = structlog.get_logger(__name__)


class FallbackResolver:
    """Resolves an email to its sole contact's sole deal."""

    def __init__(self, repository: DealRepository):
        self.repository = repository

    async def resolve(self, email_id: str) -> MatchResult | None:
        """
        Find a deal through the email's contacts.

        A failed lookup for one contact is logged and the next contact is
        tried. A failure to read the email's contacts yields no match.

        Args:
            email_id: CRM email object id

        Returns:
            MatchResult at confidence 100, or None
        """
        try:
            contact_ids = await self.repository.get_email_contact_ids(email_id)
        except Exception as exc:
            logger.error('fallback.contacts_failed', email_id=email_id, error=str(exc))
            return None

        if not contact_ids:
            logger.info('fallback.no_contacts', email_id=email_id)
            return None

        for contact_id in contact_ids:
            try:
                result = await self._resolve_contact(contact_id)
            except Exception as exc:
                logger.warning(
                    'fallback.contact_failed',
                    contact_id=contact_id,
                    error=str(exc),
                )
                continue
            if result is not None:
                return result

        return None

    async def _resolve_contact(self, contact_id: str) -> MatchResult | None:
        deal_ids = await self.repository.get_contact_deal_ids(contact_id)

        if len(deal_ids) != 1:
            logger.info(
                'fallback.contact_skipped',
                contact_id=contact_id,
                deal_count=len(deal_ids),
            )
            return None

        deals = await self.repository.batch_read_deals(deal_ids)
        if len(deals) != 1:
            return None

        logger.info(
            'fallback.match',
            contact_id=contact_id,
            deal_id=deals[0].id,
            deal_name=deals[0].name,
        )
        return MatchResult(
            deal=deals[0],
            confidence=100,
            match_type=MatchType.SINGLE_CONTACT_DEAL,
        )
