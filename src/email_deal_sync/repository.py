"""
CRM repository for email sync read, search and association operations.

Maps HubSpot CRM v3/v4 endpoints onto the domain operations the matcher,
fallback resolver and committer need, returning typed records.

Key design decisions:
- Searches use CONTAINS_TOKEN; stage filtering is left to the caller.
- Association reads treat 404 as "no associations" (the object may have
  been deleted or never linked).
- The association write is a PUT, which HubSpot treats as idempotent for
  an existing email/deal pair.
"""

from typing import Any

from .clients.hubspot_client import HubSpotClient
from .config import DEFAULT_ASSOCIATION_TYPE_ID
from .errors import HubSpotApiError
from .models.deal import (
    ALTERNATE_LOAN_NUMBER_PROPERTIES,
    DEAL_PROPERTIES,
    LOAN_NUMBER_PROPERTY,
    DealRecord,
)
from .models.email import EMAIL_PROPERTIES, EmailMessage

SEARCH_LIMIT = 20
LOAN_NUMBER_SEARCH_PROPERTIES = (LOAN_NUMBER_PROPERTY, *ALTERNATE_LOAN_NUMBER_PROPERTIES)


class DealRepository:
    """
    Read, search and associate operations against the CRM.

    All calls go through HubSpotClient and inherit its rate-limit retry.
    """

    def __init__(
        self,
        hubspot_client: HubSpotClient,
        association_type_id: int = DEFAULT_ASSOCIATION_TYPE_ID,
    ):
        self.hubspot = hubspot_client
        self.association_type_id = association_type_id

    # =========================================================================
    # Email Operations
    # =========================================================================

    async def get_email(self, email_id: str) -> EmailMessage:
        """
        Read an email's subject, body and timestamp.

        Args:
            email_id: CRM email object id

        Returns:
            EmailMessage
        """
        data = await self.hubspot.get(
            f'/crm/v3/objects/emails/{email_id}',
            params={'properties': ','.join(EMAIL_PROPERTIES)},
        )
        return EmailMessage.from_hubspot({'id': email_id, **data})

    # =========================================================================
    # Deal Operations
    # =========================================================================

    async def get_deal(self, deal_id: str) -> DealRecord:
        """Read a single deal by id."""
        data = await self.hubspot.get(
            f'/crm/v3/objects/deals/{deal_id}',
            params={'properties': ','.join(DEAL_PROPERTIES)},
        )
        return DealRecord.from_hubspot({'id': deal_id, **data})

    async def batch_read_deals(self, deal_ids: list[str]) -> list[DealRecord]:
        """
        Read several deals in one call.

        Args:
            deal_ids: Deal object ids

        Returns:
            DealRecords in the order HubSpot returns them
        """
        if not deal_ids:
            return []
        data = await self.hubspot.post(
            '/crm/v3/objects/deals/batch/read',
            json={
                'properties': DEAL_PROPERTIES,
                'inputs': [{'id': str(deal_id)} for deal_id in deal_ids],
            },
        )
        return [DealRecord.from_hubspot(r) for r in data.get('results', [])]

    async def search_deals_by_loan_number(self, loan_number: str) -> list[DealRecord]:
        """
        Search every loan-number-bearing field for a token.

        Each field is its own filter group, so HubSpot ORs them.
        """
        body = {
            'filterGroups': [
                {
                    'filters': [
                        {
                            'propertyName': prop,
                            'operator': 'CONTAINS_TOKEN',
                            'value': loan_number,
                        }
                    ]
                }
                for prop in LOAN_NUMBER_SEARCH_PROPERTIES
            ],
            'properties': DEAL_PROPERTIES,
            'limit': SEARCH_LIMIT,
        }
        return await self._search(body)

    async def search_deals(self, property_name: str, value: str) -> list[DealRecord]:
        """Token-containment search on a single deal property."""
        body = {
            'filterGroups': [
                {
                    'filters': [
                        {
                            'propertyName': property_name,
                            'operator': 'CONTAINS_TOKEN',
                            'value': value,
                        }
                    ]
                }
            ],
            'properties': DEAL_PROPERTIES,
            'limit': SEARCH_LIMIT,
        }
        return await self._search(body)

    async def _search(self, body: dict[str, Any]) -> list[DealRecord]:
        data = await self.hubspot.post('/crm/v3/objects/deals/search', json=body)
        return [DealRecord.from_hubspot(r) for r in data.get('results', [])]

    # =========================================================================
    # Association Operations
    # =========================================================================

    async def get_email_contact_ids(self, email_id: str) -> list[str]:
        """Contacts associated with an email, in association order."""
        return await self._associated_ids('emails', email_id, 'contacts')

    async def get_contact_deal_ids(self, contact_id: str) -> list[str]:
        """Deals associated with a contact."""
        return await self._associated_ids('contacts', contact_id, 'deals')

    async def _associated_ids(
        self,
        from_type: str,
        from_id: str,
        to_type: str,
    ) -> list[str]:
        try:
            data = await self.hubspot.get(
                f'/crm/v4/objects/{from_type}/{from_id}/associations/{to_type}'
            )
        except HubSpotApiError as exc:
            if exc.status_code == 404:
                return []
            raise
        return [str(r['toObjectId']) for r in data.get('results', [])]

    async def associate_email_to_deal(self, email_id: str, deal_id: str) -> dict[str, Any]:
        """
        Link an email to a deal with the configured association type.

        Args:
            email_id: CRM email object id
            deal_id: CRM deal object id

        Returns:
            HubSpot response body ({} for 204)
        """
        return await self.hubspot.put(
            f'/crm/v4/objects/emails/{email_id}/associations/deals/{deal_id}',
            json=[
                {
                    'associationCategory': 'HUBSPOT_DEFINED',
                    'associationTypeId': self.association_type_id,
                }
            ],
        )
