"""
Email records and the identifiers extracted from them.

EmailMessage is fetched fresh for every webhook event and never cached.
ParsedIdentifiers is derived once per email by the extractor and is
immutable; sets are deduplicated on exact text, case is preserved.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


EMAIL_PROPERTIES = ['hs_email_subject', 'hs_email_text', 'hs_email_html', 'hs_timestamp']


class EmailMessage(BaseModel):
    """An email record read from the CRM."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description='CRM email object id')
    subject: str = Field(default='', description='Subject line')
    body: str = Field(default='', description='Plain text body, or HTML body when no text part exists')
    timestamp: datetime | None = Field(default=None, description='When the email was sent or logged')

    @classmethod
    def from_hubspot(cls, payload: dict[str, Any]) -> 'EmailMessage':
        """Build from a HubSpot v3 email object."""
        props = payload.get('properties') or {}
        return cls(
            id=str(payload['id']),
            subject=props.get('hs_email_subject') or '',
            body=props.get('hs_email_text') or props.get('hs_email_html') or '',
            timestamp=props.get('hs_timestamp') or None,
        )


class ParsedIdentifiers(BaseModel):
    """Identifier sets extracted from one email's subject and body."""

    model_config = ConfigDict(frozen=True)

    loan_numbers: frozenset[str] = Field(default_factory=frozenset)
    addresses: frozenset[str] = Field(default_factory=frozenset)
    deal_names: frozenset[str] = Field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        """True when nothing usable was extracted."""
        return not (self.loan_numbers or self.addresses or self.deal_names)

    def counts(self) -> dict[str, int]:
        """Set sizes, for logging."""
        return {
            'loan_numbers': len(self.loan_numbers),
            'addresses': len(self.addresses),
            'deal_names': len(self.deal_names),
        }
