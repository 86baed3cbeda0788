"""
Deal records as read from the CRM.

DealRecord is owned and mutated only by the CRM; the pipeline reads it and
never writes deal properties back.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


LOAN_NUMBER_PROPERTY = 'loan_number'
ALTERNATE_LOAN_NUMBER_PROPERTIES = (
    'loan_number__servicer_',
    'loan_number__b_piece_servicer_',
)
DEAL_NAME_PROPERTY = 'dealname'
ADDRESS_PROPERTY = 'full_address'
STAGE_PROPERTY = 'dealstage'

DEAL_PROPERTIES = [
    DEAL_NAME_PROPERTY,
    LOAN_NUMBER_PROPERTY,
    *ALTERNATE_LOAN_NUMBER_PROPERTIES,
    ADDRESS_PROPERTY,
    STAGE_PROPERTY,
]


class DealRecord(BaseModel):
    """A deal/loan record with the fields the matcher consumes."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description='CRM deal object id')
    name: str = Field(default='', description='Deal display name (often the property address)')
    loan_number: str = Field(default='', description='Primary loan number')
    alternate_loan_numbers: tuple[str, ...] = Field(
        default=(), description='Servicer loan numbers (A-piece, B-piece)'
    )
    full_address: str = Field(default='', description='Postal address of the property')
    stage: str | None = Field(default=None, description='Deal stage id')

    @property
    def all_loan_numbers(self) -> tuple[str, ...]:
        """Primary plus alternate loan numbers, empty values dropped."""
        return tuple(n for n in (self.loan_number, *self.alternate_loan_numbers) if n)

    @classmethod
    def from_hubspot(cls, payload: dict[str, Any]) -> 'DealRecord':
        """Build from a HubSpot v3 deal object."""
        props = payload.get('properties') or {}
        return cls(
            id=str(payload['id']),
            name=props.get(DEAL_NAME_PROPERTY) or '',
            loan_number=props.get(LOAN_NUMBER_PROPERTY) or '',
            alternate_loan_numbers=tuple(
                props[p] for p in ALTERNATE_LOAN_NUMBER_PROPERTIES if props.get(p)
            ),
            full_address=props.get(ADDRESS_PROPERTY) or '',
            stage=props.get(STAGE_PROPERTY),
        )
