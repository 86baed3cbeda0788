"""
Webhook change-notification events.

HubSpot delivers batches of change events as a JSON array. Only email
object events that are creations or direction changes trigger a sync.
Each event is validated on its own; a malformed event is logged and
dropped so it cannot take the rest of the batch down with it.
"""

from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = structlog.get_logger(__name__)

EMAIL_OBJECT_TYPE_ID = '0-49'
DIRECTION_PROPERTY = 'hs_email_direction'
PROPERTY_CHANGE = 'object.propertyChange'


class ChangeEvent(BaseModel):
    """A single webhook change notification."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    object_type_id: str | None = Field(default=None, alias='objectTypeId')
    subscription_type: str | None = Field(default=None, alias='subscriptionType')
    object_id: str = Field(..., alias='objectId')
    property_name: str | None = Field(default=None, alias='propertyName')

    def is_email_sync_trigger(self) -> bool:
        """Email creation, or a change to the email direction property."""
        if self.object_type_id != EMAIL_OBJECT_TYPE_ID:
            return False
        if (
            self.subscription_type == PROPERTY_CHANGE
            and self.property_name != DIRECTION_PROPERTY
        ):
            return False
        return True


def _coerce_ids(item: Any) -> Any:
    if not isinstance(item, dict):
        return item
    coerced = dict(item)
    for key in ('objectId', 'objectTypeId'):
        if isinstance(coerced.get(key), int):
            coerced[key] = str(coerced[key])
    return coerced


def parse_events(payload: Any) -> list[ChangeEvent]:
    """
    Validate a decoded webhook payload into ChangeEvents.

    Numeric object ids are coerced to strings. Entries that fail
    validation are skipped with a warning.

    Raises:
        ValueError: payload is not a list
    """
    if not isinstance(payload, list):
        raise ValueError(
            f'Expected a list of change events, got {type(payload).__name__}'
        )

    events = []
    for index, item in enumerate(payload):
        try:
            events.append(ChangeEvent.model_validate(_coerce_ids(item)))
        except ValidationError as exc:
            logger.warning(
                'events.invalid_event',
                index=index,
                errors=exc.error_count(),
                error=str(exc),
            )
    return events


def select_events(events: list[ChangeEvent]) -> list[ChangeEvent]:
    """
    Keep sync-triggering events, first occurrence of each object id wins.

    Order of the surviving events is the order received.
    """
    seen: set[str] = set()
    selected = []
    for event in events:
        if not event.is_email_sync_trigger():
            continue
        if event.object_id in seen:
            continue
        seen.add(event.object_id)
        selected.append(event)
    return selected
