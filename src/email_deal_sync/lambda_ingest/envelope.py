"""Decode the webhook request body into HubSpot change events."""

import base64
import json
from typing import Any

from ..models.events import ChangeEvent, parse_events


def parse_webhook_body(body: str | None, is_base64_encoded: bool = False) -> list[ChangeEvent]:
    """
    Extract change events from an API Gateway / function URL request body.

    HubSpot posts a JSON array:
    [
        {
            "objectTypeId": "0-49",
            "subscriptionType": "object.creation",
            "objectId": 123456,
            ...
        }
    ]

    Raises:
        ValueError: Missing body, invalid JSON, or not a JSON array
    """
    if not body:
        raise ValueError('Missing request body')

    if is_base64_encoded:
        try:
            body = base64.b64decode(body).decode('utf-8')
        except (ValueError, UnicodeDecodeError) as e:
            raise ValueError(f'Invalid base64 request body: {e}') from e

    try:
        payload: Any = json.loads(body)
    except json.JSONDecodeError as e:
        raise ValueError(f'Invalid JSON in request body: {e}') from e

    if not isinstance(payload, list):
        raise ValueError(
            f'Expected a JSON array of events, got {type(payload).__name__}'
        )

    return parse_events(payload)
