"""Lambda entry point: HubSpot webhook batch -> email/deal association.

Uses AWS Lambda Powertools for structured invocation logging; the pipeline
itself logs through structlog.
"""

import asyncio
import json
from typing import Any

from aws_lambda_powertools import Logger

from ..config import SyncSettings, get_settings
from ..errors import ConfigurationError
from ..logging import configure_logging
from ..models.events import ChangeEvent
from ..pipeline.pipeline import BatchResult, EmailSyncPipeline
from .envelope import parse_webhook_body

# Module-level singletons, reused across warm Lambda invocations
logger = Logger(service="email-deal-sync", log_uncaught_exceptions=True)

configure_logging(json_output=get_settings().LOG_JSON)


def _get_settings() -> SyncSettings:
    """Settings singleton (patched in tests)."""
    return get_settings()


def _build_pipeline(settings: SyncSettings) -> EmailSyncPipeline:
    return EmailSyncPipeline.from_settings(settings)


def _response(status_code: int, body: Any) -> dict[str, Any]:
    if isinstance(body, str):
        return {"statusCode": status_code, "body": body}
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def _http_method(event: dict) -> str:
    method = event.get("httpMethod") or (
        event.get("requestContext", {}).get("http", {}).get("method")
    )
    return (method or "POST").upper()


async def _run_batch(pipeline: EmailSyncPipeline, events: list[ChangeEvent]) -> BatchResult:
    try:
        return await pipeline.process_batch(events)
    finally:
        await pipeline.close()


@logger.inject_lambda_context(log_event=False)
def lambda_handler(event: dict, context) -> dict:
    """Webhook entry point. GET verifies the endpoint; POST processes a batch."""
    method = _http_method(event)

    if method == "GET":
        return _response(200, "Email sync webhook active")
    if method != "POST":
        return _response(405, "Method not allowed")

    # Configuration failures abort the batch before any event is touched
    settings = _get_settings()
    missing = settings.validate_required()
    if missing:
        error = ConfigurationError(missing)
        logger.error("config.missing", extra={"missing": missing})
        return _response(500, {"error": error.message})

    try:
        events = parse_webhook_body(
            event.get("body"), bool(event.get("isBase64Encoded", False))
        )
    except ValueError as e:
        logger.warning("request.invalid_body", extra={"error": str(e)})
        return _response(400, {"error": str(e)})

    logger.info("batch.received", extra={"event_count": len(events)})

    try:
        batch = asyncio.run(_run_batch(_build_pipeline(settings), events))
    except Exception as e:
        logger.exception("batch.failed")
        return _response(500, {"error": str(e)})

    logger.info(
        "batch.success",
        extra={
            "batch_id": batch.batch_id,
            "received": batch.received,
            "matched": batch.matched_count,
            "summary": batch.summary.to_dict(),
        },
    )
    return _response(200, batch.to_dict())


def stats_handler(event: dict, context) -> dict:
    """Status endpoint listing the deal stages eligible for association."""
    settings = _get_settings()
    return _response(
        200,
        {
            "status": "active",
            "message": "Email sync integration running",
            "stages": sorted(settings.allowed_stages),
            "confidenceThreshold": settings.EMAIL_SYNC_CONFIDENCE_THRESHOLD,
        },
    )
