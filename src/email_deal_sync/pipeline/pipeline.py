"""
Email sync pipeline orchestrator.

Wires extraction, matching, fallback resolution and the association write
into process_email(), and runs webhook batches through process_batch().

Per email:
    RECEIVED -> PARSED -> {LOAN_MATCHED | CANDIDATE_SCORED | FALLBACK_MATCHED
    | UNMATCHED} -> {ASSOCIATED | SKIPPED}

Emails in a batch are processed strictly sequentially, in the order
received, with a fixed delay between them. A failure for one email is
recorded and never stops the rest of the batch.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from ..clients.backoff import BackoffPolicy
from ..clients.hubspot_client import HubSpotClient
from ..config import MatchingConfig, SyncSettings
from ..errors import EmailProcessingError, PartialSuccessResult, wrap_processing_error
from ..logging import PipelineTimer, logging_context
from ..models.email import ParsedIdentifiers
from ..models.events import ChangeEvent, select_events
from ..models.match import EmailState, MatchResult
from ..repository import DealRepository
from .committer import AssociationCommitter
from .extractor import IdentifierExtractor
from .fallback import FallbackResolver
from .matcher import DealMatcher

logger = structlog.get_logger(__name__)


ALLOWED_TRANSITIONS: dict[EmailState, frozenset[EmailState]] = {
    EmailState.RECEIVED: frozenset({EmailState.PARSED, EmailState.SKIPPED}),
    EmailState.PARSED: frozenset(
        {
            EmailState.LOAN_MATCHED,
            EmailState.CANDIDATE_SCORED,
            EmailState.FALLBACK_MATCHED,
            EmailState.UNMATCHED,
            EmailState.SKIPPED,
        }
    ),
    EmailState.LOAN_MATCHED: frozenset({EmailState.ASSOCIATED, EmailState.SKIPPED}),
    EmailState.CANDIDATE_SCORED: frozenset({EmailState.ASSOCIATED, EmailState.SKIPPED}),
    EmailState.FALLBACK_MATCHED: frozenset({EmailState.ASSOCIATED, EmailState.SKIPPED}),
    EmailState.UNMATCHED: frozenset({EmailState.SKIPPED}),
    EmailState.ASSOCIATED: frozenset(),
    EmailState.SKIPPED: frozenset(),
}


# =============================================================================
# Result Models
# =============================================================================


@dataclass
class EmailSyncResult:
    """Outcome of processing one email."""

    email_id: str
    state: EmailState = EmailState.RECEIVED
    history: list[EmailState] = field(default_factory=lambda: [EmailState.RECEIVED])
    parsed: ParsedIdentifiers | None = None
    match: MatchResult | None = None
    error: EmailProcessingError | None = None
    stage_timings: dict[str, float] = field(default_factory=dict)

    def transition(self, new_state: EmailState) -> None:
        """Move to a new state, enforcing the state machine."""
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise ValueError(f'Invalid transition {self.state.value} -> {new_state.value}')
        self.state = new_state
        self.history.append(new_state)

    @property
    def associated(self) -> bool:
        return self.state == EmailState.ASSOCIATED

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_log_entry(self) -> dict[str, Any]:
        """Result-log entry for a matched email."""
        entry: dict[str, Any] = {
            'emailId': self.email_id,
            'state': self.state.value,
            'success': self.associated,
        }
        if self.match is not None:
            entry.update(
                {
                    'dealId': self.match.deal.id,
                    'dealName': self.match.deal.name,
                    'confidence': self.match.confidence,
                    'matchType': self.match.match_type.value,
                }
            )
        if self.error is not None:
            entry['error'] = self.error.message
        return entry


@dataclass
class BatchResult:
    """Outcome of one webhook batch."""

    batch_id: str
    received: int
    results: list[EmailSyncResult] = field(default_factory=list)
    summary: PartialSuccessResult = field(default_factory=PartialSuccessResult)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def selected(self) -> int:
        return len(self.results)

    @property
    def filtered(self) -> int:
        """Events dropped as non-email, irrelevant property changes or duplicates."""
        return self.received - self.selected

    @property
    def matched(self) -> list[EmailSyncResult]:
        return [r for r in self.results if r.associated]

    @property
    def matched_count(self) -> int:
        return len(self.matched)

    def to_dict(self) -> dict[str, Any]:
        """Response body for the webhook invocation."""
        return {
            'success': True,
            'processed': self.matched_count,
            'results': [r.to_log_entry() for r in self.matched],
            'skipped': self.selected - self.matched_count,
            'failed': self.summary.failure_count,
            'filtered': self.filtered,
        }


# =============================================================================
# EmailSyncPipeline
# =============================================================================


class EmailSyncPipeline:
    """
    Orchestrates fetch -> extract -> match -> fallback -> associate.

    Responsibilities:
    - Walk each email through the state machine
    - Catch every per-email failure at the email boundary
    - Process batches sequentially with pacing between emails
    """

    def __init__(
        self,
        repository: DealRepository,
        config: MatchingConfig | None = None,
        backoff: BackoffPolicy | None = None,
    ):
        """
        Initialize the pipeline and its stages.

        Args:
            repository: CRM repository (reads, searches, association write)
            config: Matching configuration (default: MatchingConfig())
            backoff: Pacing policy (default: BackoffPolicy())
        """
        self.repository = repository
        self.config = config or MatchingConfig()
        self.backoff = backoff or BackoffPolicy()

        self.extractor = IdentifierExtractor(self.config)
        self.matcher = DealMatcher(repository, self.config, self.backoff)
        self.fallback = FallbackResolver(repository)
        self.committer = AssociationCommitter(repository, self.config)

    @classmethod
    def from_settings(cls, settings: SyncSettings, **client_kwargs: Any) -> 'EmailSyncPipeline':
        """Build a pipeline and its HubSpot client from environment settings."""
        backoff = BackoffPolicy(
            max_retries=settings.EMAIL_SYNC_MAX_RETRIES,
            base_delay_seconds=settings.EMAIL_SYNC_RETRY_BASE_SECONDS,
            call_delay_seconds=settings.EMAIL_SYNC_CALL_DELAY_SECONDS,
            event_delay_seconds=settings.EMAIL_SYNC_EVENT_DELAY_SECONDS,
            max_delay_seconds=settings.EMAIL_SYNC_MAX_RETRY_DELAY_SECONDS,
        )
        config = settings.to_matching_config()
        client = HubSpotClient(
            api_key=settings.HUBSPOT_API_KEY,
            api_base=settings.HUBSPOT_API_BASE,
            backoff=backoff,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            **client_kwargs,
        )
        repository = DealRepository(client, association_type_id=config.association_type_id)
        return cls(repository, config=config, backoff=backoff)

    async def close(self) -> None:
        """Close the underlying HubSpot client."""
        await self.repository.hubspot.close()

    async def process_email(self, email_id: str) -> EmailSyncResult:
        """
        Process one email end to end.

        Never raises: failures are recorded on the result and the email
        ends SKIPPED.

        Args:
            email_id: CRM email object id

        Returns:
            EmailSyncResult in a terminal state
        """
        result = EmailSyncResult(email_id=email_id)
        timer = PipelineTimer()
        log = logger.bind(email_id=email_id)
        stage = 'fetch'

        try:
            with timer.stage('fetch'):
                email = await self.repository.get_email(email_id)

            stage = 'parse'
            with timer.stage('parse'):
                parsed = self.extractor.extract(email)
            result.parsed = parsed
            result.transition(EmailState.PARSED)
            log.info('pipeline.parsed', **parsed.counts())

            stage = 'match'
            with timer.stage('match'):
                outcome = await self.matcher.find_match(parsed)
            match = outcome.result

            if match is None:
                stage = 'fallback'
                with timer.stage('fallback'):
                    match = await self.fallback.resolve(email_id)

            if match is None:
                result.transition(EmailState.UNMATCHED)
                result.transition(EmailState.SKIPPED)
                log.info('pipeline.no_match')
                return result

            result.match = match
            result.transition(match.matched_state)

            stage = 'commit'
            with timer.stage('commit'):
                await self.committer.commit(email_id, match)
            result.transition(EmailState.ASSOCIATED)

            log.info(
                'pipeline.associated',
                deal_id=match.deal.id,
                deal_name=match.deal.name,
                confidence=match.confidence,
                match_type=match.match_type.value,
            )

        except Exception as exc:
            result.error = wrap_processing_error(exc, email_id, stage)
            if not result.state.is_terminal:
                result.transition(EmailState.SKIPPED)
            log.error('pipeline.email_failed', stage=stage, error=str(exc))

        finally:
            result.stage_timings = timer.summary()['stages']

        return result

    async def process_batch(self, events: list[ChangeEvent]) -> BatchResult:
        """
        Process a webhook batch sequentially.

        Irrelevant events and duplicate email ids are dropped first; the
        remaining emails run in the order received.

        Args:
            events: Parsed change events, in delivery order

        Returns:
            BatchResult with per-email results and counts
        """
        batch = BatchResult(
            batch_id=str(uuid.uuid4()),
            received=len(events),
            started_at=datetime.now(tz=timezone.utc),
        )
        selected = select_events(events)

        with logging_context(batch_id=batch.batch_id):
            logger.info(
                'pipeline.batch_started',
                received=batch.received,
                unique=len(selected),
                filtered=batch.received - len(selected),
            )

            for index, event in enumerate(selected):
                with logging_context(email_id=event.object_id):
                    result = await self.process_email(event.object_id)
                batch.results.append(result)

                if result.error is not None:
                    batch.summary.add_failure(result.error, item_id=result.email_id)
                else:
                    batch.summary.add_success(
                        item_id=result.email_id,
                        data={'state': result.state.value},
                    )

                if index < len(selected) - 1:
                    await self.backoff.pause_between_events()

            batch.completed_at = datetime.now(tz=timezone.utc)
            logger.info(
                'pipeline.batch_complete',
                processed=len(selected),
                matched=batch.matched_count,
                failed=batch.summary.failure_count,
                partial_success=batch.summary.partial_success,
            )

        return batch
