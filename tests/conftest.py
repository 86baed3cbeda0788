"""
Pytest configuration and shared fixtures.

Key fixtures:
- matching_config: MatchingConfig with a small, explicit stage allow-list
- immediate_backoff: zero-delay BackoffPolicy
- make_deal: DealRecord factory

No HubSpot credentials or network access are required; the CRM is
replaced with AsyncMock repositories or httpx.MockTransport.
"""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

# Load environment variables
from dotenv import load_dotenv

env_file = Path(__file__).parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)

from email_deal_sync.clients.backoff import BackoffPolicy  # noqa: E402
from email_deal_sync.config import MatchingConfig  # noqa: E402
from email_deal_sync.models.deal import DealRecord  # noqa: E402

ACTIVE_STAGE = 'closedwon'
PROCESSING_STAGE = 'presentationscheduled'
INACTIVE_STAGE = 'closedlost'


@pytest.fixture
def matching_config() -> MatchingConfig:
    """Matching config with a two-stage allow-list and the default threshold."""
    return MatchingConfig(
        confidence_threshold=65,
        allowed_stages=frozenset({ACTIVE_STAGE, PROCESSING_STAGE}),
    )


@pytest.fixture
def immediate_backoff() -> BackoffPolicy:
    """Backoff policy that never sleeps."""
    return BackoffPolicy.immediate()


@pytest.fixture
def make_deal():
    """Factory for DealRecords with sensible defaults."""

    def _make(
        deal_id: str = '1001',
        name: str = '168 Las Palmas',
        loan_number: str = '',
        alternate_loan_numbers: tuple[str, ...] = (),
        full_address: str = '168 Las Palmas Ave, Austin, TX 78701',
        stage: str | None = ACTIVE_STAGE,
    ) -> DealRecord:
        return DealRecord(
            id=deal_id,
            name=name,
            loan_number=loan_number,
            alternate_loan_numbers=alternate_loan_numbers,
            full_address=full_address,
            stage=stage,
        )

    return _make
