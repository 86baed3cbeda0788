"""
Tests for the association committer.

Run with: pytest tests/test_committer.py -v
"""

from unittest.mock import AsyncMock

import pytest

from email_deal_sync.config import MatchingConfig
from email_deal_sync.errors import EmailProcessingError, HubSpotApiError
from email_deal_sync.models.match import MatchResult, MatchType
from email_deal_sync.pipeline.committer import AssociationCommitter


@pytest.fixture
def repository():
    repo = AsyncMock()
    repo.associate_email_to_deal = AsyncMock(return_value={})
    return repo


class TestAssociationCommitter:
    @pytest.mark.asyncio
    async def test_writes_association(self, repository, matching_config, make_deal):
        committer = AssociationCommitter(repository, matching_config)
        match = MatchResult(deal=make_deal(deal_id='d1'), confidence=90, match_type=MatchType.DEAL_NAME)

        await committer.commit('e1', match)

        repository.associate_email_to_deal.assert_awaited_once_with('e1', 'd1')

    @pytest.mark.asyncio
    async def test_refuses_below_threshold(self, repository, matching_config, make_deal):
        committer = AssociationCommitter(repository, matching_config)
        match = MatchResult(deal=make_deal(), confidence=60, match_type=MatchType.ADDRESS)

        with pytest.raises(EmailProcessingError, match='below threshold'):
            await committer.commit('e1', match)

        repository.associate_email_to_deal.assert_not_called()

    @pytest.mark.asyncio
    async def test_fallback_match_bypasses_threshold(self, repository, make_deal):
        committer = AssociationCommitter(repository, MatchingConfig(confidence_threshold=100))
        match = MatchResult(
            deal=make_deal(deal_id='d2'),
            confidence=100,
            match_type=MatchType.SINGLE_CONTACT_DEAL,
        )

        await committer.commit('e1', match)

        repository.associate_email_to_deal.assert_awaited_once_with('e1', 'd2')

    @pytest.mark.asyncio
    async def test_write_failure_propagates(self, repository, matching_config, make_deal):
        repository.associate_email_to_deal.side_effect = HubSpotApiError(
            'HubSpot API Error (400): bad', status_code=400
        )
        committer = AssociationCommitter(repository, matching_config)
        match = MatchResult(deal=make_deal(), confidence=100, match_type=MatchType.LOAN_NUMBER)

        with pytest.raises(HubSpotApiError):
            await committer.commit('e1', match)
