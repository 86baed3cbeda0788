"""Tests for email, deal and match models."""

import pytest
from pydantic import ValidationError

from email_deal_sync.models.deal import DealRecord
from email_deal_sync.models.email import EmailMessage, ParsedIdentifiers
from email_deal_sync.models.match import EmailState, MatchResult, MatchType


class TestEmailMessage:
    def test_from_hubspot_prefers_text_body(self):
        email = EmailMessage.from_hubspot(
            {
                "id": 55,
                "properties": {
                    "hs_email_subject": "Draw 6 - 168 Las Palmas",
                    "hs_email_text": "plain",
                    "hs_email_html": "<p>html</p>",
                },
            }
        )
        assert email.id == "55"
        assert email.body == "plain"
        assert email.timestamp is None

    def test_from_hubspot_missing_properties(self):
        email = EmailMessage.from_hubspot({"id": "1"})
        assert email.subject == ""
        assert email.body == ""

    def test_frozen(self):
        email = EmailMessage(id="1")
        with pytest.raises(ValidationError):
            email.subject = "changed"


class TestParsedIdentifiers:
    def test_empty(self):
        assert ParsedIdentifiers().is_empty
        assert not ParsedIdentifiers(loan_numbers=frozenset({"12345"})).is_empty


class TestDealRecord:
    def test_from_hubspot(self):
        deal = DealRecord.from_hubspot(
            {
                "id": "10",
                "properties": {
                    "dealname": "168 Las Palmas",
                    "loan_number": None,
                    "loan_number__servicer_": "5260113979",
                    "loan_number__b_piece_servicer_": "",
                    "full_address": None,
                    "dealstage": "closedwon",
                },
            }
        )
        assert deal.name == "168 Las Palmas"
        assert deal.loan_number == ""
        assert deal.alternate_loan_numbers == ("5260113979",)
        assert deal.all_loan_numbers == ("5260113979",)
        assert deal.full_address == ""
        assert deal.stage == "closedwon"


class TestMatchResult:
    @pytest.mark.parametrize(
        "match_type,state",
        [
            (MatchType.LOAN_NUMBER, EmailState.LOAN_MATCHED),
            (MatchType.SINGLE_CONTACT_DEAL, EmailState.FALLBACK_MATCHED),
            (MatchType.DEAL_NAME, EmailState.CANDIDATE_SCORED),
            (MatchType.ADDRESS, EmailState.CANDIDATE_SCORED),
        ],
    )
    def test_matched_state(self, make_deal, match_type, state):
        result = MatchResult(deal=make_deal(), confidence=100, match_type=match_type)
        assert result.matched_state == state

    def test_is_committable(self, make_deal):
        scored = MatchResult(deal=make_deal(), confidence=64, match_type=MatchType.ADDRESS)
        assert not scored.is_committable(65)
        assert MatchResult(
            deal=make_deal(), confidence=65, match_type=MatchType.ADDRESS
        ).is_committable(65)
