"""
Tests for identifier extraction (loan numbers, addresses, deal names).

Run with: pytest tests/test_extractor.py -v

Pure functions, no mocks required.
"""

from datetime import datetime, timezone

import pytest

from email_deal_sync.config import MatchingConfig
from email_deal_sync.models.email import EmailMessage, ParsedIdentifiers
from email_deal_sync.pipeline.extractor import (
    IdentifierExtractor,
    clean_address,
    extract_addresses,
    extract_deal_names,
    extract_identifiers,
    extract_loan_numbers,
    normalize_text,
)


# =============================================================================
# Loan Numbers
# =============================================================================


class TestLoanNumbers:
    """Test the loan-number rule table."""

    def test_keyword_loan_number_in_subject(self):
        parsed = extract_identifiers('Loan number 399536679 re the rehab draw', '')
        assert '399536679' in parsed.loan_numbers

    def test_servicer_number_after_dash(self):
        parsed = extract_identifiers('RECORDED DOCUMENTS - 399558497', '')
        assert '399558497' in parsed.loan_numbers

    def test_servicer_number_after_slash(self):
        assert '5260113979' in extract_loan_numbers('Raikin/5260113979', '')

    def test_servicer_rule_ignores_body(self):
        """Bare delimited numbers only count in the subject."""
        assert extract_loan_numbers('Hello', 'Ref - 12345678') == frozenset()

    @pytest.mark.parametrize(
        'text,expected',
        [
            ('File #5260113979 attached', '5260113979'),
            ('Deal: 12345', '12345'),
            ('documents no. 7654321', '7654321'),
            ('loans num 55555', '55555'),
        ],
    )
    def test_keyword_variants(self, text, expected):
        assert expected in extract_loan_numbers('', text)

    def test_keyword_requires_five_digits(self):
        assert extract_loan_numbers('', 'loan 1234 is closed') == frozenset()

    @pytest.mark.parametrize(
        'raw',
        ['BF-2024-0012', 'BF 2024 0012', 'bf20240012', 'Bf-2024 0012'],
    )
    def test_bf_code_canonicalized(self, raw):
        assert extract_loan_numbers(f'Payoff for {raw}', '') == frozenset({'BF-2024-0012'})

    def test_bf_variants_deduplicated(self):
        numbers = extract_loan_numbers('BF-2024-0012', 'See BF 2024 0012 and bf20240012')
        assert numbers == frozenset({'BF-2024-0012'})


# =============================================================================
# Addresses
# =============================================================================


class TestAddresses:
    """Test street-address extraction and cleaning."""

    def test_full_address_with_city_state_zip(self):
        addresses = extract_addresses(
            '', 'Please inspect 123 Main St, Springfield, IL 62701 tomorrow'
        )
        assert addresses == frozenset({'123 Main St, Springfield, IL 62701'})

    def test_address_in_subject(self):
        assert '21 Valley Rd' in extract_addresses('PAYMENTS: 21 Valley Rd', '')

    def test_never_matches_across_lines(self):
        assert extract_addresses('', 'Meet at 123\nMain Street') == frozenset()

    def test_subject_tail_after_separator(self):
        addresses = extract_addresses('Title Work | 708 Pallister, Detroit, MI', '')
        assert '708 Pallister, Detroit, MI' in addresses

    def test_time_of_day_blacklisted(self):
        assert extract_addresses('', 'Call me at 5 pm Main Street') == frozenset()

    def test_boilerplate_blacklisted(self):
        assert extract_addresses('', '12 Unsubscribe Here Way') == frozenset()

    @pytest.mark.parametrize('raw', ['1 St', '9 Ct.', '', '  12  '])
    def test_short_candidates_rejected(self, raw):
        assert clean_address(raw) is None

    def test_clean_address_strips_trailing_dots(self):
        assert clean_address('45 Oak Lane.  ') == '45 Oak Lane'

    def test_clean_address_keeps_first_line(self):
        assert clean_address('45 Oak Lane\nSuite 4') == '45 Oak Lane'

    def test_custom_blacklist(self):
        config = MatchingConfig(address_blacklist=(r'main',))
        email = EmailMessage(id='1', subject='', body='Visit 123 Main St today')
        parsed = IdentifierExtractor(config).extract(email)
        assert parsed.addresses == frozenset()


# =============================================================================
# Deal Names
# =============================================================================


class TestDealNames:
    """Test subject-prefix and reference deal-name patterns."""

    def test_draw_subject(self):
        parsed = extract_identifiers('Draw 6 - 168 Las Palmas', '')
        assert '168 Las Palmas' in parsed.deal_names

    def test_draw_subject_stops_at_next_delimiter(self):
        names = extract_deal_names('Draw 2 – 9 Elm Court | urgent', '')
        assert '9 Elm Court' in names

    def test_payments_subject(self):
        assert '21 Valley Rd' in extract_deal_names('PAYMENTS: 21 Valley Rd', '')

    def test_title_work_subject(self):
        names = extract_deal_names('TITLE WORK | 708 Pallister, Detroit, MI', '')
        assert '708 Pallister, Detroit, MI' in names

    def test_property_reference_stops_at_stop_word(self):
        names = extract_deal_names('', 'The property at 45 Oak Lane has a roof leak.')
        assert '45 Oak Lane' in names

    def test_loan_reference_stops_at_punctuation(self):
        names = extract_deal_names('', 'Update on the loan for Maple Court. Thanks')
        assert 'Maple Court' in names

    def test_too_short_reference_dropped(self):
        assert extract_deal_names('', 'The deal at AB.') == frozenset()

    def test_overlong_reference_dropped(self):
        long_name = 'X' * 61
        assert extract_deal_names('', f'property at {long_name}.') == frozenset()


# =============================================================================
# Whole-email behavior
# =============================================================================


class TestExtractIdentifiers:
    """Test the combined extraction entry points."""

    def test_deterministic(self):
        subject = 'Draw 6 - 168 Las Palmas'
        body = 'Loan number 399536679\r\nProperty at 168 Las Palmas Ave is ready.'
        first = extract_identifiers(subject, body)
        second = extract_identifiers(subject, body)
        assert first == second
        assert isinstance(first.loan_numbers, frozenset)

    def test_crlf_normalized(self):
        subject, body = normalize_text('  Re: hi  ', 'a\r\nb\rc')
        assert subject == 'Re: hi'
        assert body == 'a\nb\nc'

    def test_none_inputs(self):
        parsed = extract_identifiers(None, None)
        assert parsed == ParsedIdentifiers()
        assert parsed.is_empty

    def test_counts(self):
        parsed = extract_identifiers('RECORDED DOCUMENTS - 399558497', '')
        assert parsed.counts() == {'loan_numbers': 1, 'addresses': 0, 'deal_names': 0}

    def test_extractor_reads_email_message(self):
        email = EmailMessage(
            id='42',
            subject='Draw 6 - 168 Las Palmas',
            body='',
            timestamp=datetime(2026, 1, 5, tzinfo=timezone.utc),
        )
        parsed = IdentifierExtractor().extract(email)
        assert '168 Las Palmas' in parsed.deal_names
