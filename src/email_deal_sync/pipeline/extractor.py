"""
Identifier extraction from email subject and body text.

Pure and deterministic: the same subject and body always produce the same
ParsedIdentifiers. Three independent extractions:

- Loan numbers: ordered table of {pattern, canonicalizer} rules
- Addresses: street-address pattern applied per body line and to the
  subject, plus a trailing "separator + address" segment of the subject
- Deal names: subject prefixes ("Draw 6 - ...", "PAYMENTS: ...") and
  "property/loan/deal at|on|for <name>" references
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable

from ..config import DEFAULT_ADDRESS_BLACKLIST, MatchingConfig
from ..models.email import EmailMessage, ParsedIdentifiers

STREET_SUFFIXES = (
    r'St(?:reet)?|Ave(?:nue)?|Rd|Road|Dr(?:ive)?|Ln|Lane|Blvd|Boulevard|Ct|Court|Way'
    r'|Pl(?:ace)?|Cir(?:cle)?|Pkwy|Parkway|Ter(?:race)?|Trl|Trail|Hwy|Highway'
)

MIN_ADDRESS_LENGTH = 6
MIN_DEAL_NAME_LENGTH = 3


# =============================================================================
# Loan Numbers
# =============================================================================


@dataclass(frozen=True)
class LoanNumberRule:
    """A loan-number pattern and how to canonicalize its match."""

    name: str
    pattern: re.Pattern[str]
    canonicalize: Callable[[re.Match[str]], str]
    subject_only: bool = False


def _canonical_bf(match: re.Match[str]) -> str:
    digits = re.sub(r'[-\s]', '', match.group(1))[2:]
    return f'BF-{digits[:4]}-{digits[4:]}'


def _first_group(match: re.Match[str]) -> str:
    return match.group(1)


LOAN_NUMBER_RULES: tuple[LoanNumberRule, ...] = (
    # BF-2024-0012, BF 2024 0012, bf20240012
    LoanNumberRule(
        name='bf_code',
        pattern=re.compile(r'\b(BF[-\s]?\d{4}[-\s]?\d{4})\b', re.IGNORECASE),
        canonicalize=_canonical_bf,
    ),
    # "loan number 399536679", "File #5260113979", "document: 12345"
    LoanNumberRule(
        name='keyword_number',
        pattern=re.compile(
            r'\b(?:loans?|deals?|files?|documents?)\s*(?:number|#|no\.?|num\.?)?'
            r'\s*:?\s*[-–]?\s*(\d{5,10})\b',
            re.IGNORECASE,
        ),
        canonicalize=_first_group,
    ),
    # Servicer subjects: "RECORDED DOCUMENTS - 399558497", "Raikin/5260113979"
    LoanNumberRule(
        name='subject_servicer_number',
        pattern=re.compile(r'[-–|/]\s*(\d{7,10})\b'),
        canonicalize=_first_group,
        subject_only=True,
    ),
)


def extract_loan_numbers(subject: str, body: str) -> frozenset[str]:
    """Loan numbers found in the subject and body."""
    text = f'{subject}\n{body}'
    found: set[str] = set()
    for rule in LOAN_NUMBER_RULES:
        haystack = subject if rule.subject_only else text
        for match in rule.pattern.finditer(haystack):
            found.add(rule.canonicalize(match))
    return frozenset(found)


# =============================================================================
# Addresses
# =============================================================================


ADDRESS_PATTERN = re.compile(
    r'\b\d{1,6}\s+(?:[A-Za-z]{2,}\.?\s+){1,4}(?:' + STREET_SUFFIXES + r')\b\.?'
    r'(?:[\s,]+(?:(?:Apt|Suite|Ste|Unit|#)\.?\s*[A-Za-z0-9-]+))?'
    r'(?:\s*,\s*[A-Za-z]+(?:\s+[A-Za-z]+)*\s*,?\s*[A-Z]{2})?'
    r'(?:\s+\d{5}(?:-\d{4})?)?'
)

# "Title Work | 708 Pallister, Detroit, MI" - address after the last separator
SUBJECT_TAIL_ADDRESS_PATTERN = re.compile(
    r'[|:–-]\s*(\d{1,6}\s+[A-Za-z][\w\s]+?(?:,\s*[A-Za-z]+(?:\s+[A-Za-z]+)*)?'
    r'(?:,\s*[A-Z]{2})?(?:\s+\d{5})?)\s*$'
)


@lru_cache(maxsize=16)
def _compile_blacklist(patterns: tuple[str, ...]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


def clean_address(
    raw: str,
    blacklist: tuple[str, ...] = DEFAULT_ADDRESS_BLACKLIST,
) -> str | None:
    """
    Normalize an address candidate, or reject it.

    Keeps the first line, strips trailing dots and whitespace, and rejects
    candidates shorter than 6 characters or matching the blacklist.
    """
    if not raw:
        return None
    addr = raw.split('\n')[0].split('\r')[0].strip()
    addr = re.sub(r'[.\s]+$', '', addr).strip()
    if len(addr) < MIN_ADDRESS_LENGTH:
        return None
    if any(p.search(addr) for p in _compile_blacklist(tuple(blacklist))):
        return None
    return addr


def extract_addresses(
    subject: str,
    body: str,
    blacklist: tuple[str, ...] = DEFAULT_ADDRESS_BLACKLIST,
) -> frozenset[str]:
    """Street addresses found in the body (line by line) and the subject."""
    found: set[str] = set()

    # Never match across body lines
    for line in body.split('\n'):
        line = line.strip()
        if not line:
            continue
        for match in ADDRESS_PATTERN.finditer(line):
            addr = clean_address(match.group(0), blacklist)
            if addr:
                found.add(addr)

    for match in ADDRESS_PATTERN.finditer(subject):
        addr = clean_address(match.group(0), blacklist)
        if addr:
            found.add(addr)

    tail = SUBJECT_TAIL_ADDRESS_PATTERN.search(subject)
    if tail:
        addr = clean_address(tail.group(1), blacklist)
        if addr:
            found.add(addr)

    return frozenset(found)


# =============================================================================
# Deal Names
# =============================================================================


@dataclass(frozen=True)
class DealNameRule:
    """A deal-name pattern; group 1 is the name."""

    name: str
    pattern: re.Pattern[str]
    max_length: int
    subject_only: bool = False


DEAL_NAME_RULES: tuple[DealNameRule, ...] = (
    # "Draw 6 - 168 Las Palmas", "PAYMENTS: 21 Valley Rd", "TITLE WORK | 9 Elm"
    DealNameRule(
        name='subject_prefix',
        pattern=re.compile(
            r'(?:draw\s*\d*\s*[-–]\s*|payments?:\s*|title\s+work\s*[|]\s*|desktop\s+for\s+)'
            r'(.+?)(?:\s*[-–|]\s*|$)',
            re.IGNORECASE,
        ),
        max_length=80,
        subject_only=True,
    ),
    # "the property at 12 Oak Street has ...", "loan for Maple Court."
    DealNameRule(
        name='reference',
        pattern=re.compile(
            r'\b(?:property|loan|deal)\s+(?:at|on|for|located at)\s+(.+?)'
            r'(?:\s+(?:has|have|was|were|is|will|shall|can|should|and|but|or|which|that)\b'
            r'|[,.\n]|$)',
            re.IGNORECASE,
        ),
        max_length=60,
    ),
)


def extract_deal_names(subject: str, body: str) -> frozenset[str]:
    """Deal-name fragments from subject prefixes and property references."""
    text = f'{subject}\n{body}'
    found: set[str] = set()
    for rule in DEAL_NAME_RULES:
        haystack = subject if rule.subject_only else text
        for match in rule.pattern.finditer(haystack):
            name = match.group(1).strip()
            if MIN_DEAL_NAME_LENGTH <= len(name) <= rule.max_length and '\n' not in name:
                found.add(name)
    return frozenset(found)


# =============================================================================
# Entry Points
# =============================================================================


def normalize_text(subject: str | None, body: str | None) -> tuple[str, str]:
    """Trim the subject and convert body line endings to LF."""
    clean_subject = (subject or '').strip()
    clean_body = (body or '').replace('\r\n', '\n').replace('\r', '\n')
    return clean_subject, clean_body


def extract_identifiers(
    subject: str | None,
    body: str | None,
    address_blacklist: tuple[str, ...] = DEFAULT_ADDRESS_BLACKLIST,
) -> ParsedIdentifiers:
    """
    Extract loan numbers, addresses and deal names from an email.

    Args:
        subject: Email subject line
        body: Email body (plain text preferred)
        address_blacklist: Regexes of known false-positive addresses

    Returns:
        Immutable ParsedIdentifiers
    """
    clean_subject, clean_body = normalize_text(subject, body)
    return ParsedIdentifiers(
        loan_numbers=extract_loan_numbers(clean_subject, clean_body),
        addresses=extract_addresses(clean_subject, clean_body, address_blacklist),
        deal_names=extract_deal_names(clean_subject, clean_body),
    )


class IdentifierExtractor:
    """Extractor bound to a MatchingConfig's address blacklist."""

    def __init__(self, config: MatchingConfig | None = None):
        self.config = config or MatchingConfig()

    def extract(self, email: EmailMessage) -> ParsedIdentifiers:
        return extract_identifiers(
            email.subject,
            email.body,
            address_blacklist=self.config.address_blacklist,
        )
