"""
Configuration management for the email-to-deal sync pipeline.

Environment settings (credentials, retry and pacing knobs) are loaded with
pydantic-settings. Matching behavior (acceptance threshold, allowed stages,
address blacklist) is carried by an immutable MatchingConfig that is
injected into the pipeline components at construction.
"""

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

# Load .env file from project root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / '.env'
if _env_file.exists():
    load_dotenv(_env_file)


# Deal stages eligible for email association (active, funded, servicing,
# foreclosure and REO pipelines).
DEFAULT_ALLOWED_STAGES: tuple[str, ...] = (
    'presentationscheduled',  # processing
    'closedwon',  # post funded
    '4447566',  # sold
    '4447567',  # repaid
    '1085330955',  # lien released
    '1067972413',  # DSCR processing
    '1067972416',  # DSCR post-close QC
    '1269293461',  # DSCR closed won
    '1015819060',  # pre-foreclosure
    '1015819061',  # foreclosure active
    '1018320194',  # foreclosure paused
    '1018320195',  # foreclosure auction
    '1015819063',  # REO pre-listing
    '1018320196',  # REO listed
    '1018320197',  # REO under contract
)

# Address candidates matching any of these are discarded.
DEFAULT_ADDRESS_BLACKLIST: tuple[str, ...] = (
    r'^\d+\s+(am|pm|quick|other|of\b)',
    r'bankruptcy|unsubscribe|copyright',
    r'^\d+\s+\w+\s+to\s+get\s+started',
)

DEFAULT_CONFIDENCE_THRESHOLD = 65
DEFAULT_ASSOCIATION_TYPE_ID = 210


class MatchingConfig(BaseModel):
    """Immutable matching configuration shared by matcher, scorer and committer."""

    model_config = ConfigDict(frozen=True)

    confidence_threshold: int = Field(
        default=DEFAULT_CONFIDENCE_THRESHOLD,
        ge=0,
        le=100,
        description='Minimum score for a scored candidate to be associated',
    )
    allowed_stages: frozenset[str] = Field(
        default=frozenset(DEFAULT_ALLOWED_STAGES),
        description='Deal stage ids eligible for association',
    )
    address_blacklist: tuple[str, ...] = Field(
        default=DEFAULT_ADDRESS_BLACKLIST,
        description='Case-insensitive regexes of known false-positive addresses',
    )
    association_type_id: int = Field(
        default=DEFAULT_ASSOCIATION_TYPE_ID,
        description='HubSpot association type id for email -> deal',
    )

    def is_allowed_stage(self, stage: str | None) -> bool:
        """Check whether a deal stage is eligible for association."""
        return stage in self.allowed_stages


class SyncSettings(BaseSettings):
    """Email sync environment variables."""

    HUBSPOT_API_KEY: str = ''
    HUBSPOT_API_BASE: str = 'https://api.hubapi.com'
    HTTP_TIMEOUT_SECONDS: float = Field(default=30, gt=0, le=120)

    EMAIL_SYNC_CONFIDENCE_THRESHOLD: int = Field(
        default=DEFAULT_CONFIDENCE_THRESHOLD, ge=0, le=100
    )
    EMAIL_SYNC_ALLOWED_STAGES: str = ','.join(DEFAULT_ALLOWED_STAGES)
    EMAIL_SYNC_ASSOCIATION_TYPE_ID: int = DEFAULT_ASSOCIATION_TYPE_ID

    # Rate limiting
    EMAIL_SYNC_MAX_RETRIES: int = Field(default=3, ge=0, le=10)
    EMAIL_SYNC_RETRY_BASE_SECONDS: float = Field(default=1.0, ge=0)
    EMAIL_SYNC_MAX_RETRY_DELAY_SECONDS: float = Field(default=10.0, ge=0)
    EMAIL_SYNC_CALL_DELAY_SECONDS: float = Field(default=0.15, ge=0)
    EMAIL_SYNC_EVENT_DELAY_SECONDS: float = Field(default=0.2, ge=0)

    LOG_LEVEL: str = 'INFO'
    LOG_JSON: bool = False

    @property
    def allowed_stages(self) -> frozenset[str]:
        """Allowed stage ids parsed from the comma-separated setting."""
        return frozenset(
            s.strip() for s in self.EMAIL_SYNC_ALLOWED_STAGES.split(',') if s.strip()
        )

    def validate_required(self) -> list[str]:
        """
        Validate that required configuration is present.

        Returns:
            List of missing required configuration keys
        """
        missing = []
        if not self.HUBSPOT_API_KEY:
            missing.append('HUBSPOT_API_KEY')
        if not self.allowed_stages:
            missing.append('EMAIL_SYNC_ALLOWED_STAGES')
        return missing

    def to_matching_config(self) -> MatchingConfig:
        """Build the immutable matching configuration from these settings."""
        return MatchingConfig(
            confidence_threshold=self.EMAIL_SYNC_CONFIDENCE_THRESHOLD,
            allowed_stages=self.allowed_stages,
            association_type_id=self.EMAIL_SYNC_ASSOCIATION_TYPE_ID,
        )


@lru_cache
def get_settings() -> SyncSettings:
    """Cached settings singleton."""
    return SyncSettings()
