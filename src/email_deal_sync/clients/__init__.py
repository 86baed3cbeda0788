"""
External service clients for the email-to-deal sync pipeline.
"""

from .backoff import BackoffPolicy
from .hubspot_client import HubSpotClient

__all__ = ['BackoffPolicy', 'HubSpotClient']
