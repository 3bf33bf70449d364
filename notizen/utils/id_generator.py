"""
ID generation utilities for NotiZen.

Provides consistent ID generation for all entity types:
- Notifications: ntf_xxx
- Digests: dig_xxx
- Sync envelopes: env_xxx
"""

from uuid import uuid4


def generate_notification_id() -> str:
    """
    Generate unique NotificationEvent ID.

    Returns:
        ID in format "ntf_xxx" where xxx is 12 hex characters
    """
    return f"ntf_{uuid4().hex[:12]}"


def generate_digest_id() -> str:
    """
    Generate unique Digest ID.

    Returns:
        ID in format "dig_xxx" where xxx is 12 hex characters
    """
    return f"dig_{uuid4().hex[:12]}"


def generate_envelope_id() -> str:
    """
    Generate unique SyncEnvelope ID.

    Returns:
        ID in format "env_xxx" where xxx is 12 hex characters
    """
    return f"env_{uuid4().hex[:12]}"
