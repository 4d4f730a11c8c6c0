"""
Retention policy configuration.

Single source of truth for how long each entity type is kept before the external
sweeper may purge or anonymize it. Every create path sets expires_at from here.
"""
import os
from datetime import datetime, timedelta
from typing import Dict, Optional

from app.core.clock import utcnow

# Supported entity types
RETENTION_ENTITIES = [
    "interview_session",
    "transcript",
    "feedback",
    "usage_event",
]

DEFAULT_RETENTION_DAYS: Dict[str, int] = {
    "interview_session": 365,
    "transcript": 365,
    "feedback": 730,
    "usage_event": 730,
}


def _load_retention_days() -> Dict[str, int]:
    # RETENTION_DAYS_TRANSCRIPT=90 etc. override the defaults
    days = dict(DEFAULT_RETENTION_DAYS)
    for entity in RETENTION_ENTITIES:
        override = os.getenv(f"RETENTION_DAYS_{entity.upper()}")
        if override:
            days[entity] = int(override)
    return days


RETENTION_DAYS: Dict[str, int] = _load_retention_days()


def get_retention_days(entity: str) -> int:
    """
    Get the retention period for an entity type.

    Raises:
        KeyError: If the entity type has no retention policy
    """
    if entity not in RETENTION_DAYS:
        raise KeyError(f"No retention policy for entity type '{entity}'")
    return RETENTION_DAYS[entity]


def compute_expires_at(entity: str, now: Optional[datetime] = None) -> datetime:
    """Compute the expires_at timestamp for a row created at `now`."""
    if now is None:
        now = utcnow()
    return now + timedelta(days=get_retention_days(entity))
