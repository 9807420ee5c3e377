"""
Helpers for writing the activity log.
"""
import logging
from typing import Optional

from django.utils.text import Truncator

from .models import ActivityLog
from .policy import Actor

logger = logging.getLogger(__name__)


def record_activity(actor: Optional[Actor], action: str, target=None, **details) -> ActivityLog:
    """
    Append an ActivityLog entry.

    Runs inside the caller's transaction, so a rolled-back operation leaves
    no log entry behind. ``action`` is truncated to fit the column.
    """
    max_length = ActivityLog._meta.get_field('action').max_length
    entry = ActivityLog.objects.create(
        actor_id=actor.account_id if actor else None,
        action=Truncator(action).chars(max_length),
        model_name=target._meta.model_name if target is not None else '',
        object_id=str(target.pk) if target is not None else '',
        details=details,
    )
    logger.debug(f"Activity: {action}")
    return entry
