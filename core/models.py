"""
Core Models - cross-cutting records shared by every app.

Models:
    - ActivityLog: append-only audit trail of domain events
"""
from django.conf import settings
from django.db import models


class ActivityLog(models.Model):
    """
    Audit entry for a domain event (job completed, batch edited, ...).

    Entries are never updated after creation.
    """
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='activity_logs',
        help_text="Account that triggered the event"
    )
    action = models.CharField(
        max_length=200,
        help_text="Human-readable description of the event"
    )
    model_name = models.CharField(max_length=100, blank=True, default='')
    object_id = models.CharField(max_length=100, blank=True, default='')
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = 'Activity Log'
        verbose_name_plural = 'Activity Logs'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['model_name', 'object_id'], name='activity_target_idx'),
        ]

    def __str__(self):
        return f"{self.action} ({self.created_at:%Y-%m-%d %H:%M})"
