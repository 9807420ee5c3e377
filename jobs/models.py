"""
Job Models - service job orders and the materials they consumed.

Job Status Flow:
    PENDING -> ONGOING -> COMPLETED

    Any status may be set from any other. Entering COMPLETED debits the
    job's materials from inventory and stamps date_completed; leaving it
    clears date_completed.
"""
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from inventory.models import InventoryItem


class JobOrder(models.Model):
    """
    Service job for a client, assigned to a technician.

    Status:
        - PENDING: Created, not yet started
        - ONGOING: Technician is on the job
        - COMPLETED: Work finished, materials consumed
    """

    class Type(models.TextChoices):
        INSTALLATION = 'Installation', 'Installation'
        REPAIR = 'Repair', 'Repair'
        MAINTENANCE = 'Maintenance', 'Maintenance'

    class Status(models.TextChoices):
        PENDING = 'Pending', 'Pending'
        ONGOING = 'Ongoing', 'Ongoing'
        COMPLETED = 'Completed', 'Completed'

    client_name = models.CharField(
        max_length=200,
        db_index=True,
        help_text="Client name"
    )
    client_address = models.CharField(
        max_length=300,
        help_text="Service address"
    )
    contact = models.CharField(
        max_length=100,
        blank=True,
        default='',
        help_text="Client phone or email"
    )
    type = models.CharField(
        max_length=20,
        choices=Type.choices,
        db_index=True
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
        help_text="Current job status"
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_jobs',
        help_text="Technician responsible for the job"
    )
    remarks = models.TextField(
        blank=True,
        default='',
        help_text="Free-text notes from admin or technician"
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    date_completed = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Set on entering Completed, cleared on leaving it"
    )

    class Meta:
        verbose_name = 'Job Order'
        verbose_name_plural = 'Job Orders'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['assigned_to', 'status'], name='job_assignee_status_idx'),
            models.Index(fields=['status', 'created_at'], name='job_status_created_idx'),
        ]

    def __str__(self):
        return f"Job #{self.id} - {self.client_name} ({self.status})"

    @property
    def is_completed(self) -> bool:
        return self.status == self.Status.COMPLETED


class MaterialUsage(models.Model):
    """
    Inventory consumed by a job.

    Item name and unit are copied at the time of use so the record stays
    accurate if the item is later renamed, re-unitized or deleted. Rows are
    never edited; a restock on reopening a job writes a reversal row.
    """
    job = models.ForeignKey(
        JobOrder,
        on_delete=models.CASCADE,
        related_name='materials',
        help_text="Job that used the material"
    )
    item = models.ForeignKey(
        InventoryItem,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='usages',
        help_text="Consumed inventory item"
    )
    item_name = models.CharField(max_length=200)
    unit = models.CharField(max_length=30)
    quantity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Units consumed (or returned, for reversals)"
    )
    is_reversal = models.BooleanField(
        default=False,
        help_text="True when this row returns previously consumed units"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Material Usage'
        verbose_name_plural = 'Material Usages'
        ordering = ['id']

    def __str__(self):
        sign = '+' if self.is_reversal else '-'
        return f"{sign}{self.quantity} {self.unit} {self.item_name} (job #{self.job_id})"
