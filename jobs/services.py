"""
Job Lifecycle Service Layer - job creation, assignment and status transitions.

Status changes are unrestricted by default (any status to any status), but
only entering COMPLETED has a side effect:
1. Lock the job row with select_for_update()
2. Consume every material line from the Inventory Ledger, items locked in
   ascending id order to prevent deadlocks
3. If ANY line fails: the whole transaction rolls back, status unchanged,
   no inventory debited
4. If ALL pass: record MaterialUsage rows, stamp date_completed, queue the
   completion notice once the transaction commits

Leaving COMPLETED clears date_completed. Consumed stock is not returned
unless JOB_LIFECYCLE['RESTOCK_ON_REOPEN'] is enabled; operators restock
explicitly through the inventory endpoints otherwise.
"""
import logging
import math
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from accounts.models import User
from core.activity import record_activity
from core.exceptions import InvalidRole, NotFound, ValidationError, database_guard
from core.policy import Actor, authorize
from inventory import services as ledger
from .models import JobOrder, MaterialUsage

logger = logging.getLogger(__name__)

STATUS_ORDER = {
    JobOrder.Status.PENDING: 0,
    JobOrder.Status.ONGOING: 1,
    JobOrder.Status.COMPLETED: 2,
}

MAX_PAGE_SIZE = 100

SORT_FIELDS = ('created_at', 'updated_at', 'date_completed', 'client_name', 'status', 'type')
SORT_ORDERS = ('asc', 'desc')


def lifecycle_policy() -> Dict[str, bool]:
    configured = getattr(settings, 'JOB_LIFECYCLE', {})
    return {
        'ENFORCE_FORWARD_TRANSITIONS': bool(configured.get('ENFORCE_FORWARD_TRANSITIONS', False)),
        'RESTOCK_ON_REOPEN': bool(configured.get('RESTOCK_ON_REOPEN', False)),
    }


def validate_material_lines(materials: Optional[List[Dict]]) -> List[Dict]:
    """
    Validate material lines structure.

    Args:
        materials: List of dicts with 'item_id' and 'quantity'

    Returns:
        The lines, unchanged

    Raises:
        ValidationError: If validation fails
    """
    if not materials:
        return []

    seen_items = set()
    for idx, line in enumerate(materials):
        if 'item_id' not in line:
            raise ValidationError(f"Material {idx}: missing 'item_id'")
        if 'quantity' not in line:
            raise ValidationError(f"Material {idx}: missing 'quantity'")

        item_id = line['item_id']
        quantity = line['quantity']

        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError(f"Material {idx}: quantity must be a positive integer")

        if item_id in seen_items:
            raise ValidationError(f"Material {idx}: duplicate item_id {item_id}")
        seen_items.add(item_id)

    return materials


def _require_text(value: Optional[str], field: str) -> str:
    value = (value or '').strip()
    if not value:
        raise ValidationError(f"{field} is required")
    return value


def _technician(technician_id, missing_error) -> User:
    try:
        account = User.objects.get(pk=technician_id)
    except (User.DoesNotExist, ValueError, TypeError):
        raise missing_error(f"Technician {technician_id} not found")
    if not account.is_technician:
        raise InvalidRole(f"{account.name} is not a technician")
    return account


def _job_queryset():
    return JobOrder.objects.select_related('assigned_to').prefetch_related('materials')


def _fetch_job(job_id: int) -> JobOrder:
    try:
        return _job_queryset().get(pk=job_id)
    except JobOrder.DoesNotExist:
        raise NotFound(f"Job {job_id} not found")


def _queue_completion_notice(job_id: int) -> None:
    try:
        from .tasks import send_job_completion_notice
        send_job_completion_notice.delay(job_id)
        logger.info(f"Triggered completion notice for job #{job_id}")
    except Exception as e:
        # Don't fail the request if task queuing fails
        logger.error(f"Failed to queue completion notice for job #{job_id}: {e}")


# =============================================================================
# Queries
# =============================================================================

def get_job(actor: Actor, job_id: int) -> JobOrder:
    """Fetch one job. Technicians may only fetch jobs assigned to them."""
    authorize(actor, 'jobs.retrieve')
    job = _fetch_job(job_id)
    authorize(actor, 'jobs.retrieve', job=job)
    return job


def query_jobs(actor: Actor, status: Optional[str] = None, type: Optional[str] = None,
               search: Optional[str] = None, page: int = 1, limit: int = 10,
               date_from: Optional[date] = None, date_to: Optional[date] = None,
               sort_by: str = 'created_at', order: str = 'desc') -> Dict:
    """
    Filter, sort and paginate jobs. Newest first unless told otherwise.

    Technicians only ever see jobs assigned to them.

    Args:
        status: Exact status match
        type: Exact job type match
        search: Case-insensitive match on client name, address or contact
        page: 1-indexed page number
        limit: Page size, at most MAX_PAGE_SIZE
        date_from, date_to: Inclusive bounds on the creation date
        sort_by: One of SORT_FIELDS; ties fall back to id
        order: 'asc' or 'desc'

    Returns:
        Dict with 'results', 'total', 'page' and 'totalPages'
    """
    authorize(actor, 'jobs.query')

    if status and status not in JobOrder.Status.values:
        raise ValidationError(f"Invalid status '{status}'")
    if type and type not in JobOrder.Type.values:
        raise ValidationError(f"Invalid job type '{type}'")
    if isinstance(page, bool) or not isinstance(page, int) or page < 1:
        raise ValidationError("page must be a positive integer")
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    if sort_by not in SORT_FIELDS:
        raise ValidationError(f"sort_by must be one of: {', '.join(SORT_FIELDS)}")
    if order not in SORT_ORDERS:
        raise ValidationError("order must be 'asc' or 'desc'")

    queryset = _job_queryset()
    if actor.is_technician:
        queryset = queryset.filter(assigned_to_id=actor.account_id)
    if status:
        queryset = queryset.filter(status=status)
    if type:
        queryset = queryset.filter(type=type)
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    search = (search or '').strip()
    if search:
        queryset = queryset.filter(
            Q(client_name__icontains=search) |
            Q(client_address__icontains=search) |
            Q(contact__icontains=search)
        )

    total = queryset.count()
    offset = (page - 1) * limit
    prefix = '-' if order == 'desc' else ''
    queryset = queryset.order_by(f'{prefix}{sort_by}', f'{prefix}id')
    results = list(queryset[offset:offset + limit])

    return {
        'results': results,
        'total': total,
        'page': page,
        'totalPages': math.ceil(total / limit),
    }


# =============================================================================
# Mutations
# =============================================================================

def create_job(actor: Actor, client_name: str, client_address: str, type: str,
               assigned_to: int, contact: str = '', remarks: Optional[str] = None) -> JobOrder:
    """
    Create a job in PENDING status assigned to a technician.

    Raises:
        Forbidden: Actor is not an admin
        ValidationError: Missing client fields, unknown job type or unknown
            technician
        InvalidRole: assigned_to is not a technician account
    """
    authorize(actor, 'jobs.create')

    client_name = _require_text(client_name, 'client_name')
    client_address = _require_text(client_address, 'client_address')
    if type not in JobOrder.Type.values:
        raise ValidationError(
            f"Invalid job type '{type}'. Expected one of: {', '.join(JobOrder.Type.values)}"
        )
    if assigned_to in (None, ''):
        raise ValidationError("assigned_to is required")
    technician = _technician(assigned_to, ValidationError)

    with database_guard('create_job'), transaction.atomic():
        job = JobOrder.objects.create(
            client_name=client_name,
            client_address=client_address,
            contact=(contact or '').strip(),
            type=type,
            assigned_to=technician,
            remarks=remarks or '',
            status=JobOrder.Status.PENDING,
        )
        record_activity(
            actor, f"Created {type} job for {client_name}", job,
            assigned_to=technician.pk
        )

    logger.info(f"Created job #{job.pk} for {client_name}, assigned to {technician.email}")
    return _fetch_job(job.pk)


def assign(actor: Actor, job_id: int, technician_id: int) -> JobOrder:
    """
    Reassign a job to another technician.

    Raises:
        Forbidden: Actor is not an admin
        NotFound: Job or account does not exist
        InvalidRole: Account is not a technician
    """
    authorize(actor, 'jobs.assign')

    with database_guard('assign'), transaction.atomic():
        try:
            job = JobOrder.objects.select_for_update().get(pk=job_id)
        except JobOrder.DoesNotExist:
            raise NotFound(f"Job {job_id} not found")
        technician = _technician(technician_id, NotFound)

        previous = job.assigned_to_id
        job.assigned_to = technician
        job.save(update_fields=['assigned_to', 'updated_at'])
        record_activity(
            actor, f"Assigned job #{job.pk} to {technician.name}", job,
            previous_assignee=previous, assigned_to=technician.pk
        )

    logger.info(f"Job #{job_id} reassigned from {previous} to {technician.pk}")
    return _fetch_job(job_id)


def update_status(actor: Actor, job_id: int, new_status: str,
                  remarks: Optional[str] = None,
                  materials: Optional[List[Dict]] = None) -> JobOrder:
    """
    Move a job to ``new_status``, consuming materials when it completes.

    Args:
        job_id: Job to update
        new_status: Target status
        remarks: Overwrites the job's remarks when provided
        materials: List of dicts with 'item_id' and 'quantity'; only
            accepted when the job is entering COMPLETED

    Returns:
        The updated job

    Raises:
        Forbidden: Technician is not the job's assignee
        NotFound: Job (or a referenced inventory item) does not exist
        ValidationError: Unknown status, malformed materials, materials on a
            non-completing transition, or a backwards move while forward
            transitions are enforced
        InsufficientStock: A material line exceeds available stock; nothing
            is changed
        Unavailable: The database timed out; nothing is changed
    """
    authorize(actor, 'jobs.update_status')

    if new_status not in JobOrder.Status.values:
        raise ValidationError(
            f"Invalid status '{new_status}'. Expected one of: {', '.join(JobOrder.Status.values)}"
        )
    lines = validate_material_lines(materials)
    policy = lifecycle_policy()

    with database_guard('update_status'), transaction.atomic():
        try:
            job = JobOrder.objects.select_for_update().get(pk=job_id)
        except JobOrder.DoesNotExist:
            raise NotFound(f"Job {job_id} not found")
        authorize(actor, 'jobs.update_status', job=job)

        previous = job.status
        entering_completed = new_status == JobOrder.Status.COMPLETED and previous != JobOrder.Status.COMPLETED
        leaving_completed = previous == JobOrder.Status.COMPLETED and new_status != JobOrder.Status.COMPLETED

        if lines and not entering_completed:
            raise ValidationError("Materials can only be recorded when a job is marked Completed")
        if policy['ENFORCE_FORWARD_TRANSITIONS'] and STATUS_ORDER[new_status] < STATUS_ORDER[previous]:
            raise ValidationError(f"Cannot move a job from {previous} back to {new_status}")

        if entering_completed:
            _consume_materials(job, lines)
            job.date_completed = timezone.now()
        elif leaving_completed:
            job.date_completed = None
            if policy['RESTOCK_ON_REOPEN']:
                _restock_materials(job)

        job.status = new_status
        if remarks is not None:
            job.remarks = remarks
        job.save()

        record_activity(
            actor, f"Job #{job.pk} status {previous} -> {new_status}", job,
            previous=previous, status=new_status, materials=len(lines)
        )

        if entering_completed:
            transaction.on_commit(lambda: _queue_completion_notice(job.pk))

    logger.info(f"Job #{job_id}: {previous} -> {new_status} by account {actor.account_id}")
    return _fetch_job(job_id)


def _consume_materials(job: JobOrder, lines: List[Dict]) -> None:
    """Debit every line and record its usage. Caller holds the transaction."""
    for line in sorted(lines, key=lambda l: l['item_id']):
        item = ledger.consume(line['item_id'], line['quantity'])
        MaterialUsage.objects.create(
            job=job,
            item=item,
            item_name=item.name,
            unit=item.unit,
            quantity=line['quantity'],
        )
        logger.debug(f"Job #{job.pk}: used {line['quantity']} {item.unit} of {item.name}")


def _restock_materials(job: JobOrder) -> None:
    """Return the net consumed quantity of each still-existing item."""
    outstanding = defaultdict(int)
    for usage in job.materials.filter(item__isnull=False).order_by('item_id'):
        outstanding[usage.item_id] += -usage.quantity if usage.is_reversal else usage.quantity

    for item_id, quantity in outstanding.items():
        if quantity <= 0:
            continue
        item = ledger.restock(item_id, quantity, f"Returned from job #{job.pk}")
        MaterialUsage.objects.create(
            job=job,
            item=item,
            item_name=item.name,
            unit=item.unit,
            quantity=quantity,
            is_reversal=True,
        )
        logger.info(f"Job #{job.pk} reopened: returned {quantity} {item.unit} of {item.name}")
