"""
Celery tasks for job processing.

Tasks:
    - send_job_completion_notice: Async follow-up after a job completes
    - generate_daily_job_report: Daily job statistics, scheduled via Celery Beat
"""
import logging
from datetime import timedelta

from celery import shared_task
from django.db.models import Count, Q
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(ConnectionError,),
    retry_backoff=True
)
def send_job_completion_notice(self, job_id: int):
    """
    Async task triggered after a job is marked Completed.

    Logs the completion summary and flags any consumed item that is now at
    or below its minimum threshold.

    Args:
        job_id: ID of the completed job

    Returns:
        Dict with the notice status and the ids of low-stock items
    """
    from jobs.models import JobOrder

    try:
        job = JobOrder.objects.select_related('assigned_to').prefetch_related(
            'materials__item__batches'
        ).get(id=job_id)
    except JobOrder.DoesNotExist:
        logger.error(f"Job #{job_id} not found for completion notice")
        return {'status': 'error', 'message': f'Job {job_id} not found'}

    if not job.is_completed:
        logger.warning(
            f"Job #{job_id} is not completed (status: {job.status}), "
            "skipping completion notice"
        )
        return {
            'status': 'skipped',
            'message': f'Job {job_id} is not completed'
        }

    technician = job.assigned_to.name if job.assigned_to else 'unassigned'
    materials = [usage for usage in job.materials.all() if not usage.is_reversal]
    materials_summary = [
        f"  - {usage.quantity} {usage.unit} {usage.item_name}"
        for usage in materials
    ] or ['  (none)']

    logger.info(
        f"Job #{job.id} completed for {job.client_name} ({job.type}) "
        f"by {technician}\nMaterials used:\n" + "\n".join(materials_summary)
    )

    low_stock = []
    for usage in materials:
        item = usage.item
        if item is not None and item.low_stock and item.pk not in low_stock:
            low_stock.append(item.pk)
            logger.warning(
                f"Low stock: {item.name} at {item.total_quantity} {item.unit} "
                f"(threshold {item.min_threshold})"
            )

    return {
        'status': 'success',
        'job_id': job.id,
        'low_stock_items': low_stock,
        'message': f'Completion notice sent for job {job_id}'
    }


@shared_task
def generate_daily_job_report():
    """
    Generate yesterday's job statistics.

    Can be scheduled via Celery Beat for daily execution.
    """
    from jobs.models import JobOrder

    yesterday = timezone.now().date() - timedelta(days=1)

    stats = JobOrder.objects.filter(created_at__date=yesterday).aggregate(
        total_jobs=Count('id'),
        pending_jobs=Count('id', filter=Q(status=JobOrder.Status.PENDING)),
        ongoing_jobs=Count('id', filter=Q(status=JobOrder.Status.ONGOING)),
        completed_jobs=Count('id', filter=Q(status=JobOrder.Status.COMPLETED)),
    )
    stats['completed_yesterday'] = JobOrder.objects.filter(
        date_completed__date=yesterday
    ).count()

    logger.info(
        f"Daily job report for {yesterday}: {stats['total_jobs']} created "
        f"({stats['pending_jobs']} pending, {stats['ongoing_jobs']} ongoing, "
        f"{stats['completed_jobs']} completed), "
        f"{stats['completed_yesterday']} completed during the day"
    )

    stats['date'] = yesterday.isoformat()
    return stats
