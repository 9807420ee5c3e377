"""
Tests for job lifecycle logic.

Test Cases:
1. Completing a job consumes its materials
2. Completion rejected with insufficient stock, nothing changed
3. Reopening a completed job clears date_completed
4. Optional restock on reopen and forward-only transitions
5. Technicians only see and update their own jobs
6. Pagination and filtering
7. Celery tasks
"""
from datetime import timedelta
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.utils import timezone

from core.exceptions import (
    Forbidden,
    InsufficientStock,
    InvalidRole,
    NotFound,
    ValidationError,
)
from core.models import ActivityLog
from core.test_utils import AuthenticatedAPIClient, TestDataFactory
from inventory.models import InventoryItem
from jobs import services
from jobs.models import JobOrder, MaterialUsage
from jobs.tasks import generate_daily_job_report, send_job_completion_notice


def _item(item_id):
    return InventoryItem.objects.prefetch_related('batches').get(pk=item_id)


class JobCompletionTestCase(TestCase):
    """Test cases for status transitions and material consumption."""

    def setUp(self):
        self.admin_user = TestDataFactory.create_admin()
        self.tech_user = TestDataFactory.create_technician()
        self.admin = TestDataFactory.actor(self.admin_user)
        self.technician = TestDataFactory.actor(self.tech_user)

        self.refrigerant = TestDataFactory.create_item(name='R-32 Refrigerant', unit='kg', min_threshold=2, batches=(3, 4))
        self.capacitor = TestDataFactory.create_item(name='Run Capacitor 35uF', min_threshold=0, batches=(2,))
        self.job = TestDataFactory.create_job(self.tech_user, status=JobOrder.Status.ONGOING)

    def test_complete_with_sufficient_stock(self):
        """
        Test: Job is COMPLETED and stock is debited when all lines fit.

        Given: 7 kg of refrigerant and 2 capacitors
        When: Completing a job using 5 kg and 1 capacitor
        Then: Status is Completed, date_completed is set, stock is debited
        """
        job = services.update_status(
            self.technician, self.job.pk, JobOrder.Status.COMPLETED,
            remarks='Recharged and replaced capacitor',
            materials=[
                {'item_id': self.refrigerant.pk, 'quantity': 5},
                {'item_id': self.capacitor.pk, 'quantity': 1},
            ]
        )

        self.assertEqual(job.status, JobOrder.Status.COMPLETED)
        self.assertIsNotNone(job.date_completed)
        self.assertEqual(job.remarks, 'Recharged and replaced capacitor')
        self.assertEqual(job.materials.count(), 2)

        self.assertEqual(_item(self.refrigerant.pk).total_quantity, 2)
        self.assertEqual(_item(self.capacitor.pk).total_quantity, 1)

        # Oldest batch drained first
        quantities = list(_item(self.refrigerant.pk).batches.order_by('last_updated').values_list('quantity', flat=True))
        self.assertEqual(quantities, [0, 2])

    def test_complete_with_exact_stock(self):
        """
        Test: Completion succeeds when requesting exactly available stock.
        """
        services.update_status(
            self.technician, self.job.pk, JobOrder.Status.COMPLETED,
            materials=[{'item_id': self.capacitor.pk, 'quantity': 2}]
        )

        capacitor = _item(self.capacitor.pk)
        self.assertEqual(capacitor.total_quantity, 0)
        self.assertTrue(capacitor.low_stock)

    def test_insufficient_stock_changes_nothing(self):
        """
        Test: Job and inventory unchanged when any line lacks stock.

        Given: 2 capacitors in stock
        When: Completing with 5 kg refrigerant and 3 capacitors
        Then: InsufficientStock, job still Ongoing, no stock debited
        """
        with self.assertRaises(InsufficientStock) as context:
            services.update_status(
                self.technician, self.job.pk, JobOrder.Status.COMPLETED,
                materials=[
                    {'item_id': self.refrigerant.pk, 'quantity': 5},
                    {'item_id': self.capacitor.pk, 'quantity': 3},
                ]
            )

        self.assertEqual(context.exception.item_id, self.capacitor.pk)

        self.job.refresh_from_db()
        self.assertEqual(self.job.status, JobOrder.Status.ONGOING)
        self.assertIsNone(self.job.date_completed)
        self.assertFalse(MaterialUsage.objects.exists())
        self.assertEqual(_item(self.refrigerant.pk).total_quantity, 7)
        self.assertEqual(_item(self.capacitor.pk).total_quantity, 2)

    def test_unknown_material_item(self):
        with self.assertRaises(NotFound):
            services.update_status(
                self.technician, self.job.pk, JobOrder.Status.COMPLETED,
                materials=[{'item_id': 99999, 'quantity': 1}]
            )

        self.job.refresh_from_db()
        self.assertEqual(self.job.status, JobOrder.Status.ONGOING)

    def test_duplicate_material_lines(self):
        with self.assertRaises(ValidationError) as context:
            services.update_status(
                self.technician, self.job.pk, JobOrder.Status.COMPLETED,
                materials=[
                    {'item_id': self.capacitor.pk, 'quantity': 1},
                    {'item_id': self.capacitor.pk, 'quantity': 1},
                ]
            )

        self.assertIn('duplicate', str(context.exception).lower())

    def test_materials_only_on_completion(self):
        with self.assertRaises(ValidationError):
            services.update_status(
                self.technician, self.job.pk, JobOrder.Status.PENDING,
                materials=[{'item_id': self.capacitor.pk, 'quantity': 1}]
            )

        self.assertEqual(_item(self.capacitor.pk).total_quantity, 2)

    def test_complete_without_materials(self):
        job = services.update_status(self.technician, self.job.pk, JobOrder.Status.COMPLETED)

        self.assertTrue(job.is_completed)
        self.assertEqual(job.materials.count(), 0)

    def test_reopen_clears_date_completed_without_restock(self):
        """
        Test: Leaving COMPLETED clears date_completed; stock stays consumed.
        """
        services.update_status(
            self.technician, self.job.pk, JobOrder.Status.COMPLETED,
            materials=[{'item_id': self.capacitor.pk, 'quantity': 2}]
        )

        job = services.update_status(self.technician, self.job.pk, JobOrder.Status.PENDING)

        self.assertEqual(job.status, JobOrder.Status.PENDING)
        self.assertIsNone(job.date_completed)
        self.assertEqual(_item(self.capacitor.pk).total_quantity, 0)

    @override_settings(JOB_LIFECYCLE={'RESTOCK_ON_REOPEN': True})
    def test_reopen_restocks_when_enabled(self):
        services.update_status(
            self.technician, self.job.pk, JobOrder.Status.COMPLETED,
            materials=[{'item_id': self.capacitor.pk, 'quantity': 2}]
        )

        job = services.update_status(self.admin, self.job.pk, JobOrder.Status.PENDING)

        self.assertEqual(_item(self.capacitor.pk).total_quantity, 2)
        reversal = job.materials.get(is_reversal=True)
        self.assertEqual(reversal.quantity, 2)

        # Completing again consumes again; reopening again returns only the new usage
        services.update_status(
            self.technician, self.job.pk, JobOrder.Status.COMPLETED,
            materials=[{'item_id': self.capacitor.pk, 'quantity': 1}]
        )
        services.update_status(self.admin, self.job.pk, JobOrder.Status.ONGOING)
        self.assertEqual(_item(self.capacitor.pk).total_quantity, 2)

    @override_settings(JOB_LIFECYCLE={'ENFORCE_FORWARD_TRANSITIONS': True})
    def test_forward_only_transitions(self):
        with self.assertRaises(ValidationError):
            services.update_status(self.technician, self.job.pk, JobOrder.Status.PENDING)

        job = services.update_status(self.technician, self.job.pk, JobOrder.Status.COMPLETED)
        self.assertTrue(job.is_completed)

    def test_completed_to_completed_consumes_nothing(self):
        services.update_status(
            self.technician, self.job.pk, JobOrder.Status.COMPLETED,
            materials=[{'item_id': self.capacitor.pk, 'quantity': 1}]
        )

        with self.assertRaises(ValidationError):
            services.update_status(
                self.technician, self.job.pk, JobOrder.Status.COMPLETED,
                materials=[{'item_id': self.capacitor.pk, 'quantity': 1}]
            )

        job = services.update_status(self.technician, self.job.pk, JobOrder.Status.COMPLETED, remarks='Done')
        self.assertEqual(job.remarks, 'Done')
        self.assertEqual(_item(self.capacitor.pk).total_quantity, 1)

    def test_other_technician_forbidden(self):
        """
        Test: A technician cannot update a job assigned to someone else.
        """
        other = TestDataFactory.actor(TestDataFactory.create_technician())

        with self.assertRaises(Forbidden):
            services.update_status(
                other, self.job.pk, JobOrder.Status.COMPLETED,
                materials=[{'item_id': self.capacitor.pk, 'quantity': 1}]
            )

        self.job.refresh_from_db()
        self.assertEqual(self.job.status, JobOrder.Status.ONGOING)
        self.assertEqual(_item(self.capacitor.pk).total_quantity, 2)

    def test_admin_can_update_any_job(self):
        job = services.update_status(self.admin, self.job.pk, JobOrder.Status.PENDING)
        self.assertEqual(job.status, JobOrder.Status.PENDING)

    def test_unknown_job(self):
        with self.assertRaises(NotFound):
            services.update_status(self.admin, 99999, JobOrder.Status.ONGOING)

    def test_invalid_status(self):
        with self.assertRaises(ValidationError):
            services.update_status(self.admin, self.job.pk, 'Cancelled')

    def test_completion_notice_queued_after_commit(self):
        with patch('jobs.tasks.send_job_completion_notice.delay') as mock_delay:
            with self.captureOnCommitCallbacks(execute=True):
                services.update_status(self.technician, self.job.pk, JobOrder.Status.COMPLETED)

        mock_delay.assert_called_once_with(self.job.pk)

    def test_completion_notice_failure_does_not_fail_update(self):
        with patch('jobs.tasks.send_job_completion_notice.delay', side_effect=ConnectionError('broker down')):
            with self.captureOnCommitCallbacks(execute=True):
                job = services.update_status(self.technician, self.job.pk, JobOrder.Status.COMPLETED)

        self.assertTrue(job.is_completed)


class JobAssignmentTestCase(TestCase):
    """Test cases for job creation and assignment."""

    def setUp(self):
        self.admin_user = TestDataFactory.create_admin()
        self.admin = TestDataFactory.actor(self.admin_user)
        self.tech_user = TestDataFactory.create_technician()

    def test_create_job_pending(self):
        job = services.create_job(
            self.admin, client_name='Maria Santos', client_address='12 Mabini St',
            type=JobOrder.Type.INSTALLATION, assigned_to=self.tech_user.pk
        )

        self.assertEqual(job.status, JobOrder.Status.PENDING)
        self.assertEqual(job.assigned_to, self.tech_user)
        self.assertIsNone(job.date_completed)

    def test_create_job_validation(self):
        with self.assertRaises(ValidationError):
            services.create_job(
                self.admin, client_name='', client_address='12 Mabini St',
                type=JobOrder.Type.REPAIR, assigned_to=self.tech_user.pk
            )
        with self.assertRaises(ValidationError):
            services.create_job(
                self.admin, client_name='Maria', client_address='12 Mabini St',
                type='Demolition', assigned_to=self.tech_user.pk
            )
        with self.assertRaises(ValidationError):
            services.create_job(
                self.admin, client_name='Maria', client_address='12 Mabini St',
                type=JobOrder.Type.REPAIR, assigned_to=99999
            )

    def test_create_job_requires_technician(self):
        with self.assertRaises(InvalidRole):
            services.create_job(
                self.admin, client_name='Maria', client_address='12 Mabini St',
                type=JobOrder.Type.REPAIR, assigned_to=self.admin_user.pk
            )

    def test_technician_cannot_create(self):
        with self.assertRaises(Forbidden):
            services.create_job(
                TestDataFactory.actor(self.tech_user), client_name='Maria',
                client_address='12 Mabini St', type=JobOrder.Type.REPAIR,
                assigned_to=self.tech_user.pk
            )

    def test_assign(self):
        job = TestDataFactory.create_job(self.tech_user)
        other = TestDataFactory.create_technician()

        job = services.assign(self.admin, job.pk, other.pk)

        self.assertEqual(job.assigned_to, other)

    def test_assign_errors(self):
        job = TestDataFactory.create_job(self.tech_user)

        with self.assertRaises(InvalidRole):
            services.assign(self.admin, job.pk, self.admin_user.pk)
        with self.assertRaises(NotFound):
            services.assign(self.admin, job.pk, 99999)
        with self.assertRaises(NotFound):
            services.assign(self.admin, 99999, self.tech_user.pk)

        job.refresh_from_db()
        self.assertEqual(job.assigned_to, self.tech_user)


    def test_long_client_name_activity_fits_column(self):
        """
        Test: Activity entries for long client names are truncated, not rejected.

        Given: A client name at the 200 character column limit
        When: Creating a job for that client
        Then: The job is saved and its activity entry fits the action column
        """
        job = services.create_job(
            self.admin, client_name='X' * 200, client_address='12 Mabini St',
            type=JobOrder.Type.REPAIR, assigned_to=self.tech_user.pk
        )

        entry = ActivityLog.objects.latest('id')
        max_length = ActivityLog._meta.get_field('action').max_length
        self.assertEqual(JobOrder.objects.get(pk=job.pk).client_name, 'X' * 200)
        self.assertLessEqual(len(entry.action), max_length)
        self.assertTrue(entry.action.endswith('…'))


class JobQueryTestCase(TestCase):
    """Test cases for job listing, scoping and pagination."""

    def setUp(self):
        self.admin = TestDataFactory.actor(TestDataFactory.create_admin())
        self.tech_a = TestDataFactory.create_technician()
        self.tech_b = TestDataFactory.create_technician()

    def test_pagination(self):
        """
        Test: Pages are sliced newest first with a total page count.

        Given: 12 pending jobs
        When: Requesting page 2 with limit 5
        Then: 5 results, total 12, totalPages 3
        """
        for i in range(12):
            TestDataFactory.create_job(self.tech_a, client_name=f'Client {i}')

        page = services.query_jobs(self.admin, status=JobOrder.Status.PENDING, page=2, limit=5)

        self.assertEqual(len(page['results']), 5)
        self.assertEqual(page['total'], 12)
        self.assertEqual(page['page'], 2)
        self.assertEqual(page['totalPages'], 3)

        last = services.query_jobs(self.admin, page=3, limit=5)
        self.assertEqual(len(last['results']), 2)
        beyond = services.query_jobs(self.admin, page=4, limit=5)
        self.assertEqual(beyond['results'], [])

    def test_empty_result(self):
        page = services.query_jobs(self.admin)
        self.assertEqual(page['total'], 0)
        self.assertEqual(page['totalPages'], 0)

    def test_technician_sees_only_own_jobs(self):
        own = TestDataFactory.create_job(self.tech_a)
        TestDataFactory.create_job(self.tech_b)

        page = services.query_jobs(TestDataFactory.actor(self.tech_a))

        self.assertEqual([job.pk for job in page['results']], [own.pk])
        self.assertEqual(services.query_jobs(self.admin)['total'], 2)

    def test_technician_cannot_view_other_job(self):
        job = TestDataFactory.create_job(self.tech_b)

        with self.assertRaises(Forbidden):
            services.get_job(TestDataFactory.actor(self.tech_a), job.pk)

        self.assertEqual(services.get_job(TestDataFactory.actor(self.tech_b), job.pk).pk, job.pk)

    def test_filters(self):
        TestDataFactory.create_job(self.tech_a, type=JobOrder.Type.INSTALLATION, client_name='Grace Tan')
        TestDataFactory.create_job(self.tech_a, type=JobOrder.Type.REPAIR, status=JobOrder.Status.ONGOING)

        self.assertEqual(services.query_jobs(self.admin, type=JobOrder.Type.INSTALLATION)['total'], 1)
        self.assertEqual(services.query_jobs(self.admin, status=JobOrder.Status.ONGOING)['total'], 1)
        self.assertEqual(services.query_jobs(self.admin, search='grace')['total'], 1)

    def test_invalid_query(self):
        with self.assertRaises(ValidationError):
            services.query_jobs(self.admin, limit=0)
        with self.assertRaises(ValidationError):
            services.query_jobs(self.admin, status='Cancelled')


    def test_sort_options(self):
        """
        Test: Results follow the requested sort field and direction.

        Given: Jobs for Carla, Ana and Bea created in that order
        When: Sorting by client_name ascending, then descending
        Then: Names come back alphabetically, then reversed
        """
        for name in ('Carla', 'Ana', 'Bea'):
            TestDataFactory.create_job(self.tech_a, client_name=name)

        ascending = services.query_jobs(self.admin, sort_by='client_name', order='asc')
        descending = services.query_jobs(self.admin, sort_by='client_name', order='desc')
        oldest_first = services.query_jobs(self.admin, order='asc')

        self.assertEqual([j.client_name for j in ascending['results']], ['Ana', 'Bea', 'Carla'])
        self.assertEqual([j.client_name for j in descending['results']], ['Carla', 'Bea', 'Ana'])
        self.assertEqual([j.client_name for j in oldest_first['results']], ['Carla', 'Ana', 'Bea'])

    def test_invalid_sort(self):
        with self.assertRaises(ValidationError):
            services.query_jobs(self.admin, sort_by='assigned_to__password')
        with self.assertRaises(ValidationError):
            services.query_jobs(self.admin, order='sideways')


class JobAPITestCase(TestCase):
    """Test cases for the job endpoints."""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.technician = TestDataFactory.create_technician()
        self.item = TestDataFactory.create_item(name='Copper Pipe 1/4"', unit='m', batches=(3,))
        self.job = TestDataFactory.create_job(self.technician, status=JobOrder.Status.ONGOING)
        self.client = AuthenticatedAPIClient()

    def test_create_job(self):
        self.client.authenticate_user(self.admin)

        response = self.client.post('/api/jobs/', {
            'client_name': 'Jose Reyes',
            'client_address': '8 Rizal Ave, Makati',
            'type': 'Maintenance',
            'assigned_to': self.technician.pk,
        }, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['status'], 'Pending')
        self.assertEqual(response.data['assigned_to']['id'], self.technician.pk)

    def test_complete_job(self):
        self.client.authenticate_user(self.technician)

        response = self.client.patch(f'/api/jobs/{self.job.pk}/status/', {
            'status': 'Completed',
            'materials': [{'item_id': self.item.pk, 'quantity': 2}],
        }, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['is_completed'])
        self.assertEqual(response.data['materials'][0]['quantity'], 2)
        self.assertEqual(_item(self.item.pk).total_quantity, 1)

    def test_insufficient_stock_conflict(self):
        self.client.authenticate_user(self.technician)

        response = self.client.patch(f'/api/jobs/{self.job.pk}/status/', {
            'status': 'Completed',
            'materials': [{'item_id': self.item.pk, 'quantity': 4}],
        }, format='json')

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['kind'], 'insufficient_stock')
        self.assertEqual(response.data['available'], 3)

    def test_list_paginated(self):
        self.client.authenticate_user(self.technician)

        response = self.client.get('/api/jobs/', {'limit': 5})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['total'], 1)
        self.assertEqual(response.data['totalPages'], 1)

    def test_other_technician_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_technician())

        response = self.client.get(f'/api/jobs/{self.job.pk}/')

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['kind'], 'forbidden')

    def test_assign_to_admin_invalid_role(self):
        self.client.authenticate_user(self.admin)

        response = self.client.patch(f'/api/jobs/{self.job.pk}/assign/', {
            'assigned_to': self.admin.pk
        }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['kind'], 'invalid_role')


    def test_list_sorted(self):
        TestDataFactory.create_job(self.technician, client_name='Aaron Cruz')
        self.client.authenticate_user(self.admin)

        response = self.client.get('/api/jobs/', {'sort_by': 'client_name', 'order': 'asc'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['results'][0]['client_name'], 'Aaron Cruz')

    def test_list_invalid_sort(self):
        self.client.authenticate_user(self.admin)

        response = self.client.get('/api/jobs/', {'sort_by': 'password'})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['kind'], 'validation_error')


class JobTaskTestCase(TestCase):
    """Test cases for Celery tasks."""

    def setUp(self):
        self.technician = TestDataFactory.create_technician()

    def test_completion_notice_flags_low_stock(self):
        item = TestDataFactory.create_item(min_threshold=5, batches=(6,))
        job = TestDataFactory.create_job(self.technician, status=JobOrder.Status.ONGOING)
        services.update_status(
            TestDataFactory.actor(self.technician), job.pk, JobOrder.Status.COMPLETED,
            materials=[{'item_id': item.pk, 'quantity': 2}]
        )

        result = send_job_completion_notice(job.pk)

        self.assertEqual(result['status'], 'success')
        self.assertEqual(result['low_stock_items'], [item.pk])

    def test_completion_notice_skips_open_job(self):
        job = TestDataFactory.create_job(self.technician)

        result = send_job_completion_notice(job.pk)

        self.assertEqual(result['status'], 'skipped')

    def test_completion_notice_unknown_job(self):
        result = send_job_completion_notice(99999)
        self.assertEqual(result['status'], 'error')

    def test_daily_report(self):
        yesterday = timezone.now() - timedelta(days=1)
        done = TestDataFactory.create_job(self.technician, status=JobOrder.Status.COMPLETED)
        TestDataFactory.create_job(self.technician)
        JobOrder.objects.update(created_at=yesterday)
        JobOrder.objects.filter(pk=done.pk).update(date_completed=yesterday)
        TestDataFactory.create_job(self.technician)

        stats = generate_daily_job_report()

        self.assertEqual(stats['total_jobs'], 2)
        self.assertEqual(stats['completed_jobs'], 1)
        self.assertEqual(stats['pending_jobs'], 1)
        self.assertEqual(stats['completed_yesterday'], 1)
        self.assertEqual(stats['date'], yesterday.date().isoformat())
