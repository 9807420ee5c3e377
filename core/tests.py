"""
Tests for the access policy, error rendering, rate limiting and dashboard.
"""
from unittest.mock import MagicMock, patch

from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework import exceptions
from rest_framework.response import Response
from rest_framework.test import APIRequestFactory

from core import rate_limiting
from core.exceptions import (
    Forbidden,
    InsufficientStock,
    Unauthenticated,
    Unavailable,
    ValidationError,
    api_exception_handler,
)
from core.models import ActivityLog
from core.policy import ADMIN, TECHNICIAN, Actor, authorize
from core.test_utils import AuthenticatedAPIClient, TestDataFactory
from jobs.models import JobOrder


class AccessPolicyTestCase(SimpleTestCase):
    """Test cases for role-based authorization."""

    def setUp(self):
        self.admin = Actor(account_id=1, role=ADMIN)
        self.technician = Actor(account_id=2, role=TECHNICIAN)

    def test_no_actor_is_unauthenticated(self):
        with self.assertRaises(Unauthenticated):
            authorize(None, 'inventory.query')

    def test_admin_only_operations(self):
        self.assertEqual(authorize(self.admin, 'inventory.delete_batch'), self.admin)
        for operation in ('inventory.delete_batch', 'jobs.create', 'users.list', 'dashboard.view'):
            with self.assertRaises(Forbidden):
                authorize(self.technician, operation)

    def test_any_authenticated_operations(self):
        for actor in (self.admin, self.technician):
            authorize(actor, 'inventory.query')
            authorize(actor, 'jobs.query')

    def test_job_scoping(self):
        own = JobOrder(assigned_to_id=2)
        other = JobOrder(assigned_to_id=3)

        authorize(self.technician, 'jobs.update_status', job=own)
        authorize(self.admin, 'jobs.update_status', job=other)
        with self.assertRaises(Forbidden):
            authorize(self.technician, 'jobs.update_status', job=other)

    def test_unknown_operation(self):
        with self.assertRaises(KeyError):
            authorize(self.admin, 'jobs.teleport')


class ExceptionHandlerTestCase(SimpleTestCase):
    """Test cases for error payloads."""

    def test_domain_error_payload(self):
        response = api_exception_handler(InsufficientStock(4, 'Fan Motor', 5, 2), {})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['kind'], 'insufficient_stock')
        self.assertEqual(response.data['item_id'], 4)
        self.assertIn('Fan Motor', response.data['message'])

    def test_unavailable_is_retryable(self):
        response = api_exception_handler(Unavailable(), {})

        self.assertEqual(response.status_code, 503)
        self.assertTrue(response.data['retryable'])

    def test_nested_validation_message(self):
        """
        Test: The first real field error is surfaced from nested details.

        Given: A materials list whose first entry is valid and second is not
        When: Rendering the serializer error
        Then: The message names the failing field, not the generic default
        """
        exc = exceptions.ValidationError({
            'materials': [{}, {'quantity': ['Ensure this value is greater than or equal to 1.']}]
        })

        response = api_exception_handler(exc, {})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['kind'], 'validation_error')
        self.assertIn('quantity', response.data['message'])
        self.assertIn('greater than or equal to 1', response.data['message'])

    def test_default_message(self):
        self.assertEqual(ValidationError().message, 'Invalid input')


class RateLimitTestCase(SimpleTestCase):
    """Test cases for the Redis rate limit decorator."""

    class View:
        @rate_limiting.rate_limit(max_requests=2, window_seconds=60)
        def post(self, request):
            return Response({'ok': True})

    def setUp(self):
        self.request = APIRequestFactory().post('/api/auth/login/', REMOTE_ADDR='10.0.0.1')

    @override_settings(RATE_LIMIT_ENABLED=True)
    def test_blocks_after_limit(self):
        client = MagicMock()
        client.incr.side_effect = [1, 2, 3]
        client.ttl.return_value = 42

        with patch.object(rate_limiting, 'get_redis_client', return_value=client):
            responses = [self.View().post(self.request) for _ in range(3)]

        self.assertEqual([r.status_code for r in responses], [200, 200, 429])
        self.assertEqual(responses[0]['X-RateLimit-Remaining'], '1')
        self.assertEqual(responses[2].data['kind'], 'rate_limited')
        client.expire.assert_called_once()

    @override_settings(RATE_LIMIT_ENABLED=True)
    def test_fails_open_without_redis(self):
        with patch.object(rate_limiting, 'get_redis_client', return_value=None):
            response = self.View().post(self.request)

        self.assertEqual(response.status_code, 200)

    def test_client_ip_prefers_forwarded_header(self):
        request = APIRequestFactory().get('/', HTTP_X_FORWARDED_FOR='203.0.113.5, 10.0.0.1')
        self.assertEqual(rate_limiting.get_client_ip(request), '203.0.113.5')


class DashboardAPITestCase(TestCase):
    """Test cases for dashboard and activity log endpoints."""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.technician = TestDataFactory.create_technician()
        self.client = AuthenticatedAPIClient()

        TestDataFactory.create_item(name='Thermostat', min_threshold=5, batches=(2,))
        TestDataFactory.create_item(name='Fan Motor', min_threshold=5, batches=(20,))
        TestDataFactory.create_job(self.technician)
        TestDataFactory.create_job(self.technician, status=JobOrder.Status.COMPLETED)

    def test_overview(self):
        self.client.authenticate_user(self.admin)

        response = self.client.get('/api/dashboard/overview/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['totalJobs'], 2)
        self.assertEqual(response.data['pendingJobs'], 1)
        self.assertEqual(response.data['completedJobs'], 1)
        self.assertEqual(response.data['lowStock'], 1)
        self.assertEqual(response.data['totalItems'], 2)
        self.assertEqual(response.data['totalUsers'], 2)

    def test_low_stock(self):
        self.client.authenticate_user(self.admin)

        response = self.client.get('/api/dashboard/low-stock/')

        self.assertEqual([row['name'] for row in response.data], ['Thermostat'])

    def test_jobs_by_month(self):
        self.client.authenticate_user(self.admin)

        response = self.client.get('/api/dashboard/jobs-by-month/')

        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['total'], 2)

    def test_dashboard_admin_only(self):
        self.client.authenticate_user(self.technician)

        response = self.client.get('/api/dashboard/overview/')

        self.assertEqual(response.status_code, 403)

    def test_activity_log(self):
        self.client.authenticate_user(self.admin)
        self.client.post('/api/inventory/', {
            'name': 'Air Filter', 'category': 'Parts', 'unit': 'pcs', 'quantity': 4
        }, format='json')

        response = self.client.get('/api/logs/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['total'], ActivityLog.objects.count())
        self.assertEqual(response.data['results'][0]['actor_name'], self.admin.name)
        self.assertIn('Air Filter', response.data['results'][0]['action'])
