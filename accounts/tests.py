"""
Tests for accounts and authentication.
"""
from django.test import TestCase

from core.exceptions import Forbidden, NotFound, ValidationError
from core.test_utils import TEST_PASSWORD, AuthenticatedAPIClient, TestDataFactory
from accounts import services
from accounts.models import User
from jobs.models import JobOrder


class AccountServiceTestCase(TestCase):
    """Test cases for admin account management."""

    def setUp(self):
        self.admin = TestDataFactory.actor(TestDataFactory.create_admin())

    def test_create_technician(self):
        user = services.create_user(
            self.admin, name='Juan Dela Cruz', email='Juan@Example.com',
            password='fresh-coil-88', role=User.Role.TECHNICIAN
        )

        self.assertEqual(user.email, 'juan@example.com')
        self.assertTrue(user.is_technician)
        self.assertTrue(user.check_password('fresh-coil-88'))

    def test_duplicate_email_case_insensitive(self):
        services.create_user(self.admin, name='Juan', email='juan@example.com', password='fresh-coil-88')

        with self.assertRaises(ValidationError) as context:
            services.create_user(self.admin, name='Other', email='JUAN@example.com', password='fresh-coil-88')

        self.assertIn('already exists', str(context.exception))
        self.assertEqual(User.objects.filter(email__iexact='juan@example.com').count(), 1)

    def test_create_validation(self):
        with self.assertRaises(ValidationError):
            services.create_user(self.admin, name='', email='a@example.com', password='fresh-coil-88')
        with self.assertRaises(ValidationError):
            services.create_user(self.admin, name='A', email='not-an-email', password='fresh-coil-88')
        with self.assertRaises(ValidationError):
            services.create_user(self.admin, name='A', email='a@example.com', password='short')
        with self.assertRaises(ValidationError):
            services.create_user(self.admin, name='A', email='a@example.com', password='fresh-coil-88', role='manager')

    def test_update_rejects_taken_email(self):
        first = TestDataFactory.create_technician(email='first@example.com')
        TestDataFactory.create_technician(email='second@example.com')

        with self.assertRaises(ValidationError):
            services.update_user(self.admin, first.pk, email='Second@example.com')

        user = services.update_user(self.admin, first.pk, name='Renamed', email='FIRST@example.com')
        self.assertEqual(user.name, 'Renamed')
        self.assertEqual(user.email, 'first@example.com')

    def test_update_blank_password_keeps_credential(self):
        tech = TestDataFactory.create_technician()

        services.update_user(self.admin, tech.pk, password='')

        tech.refresh_from_db()
        self.assertTrue(tech.check_password(TEST_PASSWORD))

    def test_delete_unassigns_jobs(self):
        tech = TestDataFactory.create_technician()
        job = TestDataFactory.create_job(tech)

        services.delete_user(self.admin, tech.pk)

        job.refresh_from_db()
        self.assertIsNone(job.assigned_to)
        self.assertTrue(JobOrder.objects.filter(pk=job.pk).exists())

    def test_role_change_blocked_by_open_jobs(self):
        """
        Test: A technician with open jobs keeps the technician role.

        Given: A technician with one Pending job
        When: Changing their role to admin
        Then: ValidationError is raised and the role is unchanged
        """
        tech = TestDataFactory.create_technician()
        TestDataFactory.create_job(tech)

        with self.assertRaises(ValidationError) as context:
            services.update_user(self.admin, tech.pk, role=User.Role.ADMIN)

        self.assertIn('open job', str(context.exception))
        tech.refresh_from_db()
        self.assertTrue(tech.is_technician)

    def test_role_change_allowed_when_jobs_completed(self):
        tech = TestDataFactory.create_technician()
        TestDataFactory.create_job(tech, status=JobOrder.Status.COMPLETED)

        user = services.update_user(self.admin, tech.pk, role=User.Role.ADMIN)

        self.assertFalse(user.is_technician)

    def test_missing_user(self):
        with self.assertRaises(NotFound):
            services.get_user(self.admin, 99999)
        with self.assertRaises(NotFound):
            services.delete_user(self.admin, 99999)

    def test_technician_cannot_manage_accounts(self):
        technician = TestDataFactory.actor(TestDataFactory.create_technician())

        with self.assertRaises(Forbidden):
            services.list_users(technician)
        with self.assertRaises(Forbidden):
            services.create_user(technician, name='A', email='a@example.com', password='fresh-coil-88')

    def test_list_technicians(self):
        tech = TestDataFactory.create_technician()

        technicians = services.list_technicians(self.admin)

        self.assertEqual([t.pk for t in technicians], [tech.pk])


class AuthAPITestCase(TestCase):
    """Test cases for login and account endpoints."""

    def setUp(self):
        self.admin = TestDataFactory.create_admin(email='admin@example.com')
        self.technician = TestDataFactory.create_technician(email='tech@example.com')
        self.client = AuthenticatedAPIClient()

    def test_login_returns_token_and_profile(self):
        response = self.client.post('/api/auth/login/', {
            'email': 'Tech@Example.com', 'password': TEST_PASSWORD
        }, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['_id'], self.technician.pk)
        self.assertEqual(response.data['role'], 'technician')
        self.assertIn('token', response.data)
        self.assertIn('refresh', response.data)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['token']}")
        me = self.client.get('/api/auth/me/')
        self.assertEqual(me.data['email'], 'tech@example.com')
        self.assertNotIn('password', me.data)

    def test_login_wrong_password(self):
        response = self.client.post('/api/auth/login/', {
            'email': 'tech@example.com', 'password': 'wrong-password'
        }, format='json')

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['kind'], 'unauthenticated')

    def test_invalid_token_unauthenticated(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer not-a-token')

        response = self.client.get('/api/auth/me/')

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['kind'], 'unauthenticated')

    def test_user_list_admin_only(self):
        self.client.authenticate_user(self.technician)
        response = self.client.get('/api/users/')
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['kind'], 'forbidden')

        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/users/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 2)

    def test_create_user_duplicate_email(self):
        self.client.authenticate_user(self.admin)

        response = self.client.post('/api/users/', {
            'name': 'Copy', 'email': 'TECH@example.com', 'password': 'fresh-coil-88', 'role': 'technician'
        }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['kind'], 'validation_error')

    def test_delete_user(self):
        self.client.authenticate_user(self.admin)

        response = self.client.delete(f'/api/users/{self.technician.pk}/')

        self.assertEqual(response.status_code, 200)
        self.assertFalse(User.objects.filter(pk=self.technician.pk).exists())
