"""
Test utilities and factories for creating test data
"""
from datetime import timedelta

from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from accounts.models import User
from inventory.models import Batch, InventoryItem
from jobs.models import JobOrder
from .policy import Actor

TEST_PASSWORD = 'testpass-123'


class TestDataFactory:
    """Factory class for creating test data"""

    _counter = 0

    @classmethod
    def _next(cls):
        cls._counter += 1
        return cls._counter

    @classmethod
    def create_user(cls, role=User.Role.TECHNICIAN, name=None, email=None, password=TEST_PASSWORD):
        n = cls._next()
        return User.objects.create_user(
            email=email or f'{role}{n}@test.com',
            password=password,
            name=name or f'{role.title()} {n}',
            role=role,
        )

    @classmethod
    def create_admin(cls, **kwargs):
        return cls.create_user(role=User.Role.ADMIN, **kwargs)

    @classmethod
    def create_technician(cls, **kwargs):
        return cls.create_user(role=User.Role.TECHNICIAN, **kwargs)

    @staticmethod
    def actor(user):
        return Actor.from_user(user)

    @classmethod
    def create_item(cls, name=None, category='Parts', unit='pcs', min_threshold=10, batches=(10,)):
        """
        Create an item with one batch per quantity in ``batches``.

        Batches are dated one day apart, oldest first, so consumption order
        follows the order given.
        """
        item = InventoryItem.objects.create(
            name=name or f'Item {cls._next()}',
            category=category,
            unit=unit,
            min_threshold=min_threshold,
        )
        start = timezone.now() - timedelta(days=len(batches))
        for idx, quantity in enumerate(batches):
            Batch.objects.create(
                item=item,
                name=f'Batch #{idx + 1:03d}',
                quantity=quantity,
                last_updated=start + timedelta(days=idx),
            )
        return item

    @staticmethod
    def create_job(technician, status=JobOrder.Status.PENDING, type=JobOrder.Type.REPAIR,
                   client_name='Test Client'):
        return JobOrder.objects.create(
            client_name=client_name,
            client_address='1 Test Street',
            contact='0917 000 0000',
            type=type,
            status=status,
            assigned_to=technician,
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a bearer token for ``user``"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
