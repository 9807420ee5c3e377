"""
Tests for the inventory ledger.

Test Cases:
1. Item total is derived from its batches
2. Consumption drains batches oldest first, partially debiting the last
3. Insufficient stock changes nothing
4. Admin-only mutations are forbidden to technicians
5. Database timeouts surface as Unavailable with no partial write
6. Concurrent consumption never oversells
7. Batches are read-only in the admin
"""
import threading
from unittest.mock import patch

from django.contrib import admin
from django.db import OperationalError, connection
from django.test import RequestFactory, TestCase, TransactionTestCase

from accounts.models import User
from core.exceptions import (
    DomainError,
    Forbidden,
    InsufficientStock,
    NotFound,
    Unavailable,
    ValidationError,
)
from core.models import ActivityLog
from core.test_utils import AuthenticatedAPIClient, TestDataFactory
from inventory import services
from inventory.admin import BatchInline
from inventory.models import Batch, InventoryItem, is_low_stock, total_quantity


class DerivedQuantityTestCase(TestCase):
    """Test cases for derived item totals."""

    def test_total_is_sum_of_batches(self):
        item = TestDataFactory.create_item(batches=(5, 3, 12))
        self.assertEqual(item.total_quantity, 20)
        self.assertEqual(total_quantity(item.batches.all()), 20)

    def test_item_without_batches_totals_zero(self):
        item = TestDataFactory.create_item(batches=())
        self.assertEqual(item.total_quantity, 0)
        self.assertTrue(item.low_stock)

    def test_low_stock_is_inclusive_of_threshold(self):
        self.assertTrue(is_low_stock(10, 10))
        self.assertTrue(is_low_stock(0, 0))
        self.assertFalse(is_low_stock(11, 10))


class InventoryLedgerTestCase(TestCase):
    """Test cases for admin mutations and queries."""

    def setUp(self):
        self.admin = TestDataFactory.actor(TestDataFactory.create_admin())
        self.technician = TestDataFactory.actor(TestDataFactory.create_technician())

    def test_add_item_creates_first_batch(self):
        """
        Test: A new item is created with exactly one batch.

        Given: An admin
        When: Adding an item with quantity 25 and no batch name
        Then: The item holds one default-named batch of 25
        """
        item = services.add_item(
            self.admin, name='R-410A Refrigerant', category='Refrigerant',
            unit='kg', quantity=25, min_threshold=5
        )

        self.assertEqual(item.batches.count(), 1)
        batch = item.batches.get()
        self.assertEqual(batch.name, services.DEFAULT_BATCH_NAME)
        self.assertEqual(item.total_quantity, 25)
        self.assertFalse(item.low_stock)
        self.assertTrue(ActivityLog.objects.filter(model_name='inventoryitem', object_id=str(item.pk)).exists())

    def test_add_item_rejects_duplicate_name(self):
        services.add_item(self.admin, name='Thermostat', category='Parts', unit='pcs', quantity=3)

        with self.assertRaises(ValidationError):
            services.add_item(self.admin, name='thermostat', category='Parts', unit='pcs', quantity=1)

        self.assertEqual(InventoryItem.objects.count(), 1)

    def test_add_item_validation(self):
        with self.assertRaises(ValidationError):
            services.add_item(self.admin, name='  ', category='Parts', unit='pcs', quantity=1)
        with self.assertRaises(ValidationError):
            services.add_item(self.admin, name='Fan Motor', category='Parts', unit='pcs', quantity=-1)

    def test_add_batch_increases_total(self):
        item = TestDataFactory.create_item(batches=(4,))

        item = services.add_batch(self.admin, item.pk, 'Batch #002', 6)

        self.assertEqual(item.total_quantity, 10)
        self.assertEqual(item.batches.count(), 2)

    def test_add_batch_unknown_item(self):
        with self.assertRaises(NotFound):
            services.add_batch(self.admin, 99999, 'Batch #001', 5)

    def test_update_batch_refreshes_last_updated(self):
        item = TestDataFactory.create_item(batches=(4, 8))
        oldest = item.batches.order_by('last_updated').first()
        before = oldest.last_updated

        item = services.update_batch(self.admin, item.pk, oldest.pk, quantity=1)

        oldest.refresh_from_db()
        self.assertEqual(oldest.quantity, 1)
        self.assertGreater(oldest.last_updated, before)
        self.assertEqual(item.total_quantity, 9)

    def test_update_batch_of_other_item_not_found(self):
        item = TestDataFactory.create_item(batches=(4,))
        other = TestDataFactory.create_item(batches=(2,))

        with self.assertRaises(NotFound):
            services.update_batch(self.admin, item.pk, other.batches.get().pk, quantity=1)

    def test_deleting_only_batch_leaves_zero_total(self):
        """
        Test: Removing the last batch leaves an empty item, not an error.
        """
        item = TestDataFactory.create_item(batches=(7,))

        item = services.delete_batch(self.admin, item.pk, item.batches.get().pk)

        self.assertEqual(item.total_quantity, 0)
        self.assertTrue(item.low_stock)
        self.assertTrue(InventoryItem.objects.filter(pk=item.pk).exists())

    def test_delete_item_cascades_batches(self):
        item = TestDataFactory.create_item(batches=(1, 2, 3))

        services.delete_item(self.admin, item.pk)

        self.assertFalse(InventoryItem.objects.filter(pk=item.pk).exists())
        self.assertFalse(Batch.objects.filter(item_id=item.pk).exists())

    def test_update_item_attributes(self):
        item = TestDataFactory.create_item(name='Drain Hose', batches=(3,))

        item = services.update_item(self.admin, item.pk, category='Consumables', min_threshold=2)

        self.assertEqual(item.category, 'Consumables')
        self.assertFalse(item.low_stock)

    def test_query_filters(self):
        TestDataFactory.create_item(name='Copper Pipe 1/4"', category='Piping')
        TestDataFactory.create_item(name='Copper Pipe 3/8"', category='Piping')
        TestDataFactory.create_item(name='Contactor 24V', category='Electrical')

        self.assertEqual(len(services.query_items(self.technician)), 3)
        self.assertEqual(len(services.query_items(self.technician, category='Piping')), 2)
        names = [i.name for i in services.query_items(self.technician, search='CONTACT')]
        self.assertEqual(names, ['Contactor 24V'])
        self.assertEqual(services.categories(self.technician), ['Electrical', 'Piping'])

    def test_low_stock_items(self):
        low = TestDataFactory.create_item(min_threshold=10, batches=(4, 6))
        TestDataFactory.create_item(min_threshold=10, batches=(11,))
        empty = TestDataFactory.create_item(min_threshold=0, batches=())

        items = services.low_stock_items(self.admin)

        self.assertEqual([i.pk for i in items], [low.pk, empty.pk])

    def test_technician_cannot_mutate(self):
        """
        Test: Admin-only mutations are forbidden to technicians.

        Given: An item with one batch
        When: A technician tries to delete the batch
        Then: Forbidden, and the batch still exists
        """
        item = TestDataFactory.create_item(batches=(5,))
        batch = item.batches.get()

        with self.assertRaises(Forbidden):
            services.delete_batch(self.technician, item.pk, batch.pk)
        with self.assertRaises(Forbidden):
            services.add_item(self.technician, name='X', category='Y', unit='pcs', quantity=1)
        with self.assertRaises(Forbidden):
            services.low_stock_items(self.technician)

        self.assertTrue(Batch.objects.filter(pk=batch.pk).exists())

        services.delete_batch(self.admin, item.pk, batch.pk)
        self.assertFalse(Batch.objects.filter(pk=batch.pk).exists())

    def test_database_timeout_is_unavailable(self):
        """
        Test: A database timeout surfaces as Unavailable and writes nothing.
        """
        item = TestDataFactory.create_item(batches=(5,))

        with patch('inventory.services._touch', side_effect=OperationalError('database is locked')):
            with self.assertRaises(Unavailable):
                services.add_batch(self.admin, item.pk, 'Batch #002', 5)

        self.assertEqual(item.batches.count(), 1)
        self.assertFalse(ActivityLog.objects.filter(action__startswith='Added batch').exists())


class ConsumptionTestCase(TestCase):
    """Test cases for oldest-first consumption."""

    def test_consume_drains_oldest_first(self):
        """
        Test: Batches are debited in ascending last_updated order.

        Given: Batches of 5, 3 and 12 units, oldest first
        When: Consuming 10 units
        Then: Batches become 0, 0 and 10
        """
        item = TestDataFactory.create_item(batches=(5, 3, 12))

        item = services.consume(item.pk, 10)

        quantities = list(item.batches.order_by('last_updated').values_list('quantity', flat=True))
        self.assertEqual(quantities, [0, 0, 10])
        self.assertEqual(item.total_quantity, 10)

    def test_consume_does_not_touch_last_updated(self):
        item = TestDataFactory.create_item(batches=(5, 5))
        before = list(item.batches.order_by('id').values_list('last_updated', flat=True))

        services.consume(item.pk, 7)

        after = list(item.batches.order_by('id').values_list('last_updated', flat=True))
        self.assertEqual(before, after)

    def test_consume_exact_total(self):
        item = TestDataFactory.create_item(min_threshold=0, batches=(2, 1))

        item = services.consume(item.pk, 3)

        self.assertEqual(item.total_quantity, 0)
        self.assertTrue(item.low_stock)
        self.assertEqual(item.batches.count(), 2)

    def test_insufficient_stock_changes_nothing(self):
        """
        Test: Demand above the total fails and leaves every batch intact.
        """
        item = TestDataFactory.create_item(batches=(5, 3))

        with self.assertRaises(InsufficientStock) as context:
            services.consume(item.pk, 9)

        self.assertEqual(context.exception.requested, 9)
        self.assertEqual(context.exception.available, 8)
        quantities = list(item.batches.order_by('last_updated').values_list('quantity', flat=True))
        self.assertEqual(quantities, [5, 3])

    def test_consume_rejects_non_positive_quantity(self):
        item = TestDataFactory.create_item(batches=(5,))

        with self.assertRaises(ValidationError):
            services.consume(item.pk, 0)

    def test_consume_unknown_item(self):
        with self.assertRaises(NotFound):
            services.consume(99999, 1)

    def test_restock_adds_new_batch(self):
        item = TestDataFactory.create_item(batches=(0,))

        item = services.restock(item.pk, 4, 'Returned from job #1')

        self.assertEqual(item.total_quantity, 4)
        self.assertEqual(item.batches.count(), 2)


class InventoryAPITestCase(TestCase):
    """Test cases for the inventory endpoints."""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.technician = TestDataFactory.create_technician()
        self.client = AuthenticatedAPIClient()

    def test_list_includes_derived_fields(self):
        TestDataFactory.create_item(name='Air Filter', min_threshold=5, batches=(2, 2))
        self.client.authenticate_user(self.technician)

        response = self.client.get('/api/inventory/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data[0]['total_quantity'], 4)
        self.assertTrue(response.data[0]['low_stock'])
        self.assertEqual(len(response.data[0]['batches']), 2)

    def test_create_item(self):
        self.client.authenticate_user(self.admin)

        response = self.client.post('/api/inventory/', {
            'name': 'Fan Motor', 'category': 'Parts', 'unit': 'pcs', 'quantity': 6
        }, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['total_quantity'], 6)
        self.assertEqual(response.data['min_threshold'], 10)

    def test_technician_delete_batch_forbidden(self):
        item = TestDataFactory.create_item(batches=(5,))
        batch = item.batches.get()
        self.client.authenticate_user(self.technician)

        response = self.client.delete(f'/api/inventory/{item.pk}/batch/{batch.pk}/')

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['kind'], 'forbidden')
        self.assertTrue(Batch.objects.filter(pk=batch.pk).exists())

    def test_admin_delete_batch(self):
        item = TestDataFactory.create_item(batches=(5, 2))
        batch = item.batches.order_by('id').first()
        self.client.authenticate_user(self.admin)

        response = self.client.delete(f'/api/inventory/{item.pk}/batch/{batch.pk}/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['item']['total_quantity'], 2)

    def test_update_batch_via_put(self):
        item = TestDataFactory.create_item(batches=(5,))
        self.client.authenticate_user(self.admin)

        response = self.client.put(f'/api/inventory/{item.pk}/batch/', {
            'batch_id': item.batches.get().pk, 'quantity': 9
        }, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['total_quantity'], 9)

    def test_negative_quantity_rejected(self):
        item = TestDataFactory.create_item(batches=(5,))
        self.client.authenticate_user(self.admin)

        response = self.client.post(f'/api/inventory/{item.pk}/batch/', {
            'name': 'Batch #002', 'quantity': -3
        }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['kind'], 'validation_error')

    def test_unknown_item_not_found(self):
        self.client.authenticate_user(self.technician)

        response = self.client.get('/api/inventory/99999/')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['kind'], 'not_found')

    def test_unauthenticated(self):
        response = self.client.get('/api/inventory/')

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['kind'], 'unauthenticated')


class BatchAdminTestCase(TestCase):
    """Test cases for the read-only batch admin."""

    def setUp(self):
        self.superuser = User.objects.create_superuser(
            'root@example.com', 'super-coil-42', name='Site Owner'
        )
        self.request = RequestFactory().get('/admin/')
        self.request.user = self.superuser

    def test_batch_inline_read_only(self):
        """
        Test: Batches cannot be added, edited or removed from the item page.

        Given: A superuser on the inventory item admin page
        When: Checking the batch inline permissions
        Then: Add and delete are denied and quantity is read-only
        """
        inline = BatchInline(InventoryItem, admin.site)

        self.assertFalse(inline.has_add_permission(self.request, None))
        self.assertFalse(inline.can_delete)
        self.assertIn('quantity', inline.get_readonly_fields(self.request))

    def test_batch_admin_read_only(self):
        batch_admin = admin.site._registry[Batch]

        self.assertFalse(batch_admin.has_add_permission(self.request))
        self.assertFalse(batch_admin.has_delete_permission(self.request))
        self.assertIn('quantity', batch_admin.get_readonly_fields(self.request))


class ConcurrentConsumptionTestCase(TransactionTestCase):
    """
    Test concurrent consumption to verify select_for_update works.
    Uses TransactionTestCase for proper multi-threading support.
    """

    def setUp(self):
        self.item = TestDataFactory.create_item(name='Run Capacitor 35uF', batches=(3,))

    def test_concurrent_consumption_no_overselling(self):
        """
        Test: Concurrent consumptions don't oversell inventory.

        Given: 3 units in stock
        When: Two concurrent consumptions of 3 units each
        Then: Exactly one succeeds, the other gets InsufficientStock
              Final total is 0
        """
        results = {}
        start = threading.Barrier(2)

        def take(key):
            try:
                start.wait(timeout=5)
                services.consume(self.item.pk, 3)
                results[key] = 'ok'
            except DomainError as e:
                results[key] = e.kind
            finally:
                connection.close()

        threads = [threading.Thread(target=take, args=(key,)) for key in ('first', 'second')]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(results.values()), ['insufficient_stock', 'ok'])

        item = InventoryItem.objects.prefetch_related('batches').get(pk=self.item.pk)
        self.assertEqual(item.total_quantity, 0)
