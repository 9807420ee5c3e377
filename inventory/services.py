"""
Inventory Ledger Service Layer.

Owns inventory items and their batches. Every mutation:
1. Passes the Access Policy before touching any row
2. Runs inside transaction.atomic() with the item row locked via
   select_for_update(), so concurrent edits and consumptions on the same
   item are serialized
3. Leaves the aggregate derived: totals are recomputed from live batches

consume() is internal to the Job Lifecycle. It debits batches oldest
``last_updated`` first and either satisfies the whole request or changes
nothing.
"""
import logging
from typing import List, Optional

from django.db import IntegrityError, transaction
from django.db.models import F, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from core.activity import record_activity
from core.exceptions import (
    InsufficientStock,
    NotFound,
    ValidationError,
    database_guard,
)
from core.policy import Actor, authorize
from .models import Batch, InventoryItem, total_quantity

logger = logging.getLogger(__name__)

DEFAULT_BATCH_NAME = 'Batch #001'


def _require_text(value: Optional[str], field: str) -> str:
    value = (value or '').strip()
    if not value:
        raise ValidationError(f"{field} is required")
    return value


def _require_quantity(value, field: str = 'quantity', minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value < minimum:
        qualifier = 'non-negative' if minimum == 0 else f'at least {minimum}'
        raise ValidationError(f"{field} must be {qualifier}")
    return value


def _fetch_item(item_id: int) -> InventoryItem:
    try:
        return InventoryItem.objects.prefetch_related('batches').get(pk=item_id)
    except InventoryItem.DoesNotExist:
        raise NotFound(f"Inventory item {item_id} not found")


def _lock_item(item_id: int) -> InventoryItem:
    """Lock an item row for the rest of the current transaction."""
    try:
        return InventoryItem.objects.select_for_update().get(pk=item_id)
    except InventoryItem.DoesNotExist:
        raise NotFound(f"Inventory item {item_id} not found")


def _lock_batch(item: InventoryItem, batch_id: int) -> Batch:
    try:
        return Batch.objects.select_for_update().get(pk=batch_id, item=item)
    except Batch.DoesNotExist:
        raise NotFound(f"Batch {batch_id} not found in {item.name}")


def _touch(item: InventoryItem) -> None:
    item.save(update_fields=['updated_at'])


# =============================================================================
# Queries
# =============================================================================

def get_item(actor: Actor, item_id: int) -> InventoryItem:
    authorize(actor, 'inventory.query')
    return _fetch_item(item_id)


def query_items(actor: Actor, category: Optional[str] = None,
                search: Optional[str] = None) -> List[InventoryItem]:
    """
    List items, optionally filtered.

    Args:
        category: Exact category match
        search: Case-insensitive substring of the item name

    Returns:
        Items in insertion order with batches prefetched
    """
    authorize(actor, 'inventory.query')

    queryset = InventoryItem.objects.prefetch_related('batches')
    if category:
        queryset = queryset.filter(category=category)
    search = (search or '').strip()
    if search:
        queryset = queryset.filter(name__icontains=search)
    return list(queryset.order_by('id'))


def categories(actor: Actor) -> List[str]:
    """Distinct item categories, alphabetically."""
    authorize(actor, 'inventory.query')
    return list(
        InventoryItem.objects.order_by('category')
        .values_list('category', flat=True)
        .distinct()
    )


def low_stock_items(actor: Actor) -> List[InventoryItem]:
    """Items whose live total is at or below their minimum threshold."""
    authorize(actor, 'inventory.low_stock')
    queryset = (
        InventoryItem.objects
        .annotate(stock_total=Coalesce(Sum('batches__quantity'), Value(0)))
        .filter(stock_total__lte=F('min_threshold'))
        .prefetch_related('batches')
        .order_by('id')
    )
    return list(queryset)


# =============================================================================
# Admin mutations
# =============================================================================

def add_item(actor: Actor, name: str, category: str, unit: str, quantity: int,
             batch_name: Optional[str] = None, min_threshold: int = 10) -> InventoryItem:
    """
    Create an item together with its first batch.

    Raises:
        Forbidden: Actor is not an admin
        ValidationError: Empty name/category/unit, negative quantity or
            threshold, or an item with the same name already exists
    """
    authorize(actor, 'inventory.add_item')

    name = _require_text(name, 'name')
    category = _require_text(category, 'category')
    unit = _require_text(unit, 'unit')
    quantity = _require_quantity(quantity)
    min_threshold = _require_quantity(min_threshold, 'min_threshold')
    batch_name = (batch_name or '').strip() or DEFAULT_BATCH_NAME

    if InventoryItem.objects.filter(name__iexact=name).exists():
        raise ValidationError(f"Item '{name}' already exists; add a batch to it instead")

    try:
        with database_guard('add_item'), transaction.atomic():
            item = InventoryItem.objects.create(
                name=name,
                category=category,
                unit=unit,
                min_threshold=min_threshold,
            )
            Batch.objects.create(item=item, name=batch_name, quantity=quantity)
            record_activity(actor, f"Added inventory item {name}", item, quantity=quantity)
    except IntegrityError:
        raise ValidationError(f"Item '{name}' already exists; add a batch to it instead")

    logger.info(f"Created inventory item #{item.pk} {name} with {quantity} {unit}")
    return _fetch_item(item.pk)


def update_item(actor: Actor, item_id: int, name: Optional[str] = None,
                category: Optional[str] = None, unit: Optional[str] = None,
                min_threshold: Optional[int] = None) -> InventoryItem:
    """Partially update item attributes. Batches are untouched."""
    authorize(actor, 'inventory.update_item')

    with database_guard('update_item'), transaction.atomic():
        item = _lock_item(item_id)
        if name is not None:
            name = _require_text(name, 'name')
            if InventoryItem.objects.filter(name__iexact=name).exclude(pk=item.pk).exists():
                raise ValidationError(f"Item '{name}' already exists")
            item.name = name
        if category is not None:
            item.category = _require_text(category, 'category')
        if unit is not None:
            item.unit = _require_text(unit, 'unit')
        if min_threshold is not None:
            item.min_threshold = _require_quantity(min_threshold, 'min_threshold')
        item.save()
        record_activity(actor, f"Updated inventory item {item.name}", item)

    return _fetch_item(item_id)


def add_batch(actor: Actor, item_id: int, name: str, quantity: int) -> InventoryItem:
    """
    Append a batch to an existing item.

    Raises:
        NotFound: Item does not exist
        ValidationError: Blank name or negative quantity
    """
    authorize(actor, 'inventory.add_batch')

    name = _require_text(name, 'batch name')
    quantity = _require_quantity(quantity)

    with database_guard('add_batch'), transaction.atomic():
        item = _lock_item(item_id)
        batch = Batch.objects.create(item=item, name=name, quantity=quantity)
        _touch(item)
        record_activity(
            actor, f"Added batch {name} to {item.name}", item,
            batch_id=batch.pk, quantity=quantity
        )

    logger.info(f"Added batch #{batch.pk} ({quantity}) to item #{item_id}")
    return _fetch_item(item_id)


def update_batch(actor: Actor, item_id: int, batch_id: int, name: Optional[str] = None,
                 quantity: Optional[int] = None) -> InventoryItem:
    """
    Partially update a batch and refresh its ``last_updated``.

    Raises:
        NotFound: Item or batch does not exist
        ValidationError: Blank name or negative quantity
    """
    authorize(actor, 'inventory.update_batch')

    if name is not None:
        name = _require_text(name, 'batch name')
    if quantity is not None:
        quantity = _require_quantity(quantity)

    with database_guard('update_batch'), transaction.atomic():
        item = _lock_item(item_id)
        batch = _lock_batch(item, batch_id)
        previous = batch.quantity
        if name is not None:
            batch.name = name
        if quantity is not None:
            batch.quantity = quantity
        batch.last_updated = timezone.now()
        batch.save()
        _touch(item)
        record_activity(
            actor, f"Updated batch {batch.name} of {item.name}", item,
            batch_id=batch.pk, previous_quantity=previous, quantity=batch.quantity
        )

    logger.info(f"Updated batch #{batch_id} of item #{item_id}: {previous} -> {batch.quantity}")
    return _fetch_item(item_id)


def delete_batch(actor: Actor, item_id: int, batch_id: int) -> InventoryItem:
    """Remove a batch. The item may be left with a zero total."""
    authorize(actor, 'inventory.delete_batch')

    with database_guard('delete_batch'), transaction.atomic():
        item = _lock_item(item_id)
        batch = _lock_batch(item, batch_id)
        record_activity(
            actor, f"Deleted batch {batch.name} of {item.name}", item,
            batch_id=batch.pk, quantity=batch.quantity
        )
        batch.delete()
        _touch(item)

    logger.info(f"Deleted batch #{batch_id} of item #{item_id}")
    return _fetch_item(item_id)


def delete_item(actor: Actor, item_id: int) -> None:
    """Delete an item and, by cascade, all of its batches."""
    authorize(actor, 'inventory.delete_item')

    with database_guard('delete_item'), transaction.atomic():
        item = _lock_item(item_id)
        name = item.name
        record_activity(actor, f"Deleted inventory item {name}", item)
        item.delete()

    logger.info(f"Deleted inventory item #{item_id} ({name})")


# =============================================================================
# Consumption (Job Lifecycle only)
# =============================================================================

def consume(item_id: int, quantity: int) -> InventoryItem:
    """
    Debit ``quantity`` units from an item, oldest batch first.

    Batches are drained in ascending ``last_updated`` order (ties by id);
    the last batch touched may be only partially debited. No batch ever
    goes negative. Either the whole quantity is debited or nothing is.

    Not authorized here: callers are Job Lifecycle operations that have
    already passed the Access Policy.

    Args:
        item_id: Item to debit
        quantity: Units to remove, at least 1

    Returns:
        The item after debiting

    Raises:
        NotFound: Item does not exist
        ValidationError: Quantity is not a positive integer
        InsufficientStock: Quantity exceeds the item's total
        Unavailable: The database timed out; no debit persists
    """
    quantity = _require_quantity(quantity, minimum=1)

    with database_guard('consume'), transaction.atomic():
        item = _lock_item(item_id)
        batches = list(
            Batch.objects.select_for_update()
            .filter(item=item)
            .order_by('last_updated', 'id')
        )

        available = total_quantity(batches)
        if quantity > available:
            logger.warning(
                f"Consumption of {quantity} {item.unit} from {item.name} rejected: "
                f"only {available} available"
            )
            raise InsufficientStock(item.pk, item.name, quantity, available)

        remaining = quantity
        for batch in batches:
            if remaining == 0:
                break
            taken = min(batch.quantity, remaining)
            if taken == 0:
                continue
            batch.quantity -= taken
            remaining -= taken
            batch.save(update_fields=['quantity'])
            logger.debug(f"Debited {taken} from batch #{batch.pk}, {batch.quantity} left")

        _touch(item)

    logger.info(f"Consumed {quantity} {item.unit} of {item.name}, {available - quantity} remaining")
    return _fetch_item(item_id)


def restock(item_id: int, quantity: int, batch_name: str) -> InventoryItem:
    """
    Return units to an item as a new batch.

    Used by the Job Lifecycle when a completed job is reopened and
    RESTOCK_ON_REOPEN is enabled. Like consume(), callers authorize.
    """
    quantity = _require_quantity(quantity, minimum=1)
    batch_name = _require_text(batch_name, 'batch name')

    with database_guard('restock'), transaction.atomic():
        item = _lock_item(item_id)
        Batch.objects.create(item=item, name=batch_name, quantity=quantity)
        _touch(item)

    logger.info(f"Restocked {quantity} {item.unit} of {item.name} ({batch_name})")
    return _fetch_item(item_id)
