"""
Inventory Models - items held in stock and the batches that make them up.

Models:
    - InventoryItem: a stocked material (refrigerant, copper pipe, ...)
    - Batch: a dated quantity lot belonging to exactly one item

An item's total quantity and low-stock status are never stored. They are
derived from the live batches on every read through the pure functions
below.
"""
from typing import Iterable

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


def total_quantity(batches: Iterable['Batch']) -> int:
    """Aggregate quantity of an item: the sum of its batch quantities."""
    return sum(batch.quantity for batch in batches)


def is_low_stock(quantity: int, min_threshold: int) -> bool:
    """An item is low on stock when its total is at or below its threshold."""
    return quantity <= min_threshold


class InventoryItem(models.Model):
    """
    Stocked material composed of one or more batches.

    Deleting an item deletes all of its batches.
    """
    name = models.CharField(
        max_length=200,
        unique=True,
        help_text="Item name, unique across inventory"
    )
    category = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Category used for filtering (e.g. Refrigerant, Piping)"
    )
    unit = models.CharField(
        max_length=30,
        help_text="Unit of measure (pcs, kg, m, ...)"
    )
    min_threshold = models.PositiveIntegerField(
        default=10,
        help_text="Total quantity at or below which the item is low on stock"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Inventory Item'
        verbose_name_plural = 'Inventory Items'
        ordering = ['id']

    def __str__(self):
        return f"{self.name} ({self.total_quantity} {self.unit})"

    @property
    def total_quantity(self) -> int:
        # Uses prefetched batches when available
        return total_quantity(self.batches.all())

    @property
    def low_stock(self) -> bool:
        return is_low_stock(self.total_quantity, self.min_threshold)


class Batch(models.Model):
    """
    Quantity lot of a single inventory item.

    ``last_updated`` changes on admin edits only; consumption leaves it
    untouched so oldest-first debiting stays stable.
    """
    item = models.ForeignKey(
        InventoryItem,
        on_delete=models.CASCADE,
        related_name='batches',
        help_text="Owning inventory item"
    )
    name = models.CharField(
        max_length=100,
        help_text='Batch label, e.g. "Batch #001"'
    )
    quantity = models.PositiveIntegerField(
        default=0,
        validators=[MinValueValidator(0)],
        help_text="Units remaining in this batch"
    )
    last_updated = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="Last admin edit; consumption order is oldest first"
    )

    class Meta:
        verbose_name = 'Batch'
        verbose_name_plural = 'Batches'
        ordering = ['last_updated', 'id']

    def __str__(self):
        return f"{self.name}: {self.quantity}"
