"""
Serializers for inventory models.
Provides data validation and JSON conversion for API endpoints.
"""
from rest_framework import serializers
from .models import InventoryItem, Batch


class BatchSerializer(serializers.ModelSerializer):
    """Serializer for a batch nested inside its item."""

    class Meta:
        model = Batch
        fields = ['id', 'name', 'quantity', 'last_updated']
        read_only_fields = fields


class InventoryItemSerializer(serializers.ModelSerializer):
    """
    Serializer for InventoryItem with nested batches.

    total_quantity and low_stock are derived from the batches on every read.
    Expects batches to be prefetched.
    """
    batches = BatchSerializer(many=True, read_only=True)
    total_quantity = serializers.IntegerField(read_only=True)
    low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = InventoryItem
        fields = [
            'id', 'name', 'category', 'unit', 'min_threshold',
            'total_quantity', 'low_stock', 'batches',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class InventoryItemMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for dashboards and nested representations."""
    total_quantity = serializers.IntegerField(read_only=True)
    low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = InventoryItem
        fields = ['id', 'name', 'category', 'unit', 'total_quantity', 'min_threshold', 'low_stock']


class InventoryItemCreateSerializer(serializers.Serializer):
    """
    Serializer for creating an item with its first batch via POST /inventory/

    Request format:
    {
        "name": "R-410A Refrigerant",
        "category": "Refrigerant",
        "unit": "kg",
        "batch_name": "Batch #001",
        "quantity": 25,
        "min_threshold": 10
    }
    """
    name = serializers.CharField(max_length=200)
    category = serializers.CharField(max_length=100)
    unit = serializers.CharField(max_length=30)
    batch_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    quantity = serializers.IntegerField(min_value=0)
    min_threshold = serializers.IntegerField(min_value=0, default=10)


class InventoryItemUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200, required=False)
    category = serializers.CharField(max_length=100, required=False)
    unit = serializers.CharField(max_length=30, required=False)
    min_threshold = serializers.IntegerField(min_value=0, required=False)


class BatchCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    quantity = serializers.IntegerField(min_value=0)


class BatchUpdateSerializer(serializers.Serializer):
    """
    Serializer for PUT /inventory/{id}/batch/

    Request format:
    {
        "batch_id": 3,
        "name": "Batch #002",   (optional)
        "quantity": 40          (optional)
    }
    """
    batch_id = serializers.IntegerField(min_value=1)
    name = serializers.CharField(max_length=100, required=False)
    quantity = serializers.IntegerField(min_value=0, required=False)
