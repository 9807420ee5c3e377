"""
Serializers for job models.
"""
from rest_framework import serializers

from accounts.serializers import UserMinimalSerializer
from .models import JobOrder, MaterialUsage
from .services import SORT_FIELDS, SORT_ORDERS


class MaterialUsageSerializer(serializers.ModelSerializer):
    """Serializer for a recorded material usage."""

    class Meta:
        model = MaterialUsage
        fields = ['id', 'item', 'item_name', 'unit', 'quantity', 'is_reversal', 'created_at']
        read_only_fields = fields


class JobOrderSerializer(serializers.ModelSerializer):
    """
    Serializer for JobOrder with nested technician and materials.
    Expects select_related('assigned_to') and prefetch_related('materials').
    """
    assigned_to = UserMinimalSerializer(read_only=True)
    materials = MaterialUsageSerializer(many=True, read_only=True)
    is_completed = serializers.BooleanField(read_only=True)

    class Meta:
        model = JobOrder
        fields = [
            'id', 'client_name', 'client_address', 'contact', 'type',
            'status', 'assigned_to', 'remarks', 'materials', 'is_completed',
            'created_at', 'updated_at', 'date_completed'
        ]
        read_only_fields = fields


class JobCreateSerializer(serializers.Serializer):
    """
    Serializer for creating jobs via POST /jobs/

    Request format:
    {
        "client_name": "Maria Santos",
        "client_address": "12 Mabini St, Quezon City",
        "contact": "0917 555 1234",
        "type": "Installation",
        "assigned_to": 4,
        "remarks": "Bring ladder"
    }
    """
    client_name = serializers.CharField(max_length=200)
    client_address = serializers.CharField(max_length=300)
    contact = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    type = serializers.ChoiceField(choices=JobOrder.Type.choices)
    assigned_to = serializers.IntegerField(min_value=1)
    remarks = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class MaterialLineSerializer(serializers.Serializer):
    """Serializer for one material line in a status update request."""
    item_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)


class JobStatusUpdateSerializer(serializers.Serializer):
    """
    Serializer for PATCH /jobs/{id}/status/

    Request format:
    {
        "status": "Completed",
        "remarks": "Replaced capacitor",
        "materials": [
            {"item_id": 1, "quantity": 2},
            {"item_id": 5, "quantity": 1}
        ]
    }
    """
    status = serializers.ChoiceField(choices=JobOrder.Status.choices)
    remarks = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    materials = MaterialLineSerializer(many=True, required=False, default=list)

    def validate_materials(self, value):
        item_ids = [line['item_id'] for line in value]
        if len(item_ids) != len(set(item_ids)):
            raise serializers.ValidationError("Duplicate items in materials")
        return value


class JobAssignSerializer(serializers.Serializer):
    assigned_to = serializers.IntegerField(min_value=1)


class JobQuerySerializer(serializers.Serializer):
    """Query parameters for GET /jobs/."""
    page = serializers.IntegerField(min_value=1, required=False, default=1)
    limit = serializers.IntegerField(min_value=1, max_value=100, required=False, default=10)
    status = serializers.ChoiceField(choices=JobOrder.Status.choices, required=False)
    type = serializers.ChoiceField(choices=JobOrder.Type.choices, required=False)
    search = serializers.CharField(required=False, allow_blank=True)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    sort_by = serializers.ChoiceField(choices=SORT_FIELDS, required=False, default='created_at')
    order = serializers.ChoiceField(choices=SORT_ORDERS, required=False, default='desc')
