"""
Inventory API Views.

Implements:
- GET /inventory/ - List items with category and name search filters
- POST /inventory/ - Create an item with its first batch (admin)
- GET, PATCH, DELETE /inventory/{id}/ - Item detail (mutations admin only)
- POST, PUT /inventory/{id}/batch/ - Add or edit a batch (admin)
- DELETE /inventory/{id}/batch/{batch_id}/ - Remove a batch (admin)
- GET /inventory/categories/ - Distinct categories
- GET /inventory/low-stock/ - Items at or below threshold (admin)
"""
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.policy import Actor
from . import services
from .serializers import (
    InventoryItemSerializer,
    InventoryItemMinimalSerializer,
    InventoryItemCreateSerializer,
    InventoryItemUpdateSerializer,
    BatchCreateSerializer,
    BatchUpdateSerializer,
)


class InventoryListCreateView(APIView):
    """
    GET: List inventory items with their batches
    POST: Create a new item with its first batch

    Query Parameters (GET):
        - category: Exact category match
        - search: Case-insensitive match on item name
    """

    def get(self, request):
        items = services.query_items(
            Actor.from_request(request),
            category=request.query_params.get('category'),
            search=request.query_params.get('search'),
        )
        return Response(InventoryItemSerializer(items, many=True).data)

    def post(self, request):
        serializer = InventoryItemCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = services.add_item(Actor.from_request(request), **serializer.validated_data)
        return Response(InventoryItemSerializer(item).data, status=status.HTTP_201_CREATED)


class InventoryDetailView(APIView):
    """
    GET: Retrieve an item
    PATCH: Update item attributes
    DELETE: Delete an item and all its batches
    """

    def get(self, request, pk):
        item = services.get_item(Actor.from_request(request), pk)
        return Response(InventoryItemSerializer(item).data)

    def patch(self, request, pk):
        serializer = InventoryItemUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = services.update_item(Actor.from_request(request), pk, **serializer.validated_data)
        return Response(InventoryItemSerializer(item).data)

    def delete(self, request, pk):
        services.delete_item(Actor.from_request(request), pk)
        return Response({'message': 'Item deleted successfully'})


class BatchView(APIView):
    """
    POST: Add a batch to an item
    PUT: Edit an existing batch (identified by batch_id in the body)
    """

    def post(self, request, pk):
        serializer = BatchCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = services.add_batch(Actor.from_request(request), pk, **serializer.validated_data)
        return Response(InventoryItemSerializer(item).data, status=status.HTTP_201_CREATED)

    def put(self, request, pk):
        serializer = BatchUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        item = services.update_batch(
            Actor.from_request(request), pk, data['batch_id'],
            name=data.get('name'),
            quantity=data.get('quantity'),
        )
        return Response(InventoryItemSerializer(item).data)


class BatchDetailView(APIView):
    """DELETE: Remove a batch from an item."""

    def delete(self, request, pk, batch_id):
        item = services.delete_batch(Actor.from_request(request), pk, batch_id)
        return Response({
            'message': 'Batch deleted',
            'item': InventoryItemSerializer(item).data
        })


class CategoryListView(APIView):
    """GET: Distinct item categories for filter menus."""

    def get(self, request):
        return Response(services.categories(Actor.from_request(request)))


class LowStockView(APIView):
    """GET: Items whose total quantity is at or below their threshold."""

    def get(self, request):
        items = services.low_stock_items(Actor.from_request(request))
        return Response(InventoryItemMinimalSerializer(items, many=True).data)
