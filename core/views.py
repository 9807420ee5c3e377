"""
Activity log and dashboard API Views (admin only).

Implements:
- GET /logs/ - Paginated activity log
- GET /dashboard/overview/ - Job, inventory and account totals
- GET /dashboard/jobs-by-month/ - Job counts per creation month
- GET /dashboard/low-stock/ - Items at or below threshold
- GET /dashboard/logs/ - Ten most recent activity entries
"""
import math

from django.contrib.auth import get_user_model
from django.db.models import Count, F, Q, Sum, Value
from django.db.models.functions import Coalesce, TruncMonth
from rest_framework import serializers
from rest_framework.response import Response
from rest_framework.views import APIView

from inventory import services as ledger
from inventory.models import InventoryItem
from inventory.serializers import InventoryItemMinimalSerializer
from jobs.models import JobOrder
from .models import ActivityLog
from .policy import Actor, authorize

RECENT_LOG_COUNT = 10


class ActivityLogSerializer(serializers.ModelSerializer):
    actor_name = serializers.CharField(source='actor.name', read_only=True, default=None)
    actor_role = serializers.CharField(source='actor.role', read_only=True, default=None)

    class Meta:
        model = ActivityLog
        fields = [
            'id', 'actor', 'actor_name', 'actor_role', 'action',
            'model_name', 'object_id', 'details', 'created_at'
        ]


class LogQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1, required=False, default=1)
    limit = serializers.IntegerField(min_value=1, max_value=200, required=False, default=50)


class ActivityLogListView(APIView):
    """
    GET: Activity log, newest first.

    Query Parameters:
        - page: 1-indexed page (default 1)
        - limit: Page size (default 50, max 200)
    """

    def get(self, request):
        authorize(Actor.from_request(request), 'logs.list')
        query = LogQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        page, limit = query.validated_data['page'], query.validated_data['limit']

        queryset = ActivityLog.objects.select_related('actor')
        total = queryset.count()
        offset = (page - 1) * limit
        logs = queryset[offset:offset + limit]

        return Response({
            'results': ActivityLogSerializer(logs, many=True).data,
            'total': total,
            'page': page,
            'totalPages': math.ceil(total / limit),
        })


class DashboardOverviewView(APIView):
    """GET: Totals of jobs, pending/completed jobs, low-stock items, items and users."""

    def get(self, request):
        authorize(Actor.from_request(request), 'dashboard.view')

        jobs = JobOrder.objects.aggregate(
            totalJobs=Count('id'),
            pendingJobs=Count('id', filter=Q(status=JobOrder.Status.PENDING)),
            ongoingJobs=Count('id', filter=Q(status=JobOrder.Status.ONGOING)),
            completedJobs=Count('id', filter=Q(status=JobOrder.Status.COMPLETED)),
        )
        low_stock = (
            InventoryItem.objects
            .annotate(stock_total=Coalesce(Sum('batches__quantity'), Value(0)))
            .filter(stock_total__lte=F('min_threshold'))
            .count()
        )

        return Response({
            **jobs,
            'lowStock': low_stock,
            'totalItems': InventoryItem.objects.count(),
            'totalUsers': get_user_model().objects.count(),
        })


class JobsByMonthView(APIView):
    """GET: Jobs created per month, oldest first, e.g. [{"month": "Jan 2025", "total": 10}]."""

    def get(self, request):
        authorize(Actor.from_request(request), 'dashboard.view')

        rows = (
            JobOrder.objects
            .annotate(month=TruncMonth('created_at'))
            .values('month')
            .annotate(total=Count('id'))
            .order_by('month')
        )
        return Response([
            {'month': row['month'].strftime('%b %Y'), 'total': row['total']}
            for row in rows
        ])


class LowStockDashboardView(APIView):
    """GET: Items at or below their minimum threshold."""

    def get(self, request):
        items = ledger.low_stock_items(Actor.from_request(request))
        return Response(InventoryItemMinimalSerializer(items, many=True).data)


class RecentLogsView(APIView):
    """GET: The most recent activity entries."""

    def get(self, request):
        authorize(Actor.from_request(request), 'dashboard.view')
        logs = ActivityLog.objects.select_related('actor')[:RECENT_LOG_COUNT]
        return Response(ActivityLogSerializer(logs, many=True).data)
