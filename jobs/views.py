"""
Job API Views.

Implements:
- GET /jobs/ - Filtered, paginated job list (technicians see their own)
- POST /jobs/ - Create a job (admin)
- GET /jobs/{id}/ - Job detail with materials
- PATCH /jobs/{id}/status/ - Status transition, consuming materials on completion
- PATCH /jobs/{id}/assign/ - Reassign to another technician (admin)
"""
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.policy import Actor
from . import services
from .serializers import (
    JobOrderSerializer,
    JobCreateSerializer,
    JobStatusUpdateSerializer,
    JobAssignSerializer,
    JobQuerySerializer,
)


class JobListCreateView(APIView):
    """
    GET: List jobs, newest first

    Query Parameters (GET):
        - page: 1-indexed page (default 1)
        - limit: Page size (default 10, max 100)
        - status: Pending, Ongoing or Completed
        - type: Installation, Repair or Maintenance
        - search: Matches client name, address or contact
        - date_from, date_to: Creation date bounds (YYYY-MM-DD)
        - sort_by: created_at, updated_at, date_completed, client_name, status or type
        - order: asc or desc (default desc)

    POST: Create a job assigned to a technician
    """

    def get(self, request):
        query = JobQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        page = services.query_jobs(Actor.from_request(request), **query.validated_data)
        return Response({
            'results': JobOrderSerializer(page['results'], many=True).data,
            'total': page['total'],
            'page': page['page'],
            'totalPages': page['totalPages'],
        })

    def post(self, request):
        serializer = JobCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        job = services.create_job(Actor.from_request(request), **serializer.validated_data)
        return Response(JobOrderSerializer(job).data, status=status.HTTP_201_CREATED)


class JobDetailView(APIView):
    """GET: Retrieve a job with its materials."""

    def get(self, request, pk):
        job = services.get_job(Actor.from_request(request), pk)
        return Response(JobOrderSerializer(job).data)


class JobStatusView(APIView):
    """
    PATCH: Change job status.

    Returns:
        - 200: Job updated
        - 400: Invalid status or materials
        - 403: Technician updating a job not assigned to them
        - 404: Job or material item not found
        - 409: Insufficient stock; job and inventory unchanged
    """

    def patch(self, request, pk):
        serializer = JobStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        job = services.update_status(
            Actor.from_request(request), pk, data['status'],
            remarks=data.get('remarks'),
            materials=[dict(line) for line in data['materials']],
        )
        return Response(JobOrderSerializer(job).data)


class JobAssignView(APIView):
    """PATCH: Reassign a job to another technician."""

    def patch(self, request, pk):
        serializer = JobAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        job = services.assign(Actor.from_request(request), pk, serializer.validated_data['assigned_to'])
        return Response(JobOrderSerializer(job).data)
