"""
Account API Views.

Implements:
- POST /auth/login/ - Email/password login returning a bearer token
- GET /auth/me/ - Current account
- GET, POST /users/ - List and create accounts (admin)
- GET, PUT, DELETE /users/{id}/ - Account detail (admin)
- GET /users/technicians/ - Technician accounts (admin)
"""
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from core.policy import Actor
from core.rate_limiting import rate_limit
from . import services
from .serializers import (
    LoginSerializer,
    UserSerializer,
    UserCreateSerializer,
    UserUpdateSerializer,
)


class LoginView(TokenObtainPairView):
    """
    POST: Exchange email and password for a bearer token.

    Rate limited to 10 attempts per minute per client IP.
    """
    serializer_class = LoginSerializer

    @rate_limit(max_requests=10, window_seconds=60)
    def post(self, request, *args, **kwargs):
        return super().post(request, *args, **kwargs)


class CurrentUserView(APIView):
    """GET: The authenticated account."""

    def get(self, request):
        return Response(UserSerializer(request.user).data)


class UserListCreateView(APIView):
    """
    GET: List all accounts
    POST: Create an account

    Request Body (POST):
    {
        "name": "Juan Dela Cruz",
        "email": "juan@example.com",
        "password": "s3cure-pass",
        "role": "technician"
    }
    """

    def get(self, request):
        users = services.list_users(Actor.from_request(request))
        return Response(UserSerializer(users, many=True).data)

    def post(self, request):
        serializer = UserCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = services.create_user(Actor.from_request(request), **serializer.validated_data)
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


class UserDetailView(APIView):
    """
    GET: Retrieve an account
    PUT/PATCH: Update an account (partial)
    DELETE: Delete an account
    """

    def get(self, request, pk):
        user = services.get_user(Actor.from_request(request), pk)
        return Response(UserSerializer(user).data)

    def put(self, request, pk):
        serializer = UserUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = services.update_user(Actor.from_request(request), pk, **serializer.validated_data)
        return Response(UserSerializer(user).data)

    patch = put

    def delete(self, request, pk):
        services.delete_user(Actor.from_request(request), pk)
        return Response({'message': 'User deleted'})


class TechnicianListView(APIView):
    """GET: Technician accounts, for job assignment."""

    def get(self, request):
        technicians = services.list_technicians(Actor.from_request(request))
        return Response(UserSerializer(technicians, many=True).data)
