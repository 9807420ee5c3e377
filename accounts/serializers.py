"""
Serializers for account models and authentication.
"""
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import User


class UserSerializer(serializers.ModelSerializer):
    """Public representation of an account. Never exposes the credential."""

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'role', 'is_active', 'created_at', 'updated_at']
        read_only_fields = fields


class UserMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for nested account representation."""
    class Meta:
        model = User
        fields = ['id', 'name', 'email']


class UserCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150)
    email = serializers.CharField(max_length=254)
    password = serializers.CharField(write_only=True)
    role = serializers.ChoiceField(choices=User.Role.choices, default=User.Role.TECHNICIAN)


class UserUpdateSerializer(serializers.Serializer):
    """All fields optional; a blank password leaves the credential unchanged."""
    name = serializers.CharField(max_length=150, required=False)
    email = serializers.CharField(max_length=254, required=False)
    password = serializers.CharField(write_only=True, required=False, allow_blank=True)
    role = serializers.ChoiceField(choices=User.Role.choices, required=False)


class LoginSerializer(TokenObtainPairSerializer):
    """
    Email/password login.

    Response format:
    {
        "token": "<access JWT>",
        "refresh": "<refresh JWT>",
        "_id": 1,
        "name": "Jane Doe",
        "email": "jane@example.com",
        "role": "admin"
    }
    """

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['role'] = user.role
        token['name'] = user.name
        return token

    def validate(self, attrs):
        attrs[self.username_field] = attrs[self.username_field].strip().lower()
        data = super().validate(attrs)
        return {
            'token': data['access'],
            'refresh': data['refresh'],
            '_id': self.user.pk,
            'name': self.user.name,
            'email': self.user.email,
            'role': self.user.role,
        }
