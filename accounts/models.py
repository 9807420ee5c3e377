"""
Account Models - administrators and field technicians.

Models:
    - User: login account identified by email, with a single role
"""
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models

from core import policy


class UserManager(BaseUserManager):
    """Manager for email-identified accounts."""
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError('Email is required')
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault('role', User.Role.TECHNICIAN)
        extra_fields.setdefault('is_staff', False)
        extra_fields.setdefault('is_superuser', False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('role', User.Role.ADMIN)
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
    """
    Account for an administrator or a field technician.

    Email is the login identifier and is stored lowercased, so uniqueness
    is effectively case-insensitive.
    """

    class Role(models.TextChoices):
        ADMIN = policy.ADMIN, 'Admin'
        TECHNICIAN = policy.TECHNICIAN, 'Technician'

    username = None
    first_name = None
    last_name = None

    name = models.CharField(
        max_length=150,
        help_text="Display name"
    )
    email = models.EmailField(
        unique=True,
        help_text="Login email, unique across accounts"
    )
    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.TECHNICIAN,
        db_index=True
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['name']

    objects = UserManager()

    class Meta:
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} <{self.email}> ({self.role})"

    def get_full_name(self):
        return self.name

    def get_short_name(self):
        return self.name

    @property
    def is_admin(self) -> bool:
        return self.role == self.Role.ADMIN

    @property
    def is_technician(self) -> bool:
        return self.role == self.Role.TECHNICIAN
