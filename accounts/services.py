"""
Account Service Layer - admin management of user accounts.

All operations are admin-only. Email is normalized to lowercase and kept
unique across accounts on both create and edit.
"""
import logging
from typing import List, Optional

from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import IntegrityError, transaction

from core.activity import record_activity
from core.exceptions import NotFound, ValidationError
from core.policy import Actor, authorize
from jobs.models import JobOrder
from .models import User

logger = logging.getLogger(__name__)


def _clean_email(email: Optional[str], exclude_id: Optional[int] = None) -> str:
    email = (email or '').strip().lower()
    if not email:
        raise ValidationError("Email is required")
    try:
        validate_email(email)
    except DjangoValidationError:
        raise ValidationError(f"Invalid email address: {email}")

    taken = User.objects.filter(email__iexact=email)
    if exclude_id is not None:
        taken = taken.exclude(pk=exclude_id)
    if taken.exists():
        raise ValidationError("Email already exists")
    return email


def _clean_role(role: Optional[str]) -> str:
    if role not in User.Role.values:
        raise ValidationError(
            f"Invalid role '{role}'. Expected one of: {', '.join(User.Role.values)}"
        )
    return role


def _check_password(password: Optional[str], user: Optional[User] = None) -> None:
    if not password:
        raise ValidationError("Password is required")
    try:
        validate_password(password, user=user)
    except DjangoValidationError as e:
        raise ValidationError(" ".join(e.messages))


def get_user(actor: Actor, user_id: int) -> User:
    authorize(actor, 'users.retrieve')
    try:
        return User.objects.get(pk=user_id)
    except User.DoesNotExist:
        raise NotFound("User not found")


def list_users(actor: Actor) -> List[User]:
    authorize(actor, 'users.list')
    return list(User.objects.order_by('name', 'id'))


def list_technicians(actor: Actor) -> List[User]:
    authorize(actor, 'users.technicians')
    return list(User.objects.filter(role=User.Role.TECHNICIAN).order_by('name', 'id'))


def create_user(actor: Actor, name: str, email: str, password: str,
                role: str = User.Role.TECHNICIAN) -> User:
    """
    Create an admin or technician account.

    Raises:
        Forbidden: Actor is not an admin
        ValidationError: Missing name, invalid/duplicate email, bad role,
            or a password rejected by the configured validators
    """
    authorize(actor, 'users.create')

    name = (name or '').strip()
    if not name:
        raise ValidationError("Name is required")
    role = _clean_role(role)
    email = _clean_email(email)
    _check_password(password, User(name=name, email=email))

    try:
        with transaction.atomic():
            user = User.objects.create_user(
                email=email,
                password=password,
                name=name,
                role=role,
            )
            record_activity(actor, f"Created {role} account {email}", user)
    except IntegrityError:
        # Lost a race with a concurrent create using the same email
        raise ValidationError("Email already exists")

    logger.info(f"Created {role} account #{user.pk} ({email})")
    return user


def update_user(actor: Actor, user_id: int, name: Optional[str] = None,
                email: Optional[str] = None, password: Optional[str] = None,
                role: Optional[str] = None) -> User:
    """
    Partially update an account. Only provided fields change.

    Raises:
        Forbidden: Actor is not an admin
        NotFound: Account does not exist
        ValidationError: Invalid or duplicate values, or demoting a
            technician who still has open jobs
    """
    authorize(actor, 'users.update')

    with transaction.atomic():
        try:
            user = User.objects.select_for_update().get(pk=user_id)
        except User.DoesNotExist:
            raise NotFound("User not found")

        changed = []
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Name cannot be blank")
            user.name = name
            changed.append('name')
        if email is not None:
            user.email = _clean_email(email, exclude_id=user.pk)
            changed.append('email')
        if role is not None:
            role = _clean_role(role)
            if user.is_technician and role != User.Role.TECHNICIAN:
                open_jobs = user.assigned_jobs.exclude(status=JobOrder.Status.COMPLETED).count()
                if open_jobs:
                    raise ValidationError(
                        f"{user.name} still has {open_jobs} open job(s); reassign them before changing the role"
                    )
            user.role = role
            changed.append('role')
        if password:
            _check_password(password, user)
            user.set_password(password)
            changed.append('password')

        try:
            user.save()
        except IntegrityError:
            raise ValidationError("Email already exists")

        if changed:
            record_activity(actor, f"Updated account {user.email}", user, fields=changed)

    logger.info(f"Updated account #{user.pk}: {', '.join(changed) or 'no changes'}")
    return user


def delete_user(actor: Actor, user_id: int) -> None:
    """
    Delete an account.

    Jobs assigned to a deleted technician keep their history and become
    unassigned.
    """
    authorize(actor, 'users.delete')

    with transaction.atomic():
        try:
            user = User.objects.get(pk=user_id)
        except User.DoesNotExist:
            raise NotFound("User not found")
        email = user.email
        record_activity(actor, f"Deleted account {email}", user)
        user.delete()

    logger.info(f"Deleted account #{user_id} ({email})")
