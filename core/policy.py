"""
Access Policy - role-based capability checks for every service operation.

Each operation is tagged with the role it requires. Service functions call
``authorize()`` before reading or mutating anything, so an authorization
failure never leaves partial side effects behind.

    admin              full control
    technician         own jobs (read, status updates) and inventory (read)
    any-authenticated  either role
"""
import logging
from dataclasses import dataclass
from typing import Optional

from .exceptions import Forbidden, Unauthenticated

logger = logging.getLogger(__name__)

ADMIN = 'admin'
TECHNICIAN = 'technician'
ANY_AUTHENTICATED = 'any-authenticated'

CAPABILITIES = {
    # Inventory ledger
    'inventory.add_item': ADMIN,
    'inventory.update_item': ADMIN,
    'inventory.add_batch': ADMIN,
    'inventory.update_batch': ADMIN,
    'inventory.delete_batch': ADMIN,
    'inventory.delete_item': ADMIN,
    'inventory.query': ANY_AUTHENTICATED,
    'inventory.low_stock': ADMIN,

    # Job lifecycle
    'jobs.create': ADMIN,
    'jobs.assign': ADMIN,
    'jobs.query': ANY_AUTHENTICATED,
    'jobs.retrieve': ANY_AUTHENTICATED,
    'jobs.update_status': ANY_AUTHENTICATED,

    # Accounts
    'users.create': ADMIN,
    'users.update': ADMIN,
    'users.delete': ADMIN,
    'users.list': ADMIN,
    'users.retrieve': ADMIN,
    'users.technicians': ADMIN,

    # Activity & dashboard
    'logs.list': ADMIN,
    'dashboard.view': ADMIN,
}


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of a domain operation."""
    account_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN

    @property
    def is_technician(self) -> bool:
        return self.role == TECHNICIAN

    @classmethod
    def from_user(cls, user) -> Optional['Actor']:
        """Build an actor from a Django user, or None for anonymous users."""
        if user is None or not user.is_authenticated:
            return None
        return cls(account_id=user.pk, role=user.role)

    @classmethod
    def from_request(cls, request) -> Optional['Actor']:
        return cls.from_user(getattr(request, 'user', None))


def authorize(actor: Optional[Actor], operation: str, job=None) -> Actor:
    """
    Check that ``actor`` may invoke ``operation``.

    Args:
        actor: The caller, or None when no valid credential was presented
        operation: Key into CAPABILITIES
        job: Job the operation targets, for assignment scoping

    Returns:
        The authorized actor

    Raises:
        Unauthenticated: No actor
        Forbidden: Role insufficient, or a technician targeting a job
            assigned to someone else
        KeyError: Operation is not registered
    """
    if actor is None:
        raise Unauthenticated()

    required = CAPABILITIES[operation]

    if required != ANY_AUTHENTICATED and actor.role != required:
        logger.warning(
            f"Account {actor.account_id} ({actor.role}) denied {operation}"
        )
        raise Forbidden()

    if job is not None and actor.is_technician and job.assigned_to_id != actor.account_id:
        logger.warning(
            f"Technician {actor.account_id} denied {operation} on job #{job.pk}"
        )
        raise Forbidden("This job is not assigned to you")

    return actor
