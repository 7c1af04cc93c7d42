"""Role-based access control.

Two separate checks live here:

* ``authorize`` is an explicit allow-set: the principal's role must be one of
  the listed roles. It never consults the rank table, so an admin is only
  admitted where ``admin`` is listed.
* ``can_view_hidden`` / ``has_min_rank`` are minimum-rank checks against
  ``ROLE_RANK`` and gate what content a principal may list or read.
"""
import enum
import logging
from types import MappingProxyType
from typing import Any, Optional, Sequence

from fastapi import Depends

from aninotion.core.errors import Forbidden, Unauthenticated
from aninotion.core.security import get_optional_current_user
from aninotion.models.user import Role

logger = logging.getLogger(__name__)


ROLE_RANK = MappingProxyType({
    Role.VIEWER.value: 1,
    Role.PAID.value: 2,
    Role.EDITOR.value: 3,
    Role.ADMIN.value: 4,
})

HIDDEN_CONTENT_MIN_RANK = ROLE_RANK[Role.PAID.value]


def _role_value(role: Any) -> Any:
    return role.value if isinstance(role, enum.Enum) else role


def rank(role: Any) -> int:
    """Rank of a role on the hierarchy, 0 for unknown roles"""
    return ROLE_RANK.get(_role_value(role), 0)


INACTIVE_STATUSES = frozenset({"disabled", "deleted"})


def is_disabled(principal: Any) -> bool:
    """True for disabled or deleted accounts"""
    return _role_value(getattr(principal, "status", None)) in INACTIVE_STATUSES


def authorize(principal: Any, required_roles: Sequence[Any]) -> None:
    """Allow the call through or raise.

    Raises ``Unauthenticated`` when there is no principal (or it is disabled)
    and ``Forbidden`` when its role is not in ``required_roles``.
    """
    allowed = [_role_value(role) for role in required_roles]
    if not allowed:
        raise ValueError("required_roles must not be empty")

    if principal is None:
        logger.warning("Role check failed: no principal (required %s)", allowed)
        raise Unauthenticated()
    if is_disabled(principal):
        logger.warning("Role check failed: principal %s is disabled", getattr(principal, "id", None))
        raise Unauthenticated("User account is disabled")

    role = _role_value(getattr(principal, "role", None))
    if role not in allowed:
        logger.warning(
            "Role check failed: principal %s has role %s, required %s",
            getattr(principal, "id", None), role, allowed,
        )
        raise Forbidden(
            f"Access denied. Required role: {' or '.join(allowed)}. Your role: {role}"
        )

    logger.debug("Role check passed: principal %s with role %s", getattr(principal, "id", None), role)


def require_admin(principal: Any) -> None:
    """Admins only"""
    authorize(principal, [Role.ADMIN])


def require_editor(principal: Any) -> None:
    """Admins and editors"""
    authorize(principal, [Role.ADMIN, Role.EDITOR])


def require_any_user(principal: Any) -> None:
    """Any authenticated, active principal, whatever its role"""
    if principal is None:
        raise Unauthenticated()
    if is_disabled(principal):
        raise Unauthenticated("User account is disabled")


def has_min_rank(principal: Any, min_role: Optional[Any]) -> bool:
    """Minimum-rank check; ``min_role=None`` means public"""
    if min_role is None:
        return True
    if principal is None or is_disabled(principal):
        return False
    return rank(getattr(principal, "role", None)) >= rank(min_role)


def can_view_hidden(principal: Any) -> bool:
    """Hidden categories are for paid members and above"""
    if principal is None or is_disabled(principal):
        return False
    return rank(getattr(principal, "role", None)) >= HIDDEN_CONTENT_MIN_RANK


def is_staff(principal: Any) -> bool:
    """Active editors and admins, who also see unpublished posts"""
    if principal is None or is_disabled(principal):
        return False
    return rank(getattr(principal, "role", None)) >= ROLE_RANK[Role.EDITOR.value]


def require_role(*roles: Any):
    """FastAPI dependency that resolves the current user and authorizes it"""
    allowed = list(roles)

    def dependency(current_user=Depends(get_optional_current_user)):
        authorize(current_user, allowed)
        return current_user

    return dependency


def _any_user(current_user=Depends(get_optional_current_user)):
    require_any_user(current_user)
    return current_user


admin_required = require_role(Role.ADMIN)
editor_required = require_role(Role.ADMIN, Role.EDITOR)
user_required = _any_user
