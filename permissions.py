# permissions.py - Access-control guard
from enum import IntEnum
from typing import Optional
from models import User, UserRole, Report, Notification
from errors import AuthenticationError, PermissionDeniedError


class Capability(IntEnum):
    PUBLIC = 0
    AUTHENTICATED = 1
    ADMIN = 2


def capability_of(user: Optional[User]) -> Capability:
    """Classify a requester as anonymous, authenticated or admin"""
    if user is None:
        return Capability.PUBLIC

    role = UserRole(user.role)
    if role is UserRole.ADMIN:
        return Capability.ADMIN
    if role is UserRole.CITIZEN or role is UserRole.STAFF:
        return Capability.AUTHENTICATED
    raise ValueError(f"Unhandled role: {role}")


def require(user: Optional[User], capability: Capability) -> User:
    """Raise unless the requester holds at least `capability`"""
    held = capability_of(user)
    if held >= capability:
        return user
    if held is Capability.PUBLIC:
        raise AuthenticationError("Authentication required")
    raise PermissionDeniedError("Admin access required")


def is_admin(user: Optional[User]) -> bool:
    return capability_of(user) is Capability.ADMIN


def ensure_can_view_report(user: Optional[User], report: Report) -> None:
    """Owners and admins only"""
    require(user, Capability.AUTHENTICATED)
    if report.user_id != user.id and not is_admin(user):
        raise PermissionDeniedError("Access denied")


def ensure_owns_notification(user: Optional[User], notification: Notification) -> None:
    require(user, Capability.AUTHENTICATED)
    if notification.user_id != user.id:
        raise PermissionDeniedError("Access denied")
