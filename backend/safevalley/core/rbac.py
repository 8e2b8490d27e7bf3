"""Role-Based Access Control (RBAC) for moderation operations."""

import logging
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel

from safevalley.core.exceptions import AuthorizationException, AuthenticationException

logger = logging.getLogger("api.rbac")


# =============================================================================
# Role and Permission Definitions
# =============================================================================

class Role(str, Enum):
    """System roles with hierarchical permissions."""

    # Public - anonymous map visitors and reporters
    PUBLIC = "public"

    # Moderator - can approve, reject, delete and edit reports
    MODERATOR = "moderator"

    # Admin - full access including permanent deletion
    ADMIN = "admin"


class Permission(str, Enum):
    """Granular permissions for fine-grained access control."""

    REPORT_SUBMIT = "report:submit"
    REPORT_VIEW = "report:view"
    REPORT_MODERATE = "report:moderate"
    REPORT_EDIT = "report:edit"
    REPORT_PURGE = "report:purge"


ROLE_PERMISSIONS: dict[Role, Set[Permission]] = {
    Role.PUBLIC: {
        Permission.REPORT_SUBMIT,
    },

    Role.MODERATOR: {
        Permission.REPORT_SUBMIT,
        Permission.REPORT_VIEW,
        Permission.REPORT_MODERATE,
        Permission.REPORT_EDIT,
    },

    Role.ADMIN: set(Permission),  # All permissions
}


# =============================================================================
# Authorization Context
# =============================================================================

class AuthContext(BaseModel):
    """Authenticated principal passed explicitly to every moderation operation."""

    # Authentication
    is_authenticated: bool = False
    auth_method: Optional[str] = None  # "api_key"

    # Identity
    subject_id: Optional[str] = None  # Masked API key or user ID
    subject_type: str = "anonymous"  # "admin", "anonymous"

    # Authorization
    roles: List[Role] = []
    permissions: Set[Permission] = set()

    # Request context
    request_id: Optional[str] = None
    client_ip: Optional[str] = None

    def has_permission(self, permission: Permission) -> bool:
        """Check if context has a specific permission."""
        return permission in self.permissions


def get_permissions_for_roles(roles: List[Role]) -> Set[Permission]:
    """Get all permissions for a list of roles."""
    permissions = set()
    for role in roles:
        permissions.update(ROLE_PERMISSIONS.get(role, set()))
    return permissions


def public_context(
    request_id: Optional[str] = None, client_ip: Optional[str] = None
) -> AuthContext:
    """Context for an anonymous visitor."""
    return AuthContext(
        is_authenticated=False,
        roles=[Role.PUBLIC],
        permissions=get_permissions_for_roles([Role.PUBLIC]),
        request_id=request_id,
        client_ip=client_ip,
    )


def principal_context(
    subject_id: str,
    roles: List[Role],
    *,
    auth_method: str = "api_key",
    request_id: Optional[str] = None,
    client_ip: Optional[str] = None,
) -> AuthContext:
    """Context for an authenticated moderator or admin."""
    return AuthContext(
        is_authenticated=True,
        auth_method=auth_method,
        subject_id=subject_id,
        subject_type="admin",
        roles=roles,
        permissions=get_permissions_for_roles(roles),
        request_id=request_id,
        client_ip=client_ip,
    )


def require_permission(context: Optional[AuthContext], permission: Permission) -> AuthContext:
    """Raise unless ``context`` is authenticated and holds ``permission``."""
    if context is None or not context.is_authenticated:
        raise AuthenticationException("Authentication required")

    if not context.has_permission(permission):
        logger.warning(
            f"Access denied for {context.subject_id}: missing permission {permission.value}"
        )
        raise AuthorizationException("Insufficient permissions")

    return context
