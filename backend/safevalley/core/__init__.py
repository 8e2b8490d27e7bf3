"""Core security, authorization, audit and error handling modules."""

# Exception handling
from safevalley.core.exceptions import (
    APIException,
    ValidationFailedException,
    ResourceNotFoundException,
    PreconditionFailedException,
    StoreUnavailableException,
    AuthenticationException,
    AuthorizationException,
    RateLimitException,
    register_exception_handlers,
)

# Audit logging
from safevalley.core.audit import (
    AuditAction,
    AuditSeverity,
    AuditLogger,
    audit_log,
)

# Role-Based Access Control
from safevalley.core.rbac import (
    Role,
    Permission,
    AuthContext,
    get_permissions_for_roles,
    public_context,
    principal_context,
    require_permission,
)

# API keys
from safevalley.core.security import (
    APIKeyValidator,
    api_key_validator,
    mask_api_key,
)

# Request authentication
from safevalley.core.auth import (
    authenticate_request,
    require_admin,
)

__all__ = [
    # Exceptions
    "APIException",
    "ValidationFailedException",
    "ResourceNotFoundException",
    "PreconditionFailedException",
    "StoreUnavailableException",
    "AuthenticationException",
    "AuthorizationException",
    "RateLimitException",
    "register_exception_handlers",
    # Audit
    "AuditAction",
    "AuditSeverity",
    "AuditLogger",
    "audit_log",
    # RBAC
    "Role",
    "Permission",
    "AuthContext",
    "get_permissions_for_roles",
    "public_context",
    "principal_context",
    "require_permission",
    # API keys
    "APIKeyValidator",
    "api_key_validator",
    "mask_api_key",
    # Authentication
    "authenticate_request",
    "require_admin",
]
