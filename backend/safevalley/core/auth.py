"""Request authentication producing an explicit AuthContext."""

import logging
from typing import Optional

from fastapi import Depends, Request, Security

from safevalley.config import settings
from safevalley.core.audit import audit_log
from safevalley.core.exceptions import AuthenticationException
from safevalley.core.rbac import AuthContext, Role, principal_context, public_context
from safevalley.core.security import api_key_header, api_key_validator, mask_api_key

logger = logging.getLogger("api.auth")


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, honouring reverse proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


async def authenticate_request(
    request: Request,
    api_key: Optional[str] = Security(api_key_header),
) -> AuthContext:
    """
    Build the AuthContext for a request.

    A valid admin API key yields an admin principal. Without a key the
    request is anonymous. With keys not required and none configured
    (local development) the caller is treated as a development admin.
    """
    request_id = getattr(request.state, "request_id", "unknown")
    client_ip = get_client_ip(request)

    if not api_key and settings.api_key_required:
        return public_context(request_id=request_id, client_ip=client_ip)

    is_valid, error = api_key_validator.validate(api_key)
    if not is_valid:
        logger.warning(f"[{request_id}] API key auth failed from {client_ip}: {error}")
        audit_log.log_auth_failure(request_id, client_ip, error or "Invalid API key")
        raise AuthenticationException(error or "Invalid API key")

    subject = mask_api_key(api_key) if api_key else "development"
    audit_log.log_auth_success(request_id, client_ip, subject)

    return principal_context(
        subject,
        [Role.ADMIN],
        request_id=request_id,
        client_ip=client_ip,
    )


async def require_admin(
    context: AuthContext = Depends(authenticate_request),
) -> AuthContext:
    """Require an authenticated admin principal."""
    if not context.is_authenticated:
        raise AuthenticationException("Authentication required")
    return context
