"""API key validation for admin principals."""

import hmac
from typing import Optional, Tuple

from fastapi.security import APIKeyHeader

from safevalley.config import settings


# API Key header scheme
api_key_header = APIKeyHeader(
    name=settings.api_key_header,
    auto_error=False,
    description="Admin API key",
)


class APIKeyValidator:
    """Validates API keys with timing-safe comparison."""

    def validate(self, api_key: Optional[str]) -> Tuple[bool, Optional[str]]:
        """
        Validate an API key using timing-safe comparison.

        Returns:
            Tuple of (is_valid, error_message)
        """
        valid_keys = settings.get_api_keys_list()

        if not settings.api_key_required and not valid_keys:
            # Local development without configured keys
            return True, None

        if not api_key:
            return False, "API key is required"

        if len(api_key) < 32:
            return False, "Invalid API key format"

        if not valid_keys:
            return False, "No API keys configured"

        # Compare against every key so timing does not reveal which one matched
        is_valid = False
        for valid_key in valid_keys:
            if hmac.compare_digest(api_key, valid_key):
                is_valid = True

        if not is_valid:
            return False, "Invalid API key"

        return True, None


# Global validator instance
api_key_validator = APIKeyValidator()


def mask_api_key(api_key: Optional[str]) -> str:
    """
    Mask an API key for logging purposes.

    Example: sk_a1b2c3d4... -> sk_a1b2********
    """
    if not api_key or len(api_key) < 12:
        return "****"

    if "_" in api_key:
        prefix, token = api_key.split("_", 1)
        return f"{prefix}_{token[:4]}{'*' * 8}"

    return f"{api_key[:8]}{'*' * 8}"
