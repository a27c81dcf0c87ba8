"""
Authentication dependencies.

The session provider issues the bearer token; this service only verifies it
and hands the verified user id to the insight pipeline.
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional

from core.exceptions import UnauthorizedError
from core.security import get_user_id_from_token

# Use auto_error=False to handle missing credentials manually and return 401 (not 403)
security = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Get the verified user id from the bearer JWT.

    Raises UnauthorizedError if the token is missing or invalid.
    """
    if not credentials:
        raise UnauthorizedError("Missing Authorization bearer token")

    user_id = get_user_id_from_token(credentials.credentials)
    if not user_id:
        raise UnauthorizedError("Invalid authentication credentials")

    return str(user_id)
