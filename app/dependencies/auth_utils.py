# app/dependencies/auth_utils.py

"""
Utilities for extracting the authenticated user from the JWT.
Used by routers to get the acting user_id for every group operation.
"""

from typing import Any, Dict
from uuid import UUID

from fastapi import Request, HTTPException, status

from app.core.security import get_bearer_token, decode_token


def _decode_request_token(request: Request, verify_exp: bool = True) -> Dict[str, Any]:
    """
    Internal helper:
    - read Bearer token from Authorization header
    - decode JWT
    - raise 401 if anything is wrong
    """
    token = get_bearer_token(request)
    payload = decode_token(token, verify_exp=verify_exp)

    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    return payload


def get_current_user_id(request: Request) -> UUID:
    """
    FastAPI dependency to extract the user_id (sub) from the JWT.

    Example:
        async def some_route(user_id: UUID = Depends(get_current_user_id)):
            ...
    """
    payload = _decode_request_token(request, verify_exp=True)

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User ID missing from token",
        )

    try:
        return UUID(str(user_id))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed user id in token",
        )
