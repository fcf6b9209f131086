# app/core/security.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt

from app.core.config import settings


# ---------------------------------------------------------------------------
# JWT helpers
#
# Tokens are issued by the identity service; this backend only needs to
# verify them and read the "sub" claim. create_access_token exists for
# local development and tests.
# ---------------------------------------------------------------------------

def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=15))
    to_encode = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
        "type": "access",
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, verify_exp: bool = True) -> Optional[Dict[str, Any]]:
    """
    Decode a JWT and optionally verify exp.

    Returns the payload dict on success, or None on failure.
    """
    options = {"verify_exp": verify_exp}
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options=options,
        )
        return payload
    except JWTError:
        return None


# ---------------------------------------------------------------------------
# Authorization header helpers
# ---------------------------------------------------------------------------

def get_bearer_token(request: Request) -> str:
    """
    Extract Bearer token from Authorization header.

    This is synchronous; do *not* "await" it.
    """
    auth_header = request.headers.get("authorization")
    if not auth_header:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
        )

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
        )

    return parts[1]
