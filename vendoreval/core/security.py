"""
Bearer token handling.

Tokens carry `sub` (user id), `role`, and for suppliers the `vendor_id` they
answer for plus the `profile_id` that owns their recommendations.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException, status
from fastapi.security import HTTPBearer
from jose import JWTError, jwt

from vendoreval.core.config import settings

security = HTTPBearer()

_OPTIONAL_CLAIMS = ("email", "vendor_id", "profile_id")


def create_access_token(
    subject: str,
    role: str,
    vendor_id: Optional[str] = None,
    profile_id: Optional[str] = None,
    email: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(subject),
        "role": role,
        "iat": now,
        "exp": now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)),
    }
    optional = {"email": email, "vendor_id": vendor_id, "profile_id": profile_id}
    claims.update({k: v for k, v in optional.items() if v is not None})
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Verified claims; 401 for a bad signature, expiry or missing subject."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user identifier (sub)",
            headers={"WWW-Authenticate": "Bearer"},
        )

    claims = {"sub": str(payload["sub"]), "role": payload.get("role")}
    claims.update({k: payload.get(k) for k in _OPTIONAL_CLAIMS})
    return claims
