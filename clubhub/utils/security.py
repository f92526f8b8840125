"""
Identity resolution and rate limiting

Authentication happens upstream; the gateway forwards a shared bearer token
together with the resolved user id and role.
"""

from fastapi import HTTPException, Depends, Header, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import time
from collections import defaultdict

from clubhub.core.config import settings
from clubhub.utils.policy import Identity, Role

# Simple in-memory rate limiter
rate_limiter = defaultdict(list)

security = HTTPBearer()

def resolve_identity(token: Optional[str], user_id: Optional[str], role_name: Optional[str]) -> Identity:
    """Check the gateway token and build the caller identity; raises 401"""
    if token != settings.GATEWAY_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid gateway token"
        )
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header"
        )
    try:
        role = Role((role_name or Role.student.value).lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role: {role_name}"
        )
    return Identity(user_id=user_id, role=role)

def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Identity:
    """Verify the gateway token and build the caller identity"""
    return resolve_identity(credentials.credentials, x_user_id, x_user_role)

def rate_limit_check(key: str, limit: int = None) -> bool:
    """Sliding one-minute window per key"""
    if limit is None:
        limit = settings.RATE_LIMIT_PER_MINUTE

    current_time = time.time()
    minute_ago = current_time - 60

    rate_limiter[key] = [
        req_time for req_time in rate_limiter[key]
        if req_time > minute_ago
    ]

    if len(rate_limiter[key]) >= limit:
        return False

    rate_limiter[key].append(current_time)
    return True

def enforce_rate_limit(identity: Identity = Depends(get_current_identity)) -> Identity:
    """Dependency for write endpoints that participants hit directly"""
    if not rate_limit_check(identity.user_id):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please try again later."
        )
    return identity
