"""
Token validation logic.
Tokens are issued by the authentication service; this core only verifies them.
"""

from datetime import datetime, timedelta
from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from bazaar.core.config import settings
from bazaar.core.errors import AuthenticationError
from bazaar.core.logging import bind_viewer

# HTTP Bearer scheme (Only shows a token input box in Swagger)
security_scheme = HTTPBearer()
optional_security_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token (used by tooling and tests)"""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({"exp": expire, "iat": datetime.utcnow()})

    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate JWT token string"""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def verify_token(token: str) -> Optional[str]:
    """Verify token and extract user ID (sub claim)"""
    payload = decode_token(token)
    if payload is None:
        return None

    user_id: Optional[str] = payload.get("sub")
    return user_id


async def get_current_user_id(auth: Annotated[HTTPAuthorizationCredentials, Depends(security_scheme)]) -> str:
    """
    FastAPI dependency to validate token and return current user ID.
    Used in protected routes.
    """
    user_id = verify_token(auth.credentials)
    if not user_id:
        raise AuthenticationError("Could not validate credentials")
    bind_viewer(user_id)
    return user_id


async def get_optional_user_id(
    auth: Annotated[Optional[HTTPAuthorizationCredentials], Depends(optional_security_scheme)],
) -> Optional[str]:
    """
    Like get_current_user_id, but a missing header means a guest viewer.
    A header carrying a bad token is still rejected.
    """
    if auth is None:
        bind_viewer(None)
        return None
    user_id = verify_token(auth.credentials)
    if not user_id:
        raise AuthenticationError("Could not validate credentials")
    bind_viewer(user_id)
    return user_id


# Frequently used Dependency Annotations
CurrentUserDep = Annotated[str, Depends(get_current_user_id)]
OptionalUserDep = Annotated[Optional[str], Depends(get_optional_user_id)]
