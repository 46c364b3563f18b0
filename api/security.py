from __future__ import annotations

import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from core.auth import UserIdentity
from core.backend import get_backend

SECRET_ENV = "SALES_PULSE_JWT_SECRET"
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_MINUTES = 60

# Without a configured secret, tokens only survive for the life of the process.
_SECRET = os.environ.get(SECRET_ENV) or secrets.token_urlsafe(32)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(user: UserIdentity) -> str:
    exp = datetime.now(tz=timezone.utc) + timedelta(minutes=ACCESS_TOKEN_MINUTES)
    payload: Dict[str, Any] = {"sub": user.uid, "type": "access", "exp": int(exp.timestamp())}
    return jwt.encode(payload, _SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> str:
    """Return the user id carried by ``token``."""
    try:
        data = jwt.decode(token, _SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise _unauthorized("Invalid or expired token.")
    if data.get("type") != "access" or not data.get("sub"):
        raise _unauthorized("Invalid access token.")
    return str(data["sub"])


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> UserIdentity:
    if creds is None:
        raise _unauthorized("Sign in to vote.")
    user = get_backend().users.get(decode_access_token(creds.credentials))
    if user is None:
        raise _unauthorized("Unknown user.")
    return user
