"""
Organizer identity from bearer tokens.
Tokens are issued by the surrounding application (shared secret, HS256); this
module only decodes them. create_access_token exists for scripts and tests.
"""
from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "league-dev-secret-change-in-production")
ALGORITHM = "HS256"
# Organizer sessions; 7 days unless overridden
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get("JWT_EXPIRE_MINUTES", str(60 * 24 * 7)))


def create_access_token(organizer_id: str, expires_minutes: int | None = None) -> str:
    minutes = ACCESS_TOKEN_EXPIRE_MINUTES if expires_minutes is None else expires_minutes
    claims = {
        "sub": organizer_id,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> str | None:
    """Organizer id carried by the token, or None when it is invalid or expired."""
    try:
        claims = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    return claims.get("sub")
