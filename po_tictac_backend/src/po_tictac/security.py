from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from .config import Settings, get_settings


# PUBLIC_INTERFACE
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None, settings: Optional[Settings] = None) -> str:
    """Create JWT access token with optional expiry."""
    settings = settings or get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


# PUBLIC_INTERFACE
def decode_player_name(token: str, settings: Optional[Settings] = None) -> str:
    """Return the player name carried by a token.

    Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError.
    """
    settings = settings or get_settings()
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    name = payload.get("sub")
    if not name:
        raise jwt.InvalidTokenError("Token has no subject")
    return name
