"""Authentication utilities - JWT handling."""
import logging
from typing import Optional

from jose import JWTError, jwt

from wisdom_bi.config import settings

logger = logging.getLogger(__name__)

# Tokens are issued by the identity provider; this service only verifies them
ALGORITHM = "HS256"


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT access token.

    Returns the payload if valid, None otherwise.
    """
    if not settings.SUPABASE_JWT_SECRET:
        logger.error("SUPABASE_JWT_SECRET is not configured; rejecting token")
        return None

    try:
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[ALGORITHM],
            audience=settings.SUPABASE_JWT_AUDIENCE,
        )
        return payload
    except JWTError:
        return None
