import jwt

from campus_rag.core.config import Settings


def decode_token(token: str, settings: Settings) -> dict:
    """Raises jwt.PyJWTError for bad, expired or foreign tokens."""
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
