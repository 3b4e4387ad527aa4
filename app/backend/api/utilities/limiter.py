# app/backend/api/utilities/limiter.py

from fastapi import Request
import jwt

from slowapi import Limiter
from slowapi.util import get_remote_address

from ...config.config import settings


def get_limiter_key(request: Request) -> str:
    """
    Returns the rate limit key for a request.
    A valid admin token (header or cookie) keys the limit on the admin id;
    otherwise the client IP is used, so scanning kiosks and anonymous
    login attempts are limited per address.
    """
    token = None
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        token = auth_header.split(" ", 1)[1]
    else:
        token = request.cookies.get(settings.AUTH_COOKIE_NAME)

    if token:
        try:
            # Expiry does not matter here, only the identity inside the token.
            payload = jwt.decode(
                token,
                settings.SECRET_KEY,
                algorithms=[settings.ALGORITHM],
                options={"verify_exp": False}
            )
            admin_id = payload.get("admin_id")
            if admin_id is not None:
                return f"admin:{admin_id}"
        except jwt.PyJWTError:
            # Unreadable token: fall back to the IP based key.
            pass

    return get_remote_address(request)

# RATE_LIMITER_REDIS_URL points at a Redis database in production and
# defaults to in-process memory storage.
limiter = Limiter(key_func=get_limiter_key, storage_uri=settings.RATE_LIMITER_REDIS_URL)
