from datetime import datetime, timedelta, timezone
import jwt
from typing import Optional
from fastapi import Depends, Request
from shared.core import set_request_context
from storefront.core_settings import Settings
from storefront.application.errors import AuthenticationError
from .deps import get_app_settings

BEARER_PREFIX = "Bearer "


def create_access_token(subject: str, secret: str, algorithm: str = "HS256", expires_minutes: int = 60) -> str:
    now = datetime.now(timezone.utc)
    payload = {"sub": subject, "iat": now, "exp": now + timedelta(minutes=expires_minutes)}
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(token: str, secret: str, algorithm: str = "HS256") -> Optional[dict]:
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.PyJWTError:
        return None


def get_current_user(request: Request, settings: Settings = Depends(get_app_settings)) -> str:
    """Admin principal from the bearer token; the ``sub`` claim is the user id."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        raise AuthenticationError("Unauthenticated", ["Missing bearer token"])
    token_data = decode_access_token(auth_header[len(BEARER_PREFIX):], settings.JWT_SECRET, settings.JWT_ALG)
    if not token_data or not token_data.get("sub"):
        raise AuthenticationError("Unauthenticated", ["Invalid or expired token"])
    user_id = str(token_data["sub"])
    set_request_context(user_id=user_id)
    return user_id
