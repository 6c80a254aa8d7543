"""Request authentication.

User routes take a bearer JWT issued by the auth provider and signed with
SECRET_KEY; the caller is the token's `sub`. Internal routes take the
service key in the X-Service-Key header instead.
"""

import hmac
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ..errors import AuthorizationError
from ..utils.config import Settings, get_settings

bearer_scheme = HTTPBearer(auto_error=False)


def get_api_settings() -> Settings:
    return get_settings()


def create_access_token(
    user_id: str,
    secret_key: str,
    algorithm: str = "HS256",
    expires_minutes: int = 60,
) -> str:
    """Sign a token for user_id the way the auth provider does."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    return jwt.encode({"sub": user_id, "exp": expire}, secret_key, algorithm=algorithm)


def verify_access_token(token: str, secret_key: str, algorithm: str = "HS256") -> Optional[str]:
    """Return the user id in a valid token, or None."""
    if not secret_key:
        return None

    try:
        payload = jwt.decode(
            token,
            secret_key,
            algorithms=[algorithm],
            options={"verify_aud": False},
        )
    except JWTError:
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None
    return str(user_id)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_api_settings),
) -> str:
    """FastAPI dependency: the authenticated caller's user id."""
    if credentials is None:
        raise AuthorizationError("Unauthorized")

    user_id = verify_access_token(
        credentials.credentials, settings.secret_key, settings.jwt_algorithm
    )
    if user_id is None:
        raise AuthorizationError("Unauthorized")
    return user_id


async def require_service_key(
    x_service_key: Optional[str] = Header(None),
    settings: Settings = Depends(get_api_settings),
) -> None:
    """FastAPI dependency for internal routes called by the scheduler or cron."""
    expected = settings.service_role_key
    if not expected or not x_service_key:
        raise AuthorizationError("Unauthorized")
    if not hmac.compare_digest(x_service_key.encode("utf-8"), expected.encode("utf-8")):
        raise AuthorizationError("Unauthorized")
