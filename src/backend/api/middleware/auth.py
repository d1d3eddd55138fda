from __future__ import annotations

from typing import Annotated, Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from api.middleware.request_context import update_request_context
from core.constants import Settings, get_settings
from core.errors import AuthenticationError
from models.error_models import ErrorCode
from models.schemas.auth import UserInfo

bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str, settings: Settings) -> dict[str, Any]:
    """Verify a bearer token and return its claims."""
    try:
        payload: dict[str, Any] = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as exc:
        raise AuthenticationError(message="Token expired", code=ErrorCode.AUTH_EXPIRED_TOKEN) from exc
    except JWTError as exc:
        raise AuthenticationError(message="Invalid token", code=ErrorCode.AUTH_INVALID_TOKEN) from exc

    if not payload.get("sub"):
        raise AuthenticationError(message="Invalid token", code=ErrorCode.AUTH_INVALID_TOKEN)
    return payload


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> UserInfo:
    """Authenticate incoming REST requests."""
    settings = get_settings()

    if credentials is None:
        if settings.allow_localhost_noauth and _is_localhost(request):
            user = UserInfo(id=settings.default_user_id)
            update_request_context(user_id=user.id)
            return user
        raise AuthenticationError(
            message="Authentication required",
            code=ErrorCode.AUTH_REQUIRED,
        )

    payload = decode_access_token(credentials.credentials, settings)
    user = UserInfo(id=str(payload["sub"]), email=payload.get("email"))
    update_request_context(user_id=user.id)
    return user


def _is_localhost(request: Request) -> bool:
    """Check if the request originates from localhost."""
    host = request.client.host if request.client else ""
    return host in {"127.0.0.1", "localhost", "::1"}


CurrentUser = Annotated[UserInfo, Depends(get_current_user)]
