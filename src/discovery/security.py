"""Request authentication.

Service-to-service calls carry the shared ``X-API-Key``.  The gateway in
front of this service authenticates end users and forwards the caller's id
in ``X-User-Id``; personalized endpoints only serve that caller's own data.
"""

import os
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import APIKeyHeader

from .errors import AuthorizationError

API_KEY_HEADER_NAME = "X-API-Key"
USER_ID_HEADER_NAME = "X-User-Id"

api_key_header = APIKeyHeader(name=API_KEY_HEADER_NAME, auto_error=False)


def get_api_key() -> str | None:
    return os.environ.get("API_KEY")


async def verify_api_key(
    api_key: Annotated[str | None, Depends(api_key_header)],
) -> str | None:
    expected_key = get_api_key()
    if not expected_key or api_key != expected_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return api_key


async def get_caller_id(
    x_user_id: Annotated[str | None, Header(alias=USER_ID_HEADER_NAME)] = None,
) -> str | None:
    """The authenticated end user, or ``None`` for anonymous callers."""
    return x_user_id or None


async def require_caller_id(
    caller_id: Annotated[str | None, Depends(get_caller_id)],
) -> str:
    if not caller_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity",
        )
    return caller_id


def ensure_same_user(caller_id: str, user_id: str) -> None:
    """Reject reads or writes on behalf of another user."""
    if caller_id != user_id:
        raise AuthorizationError("Caller may only access their own data")


RequireApiKey = Annotated[str, Depends(verify_api_key)]
CallerId = Annotated[str | None, Depends(get_caller_id)]
RequireCaller = Annotated[str, Depends(require_caller_id)]
