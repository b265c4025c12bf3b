from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from kanban.config import Settings
from kanban.errors import AuthenticationError
from kanban.utils.datetime_utils import utcnow


@dataclass(frozen=True)
class Identity:
    subject: str
    username: str
    name: str = ""


def create_access_token(settings: Settings, identity: Identity, expires_in: timedelta | None = None) -> str:
    now = utcnow()
    claims: dict[str, object] = {
        "sub": identity.subject,
        "username": identity.username,
        "name": identity.name,
        "iat": now,
    }
    if expires_in is not None:
        claims["exp"] = now + expires_in
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(settings: Settings, token: str) -> Identity:
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError as exc:
        raise AuthenticationError("Invalid token") from exc

    subject = claims.get("sub")
    username = claims.get("username")
    if not subject or not username:
        raise AuthenticationError("Invalid token")
    return Identity(subject=str(subject), username=str(username), name=str(claims.get("name") or ""))


def build_identity_dependency(settings: Settings) -> Callable[..., Awaitable[Identity]]:
    bearer = HTTPBearer(auto_error=False)

    async def current_identity(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    ) -> Identity:
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise AuthenticationError("Missing bearer token")
        return decode_access_token(settings, credentials.credentials)

    return current_identity
