from __future__ import annotations

from typing import Any, cast

from fastapi import Header, HTTPException, Request
from jose import JWTError, jwt

from docportal.config import settings
from docportal.services.file_access import Actor


def _extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip()
    return None


def _unauthenticated(message: str) -> HTTPException:
    return HTTPException(status_code=401, detail={"code": "unauthenticated", "message": message})


def _jwt_secret() -> str:
    if not settings.jwt_secret:
        raise HTTPException(status_code=500, detail="JWT secret not configured")
    return settings.jwt_secret


def decode_access_token(token: str) -> dict:
    try:
        payload = cast(
            dict[Any, Any],
            jwt.decode(token, _jwt_secret(), algorithms=[settings.jwt_algorithm]),
        )
    except JWTError as exc:
        raise _unauthenticated("Invalid token") from exc
    if payload.get("typ", "access") != "access":
        raise _unauthenticated("Invalid token type")
    return payload


def _str_set(value: object) -> frozenset[str]:
    if isinstance(value, str):
        return frozenset(value.split())
    if isinstance(value, list):
        return frozenset(str(item) for item in value)
    return frozenset()


def require_user_auth(
    authorization: str | None = Header(default=None),
    request: Request = None,
) -> Actor:
    token = _extract_bearer_token(authorization)
    if not token and request is not None:
        token = request.cookies.get("session_token")
    if not token:
        raise _unauthenticated("Unauthorized")
    payload = decode_access_token(token)
    subject = payload.get("sub")
    if not subject:
        raise _unauthenticated("Unauthorized")
    actor = Actor(
        actor_id=str(subject),
        roles=_str_set(payload.get("roles")),
        groups=_str_set(payload.get("groups")),
    )
    if request is not None:
        request.state.actor_id = actor.actor_id
    return actor
