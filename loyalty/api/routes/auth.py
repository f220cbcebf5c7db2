"""Bearer token authentication for API routes.

Tokens are issued by the identity provider that owns user sign-in; this
service only verifies them and maps the claims to an actor.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt  # type: ignore[import-untyped]
from pydantic import BaseModel, ValidationError

from loyalty.core.config import Settings, get_settings
from loyalty.models.enums import UserRole

router = APIRouter()
security_scheme = HTTPBearer(auto_error=True)


class TokenPayload(BaseModel):
    sub: str
    role: UserRole
    exp: datetime | None = None


@dataclass(frozen=True)
class AuthenticatedActor:
    user_id: str
    role: UserRole


class ActorRead(BaseModel):
    user_id: str
    role: UserRole


def encode_actor_token(
    user_id: str,
    role: UserRole | str,
    *,
    settings: Settings | None = None,
    expires_delta: timedelta = timedelta(hours=1),
) -> str:
    """Sign a token for ``user_id``; used by local tooling and tests."""

    settings = settings or get_settings()
    expires_at = datetime.now(UTC) + expires_delta
    payload = {"sub": user_id, "role": UserRole(role).value, "exp": int(expires_at.timestamp())}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _decode_token(*, token: str, settings: Settings) -> TokenPayload:
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
    try:
        validated = TokenPayload(**payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
    return validated


def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
) -> AuthenticatedActor:
    settings = get_settings()
    payload = _decode_token(token=credentials.credentials, settings=settings)
    return AuthenticatedActor(user_id=payload.sub, role=payload.role)


def require_role(*roles: UserRole) -> Callable[..., AuthenticatedActor]:
    allowed_roles: set[UserRole] = set(roles)

    def dependency(actor: AuthenticatedActor = Depends(get_current_actor)) -> AuthenticatedActor:
        if actor.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return actor

    return dependency


@router.get("/me", response_model=ActorRead, summary="Describe the authenticated actor")
def read_current_actor(actor: AuthenticatedActor = Depends(get_current_actor)) -> ActorRead:
    return ActorRead(user_id=actor.user_id, role=actor.role)


__all__ = [
    "ActorRead",
    "AuthenticatedActor",
    "TokenPayload",
    "encode_actor_token",
    "get_current_actor",
    "require_role",
    "router",
]
