"""Session / identity collaborator.

Resolves the acting user from a signed session token. The workflow engine
trusts the resulting ``Actor`` and performs its own role checks against it.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Mapping

import jwt
from sqlalchemy.orm import Session

from doctrack.config import settings
from doctrack.errors import Unauthorized
from doctrack.models.user import Role, User
from doctrack.services.common import coerce_uuid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    id: uuid.UUID
    role: Role
    email: str
    designation_id: uuid.UUID | None = None

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(
            id=user.id,
            role=user.role,
            email=user.email,
            designation_id=user.designation_id,
        )


@dataclass(frozen=True)
class RoleRoute:
    prefix: str
    dashboard: str


DEFAULT_ROLE_CONFIG: Mapping[Role, RoleRoute] = MappingProxyType(
    {
        Role.SYSTEM_ADMIN: RoleRoute("/admin", "/admin/dashboard"),
        Role.PRESIDENT: RoleRoute("/president", "/president/dashboard"),
        Role.VPAA: RoleRoute("/vpaa", "/vpaa/dashboard"),
        Role.VPADA: RoleRoute("/vpada", "/vpada/dashboard"),
        Role.DEAN: RoleRoute("/dean", "/dean/dashboard"),
        Role.HR: RoleRoute("/hr", "/hr/dashboard"),
        Role.INSTRUCTOR: RoleRoute("/instructor", "/instructor/dashboard"),
    }
)


def issue_token(user_id, expires_in: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(seconds=expires_in or settings.jwt_expiry_seconds),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Session expired")
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid session token")


class SessionResolver:
    def __init__(self, role_config: Mapping[Role, RoleRoute] = DEFAULT_ROLE_CONFIG):
        self.role_config = role_config

    def resolve(self, db: Session, token: str | None) -> Actor:
        if not token:
            raise Unauthorized()
        claims = decode_token(token)
        user = db.get(User, coerce_uuid(claims.get("sub")))
        if not user or not user.is_active:
            logger.info("Rejected session for unknown or inactive user %s", claims.get("sub"))
            raise Unauthorized()
        return Actor.from_user(user)

    def dashboard_for(self, role: Role) -> str | None:
        route = self.role_config.get(role)
        return route.dashboard if route else None


session_resolver = SessionResolver()
