from fastapi import Depends, Request
from sqlalchemy.orm import Session

from doctrack.config import settings
from doctrack.db import get_db
from doctrack.services.session import Actor, session_resolver


def _extract_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value.strip()
    return request.cookies.get(settings.session_cookie_name)


def require_user_auth(request: Request, db: Session = Depends(get_db)) -> Actor:
    actor = session_resolver.resolve(db, _extract_token(request))
    request.state.actor = actor
    return actor
