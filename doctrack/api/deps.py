from doctrack.db import get_db
from doctrack.services.auth_dependencies import require_user_auth

__all__ = [
    "get_db",
    "require_user_auth",
]
