"""Shared API dependencies."""
from fastapi import HTTPException, Request, status

from sessionguard.database import get_db
from sessionguard.services.session_auth import Identity, SessionAuth

__all__ = ["get_current_identity", "get_db", "get_session_auth"]


def get_session_auth(request: Request) -> SessionAuth:
    """Session components configured on the application."""
    return request.app.state.session_auth


def get_current_identity(request: Request) -> Identity:
    """Identity attached by the session gate, or 401 if there is none."""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return identity
