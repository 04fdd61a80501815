"""SQLAlchemy models package."""
from sessionguard.models.auth import CSRFSession, LoginSession
from sessionguard.models.user import User

__all__ = [
    "User",
    "LoginSession",
    "CSRFSession",
]
