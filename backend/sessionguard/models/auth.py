"""Authentication/session models."""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Index, String

from sessionguard.database import Base


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class LoginSession(Base):
    """Server-side record named by the signed auth_jwt token."""

    __tablename__ = "login_sessions"
    __table_args__ = (
        Index("ix_login_sessions_expires_at", "expires_at"),
    )

    id = Column(String(64), primary_key=True)
    owner_id = Column(String(64), nullable=False, index=True)
    created_at = Column(String(32), default=_utcnow_iso)
    expires_at = Column(String(32), nullable=False)
    is_canceled = Column(Boolean, nullable=False, default=False)


class CSRFSession(Base):
    """Side credential keyed by the auth_csrf cookie value.

    Paired with a LoginSession only by owner_id; there is no
    foreign key between the two tables.
    """

    __tablename__ = "csrf_sessions"
    __table_args__ = (
        Index("ix_csrf_sessions_expires_at", "expires_at"),
    )

    id = Column(String(64), primary_key=True)
    owner_id = Column(String(64), nullable=False, index=True)
    created_at = Column(String(32), default=_utcnow_iso)
    expires_at = Column(String(32), nullable=False)
