"""User model."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String

from sessionguard.database import Base


class User(Base):
    """Pre-provisioned account that can log in."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(50), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(String(32), default=lambda: datetime.now(timezone.utc).isoformat())
