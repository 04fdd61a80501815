"""Lookup of the accounts that own sessions."""
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from sessionguard.models.user import User
from sessionguard.services.session_store import StoreError


class SqlOwnerDirectory:
    """Answers whether a session owner still exists in the users table."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def exists(self, owner_id: str) -> bool:
        db = self.session_factory()
        try:
            return db.query(User.id).filter(User.id == owner_id).first() is not None
        except SQLAlchemyError as exc:
            raise StoreError("Error querying database for the session owner") from exc
        finally:
            db.close()
