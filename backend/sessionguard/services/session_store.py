"""Keyed stores for login and CSRF sessions.

One generic store shape is instantiated twice, once per session kind. Stores
only persist records; expiry and cancellation are data here and are enforced
by the auth validator.
"""
import secrets
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from sessionguard.models.auth import CSRFSession, LoginSession

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_session_id() -> str:
    """Unguessable id; the CSRF id doubles as the cookie and header value."""
    return secrets.token_urlsafe(32)


class StoreError(Exception):
    """Transient failure of the underlying storage."""


@dataclass(frozen=True)
class SessionRecord:
    """Immutable snapshot of a stored session."""

    id: str
    owner_id: str
    expires_at: datetime
    is_canceled: bool = False
    created_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class SessionStore:
    """Create, find and delete session records by id."""

    kind = "session"

    def __init__(self, clock: Clock = utcnow):
        self.clock = clock

    def create(self, owner_id: str, ttl: timedelta) -> SessionRecord:
        raise NotImplementedError

    def find(self, session_id: str) -> SessionRecord | None:
        """Return the record, or None if no such id exists."""
        raise NotImplementedError

    def delete(self, session_id: str) -> bool:
        """Delete the record. Returns False if no such id exists."""
        raise NotImplementedError

    def _new_record(self, owner_id: str, ttl: timedelta) -> SessionRecord:
        now = self.clock()
        return SessionRecord(
            id=new_session_id(),
            owner_id=owner_id,
            expires_at=now + ttl,
            created_at=now,
        )


class MemorySessionStore(SessionStore):
    """Dict-backed store, safe for concurrent use from request threads."""

    def __init__(self, kind: str = "session", clock: Clock = utcnow):
        super().__init__(clock)
        self.kind = kind
        self._records: dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def create(self, owner_id: str, ttl: timedelta) -> SessionRecord:
        record = self._new_record(owner_id, ttl)
        with self._lock:
            self._records[record.id] = record
        return record

    def find(self, session_id: str) -> SessionRecord | None:
        with self._lock:
            return self._records.get(session_id)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._records.pop(session_id, None) is not None

    def cancel(self, session_id: str) -> bool:
        with self._lock:
            record = self._records.get(session_id)
            if record is None:
                return False
            self._records[session_id] = replace(record, is_canceled=True)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class SqlSessionStore(SessionStore):
    """SQLAlchemy-backed store over one session model.

    Every call opens its own ORM session so the store can be used from
    request handlers and deferred deletions alike.
    """

    def __init__(self, model, session_factory: sessionmaker, clock: Clock = utcnow):
        super().__init__(clock)
        self.model = model
        self.kind = model.__tablename__
        self.session_factory = session_factory

    def create(self, owner_id: str, ttl: timedelta) -> SessionRecord:
        record = self._new_record(owner_id, ttl)
        row = self.model(
            id=record.id,
            owner_id=record.owner_id,
            created_at=record.created_at.isoformat(),
            expires_at=record.expires_at.isoformat(),
        )
        with self._session() as db:
            db.add(row)
        return record

    def find(self, session_id: str) -> SessionRecord | None:
        with self._session() as db:
            row = db.get(self.model, session_id)
            return self._to_record(row) if row is not None else None

    def delete(self, session_id: str) -> bool:
        with self._session() as db:
            deleted = db.query(self.model).filter(self.model.id == session_id).delete(
                synchronize_session=False
            )
        return deleted > 0

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Commit on success; roll back and raise StoreError on database errors."""
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreError(f"Database error on {self.kind}") from exc
        finally:
            db.close()

    def _to_record(self, row) -> SessionRecord:
        try:
            return SessionRecord(
                id=row.id,
                owner_id=row.owner_id,
                expires_at=_parse_timestamp(row.expires_at),
                is_canceled=bool(getattr(row, "is_canceled", False)),
                created_at=_parse_timestamp(row.created_at) if row.created_at else None,
            )
        except (TypeError, ValueError) as exc:
            raise StoreError(f"Unreadable record in {self.kind}") from exc


class SqlLoginSessionStore(SqlSessionStore):
    """Login session store; only login sessions can be canceled."""

    def __init__(self, session_factory: sessionmaker, clock: Clock = utcnow):
        super().__init__(LoginSession, session_factory, clock)

    def cancel(self, session_id: str) -> bool:
        """Mark the record canceled. Returns False if no such id exists."""
        with self._session() as db:
            updated = db.query(self.model).filter(self.model.id == session_id).update(
                {"is_canceled": True},
                synchronize_session=False,
            )
        return updated > 0


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_sql_stores(
    session_factory: sessionmaker, clock: Clock = utcnow
) -> tuple[SqlLoginSessionStore, SqlSessionStore]:
    """Login and CSRF stores sharing one session factory."""
    return (
        SqlLoginSessionStore(session_factory, clock),
        SqlSessionStore(CSRFSession, session_factory, clock),
    )
