"""Assembly of the session authentication components."""
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.orm import sessionmaker

from sessionguard.config import Settings
from sessionguard.services.auth_validator import AuthValidator
from sessionguard.services.cookies import AuthCookies
from sessionguard.services.credentials import SessionTokenCodec
from sessionguard.services.deferred_delete import DeferredDeleter
from sessionguard.services.owners import SqlOwnerDirectory
from sessionguard.services.session_issuer import SessionIssuer
from sessionguard.services.session_store import Clock, SessionStore, build_sql_stores, utcnow


@dataclass(frozen=True)
class Identity:
    """Principal attached to request.state by the session gate."""

    owner_id: str
    login_session_id: str


@dataclass
class SessionAuth:
    cookies: AuthCookies
    login_store: SessionStore
    csrf_store: SessionStore
    validator: AuthValidator
    issuer: SessionIssuer
    deleter: DeferredDeleter
    grace_delay: float
    exempt_paths: frozenset[str]
    # None skips the owner check before rotation.
    owner_exists: Callable[[str], bool] | None = None


def build_session_auth(
    settings: Settings,
    login_store: SessionStore,
    csrf_store: SessionStore,
    clock: Clock = utcnow,
    deleter: DeferredDeleter | None = None,
    owner_exists: Callable[[str], bool] | None = None,
) -> SessionAuth:
    """Wire codec, stores, validator and issuer from settings."""
    codec = SessionTokenCodec(settings.secret_key, settings.algorithm)
    cookies = AuthCookies(settings)
    return SessionAuth(
        cookies=cookies,
        login_store=login_store,
        csrf_store=csrf_store,
        validator=AuthValidator(codec, login_store, csrf_store, cookies, clock=clock),
        issuer=SessionIssuer(
            codec,
            login_store,
            csrf_store,
            login_ttl=timedelta(seconds=settings.login_session_ttl_seconds),
            csrf_ttl=timedelta(seconds=settings.csrf_session_ttl_seconds),
        ),
        deleter=deleter or DeferredDeleter(),
        grace_delay=settings.deletion_grace_seconds,
        exempt_paths=frozenset(settings.exempt_paths),
        owner_exists=owner_exists,
    )


def build_sql_session_auth(settings: Settings, session_factory: sessionmaker) -> SessionAuth:
    """SessionAuth backed by the SQL login and CSRF session tables."""
    login_store, csrf_store = build_sql_stores(session_factory)
    return build_session_auth(
        settings,
        login_store,
        csrf_store,
        owner_exists=SqlOwnerDirectory(session_factory).exists,
    )
