"""Verification of the token / CSRF credential pair.

A request is authenticated only when the auth_jwt token names a live login
session AND the auth_csrf header names a live CSRF session owned by the same
principal. The CSRF session is looked up by the header value alone; the CSRF
cookie is only required to be present. Comparing cookie and header for
equality is racy while a client is applying freshly rotated cookies, so the
store lookup is the proof instead.

Checks run in a fixed order and the first failing check decides the outcome.
Every outcome is returned, never raised.
"""
import logging
from dataclasses import dataclass
from enum import Enum

from fastapi import status
from fastapi.responses import JSONResponse
from starlette.responses import Response

from sessionguard.schemas.auth import AuthRejectedResponse, AuthRejection
from sessionguard.services.cookies import AuthCookies, PresentedCredentials
from sessionguard.services.credentials import SessionTokenCodec, VerificationError
from sessionguard.services.session_store import Clock, SessionRecord, SessionStore, StoreError, utcnow

logger = logging.getLogger(__name__)


class AuthErrorType(str, Enum):
    """Tags carried in the failure envelope."""

    NOT_LOGGED_IN = "notLoggedIn"
    INCOMPLETE_AUTH = "incompleteAuth"
    VERIFICATION = "verification"
    LOGIN_SESSION_NOT_FOUND = "loginSessionNotFound"
    CSRF_SESSION_NOT_FOUND = "csrfSessionNotFound"
    SESSION_EXPIRED = "sessionExpired"
    SESSION_CANCELED = "sessionCanceled"
    DATABASE = "database"

    @property
    def status_code(self) -> int:
        if self is AuthErrorType.DATABASE:
            return status.HTTP_500_INTERNAL_SERVER_ERROR
        return status.HTTP_401_UNAUTHORIZED


def rejection_response(error_type: AuthErrorType, message: str) -> JSONResponse:
    """JSON failure envelope with the status code of the tag."""
    body = AuthRejectedResponse(
        auth_rejected=AuthRejection(error_type=error_type.value, error_message=message),
    )
    return JSONResponse(status_code=error_type.status_code, content=body.model_dump(by_alias=True))


@dataclass(frozen=True)
class AuthSuccess:
    owner_id: str
    login_session_id: str
    csrf_session_id: str


@dataclass
class AuthFailure:
    """Terminal failure plus whatever session ids were resolved before it."""

    error_type: AuthErrorType
    message: str
    login_session_id: str | None = None
    csrf_session_id: str | None = None
    response: Response | None = None

    @property
    def status_code(self) -> int:
        return self.error_type.status_code


class AuthValidator:
    """Runs the verification pipeline against the codec and both stores."""

    def __init__(
        self,
        codec: SessionTokenCodec,
        login_store: SessionStore,
        csrf_store: SessionStore,
        cookies: AuthCookies,
        clock: Clock = utcnow,
    ):
        self.codec = codec
        self.login_store = login_store
        self.csrf_store = csrf_store
        self.cookies = cookies
        self.clock = clock

    def authenticate(
        self,
        credentials: PresentedCredentials,
        response: Response | None = None,
        *,
        send_response_on_fail: bool = False,
        clear_cookies_on_fail: bool = False,
    ) -> AuthSuccess | AuthFailure:
        """Validate credentials, cleaning up after any failure.

        With send_response_on_fail the failure carries a ready JSON envelope
        in failure.response. Cookies are cleared on that envelope, or on the
        given response when no envelope is built.
        """
        try:
            outcome = self._evaluate(credentials)
        except Exception:
            logger.exception("Unexpected error while validating credentials")
            outcome = AuthFailure(AuthErrorType.DATABASE, "Unexpected error while validating credentials")
        if isinstance(outcome, AuthFailure):
            self._on_auth_failure(
                outcome,
                response,
                send_response_on_fail=send_response_on_fail,
                clear_cookies_on_fail=clear_cookies_on_fail,
            )
        return outcome

    def _evaluate(self, credentials: PresentedCredentials) -> AuthSuccess | AuthFailure:
        parts = (
            (f"{self.cookies.token_name} cookie", credentials.token),
            (f"{self.cookies.csrf_name} cookie", credentials.csrf_cookie),
            (f"{self.cookies.header_name} header", credentials.csrf_header),
        )
        missing = [name for name, value in parts if not value]

        if len(missing) == len(parts):
            return AuthFailure(AuthErrorType.NOT_LOGGED_IN, "You must be logged in to view this data")

        if missing:
            # A verifiable token in a partial submission still gets its session revoked.
            login_session_id = self._verified_session_id(credentials.token) if credentials.token else None
            return AuthFailure(
                AuthErrorType.INCOMPLETE_AUTH,
                f"Incomplete authentication. Missing {len(missing)} items: {', '.join(missing)}",
                login_session_id=login_session_id,
            )

        login_session_id = self._verified_session_id(credentials.token)
        if login_session_id is None:
            return AuthFailure(
                AuthErrorType.VERIFICATION,
                f"{self.cookies.token_name} cookie could not be verified",
            )

        # The header value is the CSRF store key, so from here on it is the
        # CSRF session to revoke if validation fails.
        csrf_session_id = credentials.csrf_header

        try:
            login_session = self._lookup(self.login_store, login_session_id)
        except StoreError as e:
            logger.error(f"Login session lookup failed: {e}")
            return AuthFailure(
                AuthErrorType.DATABASE,
                "Error querying database for login session",
                login_session_id=login_session_id,
                csrf_session_id=csrf_session_id,
            )
        if login_session is None:
            return AuthFailure(
                AuthErrorType.LOGIN_SESSION_NOT_FOUND,
                "Login session no longer exists",
                login_session_id=login_session_id,
                csrf_session_id=csrf_session_id,
            )

        now = self.clock()
        if login_session.is_expired(now):
            return AuthFailure(
                AuthErrorType.SESSION_EXPIRED,
                "Session expired",
                login_session_id=login_session_id,
                csrf_session_id=csrf_session_id,
            )
        if login_session.is_canceled:
            return AuthFailure(
                AuthErrorType.SESSION_CANCELED,
                "Session was manually canceled",
                login_session_id=login_session_id,
                csrf_session_id=csrf_session_id,
            )

        try:
            csrf_session = self._lookup(self.csrf_store, csrf_session_id)
        except StoreError as e:
            logger.error(f"CSRF session lookup failed: {e}")
            return AuthFailure(
                AuthErrorType.DATABASE,
                "Error querying database for CSRF session",
                login_session_id=login_session_id,
                csrf_session_id=csrf_session_id,
            )
        if csrf_session is None:
            return AuthFailure(
                AuthErrorType.CSRF_SESSION_NOT_FOUND,
                "CSRF session no longer exists",
                login_session_id=login_session_id,
                csrf_session_id=csrf_session_id,
            )
        if csrf_session.is_expired(now):
            return AuthFailure(
                AuthErrorType.SESSION_EXPIRED,
                "Session expired",
                login_session_id=login_session_id,
                csrf_session_id=csrf_session_id,
            )
        if csrf_session.owner_id != login_session.owner_id:
            return AuthFailure(
                AuthErrorType.VERIFICATION,
                "CSRF session belongs to a different principal",
                login_session_id=login_session_id,
                csrf_session_id=csrf_session_id,
            )

        return AuthSuccess(
            owner_id=login_session.owner_id,
            login_session_id=login_session_id,
            csrf_session_id=csrf_session_id,
        )

    @staticmethod
    def _lookup(store: SessionStore, session_id: str) -> SessionRecord | None:
        """store.find, with any unexpected failure reported as a StoreError."""
        try:
            return store.find(session_id)
        except StoreError:
            raise
        except Exception as exc:
            logger.exception(f"Unexpected error looking up {store.kind} session")
            raise StoreError(f"Unexpected error from {store.kind}") from exc

    def _verified_session_id(self, token: str) -> str | None:
        try:
            return self.codec.verify(token)
        except VerificationError:
            return None

    def _on_auth_failure(
        self,
        failure: AuthFailure,
        response: Response | None,
        *,
        send_response_on_fail: bool,
        clear_cookies_on_fail: bool,
    ) -> None:
        logger.warning(f"Auth rejected: {failure.error_type.value}")

        if send_response_on_fail:
            failure.response = rejection_response(failure.error_type, failure.message)

        # Nothing was presented, so there is nothing to clear or revoke.
        if failure.error_type is AuthErrorType.NOT_LOGGED_IN:
            return

        target = failure.response or response
        if clear_cookies_on_fail and target is not None:
            self.cookies.clear(target)

        if failure.login_session_id:
            self._discard(self.login_store, failure.login_session_id)
        if failure.csrf_session_id:
            self._discard(self.csrf_store, failure.csrf_session_id)

    @staticmethod
    def _discard(store: SessionStore, session_id: str) -> None:
        """Delete immediately; errors here never change the outcome."""
        try:
            store.delete(session_id)
        except StoreError as e:
            logger.warning(f"Could not delete {store.kind} session during auth cleanup: {e}")
        except Exception:
            logger.exception(f"Unexpected error deleting {store.kind} session during auth cleanup")
