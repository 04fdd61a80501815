"""Session gate: authenticates and rotates credentials on every request."""
import logging

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from sessionguard.services.auth_validator import AuthErrorType, AuthFailure, rejection_response
from sessionguard.services.session_auth import Identity, SessionAuth
from sessionguard.services.session_issuer import SessionIssueError
from sessionguard.services.session_store import StoreError

logger = logging.getLogger(__name__)


class SessionGateMiddleware(BaseHTTPMiddleware):
    """Rejects unauthenticated requests outside the exempt paths.

    On success the presented session pair is scheduled for deletion after the
    grace delay, so sibling requests still carrying it keep working, and a
    fresh pair is issued on the response.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        auth: SessionAuth = request.app.state.session_auth

        if request.url.path in auth.exempt_paths:
            return await call_next(request)

        outcome = await run_in_threadpool(
            auth.validator.authenticate,
            auth.cookies.read(request),
            send_response_on_fail=True,
            clear_cookies_on_fail=True,
        )
        if isinstance(outcome, AuthFailure):
            return outcome.response

        auth.deleter.schedule_delete(auth.login_store, outcome.login_session_id, auth.grace_delay)
        auth.deleter.schedule_delete(auth.csrf_store, outcome.csrf_session_id, auth.grace_delay)

        if auth.owner_exists is not None:
            try:
                owner_found = await run_in_threadpool(auth.owner_exists, outcome.owner_id)
            except StoreError as e:
                return self._rotation_failed(auth, request, str(e))
            if not owner_found:
                return self._rotation_failed(
                    auth, request, "Could not find the owner of the session being rotated"
                )

        try:
            issued = await run_in_threadpool(auth.issuer.issue, outcome.owner_id)
        except SessionIssueError as e:
            return self._rotation_failed(auth, request, str(e))

        request.state.identity = Identity(
            owner_id=issued.owner_id,
            login_session_id=issued.login_session_id,
        )
        response = await call_next(request)
        auth.cookies.set(response, issued.token, issued.csrf_value)
        return response

    @staticmethod
    def _rotation_failed(auth: SessionAuth, request: Request, message: str) -> Response:
        logger.error(f"Session rotation failed for {request.url.path}: {message}")
        response = rejection_response(AuthErrorType.DATABASE, message)
        auth.cookies.clear(response)
        return response
