"""Authentication API endpoints.

Login, logout and the logged-in check sit on the session gate's exempt list
and run the validator themselves where they need it. /me is gated.
"""
import logging

import bcrypt
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from sessionguard.api.deps import get_current_identity, get_db, get_session_auth
from sessionguard.models.user import User
from sessionguard.schemas.auth import (
    IdentityResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    SessionStatusResponse,
)
from sessionguard.services.auth_validator import AuthErrorType, AuthFailure, rejection_response
from sessionguard.services.session_auth import Identity, SessionAuth
from sessionguard.services.session_issuer import SessionIssueError
from sessionguard.services.session_store import StoreError

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return bcrypt.checkpw(
        plain_password.encode("utf-8"),
        hashed_password.encode("utf-8"),
    )


def authenticate_user(db: Session, username: str, password: str) -> User | None:
    """Return the user if the credentials match a provisioned account."""
    user = db.query(User).filter(User.username == username).first()
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


@router.post("/login", response_model=LoginResponse)
def login(
    login_data: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    auth: SessionAuth = Depends(get_session_auth),
):
    """Log in and receive the auth_jwt / auth_csrf cookie pair."""
    user = authenticate_user(db, login_data.username, login_data.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
        )

    try:
        issued = auth.issuer.issue(user.id)
    except SessionIssueError as e:
        logger.error(f"Login session could not be issued: {e}")
        return rejection_response(AuthErrorType.DATABASE, str(e))

    auth.cookies.set(response, issued.token, issued.csrf_value)
    logger.info(f"User {user.id} logged in")
    return LoginResponse(owner_id=user.id)


@router.get("/loggedInCheck", response_model=SessionStatusResponse)
def logged_in_check(
    request: Request,
    response: Response,
    auth: SessionAuth = Depends(get_session_auth),
):
    """Report whether the presented credentials are valid, without rotating them."""
    outcome = auth.validator.authenticate(
        auth.cookies.read(request),
        response,
        clear_cookies_on_fail=True,
    )
    if isinstance(outcome, AuthFailure):
        return SessionStatusResponse(logged_in=False, error_type=outcome.error_type.value)
    return SessionStatusResponse(logged_in=True, owner_id=outcome.owner_id)


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    response: Response,
    auth: SessionAuth = Depends(get_session_auth),
):
    """Cancel the current login session and clear the cookie pair."""
    outcome = auth.validator.authenticate(auth.cookies.read(request), response)
    auth.cookies.clear(response)
    if isinstance(outcome, AuthFailure):
        return MessageResponse(message="No active session")

    try:
        auth.login_store.cancel(outcome.login_session_id)
        auth.csrf_store.delete(outcome.csrf_session_id)
    except StoreError as e:
        logger.error(f"Logout could not revoke session: {e}")
        failure = rejection_response(AuthErrorType.DATABASE, "Error revoking session")
        auth.cookies.clear(failure)
        return failure

    logger.info(f"Owner {outcome.owner_id} logged out")
    return MessageResponse(message="Successfully logged out")


@router.get("/me", response_model=IdentityResponse)
def me(identity: Identity = Depends(get_current_identity)):
    """Identity of the authenticated caller."""
    return IdentityResponse(owner_id=identity.owner_id, login_session_id=identity.login_session_id)
