"""Signing and verification of the auth_jwt bearer token.

The token carries a single claim, the login session id. Expiry is enforced
against the stored session, not the token, so the token has no exp claim.
"""
from jose import JWTError, jwt

SESSION_CLAIM = "sid"
TOKEN_TYPE = "session"


class VerificationError(Exception):
    """Token could not be verified. Carries no detail about why."""


class SessionTokenCodec:
    """Stateless HMAC token codec over a server-held secret."""

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def issue(self, login_session_id: str) -> str:
        """Sign a token naming the given login session."""
        return jwt.encode(
            {SESSION_CLAIM: login_session_id, "type": TOKEN_TYPE},
            self.secret_key,
            algorithm=self.algorithm,
        )

    def verify(self, token: str) -> str:
        """Return the login session id named by a valid token."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as exc:
            raise VerificationError("Token could not be verified") from exc

        session_id = payload.get(SESSION_CLAIM)
        if payload.get("type") != TOKEN_TYPE or not isinstance(session_id, str) or not session_id:
            raise VerificationError("Token could not be verified")
        return session_id
