"""Minting of fresh login + CSRF session pairs."""
import logging
from dataclasses import dataclass
from datetime import timedelta

from sessionguard.services.credentials import SessionTokenCodec
from sessionguard.services.session_store import SessionStore, StoreError

logger = logging.getLogger(__name__)


class SessionIssueError(Exception):
    """A session pair could not be created."""


@dataclass(frozen=True)
class IssuedCredentials:
    owner_id: str
    login_session_id: str
    token: str
    csrf_value: str


class SessionIssuer:
    """Creates a login session and a CSRF session for one owner."""

    def __init__(
        self,
        codec: SessionTokenCodec,
        login_store: SessionStore,
        csrf_store: SessionStore,
        login_ttl: timedelta,
        csrf_ttl: timedelta,
    ):
        self.codec = codec
        self.login_store = login_store
        self.csrf_store = csrf_store
        self.login_ttl = login_ttl
        self.csrf_ttl = csrf_ttl

    def issue(self, owner_id: str) -> IssuedCredentials:
        """Create both sessions and sign a token for the login session.

        Raises SessionIssueError if either create fails. A login session
        created before a failed CSRF create is removed again.
        """
        try:
            login_session = self.login_store.create(owner_id, self.login_ttl)
        except StoreError as e:
            raise SessionIssueError("Error inserting new login session into database") from e

        try:
            csrf_session = self.csrf_store.create(owner_id, self.csrf_ttl)
        except StoreError as e:
            self._roll_back(login_session.id)
            raise SessionIssueError("Error inserting new CSRF session into database") from e

        logger.info(f"Issued session pair for owner {owner_id}")
        return IssuedCredentials(
            owner_id=owner_id,
            login_session_id=login_session.id,
            token=self.codec.issue(login_session.id),
            csrf_value=csrf_session.id,
        )

    def _roll_back(self, login_session_id: str) -> None:
        try:
            self.login_store.delete(login_session_id)
        except StoreError as e:
            logger.warning(f"Could not remove orphaned login session after failed issue: {e}")
        else:
            logger.warning("Removed orphaned login session after failed issue")
