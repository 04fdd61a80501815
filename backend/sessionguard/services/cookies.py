"""Setting and clearing the auth_jwt / auth_csrf cookie pair."""
from dataclasses import dataclass

from starlette.requests import Request
from starlette.responses import Response

from sessionguard.config import Settings


@dataclass(frozen=True)
class PresentedCredentials:
    """The three credential parts as they arrived on a request."""

    token: str | None = None
    csrf_cookie: str | None = None
    csrf_header: str | None = None


class AuthCookies:
    """Cookie attributes for the session pair, taken from settings."""

    def __init__(self, settings: Settings):
        self.token_name = settings.token_cookie_name
        self.csrf_name = settings.csrf_cookie_name
        self.header_name = settings.csrf_header_name
        self.max_age = settings.cookie_max_age_seconds
        self.path = settings.cookie_path
        self.samesite = settings.cookie_samesite
        self.secure = settings.cookie_secure

    def read(self, request: Request) -> PresentedCredentials:
        """Extract credentials; empty values count as absent."""
        return PresentedCredentials(
            token=request.cookies.get(self.token_name) or None,
            csrf_cookie=request.cookies.get(self.csrf_name) or None,
            csrf_header=request.headers.get(self.header_name) or None,
        )

    def set(self, response: Response, token: str, csrf_value: str) -> None:
        """Issue the token cookie (HttpOnly) and the script-readable CSRF cookie."""
        response.set_cookie(
            key=self.token_name,
            value=token,
            max_age=self.max_age,
            path=self.path,
            secure=self.secure,
            httponly=True,
            samesite=self.samesite,
        )
        response.set_cookie(
            key=self.csrf_name,
            value=csrf_value,
            max_age=self.max_age,
            path=self.path,
            secure=self.secure,
            httponly=False,
            samesite=self.samesite,
        )

    def clear(self, response: Response) -> None:
        """Expire both cookies on the client."""
        response.delete_cookie(
            key=self.token_name,
            path=self.path,
            secure=self.secure,
            httponly=True,
            samesite=self.samesite,
        )
        response.delete_cookie(
            key=self.csrf_name,
            path=self.path,
            secure=self.secure,
            httponly=False,
            samesite=self.samesite,
        )
