import bcrypt
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import auth_headers, make_settings, set_cookie_values
from sessionguard.api import deps
from sessionguard.api.auth import router as auth_router
from sessionguard.api.middleware import SessionGateMiddleware
from sessionguard.models.user import User
from sessionguard.services.session_auth import build_sql_session_auth


def _build_test_client(session_factory):
    app = FastAPI()
    app.state.session_auth = build_sql_session_auth(make_settings(), session_factory)
    app.add_middleware(SessionGateMiddleware)
    app.include_router(auth_router, prefix="/api")

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[deps.get_db] = override_get_db
    return TestClient(app)


def _provision_user(session_factory, username="alpha", password="TestPass123!") -> str:
    db = session_factory()
    try:
        user = User(
            username=username,
            password_hash=bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8"),
        )
        db.add(user)
        db.commit()
        return user.id
    finally:
        db.close()


def _login(client, username="alpha", password="TestPass123!"):
    return client.post("/api/auth/login", json={"username": username, "password": password})


def test_login_sets_session_cookie_pair(session_factory):
    client = _build_test_client(session_factory)
    user_id = _provision_user(session_factory)

    response = _login(client)

    assert response.status_code == 200
    assert response.json() == {"ownerId": user_id, "loggedIn": True}
    cookies = set_cookie_values(response)
    assert set(cookies) == {"auth_jwt", "auth_csrf"}
    headers = {h.split("=", 1)[0]: h for h in response.headers.get_list("set-cookie")}
    assert "HttpOnly" in headers["auth_jwt"]
    assert "HttpOnly" not in headers["auth_csrf"]


def test_login_rejects_bad_password(session_factory):
    client = _build_test_client(session_factory)
    _provision_user(session_factory)

    response = _login(client, password="wrong-password")

    assert response.status_code == 401
    assert set_cookie_values(response) == {}


def test_login_rejects_unknown_user(session_factory):
    client = _build_test_client(session_factory)

    response = _login(client, username="nobody")

    assert response.status_code == 401


def test_logged_in_user_reaches_protected_route(session_factory):
    client = _build_test_client(session_factory)
    user_id = _provision_user(session_factory)
    cookies = set_cookie_values(_login(client))

    response = client.get(
        "/api/auth/me",
        headers=auth_headers(cookies["auth_jwt"], cookies["auth_csrf"], cookies["auth_csrf"]),
    )

    assert response.status_code == 200
    assert response.json()["ownerId"] == user_id



def test_protected_route_fails_once_owner_is_removed(session_factory):
    client = _build_test_client(session_factory)
    user_id = _provision_user(session_factory)
    cookies = set_cookie_values(_login(client))
    with session_factory() as db:
        db.query(User).filter(User.id == user_id).delete()
        db.commit()

    response = client.get(
        "/api/auth/me",
        headers=auth_headers(cookies["auth_jwt"], cookies["auth_csrf"], cookies["auth_csrf"]),
    )

    assert response.status_code == 500
    assert response.json()["authRejected"]["errorType"] == "database"
    assert set_cookie_values(response) == {"auth_jwt": "", "auth_csrf": ""}


def test_logged_in_check_does_not_rotate(session_factory):
    client = _build_test_client(session_factory)
    user_id = _provision_user(session_factory)
    cookies = set_cookie_values(_login(client))
    headers = auth_headers(cookies["auth_jwt"], cookies["auth_csrf"], cookies["auth_csrf"])

    first = client.get("/api/auth/loggedInCheck", headers=headers)
    second = client.get("/api/auth/loggedInCheck", headers=headers)

    assert first.status_code == 200
    assert first.json() == {"loggedIn": True, "ownerId": user_id, "errorType": None}
    assert set_cookie_values(first) == {}
    assert second.json()["loggedIn"] is True


def test_logged_in_check_without_credentials(session_factory):
    client = _build_test_client(session_factory)

    response = client.get("/api/auth/loggedInCheck")

    assert response.status_code == 200
    assert response.json()["loggedIn"] is False
    assert response.json()["errorType"] == "notLoggedIn"
    assert set_cookie_values(response) == {}


def test_logged_in_check_clears_cookies_for_broken_credentials(session_factory):
    client = _build_test_client(session_factory)

    response = client.get("/api/auth/loggedInCheck", headers=auth_headers(token="garbage"))

    assert response.json()["errorType"] == "incompleteAuth"
    assert set_cookie_values(response) == {"auth_jwt": "", "auth_csrf": ""}


def test_logout_cancels_session(session_factory):
    client = _build_test_client(session_factory)
    _provision_user(session_factory)
    cookies = set_cookie_values(_login(client))
    headers = auth_headers(cookies["auth_jwt"], cookies["auth_csrf"], cookies["auth_csrf"])

    logout_response = client.post("/api/auth/logout", headers=headers)

    assert logout_response.status_code == 200
    assert logout_response.json() == {"message": "Successfully logged out"}
    assert set_cookie_values(logout_response) == {"auth_jwt": "", "auth_csrf": ""}

    replay = client.get("/api/auth/me", headers=headers)
    assert replay.status_code == 401
    assert replay.json()["authRejected"]["errorType"] == "sessionCanceled"


def test_logout_without_session(session_factory):
    client = _build_test_client(session_factory)

    response = client.post("/api/auth/logout")

    assert response.status_code == 200
    assert response.json() == {"message": "No active session"}
