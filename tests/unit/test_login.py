import json
import time
from pathlib import Path
from urllib.parse import parse_qs

import httpx
import pytest

from vista.client.exceptions import LoginError
from vista.client.login import (
    REFRESH_URL,
    SIGN_IN_URL,
    CredentialStore,
    FirebaseAuthClient,
    Session,
)


def _auth(handler) -> FirebaseAuthClient:
    return FirebaseAuthClient("web-key", transport=httpx.MockTransport(handler))


def _session(expires_at: float) -> Session:
    return Session(
        id_token="id-1",
        refresh_token="refresh-1",
        email="rad@example.org",
        user_id="uid-1",
        expires_at=expires_at,
    )


class TestSignIn:
    def test_exchanges_email_and_password_for_id_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "idToken": "id-token",
                    "refreshToken": "refresh-token",
                    "email": "rad@example.org",
                    "localId": "uid-1",
                    "expiresIn": "3600",
                },
            )

        with _auth(handler) as auth:
            session = auth.sign_in("rad@example.org", "s3cret")

        request = seen[0]
        assert str(request.url).startswith(SIGN_IN_URL)
        assert request.url.params["key"] == "web-key"
        assert json.loads(request.content) == {
            "email": "rad@example.org",
            "password": "s3cret",
            "returnSecureToken": True,
        }
        assert session.id_token == "id-token"
        assert session.user_id == "uid-1"
        assert not session.is_expired()

    @pytest.mark.parametrize(
        ("code", "message"),
        [
            ("INVALID_LOGIN_CREDENTIALS", "Invalid email or password"),
            ("USER_DISABLED", "This account has been disabled"),
            (
                "TOO_MANY_ATTEMPTS_TRY_LATER : Access to this account has been disabled",
                "Too many sign-in attempts, try again later",
            ),
            ("SOMETHING_NEW", "SOMETHING_NEW"),
        ],
    )
    def test_firebase_errors_are_mapped(self, code: str, message: str) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": {"code": 400, "message": code}})

        with _auth(handler) as auth, pytest.raises(LoginError, match=message):
            auth.sign_in("rad@example.org", "wrong")

    def test_network_failure_raises_login_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline")

        with _auth(handler) as auth, pytest.raises(LoginError, match="Could not reach"):
            auth.sign_in("rad@example.org", "s3cret")

    def test_api_key_is_required(self) -> None:
        with pytest.raises(LoginError, match="API key"):
            FirebaseAuthClient("")


class TestRefresh:
    def test_refresh_token_grant(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "id_token": "id-2",
                    "refresh_token": "refresh-2",
                    "user_id": "uid-1",
                    "expires_in": "3600",
                },
            )

        with _auth(handler) as auth:
            session = auth.refresh(_session(expires_at=0))

        assert str(seen[0].url).startswith(REFRESH_URL)
        assert parse_qs(seen[0].content.decode()) == {
            "grant_type": ["refresh_token"],
            "refresh_token": ["refresh-1"],
        }
        assert session.id_token == "id-2"
        assert session.refresh_token == "refresh-2"
        assert session.email == "rad@example.org"


class TestSession:
    def test_expires_a_minute_early(self) -> None:
        session = _session(expires_at=1000.0)

        assert not session.is_expired(now=900.0)
        assert session.is_expired(now=950.0)


class TestCredentialStore:
    def test_saved_session_is_private_and_loadable(self, tmp_path: Path) -> None:
        store = CredentialStore(tmp_path / "vista" / "credentials.json")
        session = _session(expires_at=time.time() + 3600)

        store.save(session)

        assert store.load() == session
        assert (tmp_path / "vista" / "credentials.json").stat().st_mode & 0o777 == 0o600

    def test_missing_or_corrupt_file_loads_nothing(self, tmp_path: Path) -> None:
        path = tmp_path / "credentials.json"
        assert CredentialStore(path).load() is None

        path.write_text("{not json")

        assert CredentialStore(path).load() is None

    def test_clear(self, tmp_path: Path) -> None:
        store = CredentialStore(tmp_path / "credentials.json")
        store.save(_session(expires_at=0))

        assert store.clear()
        assert not store.clear()
