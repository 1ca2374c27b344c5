"""Email/password sign-in against the Firebase Authentication REST API.

The ID token it returns is the Bearer token the VISTA API verifies. A
session is kept on disk so later commands can reuse it, and it is refreshed
with its refresh token once the ID token is about to expire.
"""

import json
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import httpx

from vista.client.exceptions import LoginError
from vista.logging.logger import Log

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
REFRESH_URL = "https://securetoken.googleapis.com/v1/token"
DEFAULT_CREDENTIALS_FILE = Path.home() / ".config" / "vista" / "credentials.json"
EXPIRY_MARGIN_SECONDS = 60

FIREBASE_ERROR_MESSAGES = {
    "EMAIL_NOT_FOUND": "Invalid email or password",
    "INVALID_PASSWORD": "Invalid email or password",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password",
    "INVALID_EMAIL": "Invalid email address",
    "USER_DISABLED": "This account has been disabled",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many sign-in attempts, try again later",
    "TOKEN_EXPIRED": "Session expired, sign in again",
    "INVALID_REFRESH_TOKEN": "Session expired, sign in again",
}


@dataclass
class Session:
    id_token: str
    refresh_token: str
    email: str
    user_id: str
    expires_at: float

    def is_expired(self, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        return now >= self.expires_at - EXPIRY_MARGIN_SECONDS


class FirebaseAuthClient:
    """httpx client for the sign-in and token refresh endpoints."""

    def __init__(
        self,
        api_key: str,
        *,
        timeout_seconds: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise LoginError(
                "A Firebase web API key is required (--firebase-api-key or VISTA_FIREBASE_API_KEY)"
            )
        self._api_key = api_key
        self._client = httpx.Client(timeout=timeout_seconds, transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "FirebaseAuthClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def sign_in(self, email: str, password: str) -> Session:
        payload = self._post(
            SIGN_IN_URL,
            json={"email": email, "password": password, "returnSecureToken": True},
        )
        Log.info(f"Signed in as {payload.get('email', email)}")
        return Session(
            id_token=payload["idToken"],
            refresh_token=payload["refreshToken"],
            email=payload.get("email", email),
            user_id=payload["localId"],
            expires_at=time.time() + int(payload.get("expiresIn", 3600)),
        )

    def refresh(self, session: Session) -> Session:
        payload = self._post(
            REFRESH_URL,
            data={"grant_type": "refresh_token", "refresh_token": session.refresh_token},
        )
        Log.info(f"Refreshed session of {session.email}")
        return Session(
            id_token=payload["id_token"],
            refresh_token=payload["refresh_token"],
            email=session.email,
            user_id=payload.get("user_id", session.user_id),
            expires_at=time.time() + int(payload.get("expires_in", 3600)),
        )

    def _post(self, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._client.post(url, params={"key": self._api_key}, **kwargs)
        except httpx.HTTPError as exc:
            raise LoginError(f"Could not reach Firebase Authentication: {exc}") from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise LoginError(
                f"Unexpected response from Firebase Authentication (HTTP {response.status_code})"
            ) from exc
        if response.is_error:
            raise LoginError(_firebase_message(payload))
        return payload


def _firebase_message(payload: Any) -> str:
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        code = str(error.get("message", "")).split(" : ")[0].strip()
    else:
        code = str(error or "")
    return FIREBASE_ERROR_MESSAGES.get(code, code or "Sign-in failed")


class CredentialStore:
    """Keeps the signed-in session in a user-only JSON file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> Session | None:
        if not self._path.exists():
            return None
        try:
            return Session(**json.loads(self._path.read_text(encoding="utf-8")))
        except (ValueError, TypeError) as exc:
            Log.warning(f"Ignoring unreadable credentials file {self._path}: {exc}")
            return None

    def save(self, session: Session) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(asdict(session)), encoding="utf-8")
        self._path.chmod(0o600)

    def clear(self) -> bool:
        if not self._path.exists():
            return False
        self._path.unlink()
        return True
