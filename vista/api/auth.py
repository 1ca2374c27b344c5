"""Bearer-token authentication for the HTTP API."""

import hmac
import re
from abc import ABC, abstractmethod

import firebase_admin
from fastapi import Request
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions

from vista.api.exceptions import AuthenticationError
from vista.config.settings import Settings
from vista.logging.logger import Log

_BEARER_RE = re.compile(r"^Bearer (.+)$")

NO_TOKEN_MESSAGE = "No auth token provided"
INVALID_TOKEN_MESSAGE = "Invalid auth token"


class BaseTokenVerifier(ABC):
    """Contract for all identity-token verifiers."""

    @abstractmethod
    def verify(self, token: str) -> str:
        """Return the user ID the token was issued to.

        Raises:
            AuthenticationError: if the token is not valid.
        """


class FirebaseTokenVerifier(BaseTokenVerifier):
    """Verifies Firebase ID tokens with firebase-admin."""

    APP_NAME = "vista"

    def __init__(self, project_id: str = "") -> None:
        self._project_id = project_id
        self._app: firebase_admin.App | None = None

    def _get_app(self) -> firebase_admin.App:
        if self._app is None:
            try:
                self._app = firebase_admin.get_app(self.APP_NAME)
            except ValueError:
                options = {"projectId": self._project_id} if self._project_id else None
                self._app = firebase_admin.initialize_app(options=options, name=self.APP_NAME)
        return self._app

    def verify(self, token: str) -> str:
        try:
            decoded = firebase_auth.verify_id_token(token, app=self._get_app())
        except (ValueError, firebase_exceptions.FirebaseError) as exc:
            Log.warning(f"Rejected ID token: {exc}")
            raise AuthenticationError(INVALID_TOKEN_MESSAGE) from exc
        uid = decoded.get("uid") or decoded.get("sub")
        if not uid:
            raise AuthenticationError(INVALID_TOKEN_MESSAGE)
        return str(uid)


class StaticTokenVerifier(BaseTokenVerifier):
    """Accepts one configured token. For development and tests."""

    def __init__(self, token: str, user_id: str) -> None:
        self._token = token
        self._user_id = user_id

    def verify(self, token: str) -> str:
        if not self._token or not hmac.compare_digest(token, self._token):
            raise AuthenticationError(INVALID_TOKEN_MESSAGE)
        return self._user_id


class TokenVerifierFactory:
    """Creates the configured token verifier."""

    @classmethod
    def create(cls, settings: Settings) -> BaseTokenVerifier:
        provider = settings.auth_provider.lower()
        if provider == "firebase":
            return FirebaseTokenVerifier(settings.firebase_project_id)
        if provider == "static":
            return StaticTokenVerifier(settings.auth_static_token, settings.auth_static_user_id)
        raise ValueError(f"Unknown auth provider '{provider}'. Choose from: ['firebase', 'static']")


def extract_bearer_token(header: str | None) -> str:
    """Pull the token out of an 'Authorization: Bearer <token>' header."""
    match = _BEARER_RE.match(header or "")
    if not match:
        raise AuthenticationError(NO_TOKEN_MESSAGE)
    return match.group(1).strip()


def require_user(request: Request) -> str:
    """FastAPI dependency: the authenticated user's ID."""
    token = extract_bearer_token(request.headers.get("Authorization"))
    return request.app.state.context.verifier.verify(token)
