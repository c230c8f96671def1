# helix_alm/auth.py

import base64
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .exceptions import ConfigurationError, MissingTokenError
from .models import AccessToken


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str = field(default="", repr=False)

    def basic_header(self) -> str:
        return build_basic_header(self.username, self.password)


def build_basic_header(username: str, password: str) -> str:
    """
    Build the Authorization header used for the projects and token endpoints.

    :param username: Helix ALM login name
    :param password: Helix ALM password, may be empty
    :return: ``basic <base64(user:pass)>``
    :raises ConfigurationError: when the username contains a colon
    """
    if ":" in username:
        raise ConfigurationError(
            "A colon is not allowed in the username for basic authentication"
        )
    raw = f"{username}:{password}".encode("utf-8")
    return "basic " + base64.b64encode(raw).decode("ascii")


def build_bearer_header(token: Optional[AccessToken]) -> str:
    """
    Build the Authorization header for every call other than projects/token.

    :param token: Token returned by the token endpoint
    :return: ``Bearer <accessToken>``
    :raises MissingTokenError: when there is no token to attach
    """
    if token is None or not token.access_token:
        raise MissingTokenError(
            "No access token; request one from the project token endpoint first"
        )
    return "Bearer " + token.access_token


class AuthState(enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    TOKEN_REQUESTED = "token_requested"
    AUTHENTICATED = "authenticated"


class AuthSession:
    """
    Token bookkeeping for one logical session (one user on one project).

    The session never talks to the server and never refreshes on its own;
    the caller requests a token, hands it over with ``accept`` and asks
    ``needs_token`` before each batch of calls.
    """

    def __init__(self, credentials: Credentials, project: str):
        self.credentials = credentials
        self.project = project
        self.state = AuthState.UNAUTHENTICATED
        self.token: Optional[AccessToken] = None

    def begin(self):
        self.state = AuthState.TOKEN_REQUESTED
        self.token = None

    def accept(self, token: AccessToken):
        if self.state is not AuthState.TOKEN_REQUESTED:
            raise MissingTokenError(
                f"Cannot accept a token in state {self.state.value}"
            )
        if token is None or not token.access_token:
            self.fail()
            raise MissingTokenError("Token endpoint returned no access token")
        self.token = token
        self.state = AuthState.AUTHENTICATED

    def fail(self):
        self.reset()

    def reset(self):
        self.state = AuthState.UNAUTHENTICATED
        self.token = None

    def needs_token(self, now: Optional[datetime] = None, leeway: float = 0.0) -> bool:
        if self.state is not AuthState.AUTHENTICATED:
            return True
        return self.token.is_expired(now=now, leeway=leeway)

    def bearer_header(self) -> str:
        if self.state is not AuthState.AUTHENTICATED:
            raise MissingTokenError(f"Session is {self.state.value}")
        return build_bearer_header(self.token)
