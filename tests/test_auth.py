from datetime import datetime, timezone

import pytest

from helix_alm.auth import (
    AuthSession,
    AuthState,
    Credentials,
    build_basic_header,
    build_bearer_header,
)
from helix_alm.exceptions import ConfigurationError, MissingTokenError
from helix_alm.models import AccessToken


def test_basic_header_with_empty_password():
    assert build_basic_header("administrator", "") == "basic YWRtaW5pc3RyYXRvcjo="


def test_basic_header_with_password():
    assert Credentials("admin", "secret").basic_header() == "basic YWRtaW46c2VjcmV0"


def test_basic_header_rejects_colon_in_username():
    with pytest.raises(ConfigurationError, match="colon"):
        build_basic_header("corp:alee", "secret")
    with pytest.raises(ConfigurationError):
        Credentials("corp:alee").basic_header()


def test_password_is_not_in_repr():
    assert "secret" not in repr(Credentials("admin", "secret"))


def test_bearer_header():
    token = AccessToken(access_token="abc123")

    assert build_bearer_header(token) == "Bearer abc123"


@pytest.mark.parametrize("token", [None, AccessToken(), AccessToken(access_token="")])
def test_bearer_header_requires_token(token):
    with pytest.raises(MissingTokenError):
        build_bearer_header(token)


@pytest.fixture
def session():
    return AuthSession(Credentials("administrator"), "Traditional Template")


def test_session_lifecycle(session):
    assert session.state is AuthState.UNAUTHENTICATED
    assert session.needs_token()
    with pytest.raises(MissingTokenError):
        session.bearer_header()

    session.begin()
    assert session.state is AuthState.TOKEN_REQUESTED

    session.accept(AccessToken(expires_on="2030-01-01T12:00:00Z", access_token="abc123"))
    assert session.state is AuthState.AUTHENTICATED
    assert session.bearer_header() == "Bearer abc123"
    assert not session.needs_token(now=datetime(2029, 12, 31, tzinfo=timezone.utc))
    assert session.needs_token(now=datetime(2030, 1, 2, tzinfo=timezone.utc))

    session.reset()
    assert session.state is AuthState.UNAUTHENTICATED
    assert session.token is None


def test_accept_without_request(session):
    with pytest.raises(MissingTokenError):
        session.accept(AccessToken(access_token="abc123"))
    assert session.state is AuthState.UNAUTHENTICATED


def test_accept_empty_token_fails_session(session):
    session.begin()

    with pytest.raises(MissingTokenError):
        session.accept(AccessToken(access_token=""))
    assert session.state is AuthState.UNAUTHENTICATED


def test_fail_drops_token(session):
    session.begin()
    session.fail()

    assert session.state is AuthState.UNAUTHENTICATED
    assert session.needs_token()
