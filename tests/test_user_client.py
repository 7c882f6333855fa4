"""Tests for the user service HTTP client."""

from unittest.mock import Mock

import pytest
import requests

from adwatch.users import UserDirectoryError, UserProfile, UserServiceClient


def make_response(status_code=200, payload=None, json_error=None, reason="OK"):
    response = Mock()
    response.status_code = status_code
    response.reason = reason
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def session():
    mock_session = Mock(spec=requests.Session)
    mock_session.headers = {}
    return mock_session


@pytest.fixture
def client(session):
    return UserServiceClient(base_url="https://users.example.com/api/", timeout=5, session=session)


def test_get_user_parses_profile(client, session):
    session.get.return_value = make_response(
        payload={
            "id": 7,
            "email": "vip@example.com",
            "roles": [{"name": "ROLE_USER"}, {"name": "ROLE_VIP"}],
            "displayName": "ignored",
        }
    )

    profile = client.get_user("7")

    assert profile == UserProfile(user_id="7", email="vip@example.com", roles=["ROLE_USER", "ROLE_VIP"])
    session.get.assert_called_once_with("https://users.example.com/api/users/7", timeout=5)


def test_get_user_quotes_identifier(client, session):
    session.get.return_value = make_response(payload={"user_id": "a/b", "roles": []})

    client.get_user("a/b")

    assert session.get.call_args[0][0] == "https://users.example.com/api/users/a%2Fb"


def test_get_user_not_found_returns_none(client, session):
    session.get.return_value = make_response(status_code=404, reason="Not Found")

    assert client.get_user("ghost") is None


@pytest.mark.parametrize("status_code", [401, 500, 503])
def test_get_user_error_status_raises(client, session, status_code):
    session.get.return_value = make_response(status_code=status_code, reason="Nope")

    with pytest.raises(UserDirectoryError) as exc_info:
        client.get_user("7")

    assert exc_info.value.status_code == status_code
    assert exc_info.value.url == "https://users.example.com/api/users/7"


def test_get_user_timeout_raises(client, session):
    session.get.side_effect = requests.exceptions.Timeout("slow")

    with pytest.raises(UserDirectoryError, match="timed out after 5 seconds"):
        client.get_user("7")


def test_get_user_connection_error_raises(client, session):
    session.get.side_effect = requests.exceptions.ConnectionError("refused")

    with pytest.raises(UserDirectoryError, match="failed"):
        client.get_user("7")


def test_get_user_invalid_json_raises(client, session):
    session.get.return_value = make_response(json_error=ValueError("not json"))

    with pytest.raises(UserDirectoryError, match="Failed to parse JSON"):
        client.get_user("7")


def test_get_user_malformed_payload_raises(client, session):
    session.get.return_value = make_response(payload={"email": "no-id@example.com"})

    with pytest.raises(UserDirectoryError, match="Malformed user payload"):
        client.get_user("7")


def test_headers_include_token_when_configured(session):
    UserServiceClient(base_url="https://users.example.com", token="s3cret", session=session)

    assert session.headers["Authorization"] == "Bearer s3cret"
    assert session.headers["Accept"] == "application/json"
    assert session.headers["User-Agent"] == "AdWatchdog/1.0"


def test_headers_without_token(client, session):
    assert "Authorization" not in session.headers


def test_has_elevated_privilege(client, session):
    session.get.side_effect = [
        make_response(payload={"id": "1", "roles": ["ROLE_VIP"]}),
        make_response(payload={"id": "2", "roles": ["ROLE_USER"]}),
        make_response(status_code=404, reason="Not Found"),
    ]

    assert client.has_elevated_privilege("1") is True
    assert client.has_elevated_privilege("2") is False
    assert client.has_elevated_privilege("3") is False


def test_custom_elevated_role(session):
    client = UserServiceClient(
        base_url="https://users.example.com", elevated_role="ROLE_GOLD", session=session
    )
    session.get.return_value = make_response(payload={"id": "1", "roles": ["ROLE_VIP"]})

    assert client.has_elevated_privilege("1") is False


def test_get_email(client, session):
    session.get.side_effect = [
        make_response(payload={"id": "1", "email": "one@example.com"}),
        make_response(payload={"id": "2", "email": None}),
        make_response(status_code=404, reason="Not Found"),
    ]

    assert client.get_email("1") == "one@example.com"
    assert client.get_email("2") is None
    assert client.get_email("3") is None


def test_directory_errors_propagate_from_privilege_check(client, session):
    session.get.return_value = make_response(status_code=502, reason="Bad Gateway")

    with pytest.raises(UserDirectoryError):
        client.has_elevated_privilege("1")
