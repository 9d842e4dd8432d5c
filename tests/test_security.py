from datetime import timedelta

import pytest
from jose import jwt

from app.core.roles import UserRole, check_role
from app.core.security import (
    create_session_token,
    decode_session_token,
    get_password_hash,
    password_problems,
    session_cookie_max_age,
    verify_password,
)
from app.core.settings import parse_duration, settings


def test_password_hashing_and_verify():
    password = "S0meP@ss!WithLength"
    hashed = get_password_hash(password)
    assert hashed != password
    assert verify_password(password, hashed)
    assert verify_password("S0meP@ss!", hashed) is False


@pytest.mark.parametrize(
    "password, expected",
    [
        ("Sh0rt!", "at least 8 characters"),
        ("alllower1!", "uppercase"),
        ("ALLUPPER1!", "lowercase"),
        ("NoDigits!!", "number"),
        ("NoSpecial123", "special character"),
    ],
)
def test_password_problems_names_each_missing_rule(password, expected):
    problems = password_problems(password)
    assert any(expected in problem for problem in problems)


def test_strong_password_has_no_problems():
    assert password_problems("Str0ng!Passw0rd") == []


def test_session_token_round_trip():
    token = create_session_token(
        user_id="user-xyz", email="ada@example.com", role="USER", token_version=3
    )
    payload = decode_session_token(token)
    assert payload["sub"] == "user-xyz"
    assert payload["userId"] == "user-xyz"
    assert payload["email"] == "ada@example.com"
    assert payload["role"] == "USER"
    assert payload["tv"] == 3
    assert "iat" in payload


def test_expired_session_token_is_rejected():
    token = create_session_token(
        user_id="user-xyz",
        email="ada@example.com",
        role="USER",
        expires_delta=timedelta(seconds=-5),
    )
    with pytest.raises(ValueError):
        decode_session_token(token)


def test_token_signed_with_another_secret_is_rejected():
    forged = jwt.encode({"sub": "user-xyz", "role": "ADMIN"}, "not-the-secret", algorithm="HS256")
    with pytest.raises(ValueError):
        decode_session_token(forged)


def test_cookie_lifetime_matches_session_lifetime():
    assert session_cookie_max_age() == int(settings.session_lifetime.total_seconds())


@pytest.mark.parametrize(
    "value, expected",
    [
        ("7d", timedelta(days=7)),
        ("24h", timedelta(hours=24)),
        ("30m", timedelta(minutes=30)),
        ("45", timedelta(seconds=45)),
    ],
)
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


def test_parse_duration_rejects_garbage():
    with pytest.raises(ValueError):
        parse_duration("soon")


def test_admin_outranks_user():
    assert check_role(UserRole.ADMIN.value, UserRole.USER)
    assert check_role(UserRole.ADMIN.value, UserRole.ADMIN)
    assert check_role(UserRole.USER.value, UserRole.USER)
    assert not check_role(UserRole.USER.value, UserRole.ADMIN)


def test_unknown_role_is_denied():
    assert not check_role("SUPERUSER", UserRole.USER)
