from __future__ import annotations

import jwt
import pytest

from group_sync.infrastructure.auth.token_reader import JwtTokenReader

SECRET = "test-secret-with-enough-bytes-for-hs256"


def _token(claims: dict, secret: str = SECRET) -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


def test_reads_user_from_verified_token():
    principal = JwtTokenReader(SECRET).read(_token({"sub": "7", "username": "me"}))

    assert principal.user_id == 7
    assert principal.username == "me"


def test_rejects_wrong_signature():
    token = _token({"sub": "7"}, secret="another-secret-with-enough-bytes-too")

    with pytest.raises(jwt.InvalidSignatureError):
        JwtTokenReader(SECRET).read(token)


def test_unverified_when_no_secret_configured():
    token = _token({"sub": "9", "preferred_username": "ada"})

    principal = JwtTokenReader().read(token)

    assert principal.user_id == 9
    assert principal.username == "ada"


def test_custom_user_id_claim():
    token = _token({"sub": "ada@example.com", "userId": 11})

    principal = JwtTokenReader(SECRET, user_id_claim="userId").read(token)

    assert principal.user_id == 11
    assert principal.username is None


def test_non_numeric_user_id_is_invalid():
    with pytest.raises(jwt.InvalidTokenError):
        JwtTokenReader(SECRET).read(_token({"sub": "ada"}))


def test_principal_owns_own_messages():
    principal = JwtTokenReader(SECRET).read(_token({"sub": "7"}))

    assert principal.owns(7)
    assert not principal.owns(8)
