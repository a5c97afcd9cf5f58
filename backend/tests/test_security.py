from __future__ import annotations

import pytest
from jose import jwt

from app.core.security import (
    SESSION_TOKEN_TYPE,
    create_session_jwt,
    decode_token,
    generate_secure_token,
    hash_password,
    hash_token,
    verify_password,
)


def test_password_hash_is_salted_and_verifies() -> None:
    first = hash_password("Aa1!aaaa")
    second = hash_password("Aa1!aaaa")

    assert first != second
    assert first.startswith("$pbkdf2-sha256$")
    assert verify_password("Aa1!aaaa", first)
    assert verify_password("Aa1!aaaa", second)


def test_password_mismatch_is_rejected() -> None:
    hashed = hash_password("Aa1!aaaa")

    assert not verify_password("Aa1!aaab", hashed)
    assert not verify_password("", hashed)


def test_verify_password_tolerates_missing_or_corrupt_hash() -> None:
    assert not verify_password("Aa1!aaaa", None)
    assert not verify_password("Aa1!aaaa", "")
    assert not verify_password("Aa1!aaaa", "not-a-real-hash")


def test_secure_token_is_hex_with_requested_entropy() -> None:
    token = generate_secure_token()
    short = generate_secure_token(8)

    assert len(token) == 64
    int(token, 16)
    assert len(short) == 16
    assert generate_secure_token() != token


def test_token_hash_is_deterministic_sha256() -> None:
    assert hash_token("abc") == hash_token("abc")
    assert hash_token("abc") != hash_token("abd")
    assert hash_token("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


def test_session_jwt_roundtrip_claims() -> None:
    token = create_session_jwt({"sub": "42", "email": "a@x.com"})
    payload = decode_token(token)

    assert payload["sub"] == "42"
    assert payload["email"] == "a@x.com"
    assert payload["type"] == SESSION_TOKEN_TYPE
    assert payload["exp"] > payload["iat"]


def test_expired_and_tampered_jwt_are_rejected() -> None:
    expired = create_session_jwt({"sub": "1"}, expires_minutes=-5)
    with pytest.raises(ValueError, match="expired_token"):
        decode_token(expired)
    assert decode_token(expired, verify_exp=False)["sub"] == "1"

    forged = jwt.encode({"sub": "1", "type": SESSION_TOKEN_TYPE}, "someone-else", algorithm="HS256")
    with pytest.raises(ValueError, match="invalid_token"):
        decode_token(forged)
    with pytest.raises(ValueError, match="invalid_token"):
        decode_token("not.a.jwt")
