import datetime
import json

import pytest

from reservation_backend.tokens import (
    HEADER,
    SymmetricKey,
    Token,
    TokenError,
    decrypt_v4_local,
    encrypt_v4_local,
    init_paseto,
    secret_key,
    sign_token,
    verify_token,
)

EMPTY = b""
OBJECT_PAYLOAD = b'{"a":"b"}'
PLAIN = b"payload"
ARRAY_PAYLOAD = b"[1, 2]"


@pytest.fixture
def key():
    return SymmetricKey(bytes(range(32)))


@pytest.fixture
def other_key():
    return SymmetricKey(bytes(range(32, 64)))


def _stamp(offset):
    moment = datetime.datetime.now(datetime.timezone.utc) + offset
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def test_key_from_hex_round_trip():
    key_hex = bytes(range(32)).hex()
    assert SymmetricKey.from_hex(key_hex).material == bytes(range(32))


@pytest.mark.parametrize("key_hex", ["zz" * 32, bytes(range(16)).hex(), ""])
def test_key_from_hex_rejects_bad_input(key_hex):
    with pytest.raises(TokenError):
        SymmetricKey.from_hex(key_hex)


def test_encrypt_decrypt_round_trip(key):
    sealed = encrypt_v4_local(key, OBJECT_PAYLOAD, EMPTY, EMPTY)
    assert sealed.startswith(HEADER)
    assert sealed.count(".") == 2
    assert decrypt_v4_local(key, sealed, None, EMPTY) == (OBJECT_PAYLOAD, EMPTY)


def test_footer_and_implicit_round_trip(key):
    footer = b"kid"
    implicit = b"context"
    sealed = encrypt_v4_local(key, PLAIN.decode(), footer.decode(), implicit.decode())
    assert sealed.count(".") == 3
    assert decrypt_v4_local(key, sealed, footer.decode(), implicit.decode()) == (PLAIN, footer)


def test_nonce_makes_tokens_differ(key):
    first = encrypt_v4_local(key, PLAIN, EMPTY, EMPTY)
    second = encrypt_v4_local(key, PLAIN, EMPTY, EMPTY)
    assert first != second
    assert decrypt_v4_local(key, first)[0] == decrypt_v4_local(key, second)[0]


def test_wrong_key_is_rejected(key, other_key):
    sealed = encrypt_v4_local(key, PLAIN, EMPTY, EMPTY)
    with pytest.raises(TokenError):
        decrypt_v4_local(other_key, sealed)


def test_tampered_token_is_rejected(key):
    sealed = encrypt_v4_local(key, PLAIN, EMPTY, EMPTY)
    last = sealed[-1]
    tampered = sealed[:-1] + ("A" if last != "A" else "B")
    with pytest.raises(TokenError):
        decrypt_v4_local(key, tampered)


def test_wrong_implicit_is_rejected(key):
    implicit = b"context"
    sealed = encrypt_v4_local(key, PLAIN, EMPTY, implicit)
    with pytest.raises(TokenError):
        decrypt_v4_local(key, sealed, None, b"other")


def test_wrong_footer_is_rejected(key):
    footer = b"kid"
    sealed = encrypt_v4_local(key, PLAIN, footer, EMPTY)
    with pytest.raises(TokenError):
        decrypt_v4_local(key, sealed, b"different", EMPTY)


@pytest.mark.parametrize("bad", ["v3.local.abc", "v4.local.a.b.c", "v4.local.AAAA", "v4.local.!!"])
def test_malformed_tokens_are_rejected(key, bad):
    with pytest.raises(TokenError):
        decrypt_v4_local(key, bad)


def test_sign_and_verify_round_trip(key):
    data = {"user_id": "7", "email": "user@example.com", "name": "Ana"}
    sealed = sign_token(data, datetime.timedelta(seconds=35), key)
    verified = verify_token(sealed, key)
    assert isinstance(verified, Token)
    assert {name: verified.claims[name] for name in data} == data
    assert {"iat", "nbf", "exp"} <= set(verified.claims)
    assert verified.claims["iat"] == verified.claims["nbf"]
    assert verified.claims["exp"] > verified.claims["iat"]


def test_expired_token_is_rejected(key):
    data = {"user_id": "7"}
    sealed = sign_token(data, datetime.timedelta(seconds=-5), key)
    with pytest.raises(TokenError):
        verify_token(sealed, key)


def test_token_for_another_key_is_rejected(key, other_key):
    data = {"user_id": "7"}
    sealed = sign_token(data, 35, key)
    with pytest.raises(TokenError):
        verify_token(sealed, other_key)


def test_not_yet_valid_token_is_rejected(key):
    claims = {
        "iat": _stamp(datetime.timedelta(0)),
        "nbf": _stamp(datetime.timedelta(hours=1)),
        "exp": _stamp(datetime.timedelta(hours=2)),
    }
    sealed = encrypt_v4_local(key, json.dumps(claims), EMPTY, EMPTY)
    with pytest.raises(TokenError):
        verify_token(sealed, key)


def test_token_without_expiration_is_rejected(key):
    claims = {"user_id": "7", "iat": _stamp(datetime.timedelta(0))}
    sealed = encrypt_v4_local(key, json.dumps(claims), EMPTY, EMPTY)
    with pytest.raises(TokenError):
        verify_token(sealed, key)


def test_non_object_payload_is_rejected(key):
    sealed = encrypt_v4_local(key, ARRAY_PAYLOAD, EMPTY, EMPTY)
    with pytest.raises(TokenError):
        verify_token(sealed, key)


def test_init_paseto_requires_environment(monkeypatch):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    with pytest.raises(TokenError):
        init_paseto()


def test_init_paseto_rejects_invalid_key(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "secret")
    with pytest.raises(TokenError):
        init_paseto()


def test_init_paseto_sets_default_key(monkeypatch):
    key_hex = bytes(range(100, 132)).hex()
    monkeypatch.setenv("SECRET_KEY", key_hex)
    loaded = init_paseto()
    assert loaded.material == bytes(range(100, 132))
    assert secret_key() == loaded
    data = {"user_id": "9"}
    sealed = sign_token(data, 35)
    assert verify_token(sealed).claims["user_id"] == "9"