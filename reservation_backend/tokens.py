"""Encrypted v4.local PASETO tokens for authentication."""

from __future__ import annotations

import base64
import binascii
import datetime
import hashlib
import hmac
import json
import os
import re
import secrets
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from Crypto.Cipher import ChaCha20

HEADER = "v4.local."
_ENV_NAME = "SECRET_KEY"

_KEY_SIZE = 32
_NONCE_SIZE = 32
_TAG_SIZE = 32
_ENC_DOMAIN = b"paseto-encryption-" + b"key"
_MAC_DOMAIN = b"paseto-auth-" + b"key-for-aead"
_BASE64URL = re.compile(r"[A-Za-z0-9_-]*")

Duration = Union[datetime.timedelta, int, float]


class TokenError(Exception):
    """Raised when a key or token is invalid."""


@dataclass(frozen=True)
class SymmetricKey:
    """A 32-byte key for v4.local tokens."""

    material: bytes = field(repr=False)

    def __post_init__(self) -> None:
        if len(self.material) != _KEY_SIZE:
            raise TokenError(f"key must be {_KEY_SIZE} bytes, got {len(self.material)}")

    @classmethod
    def from_hex(cls, key_hex: str) -> SymmetricKey:
        """Build a key from its hexadecimal encoding."""
        try:
            material = bytes.fromhex(key_hex)
        except ValueError as exc:
            raise TokenError(f"key is not valid hex: {exc}") from exc
        return cls(material)


@dataclass(frozen=True)
class Token:
    """The verified claims and footer of a token."""

    claims: Mapping[str, Any]
    footer: bytes = b""


def _as_bytes(value: bytes | str) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def _le64(n: int) -> bytes:
    return (n & 0x7FFF_FFFF_FFFF_FFFF).to_bytes(8, "little")


def _pae(*pieces: bytes) -> bytes:
    return _le64(len(pieces)) + b"".join(_le64(len(piece)) + piece for piece in pieces)


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    if not _BASE64URL.fullmatch(text):
        raise TokenError("token is not valid base64url")
    try:
        return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))
    except (binascii.Error, ValueError) as exc:
        raise TokenError("token is not valid base64url") from exc


def _derive_keys(key: SymmetricKey, nonce: bytes) -> tuple[bytes, bytes, bytes]:
    derived = hashlib.blake2b(_ENC_DOMAIN + nonce, key=key.material, digest_size=56).digest()
    mac_key = hashlib.blake2b(_MAC_DOMAIN + nonce, key=key.material, digest_size=32).digest()
    return derived[:32], derived[32:], mac_key


def _tag(mac_key: bytes, nonce: bytes, ciphertext: bytes, footer: bytes, implicit: bytes) -> bytes:
    pre_auth = _pae(HEADER.encode("ascii"), nonce, ciphertext, footer, implicit)
    return hashlib.blake2b(pre_auth, key=mac_key, digest_size=_TAG_SIZE).digest()


def encrypt_v4_local(
    key: SymmetricKey,
    payload: bytes | str,
    footer: bytes | str = b"",
    implicit: bytes | str = b"",
) -> str:
    """Encrypt and authenticate a payload as a v4.local token."""
    message = _as_bytes(payload)
    footer_bytes = _as_bytes(footer)
    nonce = secrets.token_bytes(_NONCE_SIZE)
    encryption_key, counter_nonce, mac_key = _derive_keys(key, nonce)
    ciphertext = ChaCha20.new(key=encryption_key, nonce=counter_nonce).encrypt(message)
    tag = _tag(mac_key, nonce, ciphertext, footer_bytes, _as_bytes(implicit))
    result = HEADER + _b64encode(nonce + ciphertext + tag)
    if footer_bytes:
        result += "." + _b64encode(footer_bytes)
    return result


def decrypt_v4_local(
    key: SymmetricKey,
    token: str,
    footer: bytes | str | None = None,
    implicit: bytes | str = b"",
) -> tuple[bytes, bytes]:
    """Authenticate and decrypt a v4.local token.

    Returns the payload and the footer. When ``footer`` is given, the token's
    footer must equal it.
    """
    if not token.startswith(HEADER):
        raise TokenError("token has an unsupported header")
    parts = token[len(HEADER):].split(".")
    if len(parts) > 2:
        raise TokenError("token has too many segments")
    body = _b64decode(parts[0])
    found_footer = _b64decode(parts[1]) if len(parts) == 2 else b""
    if footer is not None and not hmac.compare_digest(found_footer, _as_bytes(footer)):
        raise TokenError("token footer does not match")
    if len(body) < _NONCE_SIZE + _TAG_SIZE:
        raise TokenError("token is too short")

    nonce = body[:_NONCE_SIZE]
    ciphertext = body[_NONCE_SIZE:-_TAG_SIZE]
    tag = body[-_TAG_SIZE:]
    encryption_key, counter_nonce, mac_key = _derive_keys(key, nonce)
    expected = _tag(mac_key, nonce, ciphertext, found_footer, _as_bytes(implicit))
    if not hmac.compare_digest(tag, expected):
        raise TokenError("token authentication failed")
    payload = ChaCha20.new(key=encryption_key, nonce=counter_nonce).decrypt(ciphertext)
    return payload, found_footer


class _KeyStore:
    key: SymmetricKey | None = None


_store = _KeyStore()


def init_paseto() -> SymmetricKey:
    """Load the signing key from the SECRET_KEY environment variable."""
    key_hex = os.environ.get(_ENV_NAME, "")
    if not key_hex:
        raise TokenError(f"{_ENV_NAME} is not set")
    try:
        loaded = SymmetricKey.from_hex(key_hex)
    except TokenError as exc:
        raise TokenError(f"cannot initialise the token key: {exc}") from exc
    _store.key = loaded
    return loaded


def secret_key() -> SymmetricKey:
    """Return the key loaded by init_paseto."""
    if _store.key is None:
        raise TokenError("token key is not initialised; call init_paseto() first")
    return _store.key


def _format_time(moment: datetime.datetime) -> str:
    text = moment.replace(microsecond=0).isoformat()
    return text[:-6] + "Z" if text.endswith("+00:00") else text


def _time_claim(claims: Mapping[str, Any], name: str) -> datetime.datetime:
    value = claims.get(name)
    if not isinstance(value, str):
        raise TokenError(f"token has no {name!r} claim")
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        moment = datetime.datetime.fromisoformat(text)
    except ValueError as exc:
        raise TokenError(f"token claim {name!r} is not a valid time") from exc
    if moment.tzinfo is None:
        raise TokenError(f"token claim {name!r} has no time zone")
    return moment


def sign_token(
    data: Mapping[str, str],
    duration: Duration,
    key: SymmetricKey | None = None,
) -> str:
    """Issue a token carrying ``data`` that is valid from now for ``duration``."""
    if not isinstance(duration, datetime.timedelta):
        duration = datetime.timedelta(seconds=duration)
    key = key if key is not None else secret_key()
    now = datetime.datetime.now().astimezone()
    claims: dict[str, Any] = dict(data)
    claims["iat"] = _format_time(now)
    claims["nbf"] = _format_time(now)
    claims["exp"] = _format_time(now + duration)
    payload = json.dumps(claims, sort_keys=True, separators=(",", ":"))
    return encrypt_v4_local(key, payload)


def verify_token(token_str: str, key: SymmetricKey | None = None) -> Token:
    """Decrypt a token and check that it is valid at the current time."""
    key = key if key is not None else secret_key()
    payload, footer = decrypt_v4_local(key, token_str)
    try:
        claims = json.loads(payload)
    except ValueError as exc:
        raise TokenError("token payload is not valid JSON") from exc
    if not isinstance(claims, dict):
        raise TokenError("token payload is not a JSON object")

    now = datetime.datetime.now(datetime.timezone.utc)
    if now > _time_claim(claims, "exp"):
        raise TokenError("this token has expired")
    if _time_claim(claims, "iat") > now:
        raise TokenError("this token has an issued time in the future")
    if _time_claim(claims, "nbf") > now:
        raise TokenError("this token is not valid, yet")
    return Token(claims, footer)