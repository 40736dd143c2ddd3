"""Cryptographically secure random bytes and url-safe strings."""

from __future__ import annotations

import secrets

_URL_SAFE_CHARS = b"0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ-_"

# 256 is a multiple of 64, so mapping byte % 64 is unbiased.
_TABLE = bytes(_URL_SAFE_CHARS[b % 64] for b in range(256))


def random_bytes(size: int) -> bytes:
    """Return ``size`` cryptographically secure random bytes."""
    return secrets.token_bytes(size)


def url_safe_str(size: int) -> str:
    """Return a secure random string of ``size`` url-safe characters.

    The result is not valid base64; each character carries 6 bits of entropy.
    """
    return random_bytes(size).translate(_TABLE).decode("ascii")