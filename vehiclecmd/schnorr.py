"""Schnorr signatures over NIST P-256 with SHA-256 and RFC 6979 nonces.

Signatures are V || r, where V is the uncompressed public nonce point without
its 0x04 prefix and r = v - a*c (mod n). A verifier checks V = cA + rG.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional, Tuple

SCALAR_LENGTH = 32

_P = 0xFFFFFFFF00000001000000000000000000000000FFFFFFFFFFFFFFFFFFFFFFFF
_A = _P - 3
_B = 0x5AC635D8AA3A93E7B3EBBD55769886BC651D06B0CC53B0F63BCE3C3E27D2604B
_N = 0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551
_G = (
    0x6B17D1F2E12C4247F8BCE6E563A440F277037D812DEB33A0F4A13945D898C296,
    0x4FE342E2FE1A7F9B8EE7EB4A7C0F9E162BCE33576B315ECECBB6406837BF51F5,
)

_Point = Optional[Tuple[int, int]]


class InvalidSignatureError(ValueError):
    """The signature does not authenticate the message."""

    def __init__(self, message: str = "invalid signature") -> None:
        super().__init__(message)


class InvalidPublicKeyError(ValueError):
    """The public key is not an uncompressed P-256 point."""

    def __init__(self, message: str = "invalid public key") -> None:
        super().__init__(message)


def _on_curve(x: int, y: int) -> bool:
    return (y * y - (x * x * x + _A * x + _B)) % _P == 0


def _add(first: _Point, second: _Point) -> _Point:
    if first is None:
        return second
    if second is None:
        return first
    x1, y1 = first
    x2, y2 = second
    if x1 == x2:
        if (y1 + y2) % _P == 0:
            return None
        slope = (3 * x1 * x1 + _A) * pow(2 * y1, -1, _P) % _P
    else:
        slope = (y2 - y1) * pow(x2 - x1, -1, _P) % _P
    x3 = (slope * slope - x1 - x2) % _P
    y3 = (slope * (x1 - x3) - y1) % _P
    return (x3, y3)


def _multiply(scalar: int, point: _Point) -> _Point:
    scalar %= _N
    result: _Point = None
    addend = point
    while scalar:
        if scalar & 1:
            result = _add(result, addend)
        addend = _add(addend, addend)
        scalar >>= 1
    return result


def _encode(point: _Point) -> bytes:
    if point is None:
        raise ValueError("cannot encode the point at infinity")
    x, y = point
    return b"\x04" + x.to_bytes(SCALAR_LENGTH, "big") + y.to_bytes(SCALAR_LENGTH, "big")


def _decode(data: bytes) -> _Point:
    if len(data) != 1 + 2 * SCALAR_LENGTH or data[0] != 0x04:
        return None
    x = int.from_bytes(data[1 : 1 + SCALAR_LENGTH], "big")
    y = int.from_bytes(data[1 + SCALAR_LENGTH :], "big")
    if x >= _P or y >= _P or not _on_curve(x, y):
        return None
    return (x, y)


def _private_scalar(scalar: bytes) -> int:
    if len(scalar) != SCALAR_LENGTH:
        raise ValueError(f"private scalar must be {SCALAR_LENGTH} bytes")
    value = int.from_bytes(scalar, "big")
    if not 0 < value < _N:
        raise ValueError("private scalar out of range")
    return value


def _length_value(data: bytes) -> bytes:
    return len(data).to_bytes(4, "big") + data


def _challenge(public_nonce: bytes, sender_public: bytes, message: bytes) -> bytes:
    digest = hashlib.sha256()
    for part in (_encode(_G), public_nonce, sender_public, message):
        digest.update(_length_value(part))
    return digest.digest()


def public_key_bytes(scalar: bytes) -> bytes:
    """Return the uncompressed public key for a 32-byte private scalar."""
    return _encode(_multiply(_private_scalar(scalar), _G))


def verify(public_key: bytes, message: bytes, signature: bytes) -> bool:
    """Return True if signature is valid; raise otherwise."""
    point = _decode(bytes(public_key))
    if point is None:
        raise InvalidPublicKeyError()
    if len(signature) != 3 * SCALAR_LENGTH:
        raise InvalidSignatureError()
    signature = bytes(signature)
    vx = int.from_bytes(signature[:SCALAR_LENGTH], "big")
    vy = int.from_bytes(signature[SCALAR_LENGTH : 2 * SCALAR_LENGTH], "big")
    r = int.from_bytes(signature[2 * SCALAR_LENGTH :], "big")
    c = _challenge(b"\x04" + signature[: 2 * SCALAR_LENGTH], bytes(public_key), bytes(message))
    total = _add(_multiply(int.from_bytes(c, "big"), point), _multiply(r, _G))
    x, y = total if total is not None else (0, 0)
    if x == vx and y == vy:
        return True
    raise InvalidSignatureError()


def _mac(key: bytes, *parts: bytes) -> bytes:
    return hmac.new(key, b"".join(parts), hashlib.sha256).digest()


def deterministic_nonce(scalar: bytes, message_hash: bytes) -> bytes:
    """Derive an RFC 6979 nonce for P-256/SHA-256."""
    if len(message_hash) != hashlib.sha256().digest_size:
        raise ValueError("message hash must be a SHA-256 digest")
    scalar = bytes(scalar)
    h1 = (int.from_bytes(message_hash, "big") % _N).to_bytes(SCALAR_LENGTH, "big")
    k = bytes(SCALAR_LENGTH)
    v = b"\x01" * SCALAR_LENGTH
    k = _mac(k, v, b"\x00", scalar, h1)
    v = _mac(k, v)
    k = _mac(k, v, b"\x01", scalar, h1)
    v = _mac(k, v)
    while True:
        v = _mac(k, v)
        candidate = int.from_bytes(v, "big")
        if 0 < candidate < _N:
            return v
        k = _mac(k, v, b"\x00")
        v = _mac(k, v)


def sign(private_scalar: bytes, message: bytes) -> bytes:
    """Sign message with a 32-byte private scalar, returning a 96-byte signature."""
    a = _private_scalar(private_scalar)
    message = bytes(message)
    nonce = int.from_bytes(
        deterministic_nonce(private_scalar, hashlib.sha256(message).digest()), "big"
    )
    public_nonce = _encode(_multiply(nonce, _G))
    c = int.from_bytes(
        _challenge(public_nonce, public_key_bytes(private_scalar), message), "big"
    )
    r = (nonce - a * c) % _N
    return public_nonce[1:] + r.to_bytes(SCALAR_LENGTH, "big")