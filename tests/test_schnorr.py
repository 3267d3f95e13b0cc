import hashlib

import pytest

from vehiclecmd.schnorr import (
    SCALAR_LENGTH,
    InvalidPublicKeyError,
    InvalidSignatureError,
    deterministic_nonce,
    public_key_bytes,
    sign,
    verify,
)

P256_ORDER = 0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551

MESSAGE = b"hello world"

GOOD_SIGNATURE = bytes.fromhex(
    "7cfdbeb5baa730540401550b"
    "defa20976453e8539ae4b2f2"
    "6ce33125801a08f90ed20c3d"
    "846497ff82cc9772e3db4703"
    "982f47bd0b0b89dfb9a49cd2"
    "e524054602b1e05fbf95f568"
    "6faea7a5809eb92f5ecc22ea"
    "e74ceccc5e2a65dd67ff20fc"
)

RFC6979_SCALAR = bytes.fromhex(
    "c9afa9d845ba75166b5c215767b1d6934e50c3db36e89b127b8a622b120f6721"
)
RFC6979_NONCE = bytes.fromhex(
    "a6e3c57dd01abe90086538398355dd4c3b17aa873382b0f24d6129493d8aad60"
)

REJECTION_DIGEST = bytes.fromhex(
    "0080c36864c5f2f460e37679"
    "83c65677b65cef901bcedcb2"
    "23f9b365c68f52f6"
)
REJECTION_NONCE = bytes.fromhex(
    "264fc6592fbea24fd0954e0b"
    "86b886e8743161758ddad2f7"
    "e9fed75a0019e005"
)


def scalar_with_first_byte(value):
    return bytes([value]) + bytes(SCALAR_LENGTH - 1)


def fleet_key():
    return scalar_with_first_byte(3)


@pytest.fixture
def good_sig():
    return (
        bytearray(public_key_bytes(fleet_key())),
        bytearray(MESSAGE),
        bytearray(GOOD_SIGNATURE),
    )


def test_verify(good_sig):
    pkey, message, signature = good_sig
    assert verify(pkey, message, signature) is True


def test_verify_wrong_message(good_sig):
    pkey, message, signature = good_sig
    message[0] ^= 1
    with pytest.raises(InvalidSignatureError):
        verify(pkey, message, signature)


def test_verify_wrong_public_key(good_sig):
    _, message, signature = good_sig
    other = public_key_bytes(scalar_with_first_byte(4))
    with pytest.raises(InvalidSignatureError):
        verify(other, message, signature)


@pytest.mark.parametrize("offset", [0, SCALAR_LENGTH])
def test_nonce_not_on_curve(good_sig, offset):
    pkey, message, signature = good_sig
    signature[offset] ^= 1
    with pytest.raises(InvalidSignatureError):
        verify(pkey, message, signature)


def test_invalid_signature(good_sig):
    pkey, message, signature = good_sig
    signature[-1] ^= 1
    with pytest.raises(InvalidSignatureError):
        verify(pkey, message, signature)


def test_public_key_not_on_curve(good_sig):
    pkey, message, signature = good_sig
    pkey[0] ^= 1
    with pytest.raises(InvalidPublicKeyError):
        verify(pkey, message, signature)


def test_zero_public_key(good_sig):
    _, message, signature = good_sig
    zero_point = b"\x04" + bytes(64)
    with pytest.raises(InvalidPublicKeyError):
        verify(zero_point, message, signature)


def test_signature_too_short(good_sig):
    pkey, message, signature = good_sig
    with pytest.raises(InvalidSignatureError):
        verify(pkey, message, signature[:-1])


def test_deterministic_nonce_rfc6979_vector():
    digest = hashlib.sha256(b"sample").digest()
    assert deterministic_nonce(RFC6979_SCALAR, digest) == RFC6979_NONCE


def test_rejection_sampling():
    nonce = deterministic_nonce(fleet_key(), REJECTION_DIGEST)
    assert int.from_bytes(nonce, "big") < P256_ORDER
    assert nonce == REJECTION_NONCE


def test_sign():
    assert sign(fleet_key(), MESSAGE) == GOOD_SIGNATURE


def test_sign_verify_round_trip():
    scalar = scalar_with_first_byte(7)
    message = b"unlock the doors"
    signature = sign(scalar, message)
    assert len(signature) == 3 * SCALAR_LENGTH
    assert verify(public_key_bytes(scalar), message, signature) is True


def test_sign_rejects_zero_scalar():
    with pytest.raises(ValueError):
        sign(bytes(SCALAR_LENGTH), b"message")


def test_deterministic_nonce_rejects_bad_hash_length():
    with pytest.raises(ValueError):
        deterministic_nonce(fleet_key(), b"short")