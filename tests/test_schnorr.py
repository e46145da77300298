"""Tests for Schnorr signing and reference verification."""

import pytest

from conftest import SECRET_0, SECRET_1
from primitives.curve import CURVE_ORDER, is_on_curve
from primitives.errors import StructuralError
from protocol.schnorr import (
    MESSAGE_LENGTH,
    Signature,
    build_tx_message,
    derive_nonce,
    hash_message,
    message_chunks,
    public_key,
    sign,
    verify,
)

SECRET = 0x5EC2E7
OTHER_SECRET = 0x0DDBA11


@pytest.fixture(scope="module")
def keys():
    return public_key(SECRET), public_key(OTHER_SECRET)


@pytest.fixture(scope="module")
def message(keys):
    return build_tx_message(keys[0], keys[1], 40, 0)


class TestMessage:

    def test_layout(self, keys) -> None:
        msg = build_tx_message(keys[0], keys[1], 40, 7)
        assert len(msg) == MESSAGE_LENGTH
        assert msg[4:] == [40, 7, 0, 0]
        assert message_chunks(msg)[2] == [40, 7]

    def test_chunks_reject_bad_length(self) -> None:
        with pytest.raises(StructuralError):
            message_chunks([1, 2, 3])

    def test_hash_binds_commitment(self, message) -> None:
        assert hash_message(1, message) != hash_message(2, message)


class TestKeys:

    def test_public_key_on_curve(self, keys) -> None:
        assert is_on_curve(*keys[0])

    def test_shared_secrets_valid(self) -> None:
        """The secrets behind the trace fixtures lie in [1, n)."""
        for secret in (SECRET_0, SECRET_1):
            assert 0 < secret < CURVE_ORDER
            assert is_on_curve(*public_key(secret))

    def test_secret_range(self) -> None:
        with pytest.raises(StructuralError):
            public_key(0)
        with pytest.raises(StructuralError):
            sign([0] * MESSAGE_LENGTH, CURVE_ORDER)

    def test_nonce_is_deterministic(self, message) -> None:
        assert derive_nonce(SECRET, message) == derive_nonce(SECRET, message)
        assert derive_nonce(SECRET, message) != derive_nonce(OTHER_SECRET, message)


class TestSignVerify:

    def test_round_trip(self, keys, message) -> None:
        sig = sign(message, SECRET)
        assert verify(message, sig, keys[0])

    def test_signing_is_deterministic(self, message) -> None:
        assert sign(message, SECRET) == sign(message, SECRET)

    def test_tampered_response_fails(self, keys, message) -> None:
        sig = sign(message, SECRET)
        assert not verify(message, Signature(sig.r_x, sig.s ^ 1), keys[0])

    def test_tampered_commitment_fails(self, keys, message) -> None:
        sig = sign(message, SECRET)
        assert not verify(message, Signature(sig.r_x ^ 1, sig.s), keys[0])

    def test_tampered_message_fails(self, keys, message) -> None:
        sig = sign(message, SECRET)
        altered = list(message)
        altered[4] ^= 1
        assert not verify(altered, sig, keys[0])

    def test_wrong_public_key_fails(self, keys, message) -> None:
        sig = sign(message, SECRET)
        assert not verify(message, sig, keys[1])

    def test_replay_with_advanced_nonce_fails(self, keys) -> None:
        first = build_tx_message(keys[0], keys[1], 40, 0)
        replay = build_tx_message(keys[0], keys[1], 40, 1)
        assert not verify(replay, sign(first, SECRET), keys[0])

    def test_signature_bytes(self, message) -> None:
        sig = sign(message, SECRET)
        data = sig.to_bytes()
        assert len(data) == 64
        assert Signature.from_bytes(data) == sig
        with pytest.raises(StructuralError):
            Signature.from_bytes(data[:-1])
