"""Schnorr signatures over the Stark curve with a Rescue-sponge challenge.

    sign:    k = derive_nonce(x, m);  R = kG;  h = H(R.x, m);  s = k - h*x mod n
    verify:  x(sG + hP) == R.x

The challenge h is the full first element of the sponge digest. The trace
recomputes the same sponge and rebuilds h from its bit decomposition, so the
two scalar multiplications here follow the exact double/add schedule of the
signature sub-trace.
"""

import hashlib
import itertools
from dataclasses import dataclass
from typing import List, Sequence

from primitives.curve import (
    CURVE_ORDER,
    GENERATOR,
    SCALAR_BYTES,
    AffinePoint,
    point_addition,
    scalar_mul,
    to_affine,
)
from primitives.errors import StructuralError
from primitives.field import ELEMENT_BYTES, STARK_PRIME, element_from_bytes, element_to_bytes, elements_to_bytes
from primitives.rescue import RATE_WIDTH, Digest, hash_chunks
from protocol.air_config import NUM_MESSAGE_CHUNKS

MESSAGE_LENGTH = NUM_MESSAGE_CHUNKS * RATE_WIDTH

_NONCE_TAG = b"transfer-air/schnorr/nonce"


@dataclass(frozen=True)
class Signature:
    """Commitment x-coordinate and response scalar."""
    r_x: int
    s: int

    def to_bytes(self) -> bytes:
        return element_to_bytes(self.r_x) + self.s.to_bytes(SCALAR_BYTES, "little")

    @classmethod
    def from_bytes(cls, data: bytes) -> 'Signature':
        if len(data) != ELEMENT_BYTES + SCALAR_BYTES:
            raise StructuralError(f"signature must be {ELEMENT_BYTES + SCALAR_BYTES} bytes")
        r_x = element_from_bytes(data[:ELEMENT_BYTES])
        s = int.from_bytes(data[ELEMENT_BYTES:], "little")
        return cls(r_x, s)


# --- Messages ---


def build_tx_message(sender_pk: Sequence[int], receiver_pk: Sequence[int],
                     delta: int, nonce: int) -> List[int]:
    """sender pk | receiver pk | delta | sender nonce | 0 | 0"""
    message = [*sender_pk, *receiver_pk, delta, nonce]
    message += [0] * (MESSAGE_LENGTH - len(message))
    return [int(e) % STARK_PRIME for e in message]


def message_chunks(message: Sequence[int]) -> List[List[int]]:
    if len(message) != MESSAGE_LENGTH:
        raise StructuralError(f"message must have {MESSAGE_LENGTH} elements, got {len(message)}")
    return [list(message[i:i + RATE_WIDTH]) for i in range(0, MESSAGE_LENGTH, RATE_WIDTH)]


def hash_message(r_x: int, message: Sequence[int]) -> Digest:
    """Sponge over [r_x, 0, 0, 0] followed by the message chunks."""
    return hash_chunks([r_x, 0, 0, 0], message_chunks(message))


def challenge(r_x: int, message: Sequence[int]) -> int:
    return hash_message(r_x, message)[0]


# --- Keys ---


def _check_secret(secret: int) -> None:
    if not 0 < secret < CURVE_ORDER:
        raise StructuralError("secret key must lie in [1, n)")


def public_key(secret: int) -> AffinePoint:
    _check_secret(secret)
    return to_affine(scalar_mul(GENERATOR, secret))


def derive_nonce(secret: int, message: Sequence[int]) -> int:
    """Deterministic nonce: SHA-512 over the secret and message, reduced mod n."""
    payload = secret.to_bytes(SCALAR_BYTES, "little") + elements_to_bytes(message)
    for counter in itertools.count():
        digest = hashlib.sha512(_NONCE_TAG + counter.to_bytes(4, "little") + payload).digest()
        k = int.from_bytes(digest, "little") % CURVE_ORDER
        if k:
            return k


# --- Sign / Verify ---


def sign(message: Sequence[int], secret: int) -> Signature:
    _check_secret(secret)
    k = derive_nonce(secret, message)
    r_x, _ = to_affine(scalar_mul(GENERATOR, k))
    h = challenge(r_x, message)
    return Signature(r_x, (k - h * secret) % CURVE_ORDER)


def verify(message: Sequence[int], signature: Signature, pk: AffinePoint) -> bool:
    """Reference check of the relation the signature sub-trace enforces."""
    if not 0 <= signature.s < 1 << (8 * SCALAR_BYTES):
        return False
    h = challenge(signature.r_x, message)
    total = point_addition(scalar_mul(GENERATOR, signature.s), scalar_mul(pk, h))
    if total[2] == 0:
        return False
    return to_affine(total)[0] == signature.r_x % STARK_PRIME
