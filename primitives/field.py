"""STARK-252 prime field GF(p).

Uses galois library for field arithmetic on columns. FF is the field type.

Large-prime galois fields store elements as Python ints (object dtype), so
trace filling works on plain ints reduced mod p and only converts to FF when
columns are handed to constraint evaluation.
"""

from typing import List, Sequence

import galois

from primitives.errors import StructuralError

# --- Field Construction ---

STARK_PRIME = 2**251 + 17 * 2**192 + 1

ELEMENT_BYTES = 32

FF = galois.GF(STARK_PRIME, primitive_element=3, verify=False)
"""Base field GF(p) - the trace field, also the curve's coordinate field."""


# --- Integer Helpers ---
# Hot loops (hash rounds, point arithmetic) run on ints like the reference
# Poseidon2 code does, reducing mod p explicitly.


def reduce(x: int) -> int:
    """Canonical representative of x mod p."""
    return x % STARK_PRIME


def inv_mod(x: int) -> int:
    """Field inverse. Raises ZeroDivisionError for zero."""
    x %= STARK_PRIME
    if x == 0:
        raise ZeroDivisionError("inverse of zero in GF(p)")
    return pow(x, STARK_PRIME - 2, STARK_PRIME)


# --- Canonical Encoding ---


def element_to_bytes(x: int) -> bytes:
    """Encode a field element as 32 little-endian bytes."""
    return (int(x) % STARK_PRIME).to_bytes(ELEMENT_BYTES, "little")


def element_from_bytes(data: bytes) -> int:
    """Decode 32 little-endian bytes, rejecting non-canonical values."""
    if len(data) != ELEMENT_BYTES:
        raise StructuralError(f"expected {ELEMENT_BYTES} bytes, got {len(data)}")
    value = int.from_bytes(data, "little")
    if value >= STARK_PRIME:
        raise StructuralError("non-canonical field element encoding")
    return value


def elements_to_bytes(elements: Sequence[int]) -> bytes:
    """Concatenate canonical encodings (used for digests)."""
    return b"".join(element_to_bytes(e) for e in elements)


def elements_from_bytes(data: bytes) -> List[int]:
    """Inverse of elements_to_bytes."""
    if len(data) % ELEMENT_BYTES != 0:
        raise StructuralError(f"byte length {len(data)} is not a multiple of {ELEMENT_BYTES}")
    return [
        element_from_bytes(data[i:i + ELEMENT_BYTES])
        for i in range(0, len(data), ELEMENT_BYTES)
    ]
