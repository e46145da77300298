"""Rescue-style permutation over the STARK-252 field.

The permutation backs both the two-to-one Merkle compression and the sponge
that derives a signature challenge. One round is

    s <- s^3;  s <- MDS * s + ark1[r];  s <- s^(1/3);  s <- MDS * s + ark2[r]

Cubing is a permutation of GF(p) because gcd(3, p - 1) = 1. Each round maps
to one trace row; the row-to-row constraint avoids the cube root:

    MDS^-1 * (next - ark2[r]) ^ 3 == MDS * cur^3 + ark1[r]

State layout: the first DIGEST_SIZE elements carry the chaining value, the
last RATE_WIDTH elements take message chunks.
"""

import hashlib
from typing import List, Sequence

import numpy as np

from primitives.field import FF, STARK_PRIME

# --- Constants ---

DIGEST_SIZE = 2
RATE_WIDTH = 2
STATE_WIDTH = DIGEST_SIZE + RATE_WIDTH

ALPHA = 3
INV_ALPHA = pow(ALPHA, -1, STARK_PRIME - 1)

NUM_HASH_ROUNDS = 7
# One extra row per cycle to inject the next chunk (or hold).
HASH_CYCLE_LENGTH = NUM_HASH_ROUNDS + 1

_DOMAIN_TAG = b"transfer-air/rescue252/round-constants"

Digest = List[int]


def _cauchy_mds(width: int) -> List[List[int]]:
    """M[i][j] = 1 / (i + j + 1); every square submatrix of a Cauchy matrix is invertible."""
    return [[pow(i + j + 1, -1, STARK_PRIME) for j in range(width)] for i in range(width)]


def _round_constants(n_rounds: int, width: int) -> List[List[int]]:
    """Expand SHAKE-256 over the domain tag into 2 * n_rounds rows of constants."""
    stream = hashlib.shake_256(_DOMAIN_TAG).digest(2 * n_rounds * width * 32)
    values = [
        int.from_bytes(stream[i:i + 32], "little") % STARK_PRIME
        for i in range(0, len(stream), 32)
    ]
    return [values[r * width:(r + 1) * width] for r in range(2 * n_rounds)]


MDS: List[List[int]] = _cauchy_mds(STATE_WIDTH)
MDS_INV: List[List[int]] = [
    [int(v) for v in row] for row in np.linalg.inv(FF(MDS))
]

_ARK = _round_constants(NUM_HASH_ROUNDS, STATE_WIDTH)
ARK1: List[List[int]] = _ARK[0::2]
ARK2: List[List[int]] = _ARK[1::2]


# --- Round Function ---


def _mds_mul(matrix: List[List[int]], state: Sequence[int]) -> List[int]:
    return [
        sum(m * s for m, s in zip(row, state)) % STARK_PRIME
        for row in matrix
    ]


def apply_round(state, round_index: int) -> None:
    """Apply round `round_index` to a STATE_WIDTH slice in place."""
    s = [pow(int(x), ALPHA, STARK_PRIME) for x in state]
    s = _mds_mul(MDS, s)
    s = [(x + c) % STARK_PRIME for x, c in zip(s, ARK1[round_index])]
    s = [pow(x, INV_ALPHA, STARK_PRIME) for x in s]
    s = _mds_mul(MDS, s)
    state[0:STATE_WIDTH] = [(x + c) % STARK_PRIME for x, c in zip(s, ARK2[round_index])]


def permute(state: Sequence[int]) -> List[int]:
    """Run all rounds on a copy of the state."""
    if len(state) != STATE_WIDTH:
        raise ValueError(f"state must have {STATE_WIDTH} elements, got {len(state)}")
    result = [int(x) % STARK_PRIME for x in state]
    for r in range(NUM_HASH_ROUNDS):
        apply_round(result, r)
    return result


# --- Hash Modes ---


def merge(left: Sequence[int], right: Sequence[int]) -> Digest:
    """Two-to-one compression: permute(left || right) truncated to a digest."""
    if len(left) != DIGEST_SIZE or len(right) != DIGEST_SIZE:
        raise ValueError(f"merge takes two {DIGEST_SIZE}-element digests")
    return permute([*left, *right])[:DIGEST_SIZE]


def hash_chunks(initial: Sequence[int], chunks: Sequence[Sequence[int]]) -> Digest:
    """Sponge mode: permute `initial`, then overwrite the rate half with each
    chunk and permute again. Returns the chaining half of the final state.
    """
    state = permute(initial)
    for chunk in chunks:
        if len(chunk) != RATE_WIDTH:
            raise ValueError(f"chunks must have {RATE_WIDTH} elements, got {len(chunk)}")
        state[DIGEST_SIZE:] = [int(c) % STARK_PRIME for c in chunk]
        state = permute(state)
    return state[:DIGEST_SIZE]
