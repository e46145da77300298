"""AIR configuration and the per-cycle row schedule.

One transaction occupies a cycle of L rows split into four phases:

    SENDER_PATH    (depth + 1) * 8 rows   old/new sender leaf hashed up the tree
    SIGNATURE      512 rows               challenge sponge + two scalar muls
    RANGE_CHECK    64 rows                bit decompositions of delta and balances
    RECEIVER_PATH  (depth + 1) * 8 rows   old/new receiver leaf hashed up the tree

Which operation a row performs is a pure function of its position in the
cycle. The periodic columns below spell that schedule out as 0/1 flags (and
the round constants), so the constraint module never branches on trace data.

Example:
    config = AirConfig(tree_depth=3)
    assert config.cycle_length == 640
    config.phase_of(100)  # Phase.SIGNATURE
"""

import json
from dataclasses import dataclass, fields
from enum import Enum
from typing import Dict, List

from primitives.curve import SCALAR_MUL_LENGTH, decompose_scalar
from primitives.errors import StructuralError
from primitives.field import STARK_PRIME
from primitives.rescue import ARK1, ARK2, HASH_CYCLE_LENGTH, NUM_HASH_ROUNDS, STATE_WIDTH

# --- Protocol Constants ---

# Sponge permutations for the challenge: one over [r_x, 0, 0, 0], one per chunk.
NUM_MESSAGE_CHUNKS = 4
NUM_HASH_ITER = NUM_MESSAGE_CHUNKS + 1
SIG_HASH_LENGTH = NUM_HASH_ITER * HASH_CYCLE_LENGTH

# 510 double/add rows, one finalization row, one x-coordinate check row.
SIG_CYCLE_LENGTH = SCALAR_MUL_LENGTH + 2

# The challenge bits must encode a value <= p - 1, otherwise h + j*p would
# pass the field comparison with a different scalar.
CHALLENGE_BOUND_BITS = decompose_scalar(STARK_PRIME - 1)

RANGE_BITS = 64


class Phase(Enum):
    SENDER_PATH = 0
    SIGNATURE = 1
    RANGE_CHECK = 2
    RECEIVER_PATH = 3


# --- AIR Configuration ---


@dataclass(frozen=True)
class AirConfig:
    """Tree depth plus the derived cycle geometry.

    The depth is validated once here: depth + 1 must be a power of two so
    every path phase is a whole number of hash cycles.

    Usage:
        config = AirConfig.from_json("air.json")   # {"tree_depth": 3}
    """

    tree_depth: int = 3

    def __post_init__(self):
        depth = self.tree_depth
        if isinstance(depth, bool) or not isinstance(depth, int) or depth < 1:
            raise StructuralError(f"tree depth must be a positive integer, got {depth!r}")
        if (depth + 1) & depth:
            raise StructuralError(f"tree depth + 1 must be a power of two, got depth {depth}")

    @classmethod
    def from_json(cls, path: str) -> 'AirConfig':
        """Load from a JSON object such as {"tree_depth": 3}.

        Unknown keys are rejected rather than ignored.
        """
        with open(path, 'r') as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise StructuralError("AIR configuration must be a JSON object")
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise StructuralError(f"unknown configuration keys: {sorted(unknown)}")
        return cls(**data)

    # --- Geometry ---

    @property
    def num_leaves(self) -> int:
        return 1 << self.tree_depth

    @property
    def path_length(self) -> int:
        """Rows per path phase: one leaf hash plus one merge per level."""
        return (self.tree_depth + 1) * HASH_CYCLE_LENGTH

    @property
    def cycle_length(self) -> int:
        return 2 * self.path_length + SIG_CYCLE_LENGTH + RANGE_BITS

    def phase_ranges(self) -> Dict[Phase, range]:
        p = self.path_length
        sig_start = p
        range_start = sig_start + SIG_CYCLE_LENGTH
        receiver_start = range_start + RANGE_BITS
        return {
            Phase.SENDER_PATH: range(0, sig_start),
            Phase.SIGNATURE: range(sig_start, range_start),
            Phase.RANGE_CHECK: range(range_start, receiver_start),
            Phase.RECEIVER_PATH: range(receiver_start, receiver_start + p),
        }

    def phase_of(self, step: int) -> Phase:
        """Phase tag of a global step (taken modulo the cycle length)."""
        local = step % self.cycle_length
        for phase, rows in self.phase_ranges().items():
            if local in rows:
                return phase
        raise AssertionError("phase ranges do not cover the cycle")

    def trace_length(self, num_transactions: int) -> int:
        return num_transactions * self.cycle_length

    # --- Periodic Columns ---

    def periodic_columns(self) -> Dict[str, List[int]]:
        """Per-cycle schedule columns, each of length cycle_length.

        Flags that describe a transition (row t -> t + 1) are set on row t.
        Round constants follow the global row index mod 8; every phase starts
        on a multiple of 8 so this lines up with the local hash cycles.
        """
        n = self.cycle_length
        ranges = self.phase_ranges()
        p = self.path_length
        names = [
            'merkle_round', 'merkle_inject', 'root_commit',
            'sender_start', 'receiver_start',
            'sig_start', 'sig_round', 'sig_zero', 'sig_hash_hold',
            'sig_double', 'sig_add', 'sig_bit_row', 'sig_bound_bit', 'sig_finalize', 'sig_check',
            'range_start', 'range_step', 'range_bit_row', 'range_end',
            'cycle_continue',
        ]
        names += [f'sig_inject_{k}' for k in range(NUM_MESSAGE_CHUNKS)]
        cols = {name: [0] * n for name in names}
        for j in range(STATE_WIDTH):
            cols[f'ark1_{j}'] = [0] * n
            cols[f'ark2_{j}'] = [0] * n

        for t in range(n):
            r = t % HASH_CYCLE_LENGTH
            if r < NUM_HASH_ROUNDS:
                for j in range(STATE_WIDTH):
                    cols[f'ark1_{j}'][t] = ARK1[r][j]
                    cols[f'ark2_{j}'][t] = ARK2[r][j]
            if t < n - 1:
                cols['cycle_continue'][t] = 1

        for phase in (Phase.SENDER_PATH, Phase.RECEIVER_PATH):
            start = ranges[phase].start
            for u in range(p):
                r, c = u % HASH_CYCLE_LENGTH, u // HASH_CYCLE_LENGTH
                if r < NUM_HASH_ROUNDS:
                    cols['merkle_round'][start + u] = 1
                elif c < self.tree_depth:
                    cols['merkle_inject'][start + u] = 1
            # the last round of the root hash lands on row p - 1
            cols['root_commit'][start + p - 2] = 1
        cols['sender_start'][ranges[Phase.SENDER_PATH].start] = 1
        cols['receiver_start'][ranges[Phase.RECEIVER_PATH].start] = 1

        start = ranges[Phase.SIGNATURE].start
        cols['sig_start'][start] = 1
        for v in range(SIG_CYCLE_LENGTH):
            t = start + v
            if v < SIG_HASH_LENGTH:
                r, k = v % HASH_CYCLE_LENGTH, v // HASH_CYCLE_LENGTH
                if r < NUM_HASH_ROUNDS:
                    cols['sig_round'][t] = 1
                elif k < NUM_MESSAGE_CHUNKS:
                    cols[f'sig_inject_{k}'][t] = 1
                else:
                    cols['sig_zero'][t] = 1
            elif v < SCALAR_MUL_LENGTH:
                cols['sig_hash_hold'][t] = 1
            if v < SCALAR_MUL_LENGTH:
                cols['sig_bit_row'][t] = 1
                cols['sig_double' if v % 2 == 0 else 'sig_add'][t] = 1
                cols['sig_bound_bit'][t] = CHALLENGE_BOUND_BITS[v // 2]
        cols['sig_finalize'][start + SCALAR_MUL_LENGTH] = 1
        cols['sig_check'][start + SCALAR_MUL_LENGTH + 1] = 1

        start = ranges[Phase.RANGE_CHECK].start
        cols['range_start'][start] = 1
        cols['range_end'][start + RANGE_BITS - 1] = 1
        for w in range(RANGE_BITS):
            cols['range_bit_row'][start + w] = 1
            if w < RANGE_BITS - 1:
                cols['range_step'][start + w] = 1

        return cols
