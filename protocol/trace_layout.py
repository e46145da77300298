"""Register map of the transaction trace.

Each register group is a contiguous slice of a trace row. Constraint code
addresses columns as (name, index) pairs, matching the keys of ProverData.

    s_leaf      pk_x, pk_y, balance, nonce of the sender before the transfer
    r_leaf      same for the receiver (after the sender update)
    delta       transfer amount
    sig_rx      x-coordinate of the signature commitment
    root        current tree root
    old_lane    hash state over the old leaf and path
    new_lane    hash state over the new leaf and the same path
    sibling     sibling digest for the next merge
    index_bit   leaf index bit for the next merge
    s_acc/s_bit accumulator for s * G, and the current response bit
    h_acc/h_bit accumulator for h * PK, and the current challenge bit
    h_sum       challenge rebuilt from its bits
    h_bound     1 while the challenge bits so far equal those of p - 1
    sig_lane    sponge state deriving the challenge
    *_bit/*_sum range check bit and running sum for delta and both new balances
"""

from typing import Dict, Iterator, List, Tuple

from primitives.curve import PROJECTIVE_POINT_WIDTH
from primitives.merkle_tree import LEAF_WIDTH
from primitives.rescue import DIGEST_SIZE, STATE_WIDTH

REGISTER_WIDTHS: List[Tuple[str, int]] = [
    ('s_leaf', LEAF_WIDTH),
    ('r_leaf', LEAF_WIDTH),
    ('delta', 1),
    ('sig_rx', 1),
    ('root', DIGEST_SIZE),
    ('old_lane', STATE_WIDTH),
    ('new_lane', STATE_WIDTH),
    ('sibling', DIGEST_SIZE),
    ('index_bit', 1),
    ('s_acc', PROJECTIVE_POINT_WIDTH),
    ('s_bit', 1),
    ('h_acc', PROJECTIVE_POINT_WIDTH),
    ('h_bit', 1),
    ('h_sum', 1),
    ('h_bound', 1),
    ('sig_lane', STATE_WIDTH),
    ('delta_bit', 1),
    ('delta_sum', 1),
    ('s_bal_bit', 1),
    ('s_bal_sum', 1),
    ('r_bal_bit', 1),
    ('r_bal_sum', 1),
]


def _build_offsets() -> Dict[str, slice]:
    offsets = {}
    pos = 0
    for name, width in REGISTER_WIDTHS:
        offsets[name] = slice(pos, pos + width)
        pos += width
    return offsets


REGISTERS: Dict[str, slice] = _build_offsets()
TRACE_WIDTH = sum(width for _, width in REGISTER_WIDTHS)

# Scalar-mul register slices [X, Y, Z, bit] used by the in-place curve steps.
S_POINT_STATE = slice(REGISTERS['s_acc'].start, REGISTERS['s_bit'].stop)
H_POINT_STATE = slice(REGISTERS['h_acc'].start, REGISTERS['h_bit'].stop)


def register(name: str) -> slice:
    """Slice of a trace row holding register group `name`."""
    try:
        return REGISTERS[name]
    except KeyError:
        raise KeyError(f"unknown register {name!r}") from None


def column_index(name: str, index: int = 0) -> int:
    """Absolute column of element `index` of register group `name`."""
    reg = register(name)
    if not 0 <= index < reg.stop - reg.start:
        raise IndexError(f"register {name!r} has no element {index}")
    return reg.start + index


def iter_columns() -> Iterator[Tuple[str, int, int]]:
    """Yield (name, index, column) for every trace column."""
    for name, width in REGISTER_WIDTHS:
        start = REGISTERS[name].start
        for i in range(width):
            yield name, i, start + i
