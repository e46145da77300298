"""Range check phase: 64-bit decompositions of delta and both new balances.

Row w carries bit w (most significant first) of each value and the running
sum of the bits seen so far, so the last row's sums equal the values exactly
when each value is below 2^64. Values outside the range are decomposed from
their low 64 bits; the sums then miss the value and the final-row constraint
fails, which is how an overdraft or overflow surfaces.
"""

from typing import Dict, List

import numpy as np

from primitives.field import STARK_PRIME
from protocol.air_config import RANGE_BITS, Phase
from protocol.trace_layout import register
from protocol.transaction import TransactionRecord
from .base import WitnessModule

RANGE_MASK = (1 << RANGE_BITS) - 1

_COLUMNS = {
    'delta': (register('delta_bit').start, register('delta_sum').start),
    's_bal': (register('s_bal_bit').start, register('s_bal_sum').start),
    'r_bal': (register('r_bal_bit').start, register('r_bal_sum').start),
}


def decompose_range(value: int) -> List[int]:
    """Low RANGE_BITS bits of a field element, most significant first."""
    low = (value % STARK_PRIME) & RANGE_MASK
    return [(low >> i) & 1 for i in range(RANGE_BITS - 1, -1, -1)]


def range_checked_values(record: TransactionRecord) -> Dict[str, int]:
    delta = record.delta % STARK_PRIME
    return {
        'delta': delta,
        's_bal': (record.sender_leaf[2] - delta) % STARK_PRIME,
        'r_bal': (record.receiver_leaf[2] + delta) % STARK_PRIME,
    }


class RangeCheckWitness(WitnessModule):
    phase = Phase.RANGE_CHECK

    def prepare(self, record: TransactionRecord) -> Dict[str, List[int]]:
        return {key: decompose_range(v) for key, v in range_checked_values(record).items()}

    def enter(self, row: np.ndarray, data: Dict[str, List[int]]) -> None:
        for key, (bit_col, sum_col) in _COLUMNS.items():
            row[bit_col] = data[key][0]
            row[sum_col] = data[key][0]

    def step(self, cur: np.ndarray, nxt: np.ndarray, local: int, data: Dict[str, List[int]]) -> None:
        if local + 1 >= RANGE_BITS:
            return
        for key, (bit_col, sum_col) in _COLUMNS.items():
            bit = data[key][local + 1]
            nxt[bit_col] = bit
            nxt[sum_col] = 2 * cur[sum_col] + bit
