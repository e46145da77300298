"""Execution trace buffer.

The trace is a preallocated row-major matrix of Python ints (numpy object
dtype, since field elements exceed 64 bits). Row blocks are handed out as
fragments; a fragment is a numpy view, so workers filling disjoint fragments
write straight into the shared buffer without locking.
"""

from typing import Dict, List, Tuple

import numpy as np

from primitives.errors import StructuralError
from primitives.field import FF, STARK_PRIME
from protocol.trace_layout import TRACE_WIDTH, column_index, iter_columns, register


class TraceFragment:
    """A contiguous block of rows [start, start + num_rows) of a trace."""

    def __init__(self, rows: np.ndarray, start: int):
        self.rows = rows
        self.start = start

    def __len__(self) -> int:
        return self.rows.shape[0]

    def row(self, i: int) -> np.ndarray:
        return self.rows[i]


class ExecutionTrace:
    """Row-major trace buffer with TRACE_WIDTH columns."""

    def __init__(self, num_rows: int, width: int = TRACE_WIDTH):
        if num_rows <= 0:
            raise StructuralError(f"trace must have at least one row, got {num_rows}")
        self.buffer = np.zeros((num_rows, width), dtype=object)

    @property
    def num_rows(self) -> int:
        return self.buffer.shape[0]

    @property
    def width(self) -> int:
        return self.buffer.shape[1]

    def fragment(self, start: int, num_rows: int) -> TraceFragment:
        if start < 0 or num_rows <= 0 or start + num_rows > self.num_rows:
            raise StructuralError(
                f"row range [{start}, {start + num_rows}) outside trace of {self.num_rows} rows"
            )
        return TraceFragment(self.buffer[start:start + num_rows], start)

    # --- Register Access ---

    def get(self, row: int, name: str) -> List[int]:
        """Values of register group `name` at `row`."""
        return [int(v) for v in self.buffer[row, register(name)]]

    def set(self, row: int, name: str, values) -> None:
        """Overwrite a register group at `row` (values reduced mod p)."""
        reg = register(name)
        values = [int(v) % STARK_PRIME for v in values]
        if len(values) != reg.stop - reg.start:
            raise StructuralError(f"register {name!r} takes {reg.stop - reg.start} values")
        self.buffer[row, reg] = values

    def column(self, name: str, index: int = 0) -> List[int]:
        return [int(v) for v in self.buffer[:, column_index(name, index)]]

    # --- Conversion ---

    def to_columns(self) -> Dict[Tuple[str, int], FF]:
        """Field columns keyed by (name, index), as constraint contexts expect."""
        return {
            (name, index): FF(self.buffer[:, col].tolist())
            for name, index, col in iter_columns()
        }

    def to_rows(self) -> List[List[int]]:
        """Row-major list of canonical ints, the form an external prover consumes."""
        return [[int(v) for v in row] for row in self.buffer]

    def copy(self) -> 'ExecutionTrace':
        clone = ExecutionTrace.__new__(ExecutionTrace)
        clone.buffer = self.buffer.copy()
        return clone
