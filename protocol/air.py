"""Transaction AIR: trace shape, public inputs and the constraint check.

TransactionAir is what an external proving engine consumes alongside the
trace: the periodic schedule columns, the first/last row selectors, the public
roots and the constraint module. check() evaluates every constraint on every
row, which is the satisfiability test a prover runs before committing.

Example:
    metadata, _ = TransactionMetadata.build_random(5, random.Random(1))
    trace = build_trace(metadata)
    report = TransactionAir(AirConfig(), metadata.public_inputs).check(trace)
    assert report.satisfied
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from constraints.base import ProverConstraintContext, VerifierConstraintContext
from constraints.transaction import TransactionConstraints
from primitives.errors import StructuralError
from primitives.field import FF
from protocol.air_config import AirConfig
from protocol.data import ProverData, VerifierData
from protocol.trace import ExecutionTrace
from protocol.trace_layout import iter_columns
from protocol.transaction import PublicInputs

logger = logging.getLogger(__name__)


@dataclass
class ConstraintReport:
    """Rows on which each failing constraint does not vanish."""
    num_rows: int
    failures: Dict[str, List[int]] = field(default_factory=dict)

    @property
    def satisfied(self) -> bool:
        return not self.failures

    def failing_constraints(self) -> List[str]:
        return sorted(self.failures)


class TransactionAir:
    """Constraint description of a transaction batch of known size."""

    def __init__(self, config: AirConfig, public_inputs: PublicInputs):
        self.config = config
        self.public_inputs = public_inputs
        self.constraints = TransactionConstraints()
        self._periodic = config.periodic_columns()

    # --- Shape ---

    def num_transactions(self, trace: ExecutionTrace) -> int:
        length = self.config.cycle_length
        if trace.num_rows % length:
            raise StructuralError(
                f"trace of {trace.num_rows} rows is not a whole number of {length}-row cycles"
            )
        return trace.num_rows // length

    def assertions(self, num_rows: int) -> List[Tuple[str, int, int, int]]:
        """Boundary assertions as (register, index, row, value)."""
        out = []
        for i, v in enumerate(self.public_inputs.initial_root):
            out.append(('root', i, 0, v))
        for i, v in enumerate(self.public_inputs.final_root):
            out.append(('root', i, num_rows - 1, v))
        return out

    # --- Evaluation Data ---

    def constant_columns(self, num_rows: int) -> Dict[str, List[int]]:
        """Periodic columns tiled over the trace, plus first/last row selectors."""
        cycles = num_rows // self.config.cycle_length
        cols = {name: values * cycles for name, values in self._periodic.items()}
        cols['__L1__'] = [1] + [0] * (num_rows - 1)
        cols['__LAST__'] = [0] * (num_rows - 1) + [1]
        return cols

    def _public_inputs(self) -> Dict[str, FF]:
        return {
            'initial_root': FF(list(self.public_inputs.initial_root)),
            'final_root': FF(list(self.public_inputs.final_root)),
        }

    def prover_data(self, trace: ExecutionTrace, challenges: Optional[Dict[str, FF]] = None) -> ProverData:
        self.num_transactions(trace)
        constants = {name: FF(values) for name, values in self.constant_columns(trace.num_rows).items()}
        return ProverData(
            columns=trace.to_columns(),
            constants=constants,
            challenges=dict(challenges or {}),
            public_inputs=self._public_inputs(),
        )

    def verifier_data(self, trace: ExecutionTrace, row: int,
                      challenges: Optional[Dict[str, FF]] = None) -> VerifierData:
        """Values of row and row + 1 (wrapping) for single-row evaluation."""
        self.num_transactions(trace)
        n = trace.num_rows
        evals = {}
        for name, index, col in iter_columns():
            evals[(name, index, 0)] = FF(int(trace.buffer[row, col]))
            evals[(name, index, 1)] = FF(int(trace.buffer[(row + 1) % n, col]))
        for name, values in self.constant_columns(n).items():
            evals[(name, 0, 0)] = FF(values[row])
        return VerifierData(
            evals=evals,
            challenges=dict(challenges or {}),
            public_inputs=self._public_inputs(),
        )

    # --- Checks ---

    def check(self, trace: ExecutionTrace) -> ConstraintReport:
        """Evaluate every constraint on every row of the trace."""
        start = time.perf_counter()
        ctx = ProverConstraintContext(self.prover_data(trace))
        report = ConstraintReport(num_rows=trace.num_rows)
        residuals = self.constraints.evaluate(ctx)
        for name, residual in residuals.items():
            rows = np.flatnonzero(np.asarray(residual.view(np.ndarray) != 0))
            if len(rows):
                report.failures[name] = [int(r) for r in rows]
        logger.debug("checked %d constraints over %d rows in %.3fs (%d failing)",
                     len(residuals), trace.num_rows, time.perf_counter() - start,
                     len(report.failures))
        return report

    def evaluate_row(self, trace: ExecutionTrace, row: int) -> Dict[str, FF]:
        """Constraint residuals on a single row."""
        ctx = VerifierConstraintContext(self.verifier_data(trace, row))
        return self.constraints.evaluate(ctx)

    def constraint_polynomial(self, trace: ExecutionTrace, vc: FF) -> FF:
        """All constraints folded with coefficient vc, one value per row."""
        ctx = ProverConstraintContext(self.prover_data(trace, {'vc': vc}))
        return self.constraints.constraint_polynomial(ctx)
