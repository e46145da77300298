"""Data structures for constraint evaluation.

Two views of the same trace feed the constraint module:

    ProverData   - whole columns keyed by (name, index); every constraint
                   evaluates to one value per row.
    VerifierData - single values keyed by (name, index, offset) where
                   offset 0 is the current row and 1 the next row.

Usage:
    ctx = ProverConstraintContext(air.prover_data(trace))
    residuals = constraints.evaluate(ctx)
"""

from dataclasses import dataclass, field

from primitives.field import FF

# Type alias
FFPoly = FF    # Array of base field elements (one value per trace row)


@dataclass
class ProverData:
    """Column data for constraint evaluation over every row.

    Attributes:
        columns: Trace columns keyed by (name, index)
        constants: Periodic and selector columns keyed by name (e.g., '__L1__')
        challenges: Random combination coefficients keyed by name (e.g., 'vc')
        public_inputs: Public inputs keyed by name, each an FF vector
    """
    columns: dict[tuple[str, int], FFPoly] = field(default_factory=dict)
    constants: dict[str, FFPoly] = field(default_factory=dict)
    challenges: dict[str, FF] = field(default_factory=dict)
    public_inputs: dict[str, FF] = field(default_factory=dict)

    def update_columns(self, new_columns: dict[tuple[str, int], FFPoly]) -> None:
        self.columns.update(new_columns)


@dataclass
class VerifierData:
    """Single-row evaluation data.

    Attributes:
        evals: Values keyed by (name, index, offset); constants use index 0
        challenges: Random combination coefficients keyed by name
        public_inputs: Public inputs keyed by name, each an FF vector
    """
    evals: dict[tuple[str, int, int], FF] = field(default_factory=dict)
    challenges: dict[str, FF] = field(default_factory=dict)
    public_inputs: dict[str, FF] = field(default_factory=dict)
