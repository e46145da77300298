"""Base classes for constraint evaluation.

ConstraintContext provides a uniform interface for constraint evaluation that works
for both whole-trace checking (returns arrays) and single-row evaluation (returns
scalars). The same constraint code serves both thanks to galois broadcasting.

Example:
    def eval_constraint(ctx: ConstraintContext):
        a = ctx.col('a')
        b = ctx.next_col('a')
        return ctx.const('step') * (b - a * a)

    # Every row at once (arrays)
    residuals = eval_constraint(ProverConstraintContext(prover_data))

    # One row (scalars)
    residual = eval_constraint(VerifierConstraintContext(verifier_data))
"""

from abc import ABC, abstractmethod
from typing import Dict, Union

import numpy as np

from primitives.field import FF
from protocol.data import ProverData, VerifierData

# Type alias for clarity
FFPoly = FF    # Array of base field elements


class ConstraintContext(ABC):
    """Uniform interface for constraint evaluation over arrays or single rows."""

    @abstractmethod
    def col(self, name: str, index: int = 0) -> Union[FFPoly, FF]:
        """Get column at current row.

        Args:
            name: Register name
            index: Element index within the register group (default 0)

        Returns:
            Prover: array of values at all rows
            Verifier: value at the evaluated row
        """
        pass

    @abstractmethod
    def next_col(self, name: str, index: int = 0) -> Union[FFPoly, FF]:
        """Get column at next row (offset +1).

        Returns:
            Prover: array shifted by -1 (circular)
            Verifier: value at the row after the evaluated one
        """
        pass

    @abstractmethod
    def const(self, name: str) -> Union[FFPoly, FF]:
        """Get periodic or selector column at current row.

        Args:
            name: Constant name (e.g., '__L1__' for the first-row selector)
        """
        pass

    @abstractmethod
    def challenge(self, name: str) -> FF:
        """Get a random combination coefficient (always scalar)."""
        pass

    @abstractmethod
    def public_input(self, name: str, index: int = 0) -> FF:
        """Get element `index` of a public input vector (always scalar)."""
        pass


class ProverConstraintContext(ConstraintContext):
    """Whole-trace implementation - returns column arrays.

    Constraints are evaluated at every row simultaneously, producing one
    residual per row.
    """

    def __init__(self, data: ProverData):
        self._data = data

    def col(self, name: str, index: int = 0) -> FFPoly:
        key = (name, index)
        return self._data.columns[key]

    def next_col(self, name: str, index: int = 0) -> FFPoly:
        return np.roll(self.col(name, index), -1)

    def const(self, name: str) -> FFPoly:
        return self._data.constants[name]

    def challenge(self, name: str) -> FF:
        return self._data.challenges[name]

    def public_input(self, name: str, index: int = 0) -> FF:
        return self._data.public_inputs[name][index]


class VerifierConstraintContext(ConstraintContext):
    """Single-row implementation - returns scalars."""

    def __init__(self, data: VerifierData):
        self._data = data

    def col(self, name: str, index: int = 0) -> FF:
        return self._data.evals[(name, index, 0)]

    def next_col(self, name: str, index: int = 0) -> FF:
        return self._data.evals[(name, index, 1)]

    def const(self, name: str) -> FF:
        # Constants stored in evals with index=0, offset=0
        return self._data.evals[(name, 0, 0)]

    def challenge(self, name: str) -> FF:
        return self._data.challenges[name]

    def public_input(self, name: str, index: int = 0) -> FF:
        return self._data.public_inputs[name][index]


class ConstraintModule(ABC):
    """Per-AIR constraint evaluation.

    Subclasses list their constraints by name; constraint_polynomial folds
    them into a single value with a random coefficient, which is what an
    external prover divides by the vanishing polynomial.
    """

    @abstractmethod
    def evaluate(self, ctx: ConstraintContext) -> Dict[str, Union[FFPoly, FF]]:
        """Evaluate every constraint; each residual vanishes on a valid trace."""
        pass

    def constraint_polynomial(self, ctx: ConstraintContext) -> Union[FFPoly, FF]:
        """Evaluate all constraints combined into a single polynomial.

        Returns:
            Prover: array of combined residuals at all rows
            Verifier: single combined residual
        """
        constraints = list(self.evaluate(ctx).values())
        return self._combine_constraints(constraints, ctx.challenge('vc'))

    def _combine_constraints(self, constraints, vc):
        """Combine constraint list using standard accumulation pattern.

        Computes: ((constraints[0] * vc + constraints[1]) * vc + ...) + constraints[-1]
        """
        acc = constraints[0] * vc
        for i in range(1, len(constraints) - 1):
            acc = (acc + constraints[i]) * vc
        acc = acc + constraints[-1]
        return acc
