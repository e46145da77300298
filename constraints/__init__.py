"""Constraint evaluation modules.

Each AIR has its own ConstraintModule that evaluates its constraints directly
in readable Python code, through a ConstraintContext that serves either whole
columns or a single row.
"""

from .base import (
    ConstraintContext,
    ConstraintModule,
    ProverConstraintContext,
    VerifierConstraintContext,
)
from .transaction import TransactionConstraints

__all__ = [
    "ConstraintContext",
    "ProverConstraintContext",
    "VerifierConstraintContext",
    "ConstraintModule",
    "TransactionConstraints",
]
