"""Error types raised while assembling a transaction trace.

Only structural and arithmetic problems raise. An invalid transaction
(bad signature, stale path, out-of-range delta) still produces a trace; the
failure shows up when the constraints are evaluated.
"""


class StructuralError(ValueError):
    """Malformed caller input: mismatched batch lengths, bad tree depth,
    out-of-range indices or non-canonical encodings."""


class ArithmeticDegeneracyError(ZeroDivisionError):
    """A point normalization hit a zero denominator.

    Never happens for honestly generated signatures; always fatal for the
    whole batch.
    """
