"""Stark curve arithmetic in projective coordinates.

The curve is y^2 = x^3 + alpha*x + beta over the STARK-252 field with
alpha = 1. Its group has prime order, so the complete addition law of
Renes-Costello-Batina covers every input pair, the identity (0 : 1 : 0)
included. That matters for the trace: the accumulators start at the identity
and every row must run the same formula regardless of the data.

The formulas are written over plain +, -, * so they serve two callers:
trace filling (Python ints, reduced afterwards) and constraint evaluation
(galois column arrays).
"""

from typing import List, Sequence, Tuple

from primitives.errors import ArithmeticDegeneracyError, StructuralError
from primitives.field import STARK_PRIME, inv_mod

# --- Curve Constants ---

POINT_COORDINATE_WIDTH = 1
AFFINE_POINT_WIDTH = 2 * POINT_COORDINATE_WIDTH
PROJECTIVE_POINT_WIDTH = 3 * POINT_COORDINATE_WIDTH

CURVE_ALPHA = 1
CURVE_BETA = 0x06F21413EFBE40DE150E596D72F7A8C5609AD26C15C915C1F4CDFCB99CEE9E89
CURVE_ORDER = 0x0800000000000010FFFFFFFFFFFFFFFFB781126DCAE7B2321E66A241ADC64D2F

GENERATOR: Tuple[int, int] = (
    0x01EF15C18599971B7BECED415A40F0C7DEACFD9B0D1819E03D723D8BC943CFCA,
    0x005668060AA49730B7BE4801DF46EC62DE53ECD11ABE43A32873000C36E8DC1F,
)

# 3 * beta, the only curve constant the addition law needs when alpha = 1
B3 = 3 * CURVE_BETA % STARK_PRIME

IDENTITY: Tuple[int, int, int] = (0, 1, 0)

# --- Scalar Constants ---

SCALAR_BYTES = 32
# Double-and-add walks 255 of the 256 encoded bits; the top bit is ignored.
SCALAR_BITS = 255
# Doubling and addition are separate rows.
SCALAR_MUL_LENGTH = 2 * SCALAR_BITS

ProjectivePoint = Tuple[int, int, int]
AffinePoint = Tuple[int, int]


# --- Addition Law ---


def complete_addition(x1, y1, z1, x2, y2, z2, b3):
    """Complete projective addition for alpha = 1.

    X3 = (X1Y2 + X2Y1)(Y1Y2 - (X1Z2 + X2Z1) - 3bZ1Z2)
         - (Y1Z2 + Y2Z1)(X1X2 + 3b(X1Z2 + X2Z1) - Z1Z2)
    Y3 = (3X1X2 + Z1Z2)(X1X2 + 3b(X1Z2 + X2Z1) - Z1Z2)
         + (Y1Y2 + (X1Z2 + X2Z1) + 3bZ1Z2)(Y1Y2 - (X1Z2 + X2Z1) - 3bZ1Z2)
    Z3 = (Y1Z2 + Y2Z1)(Y1Y2 + (X1Z2 + X2Z1) + 3bZ1Z2) + (X1Y2 + X2Y1)(3X1X2 + Z1Z2)

    Also valid for doubling (pass the same point twice). Operands may be ints
    or field arrays; b3 must be of a compatible type. Ints come back unreduced.
    """
    t0 = x1 * x2
    t1 = y1 * y2
    t2 = z1 * z2
    cross_xy = x1 * y2 + x2 * y1
    cross_yz = y1 * z2 + y2 * z1
    cross_xz = x1 * z2 + x2 * z1
    b3_t2 = b3 * t2
    minus = t1 - cross_xz - b3_t2
    plus = t1 + cross_xz + b3_t2
    tangent = t0 + t0 + t0 + t2
    chord = t0 + b3 * cross_xz - t2
    x3 = cross_xy * minus - cross_yz * chord
    y3 = tangent * chord + plus * minus
    z3 = cross_yz * plus + cross_xy * tangent
    return x3, y3, z3


def point_addition(p: Sequence[int], q: Sequence[int]) -> ProjectivePoint:
    """Add two projective points over ints."""
    x3, y3, z3 = complete_addition(p[0], p[1], p[2], q[0], q[1], q[2], B3)
    return x3 % STARK_PRIME, y3 % STARK_PRIME, z3 % STARK_PRIME


def point_doubling(p: Sequence[int]) -> ProjectivePoint:
    """Double a projective point over ints."""
    return point_addition(p, p)


# --- Register-Slice Steps ---
# A scalar multiplication register slice is [X, Y, Z, bit]. Slices of numpy
# object arrays are views, so these updates land in the caller's row buffer.


def apply_point_doubling(state) -> None:
    """Double the point held in state[0:3] in place."""
    state[0:PROJECTIVE_POINT_WIDTH] = point_doubling(state[0:PROJECTIVE_POINT_WIDTH])


def apply_point_addition(state, point: Sequence[int]) -> None:
    """Add `point` to state[0:3] in place when the bit register state[3] is 1."""
    if state[PROJECTIVE_POINT_WIDTH] == 1:
        state[0:PROJECTIVE_POINT_WIDTH] = point_addition(state[0:PROJECTIVE_POINT_WIDTH], point)


# --- Scalars ---


def decompose_scalar(k: int) -> List[int]:
    """Return the 255 low bits of k's 32-byte encoding, most significant first."""
    if not 0 <= k < 1 << (8 * SCALAR_BYTES):
        raise StructuralError(f"scalar does not fit in {SCALAR_BYTES} bytes")
    return [(k >> i) & 1 for i in range(SCALAR_BITS - 1, -1, -1)]


def scalar_mul(point: AffinePoint, k: int) -> ProjectivePoint:
    """Compute k * point with the same decoupled double/add steps as the trace."""
    q = (point[0], point[1], 1)
    state = [*IDENTITY, 0]
    for bit in decompose_scalar(k):
        state[PROJECTIVE_POINT_WIDTH] = bit
        apply_point_doubling(state)
        apply_point_addition(state, q)
    return state[0], state[1], state[2]


# --- Affine Helpers ---


def to_affine(p: Sequence[int]) -> AffinePoint:
    """Normalize (X : Y : Z) to (X/Z, Y/Z)."""
    if p[2] % STARK_PRIME == 0:
        raise ArithmeticDegeneracyError("cannot normalize the point at infinity")
    z_inv = inv_mod(p[2])
    return p[0] * z_inv % STARK_PRIME, p[1] * z_inv % STARK_PRIME


def is_on_curve(x: int, y: int) -> bool:
    return (y * y - (x * x * x + CURVE_ALPHA * x + CURVE_BETA)) % STARK_PRIME == 0
