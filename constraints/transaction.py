"""Transaction AIR constraint evaluation.

Constraints come in three kinds:

- Transition constraints relate row t to row t + 1. Each is multiplied by a
  periodic flag selecting the rows it applies to, and by (1 - __LAST__) so
  the wrap-around from the last row to row 0 is never checked.
- Row constraints pin values on a single row (phase starts, final checks,
  booleanity), selected by a periodic flag.
- Boundary constraints tie the root register to the public initial root on
  the first row and to the public final root on the last row.

Each constraint evaluates to zero on a valid trace. evaluate() returns them
by name so failures can be reported per constraint.
"""

from typing import Dict, List, Union

from primitives.curve import B3, GENERATOR, IDENTITY, PROJECTIVE_POINT_WIDTH, complete_addition
from primitives.field import FF
from primitives.rescue import DIGEST_SIZE, MDS, MDS_INV, STATE_WIDTH
from protocol.air_config import NUM_MESSAGE_CHUNKS
from protocol.trace_layout import REGISTERS
from .base import ConstraintContext, ConstraintModule, FFPoly

Residual = Union[FFPoly, FF]

ONE = FF(1)
TWO = FF(2)

_MDS = [[FF(v) for v in row] for row in MDS]
_MDS_INV = [[FF(v) for v in row] for row in MDS_INV]
_B3 = FF(B3)
_GENERATOR = [FF(GENERATOR[0]), FF(GENERATOR[1]), ONE]
_IDENTITY = [FF(v) for v in IDENTITY]

# (bit register, sum register) per range-checked value
RANGE_REGISTERS = {
    'delta': ('delta_bit', 'delta_sum'),
    's_bal': ('s_bal_bit', 's_bal_sum'),
    'r_bal': ('r_bal_bit', 'r_bal_sum'),
}


# --- Helpers ---


def _cur(ctx: ConstraintContext, name: str) -> List[Residual]:
    reg = REGISTERS[name]
    return [ctx.col(name, i) for i in range(reg.stop - reg.start)]


def _next(ctx: ConstraintContext, name: str) -> List[Residual]:
    reg = REGISTERS[name]
    return [ctx.next_col(name, i) for i in range(reg.stop - reg.start)]


def _dot(row, vec):
    acc = row[0] * vec[0]
    for m, v in zip(row[1:], vec[1:]):
        acc = acc + m * v
    return acc


def round_residuals(cur, nxt, ark1, ark2) -> List[Residual]:
    """MDS^-1 (next - ark2)^3 - (MDS cur^3 + ark1), elementwise."""
    cubed = [x * x * x for x in cur]
    forward = [_dot(row, cubed) + c for row, c in zip(_MDS, ark1)]
    shifted = [n - c for n, c in zip(nxt, ark2)]
    backward = [_dot(row, shifted) for row in _MDS_INV]
    return [b * b * b - f for b, f in zip(backward, forward)]


def _select(bit, if_one, if_zero):
    return if_zero + bit * (if_one - if_zero)


def _binary(bit):
    return bit * bit - bit


# --- Constraint Module ---


class TransactionConstraints(ConstraintModule):
    """Constraint evaluation for the transaction AIR.

    The module reads the per-cycle schedule from periodic constant columns
    (see AirConfig.periodic_columns) and the public roots from public inputs
    'initial_root' and 'final_root'.
    """

    def evaluate(self, ctx: ConstraintContext) -> Dict[str, Residual]:
        out: Dict[str, Residual] = {}
        tr = ONE - ctx.const('__LAST__')
        self._merkle(ctx, tr, out)
        self._registers(ctx, tr, out)
        self._signature(ctx, tr, out)
        self._range_check(ctx, tr, out)
        self._boundaries(ctx, out)
        return out

    # --- Merkle paths and root chaining ---

    def _merkle(self, ctx: ConstraintContext, tr, out: Dict[str, Residual]) -> None:
        ark1 = [ctx.const(f'ark1_{j}') for j in range(STATE_WIDTH)]
        ark2 = [ctx.const(f'ark2_{j}') for j in range(STATE_WIDTH)]
        round_flag = tr * ctx.const('merkle_round')
        inject_flag = tr * ctx.const('merkle_inject')
        commit = ctx.const('root_commit')

        sibling, next_sibling = _cur(ctx, 'sibling'), _next(ctx, 'sibling')
        bit, next_bit = ctx.col('index_bit'), ctx.next_col('index_bit')

        for lane in ('old_lane', 'new_lane'):
            cur, nxt = _cur(ctx, lane), _next(ctx, lane)
            for i, res in enumerate(round_residuals(cur, nxt, ark1, ark2)):
                out[f'merkle_round_{lane}_{i}'] = round_flag * res
            # bit 1: node is the right child, so the sibling goes first
            digest = cur[:DIGEST_SIZE]
            for i in range(DIGEST_SIZE):
                left = _select(bit, sibling[i], digest[i])
                right = _select(bit, digest[i], sibling[i])
                out[f'merkle_inject_{lane}_left_{i}'] = inject_flag * (nxt[i] - left)
                out[f'merkle_inject_{lane}_right_{i}'] = inject_flag * (nxt[DIGEST_SIZE + i] - right)

        for i in range(DIGEST_SIZE):
            out[f'merkle_sibling_hold_{i}'] = round_flag * (next_sibling[i] - sibling[i])
        out['merkle_index_bit_hold'] = round_flag * (next_bit - bit)
        out['merkle_index_bit_binary'] = ctx.const('merkle_inject') * _binary(bit)

        root, next_root = _cur(ctx, 'root'), _next(ctx, 'root')
        next_old, next_new = _next(ctx, 'old_lane'), _next(ctx, 'new_lane')
        for i in range(DIGEST_SIZE):
            out[f'root_commit_old_{i}'] = tr * commit * (next_old[i] - root[i])
            out[f'root_commit_new_{i}'] = tr * commit * (next_root[i] - next_new[i])
            out[f'root_hold_{i}'] = tr * (ONE - commit) * (next_root[i] - root[i])

    # --- Leaf updates and held registers ---

    def _registers(self, ctx: ConstraintContext, tr, out: Dict[str, Residual]) -> None:
        s_leaf, r_leaf = _cur(ctx, 's_leaf'), _cur(ctx, 'r_leaf')
        delta = ctx.col('delta')
        old_lane, new_lane = _cur(ctx, 'old_lane'), _cur(ctx, 'new_lane')

        sender_new = [s_leaf[0], s_leaf[1], s_leaf[2] - delta, s_leaf[3] + ONE]
        receiver_new = [r_leaf[0], r_leaf[1], r_leaf[2] + delta, r_leaf[3]]
        sender_start = ctx.const('sender_start')
        receiver_start = ctx.const('receiver_start')
        for i in range(STATE_WIDTH):
            out[f'sender_old_leaf_{i}'] = sender_start * (old_lane[i] - s_leaf[i])
            out[f'sender_new_leaf_{i}'] = sender_start * (new_lane[i] - sender_new[i])
            out[f'receiver_old_leaf_{i}'] = receiver_start * (old_lane[i] - r_leaf[i])
            out[f'receiver_new_leaf_{i}'] = receiver_start * (new_lane[i] - receiver_new[i])

        hold = tr * ctx.const('cycle_continue')
        for name in ('s_leaf', 'r_leaf', 'delta', 'sig_rx'):
            for i, (c, n) in enumerate(zip(_cur(ctx, name), _next(ctx, name))):
                out[f'{name}_hold_{i}'] = hold * (n - c)

    # --- Signature verification ---

    def _signature(self, ctx: ConstraintContext, tr, out: Dict[str, Residual]) -> None:
        s_leaf, r_leaf = _cur(ctx, 's_leaf'), _cur(ctx, 'r_leaf')
        sig_rx = ctx.col('sig_rx')

        # Challenge sponge
        lane, next_lane = _cur(ctx, 'sig_lane'), _next(ctx, 'sig_lane')
        ark1 = [ctx.const(f'ark1_{j}') for j in range(STATE_WIDTH)]
        ark2 = [ctx.const(f'ark2_{j}') for j in range(STATE_WIDTH)]
        round_flag = tr * ctx.const('sig_round')
        for i, res in enumerate(round_residuals(lane, next_lane, ark1, ark2)):
            out[f'sig_round_{i}'] = round_flag * res

        chunks = [
            [s_leaf[0], s_leaf[1]],
            [r_leaf[0], r_leaf[1]],
            [ctx.col('delta'), s_leaf[3]],
            [FF(0), FF(0)],
        ]
        inject = [ctx.const(f'sig_inject_{k}') for k in range(NUM_MESSAGE_CHUNKS)]
        absorb = ctx.const('sig_zero')
        for flag in inject:
            absorb = absorb + flag
        for i in range(DIGEST_SIZE):
            out[f'sig_absorb_keep_{i}'] = tr * absorb * (next_lane[i] - lane[i])
            expected = inject[0] * chunks[0][i]
            for k in range(1, NUM_MESSAGE_CHUNKS):
                expected = expected + inject[k] * chunks[k][i]
            out[f'sig_absorb_rate_{i}'] = tr * (absorb * next_lane[DIGEST_SIZE + i] - expected)
        hash_hold = tr * ctx.const('sig_hash_hold')
        for i in range(STATE_WIDTH):
            out[f'sig_hash_hold_{i}'] = hash_hold * (next_lane[i] - lane[i])

        start = ctx.const('sig_start')
        initial_lane = [sig_rx, FF(0), FF(0), FF(0)]
        for i in range(STATE_WIDTH):
            out[f'sig_start_lane_{i}'] = start * (lane[i] - initial_lane[i])

        # Scalar multiplications s * G and h * PK
        public_key = [s_leaf[0], s_leaf[1], ONE]
        double = tr * ctx.const('sig_double')
        add = tr * ctx.const('sig_add')
        bit_row = ctx.const('sig_bit_row')
        for acc_name, bit_name, point in (('s_acc', 's_bit', _GENERATOR), ('h_acc', 'h_bit', public_key)):
            acc, next_acc = _cur(ctx, acc_name), _next(ctx, acc_name)
            bit, next_bit = ctx.col(bit_name), ctx.next_col(bit_name)
            doubled = complete_addition(*acc, *acc, _B3)
            added = complete_addition(*acc, *point, _B3)
            for i in range(PROJECTIVE_POINT_WIDTH):
                out[f'sig_start_{acc_name}_{i}'] = start * (acc[i] - _IDENTITY[i])
                out[f'sig_double_{acc_name}_{i}'] = double * (next_acc[i] - doubled[i])
                out[f'sig_add_{acc_name}_{i}'] = add * (next_acc[i] - _select(bit, added[i], acc[i]))
            out[f'sig_bit_pair_{bit_name}'] = double * (next_bit - bit)
            out[f'sig_bit_binary_{bit_name}'] = bit_row * _binary(bit)

        h_sum, next_h_sum = ctx.col('h_sum'), ctx.next_col('h_sum')
        out['sig_start_h_sum'] = start * h_sum
        out['sig_h_sum_double'] = double * (next_h_sum - TWO * h_sum - ctx.col('h_bit'))
        out['sig_h_sum_hold'] = add * (next_h_sum - h_sum)

        # h_sum <= p - 1: while the bits match p - 1, a 1 where p - 1 has a 0 is rejected
        h_bit = ctx.col('h_bit')
        bound_bit = ctx.const('sig_bound_bit')
        h_bound, next_h_bound = ctx.col('h_bound'), ctx.next_col('h_bound')
        out['sig_start_h_bound'] = start * (h_bound - ONE)
        out['sig_h_bound_step'] = double * (next_h_bound - h_bound * (ONE - bound_bit * (ONE - h_bit)))
        out['sig_h_bound_hold'] = add * (next_h_bound - h_bound)
        out['sig_h_canonical'] = double * h_bound * (ONE - bound_bit) * h_bit

        # Finalization: sum the accumulators, normalize x, prove Z != 0
        finalize = ctx.const('sig_finalize')
        s_acc, h_acc = _cur(ctx, 's_acc'), _cur(ctx, 'h_acc')
        next_s, next_h = _next(ctx, 's_acc'), _next(ctx, 'h_acc')
        x, y, z = complete_addition(*s_acc, *h_acc, _B3)
        out['sig_finalize_x'] = tr * finalize * (next_s[0] * z - x)
        out['sig_finalize_y'] = tr * finalize * (next_s[1] - y)
        out['sig_finalize_z'] = tr * finalize * (next_s[2] - z)
        out['sig_finalize_z_inverse'] = tr * finalize * (next_h[0] * z - ONE)
        out['sig_challenge'] = finalize * (h_sum - lane[0])
        out['sig_check'] = ctx.const('sig_check') * (s_acc[0] - sig_rx)

    # --- Range checks ---

    def _range_check(self, ctx: ConstraintContext, tr, out: Dict[str, Residual]) -> None:
        s_leaf, r_leaf = _cur(ctx, 's_leaf'), _cur(ctx, 'r_leaf')
        delta = ctx.col('delta')
        values = {
            'delta': delta,
            's_bal': s_leaf[2] - delta,
            'r_bal': r_leaf[2] + delta,
        }
        start = ctx.const('range_start')
        step = tr * ctx.const('range_step')
        bit_row = ctx.const('range_bit_row')
        end = ctx.const('range_end')
        for key, (bit_name, sum_name) in RANGE_REGISTERS.items():
            bit, acc = ctx.col(bit_name), ctx.col(sum_name)
            out[f'range_{key}_start'] = start * (acc - bit)
            out[f'range_{key}_step'] = step * (ctx.next_col(sum_name) - TWO * acc - ctx.next_col(bit_name))
            out[f'range_{key}_binary'] = bit_row * _binary(bit)
            out[f'range_{key}_end'] = end * (acc - values[key])

    # --- Boundaries ---

    def _boundaries(self, ctx: ConstraintContext, out: Dict[str, Residual]) -> None:
        root = _cur(ctx, 'root')
        first, last = ctx.const('__L1__'), ctx.const('__LAST__')
        for i in range(DIGEST_SIZE):
            out[f'initial_root_{i}'] = first * (root[i] - ctx.public_input('initial_root', i))
            out[f'final_root_{i}'] = last * (root[i] - ctx.public_input('final_root', i))
