"""Signature phase: challenge sponge plus the two scalar multiplications.

Step v of the 512-row phase:

    v < 40, v % 8 < 7       sponge round on sig_lane
    v in {7, 15, 23, 31}    load message chunk v // 8 into the rate half
    v == 39                 zero the rate half
    40 <= v < 510           sig_lane held
    even v < 510            double s_acc and h_acc, h_sum = 2 h_sum + h_bit,
                            clear h_bound once h drops below p - 1
    odd v < 510             add G to s_acc / PK to h_acc when the bit is 1
    v == 510                sum the accumulators, store (X/Z, Y, Z) and 1/Z
    v == 511                s_acc.X must equal the commitment x

Row v carries bit v // 2 (most significant first) of the response s and the
challenge h, so each bit is used by one doubling row and one addition row.
"""

import logging
from typing import List, NamedTuple, Sequence

import numpy as np

from primitives.curve import (
    GENERATOR,
    IDENTITY,
    SCALAR_MUL_LENGTH,
    AffinePoint,
    apply_point_addition,
    apply_point_doubling,
    decompose_scalar,
    point_addition,
)
from primitives.errors import ArithmeticDegeneracyError
from primitives.field import STARK_PRIME, inv_mod
from primitives.rescue import DIGEST_SIZE, HASH_CYCLE_LENGTH, NUM_HASH_ROUNDS, RATE_WIDTH, apply_round
from protocol.air_config import CHALLENGE_BOUND_BITS, NUM_MESSAGE_CHUNKS, SIG_HASH_LENGTH, Phase
from protocol.schnorr import Signature, build_tx_message, challenge, message_chunks
from protocol.trace_layout import H_POINT_STATE, S_POINT_STATE, register
from protocol.transaction import TransactionRecord
from .base import WitnessModule

logger = logging.getLogger(__name__)

SIG_LANE = register('sig_lane')
S_ACC = register('s_acc')
H_ACC = register('h_acc')
S_BIT = register('s_bit').start
H_BIT = register('h_bit').start
H_SUM = register('h_sum').start
H_BOUND = register('h_bound').start
SIG_RX = register('sig_rx').start


class SigInfo(NamedTuple):
    public_key: AffinePoint
    r_x: int
    s_bits: List[int]
    h_bits: List[int]
    chunks: List[List[int]]


def build_sig_info(message: Sequence[int], signature: Signature) -> SigInfo:
    """Public key, response bits and challenge bits for one signature.

    The public key is the sender key carried in the first two message elements.
    """
    h = challenge(signature.r_x, message)
    return SigInfo(
        public_key=(message[0], message[1]),
        r_x=signature.r_x % STARK_PRIME,
        s_bits=decompose_scalar(signature.s),
        h_bits=decompose_scalar(h),
        chunks=message_chunks(message),
    )


def init_sig_verification_state(row: np.ndarray, info: SigInfo) -> None:
    """Identity accumulators, first bits, zero h_sum, h_bound = 1 and the sponge over [r_x, 0, 0, 0]."""
    row[S_ACC] = list(IDENTITY)
    row[H_ACC] = list(IDENTITY)
    row[S_BIT] = info.s_bits[0]
    row[H_BIT] = info.h_bits[0]
    row[H_SUM] = 0
    row[H_BOUND] = 1
    row[SIG_LANE] = [row[SIG_RX], 0, 0, 0]


def update_sig_verification_state(cur: np.ndarray, nxt: np.ndarray, v: int, info: SigInfo) -> None:
    """Compute row v + 1 of the signature phase; nxt starts as a copy of cur."""
    if v < SIG_HASH_LENGTH:
        r, k = v % HASH_CYCLE_LENGTH, v // HASH_CYCLE_LENGTH
        lane = nxt[SIG_LANE]
        if r < NUM_HASH_ROUNDS:
            apply_round(lane, r)
        elif k < NUM_MESSAGE_CHUNKS:
            lane[DIGEST_SIZE:] = info.chunks[k]
        else:
            lane[DIGEST_SIZE:] = [0] * RATE_WIDTH

    if v < SCALAR_MUL_LENGTH:
        if v % 2 == 0:
            apply_point_doubling(nxt[S_POINT_STATE])
            apply_point_doubling(nxt[H_POINT_STATE])
            nxt[H_SUM] = (2 * cur[H_SUM] + cur[H_BIT]) % STARK_PRIME
            nxt[H_BOUND] = cur[H_BOUND] * (1 - CHALLENGE_BOUND_BITS[v // 2] * (1 - cur[H_BIT]))
        else:
            apply_point_addition(nxt[S_POINT_STATE], (GENERATOR[0], GENERATOR[1], 1))
            apply_point_addition(nxt[H_POINT_STATE], (info.public_key[0], info.public_key[1], 1))
            j = (v + 1) // 2
            nxt[S_BIT] = info.s_bits[j] if v + 1 < SCALAR_MUL_LENGTH else 0
            nxt[H_BIT] = info.h_bits[j] if v + 1 < SCALAR_MUL_LENGTH else 0
    elif v == SCALAR_MUL_LENGTH:
        x, y, z = point_addition(cur[S_ACC], cur[H_ACC])
        if z == 0:
            raise ArithmeticDegeneracyError("s*G + h*PK is the point at infinity")
        z_inv = inv_mod(z)
        nxt[S_ACC] = [x * z_inv % STARK_PRIME, y, z]
        nxt[H_ACC] = [z_inv, 0, 0]


class SignatureWitness(WitnessModule):
    phase = Phase.SIGNATURE

    def prepare(self, record: TransactionRecord) -> SigInfo:
        s_pk = record.sender_leaf[:2]
        r_pk = record.receiver_leaf[:2]
        message = build_tx_message(s_pk, r_pk, record.delta, record.sender_leaf[3])
        return build_sig_info(message, record.signature)

    def enter(self, row: np.ndarray, data: SigInfo) -> None:
        init_sig_verification_state(row, data)

    def step(self, cur: np.ndarray, nxt: np.ndarray, local: int, data: SigInfo) -> None:
        update_sig_verification_state(cur, nxt, local, data)
