"""Tests for the per-phase witness modules."""

import numpy as np

from conftest import SECRET_0, SECRET_1
from primitives.curve import SCALAR_BITS
from primitives.field import STARK_PRIME
from protocol.air_config import RANGE_BITS, SIG_CYCLE_LENGTH, AirConfig, Phase
from protocol.schnorr import build_tx_message, challenge, public_key, sign
from protocol.trace_layout import TRACE_WIDTH, register
from witness.range_check import decompose_range
from witness.signature import build_sig_info, init_sig_verification_state, update_sig_verification_state
from witness.transaction import TransactionWitness


def run_signature_phase(message, signature) -> np.ndarray:
    rows = np.zeros((SIG_CYCLE_LENGTH, TRACE_WIDTH), dtype=object)
    info = build_sig_info(message, signature)
    rows[0, register('sig_rx')] = [signature.r_x]
    init_sig_verification_state(rows[0], info)
    for v in range(SIG_CYCLE_LENGTH - 1):
        rows[v + 1] = rows[v]
        update_sig_verification_state(rows[v], rows[v + 1], v, info)
    return rows


class TestSignaturePhase:

    def test_sig_info(self) -> None:
        pk0, pk1 = public_key(SECRET_0), public_key(SECRET_1)
        message = build_tx_message(pk0, pk1, 40, 0)
        sig = sign(message, SECRET_0)
        info = build_sig_info(message, sig)
        assert info.public_key == pk0
        assert len(info.s_bits) == len(info.h_bits) == SCALAR_BITS
        h = challenge(sig.r_x, message)
        assert int(''.join(map(str, info.h_bits)), 2) == h

    def test_valid_signature_reaches_commitment(self) -> None:
        pk0, pk1 = public_key(SECRET_0), public_key(SECRET_1)
        message = build_tx_message(pk0, pk1, 40, 0)
        sig = sign(message, SECRET_0)
        rows = run_signature_phase(message, sig)
        last = rows[SIG_CYCLE_LENGTH - 1]
        assert last[register('s_acc')][0] == sig.r_x
        assert last[register('h_sum')][0] == last[register('sig_lane')][0]
        # 1/Z is stored in the h accumulator for the non-degeneracy check
        z, z_inv = last[register('s_acc')][2], last[register('h_acc')][0]
        assert z * z_inv % STARK_PRIME == 1

    def test_bits_paired_across_double_and_add(self) -> None:
        pk0, pk1 = public_key(SECRET_0), public_key(SECRET_1)
        message = build_tx_message(pk0, pk1, 40, 0)
        rows = run_signature_phase(message, sign(message, SECRET_0))
        s_bit = register('s_bit').start
        for v in range(0, 510, 2):
            assert rows[v][s_bit] == rows[v + 1][s_bit]
        assert rows[510][s_bit] == 0


class TestRangeDecomposition:

    def test_msb_first(self) -> None:
        bits = decompose_range(5)
        assert len(bits) == RANGE_BITS
        assert bits[-3:] == [1, 0, 1]

    def test_wrapped_value_loses_high_bits(self) -> None:
        """-1 mod p does not fit in 64 bits; its low bits do not rebuild it."""
        bits = decompose_range(-1)
        rebuilt = int(''.join(map(str, bits)), 2)
        assert rebuilt != STARK_PRIME - 1


class TestSchedule:

    def test_phase_module_per_row(self) -> None:
        witness = TransactionWitness(AirConfig())
        assert witness._schedule[0] == (Phase.SENDER_PATH, 0)
        assert witness._schedule[32] == (Phase.SIGNATURE, 0)
        assert witness._schedule[639] == (Phase.RECEIVER_PATH, 31)
