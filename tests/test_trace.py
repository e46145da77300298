"""End-to-end tests: trace assembly checked against the transaction AIR."""

import dataclasses

import numpy as np
import pytest

from conftest import SECRET_0, SECRET_1, run_batch, two_account_tree
import witness.signature as signature_witness
from primitives.curve import CURVE_ORDER, GENERATOR, scalar_mul, to_affine
from primitives.errors import ArithmeticDegeneracyError, StructuralError
from primitives.field import FF, STARK_PRIME
from protocol.air import TransactionAir
from protocol.air_config import AirConfig, Phase
from protocol.schnorr import Signature, build_tx_message, challenge, public_key, sign, verify
from protocol.trace import ExecutionTrace
from protocol.trace_layout import TRACE_WIDTH
from protocol.transaction import PublicInputs, TransactionMetadata, Transfer
from witness.transaction import build_trace

MAX_BALANCE = 2**64 - 1


class TestConcreteScenario:
    """Depth 3, leaf 0 = (pk0, 100, 0), leaf 1 = (pk1, 0, 0), transfer 40."""

    def test_trace_shape(self, scenario) -> None:
        assert scenario.trace.num_rows == 640
        assert scenario.trace.width == TRACE_WIDTH == 43

    def test_constraints_satisfied(self, scenario) -> None:
        assert scenario.report.satisfied, scenario.report.failing_constraints()

    def test_roots_on_boundary_rows(self, scenario) -> None:
        assert scenario.trace.get(0, 'root') == scenario.initial_root
        assert scenario.trace.get(639, 'root') == scenario.metadata.final_root

    def test_assertions_match_trace(self, scenario) -> None:
        for name, index, row, value in scenario.air.assertions(scenario.trace.num_rows):
            assert scenario.trace.get(row, name)[index] == value

    def test_new_leaves_in_lanes(self, scenario) -> None:
        receiver_start = AirConfig().phase_ranges()[Phase.RECEIVER_PATH].start
        assert scenario.trace.get(0, 'new_lane')[2:] == [60, 1]
        assert scenario.trace.get(receiver_start, 'new_lane')[2:] == [40, 0]

    def test_combined_polynomial_vanishes(self, scenario) -> None:
        combined = scenario.air.constraint_polynomial(scenario.trace, FF(0xC0FFEE))
        assert np.all(combined == FF(0))

    def test_row_evaluation_matches_columns(self, scenario) -> None:
        """Single-row evaluation agrees with the whole-trace check."""
        for row in (0, 30, 32 + 510, 32 + 511, 544 + 63, 639):
            residuals = scenario.air.evaluate_row(scenario.trace, row)
            assert all(v == FF(0) for v in residuals.values())

    def test_replay_fails(self, scenario) -> None:
        """Re-submitting the same signature once the nonce has advanced."""
        signature = scenario.metadata.signatures[0]
        transfers = [
            Transfer(0, 1, 40, secret_key=SECRET_0),
            Transfer(0, 1, 40, signature=signature),
        ]
        metadata, _, report = run_batch(two_account_tree(), transfers)
        assert metadata.signatures[0] == signature
        assert report.failing_constraints() == ['sig_check']
        assert all(row >= 640 for row in report.failures['sig_check'])


class TestBatch:

    def test_random_batch_satisfied(self, random_batch) -> None:
        assert random_batch.trace.num_rows == 5 * 640
        report = random_batch.air.check(random_batch.trace)
        assert report.satisfied, report.failing_constraints()

    def test_boundary_roots(self, random_batch) -> None:
        md = random_batch.metadata
        assert random_batch.trace.get(0, 'root') == md.initial_roots[0]
        assert random_batch.trace.get(5 * 640 - 1, 'root') == md.final_root
        for i in range(1, 5):
            assert random_batch.trace.get(i * 640, 'root') == md.initial_roots[i]

    def test_parallel_build_matches_sequential(self, random_batch) -> None:
        parallel = build_trace(random_batch.metadata, AirConfig(), num_workers=4)
        assert parallel.to_rows() == random_batch.trace.to_rows()

    def test_wrong_final_root_fails(self, random_batch) -> None:
        md = random_batch.metadata
        wrong = PublicInputs(md.initial_roots[0], md.initial_roots[0])
        report = TransactionAir(AirConfig(), wrong).check(random_batch.trace)
        assert set(report.failures) == {'final_root_0', 'final_root_1'}
        assert report.failures['final_root_0'] == [5 * 640 - 1]

    def test_swapped_blocks_break_root_chain(self, random_batch) -> None:
        """Root continuity across cycles rejects reordered transactions."""
        trace = random_batch.trace.copy()
        first = trace.buffer[0:640].copy()
        trace.buffer[0:640] = trace.buffer[640:1280]
        trace.buffer[640:1280] = first
        report = random_batch.air.check(trace)
        assert not report.satisfied

    def test_partial_cycle_rejected(self, random_batch) -> None:
        with pytest.raises(StructuralError):
            random_batch.air.check(ExecutionTrace(641))


class TestRangeCheck:

    def test_bound_passes(self) -> None:
        """delta = min(s_bal, 2^64 - 1 - r_bal) is accepted."""
        tree = two_account_tree(balance_0=100, balance_1=MAX_BALANCE - 30)
        _, _, report = run_batch(tree, [Transfer(0, 1, 30, secret_key=SECRET_0)])
        assert report.satisfied, report.failing_constraints()

    def test_receiver_overflow_fails(self) -> None:
        tree = two_account_tree(balance_0=100, balance_1=MAX_BALANCE - 30)
        _, _, report = run_batch(tree, [Transfer(0, 1, 31, secret_key=SECRET_0)])
        assert report.failing_constraints() == ['range_r_bal_end']

    def test_sender_underflow_fails(self) -> None:
        tree = two_account_tree(balance_0=100)
        _, _, report = run_batch(tree, [Transfer(0, 1, 101, secret_key=SECRET_0)])
        assert report.failing_constraints() == ['range_s_bal_end']

    def test_sender_bound_passes(self) -> None:
        tree = two_account_tree(balance_0=100)
        _, _, report = run_batch(tree, [Transfer(0, 1, 100, secret_key=SECRET_0)])
        assert report.satisfied, report.failing_constraints()


class TestSignatureWitness:

    def _signed(self, secret, delta_signed, delta=40):
        tree = two_account_tree()
        msg = build_tx_message(public_key(SECRET_0), public_key(SECRET_1), delta_signed, 0)
        return tree, Transfer(0, 1, delta, signature=sign(msg, secret))

    def test_tampered_response_fails(self) -> None:
        tree, transfer = self._signed(SECRET_0, 40)
        sig = transfer.signature
        bad = Transfer(0, 1, 40, signature=Signature(sig.r_x, sig.s ^ (1 << 17)))
        _, _, report = run_batch(tree, [bad])
        assert report.failing_constraints() == ['sig_check']

    def test_tampered_message_fails(self) -> None:
        """Signature over delta 41 does not authorize delta 40."""
        tree, transfer = self._signed(SECRET_0, 41)
        _, _, report = run_batch(tree, [transfer])
        assert report.failing_constraints() == ['sig_check']

    def test_wrong_key_fails(self) -> None:
        """Signed by the receiver's key instead of the sender's."""
        tree, transfer = self._signed(SECRET_1, 40)
        _, _, report = run_batch(tree, [transfer])
        assert report.failing_constraints() == ['sig_check']

    def test_tampered_public_key_fails(self, scenario) -> None:
        """One flipped bit of the sender key x in a rebuilt trace, signature unchanged."""
        md = scenario.metadata
        leaf = list(md.sender_leaves[0])
        leaf[0] ^= 1
        metadata = dataclasses.replace(md, sender_leaves=[leaf])
        report = scenario.air.check(build_trace(metadata))
        assert 'sig_check' in report.failures

    def test_challenge_plus_modulus_rejected(self, monkeypatch) -> None:
        """Bits of h + p rebuild h in the field but drive a different scalar."""
        tree = two_account_tree()
        msg = build_tx_message(public_key(SECRET_0), public_key(SECRET_1), 40, 0)
        k = 0x5EED5EED5EED
        r_x = to_affine(scalar_mul(GENERATOR, k))[0]
        h_alias = challenge(r_x, msg) + STARK_PRIME
        signature = Signature(r_x, (k - h_alias * SECRET_0) % CURVE_ORDER)
        assert not verify(msg, signature, public_key(SECRET_0))

        monkeypatch.setattr(signature_witness, 'challenge', lambda r, m: challenge(r, m) + STARK_PRIME)
        _, _, report = run_batch(tree, [Transfer(0, 1, 40, signature=signature)])
        assert report.failing_constraints() == ['sig_h_canonical']

    def test_honest_challenge_within_bound(self, scenario) -> None:
        """h_bound starts at 1 and never lets a bit exceed p - 1."""
        sig_start = AirConfig().phase_ranges()[Phase.SIGNATURE].start
        assert scenario.trace.get(sig_start, 'h_bound') == [1]
        bounds = [scenario.trace.get(sig_start + v, 'h_bound')[0] for v in range(511)]
        assert set(bounds) <= {0, 1}
        assert bounds == sorted(bounds, reverse=True)

    def test_forged_challenge_bits_fail(self, scenario) -> None:
        """Bits that do not rebuild the sponge output are caught."""
        trace = scenario.trace.copy()
        sig_start = AirConfig().phase_ranges()[Phase.SIGNATURE].start
        row = sig_start + 509
        trace.set(row, 'h_sum', [trace.get(row, 'h_sum')[0] + 1])
        report = scenario.air.check(trace)
        assert 'sig_h_sum_hold' in report.failures

    def test_degenerate_sum_raises(self) -> None:
        """s*G + h*PK = O cannot be normalized."""
        tree = two_account_tree()
        msg = build_tx_message(public_key(SECRET_0), public_key(SECRET_1), 40, 0)
        r_x = 12345
        s = (-challenge(r_x, msg) * SECRET_0) % CURVE_ORDER
        metadata = TransactionMetadata.from_transfers(
            tree, [Transfer(0, 1, 40, signature=Signature(r_x, s))])
        with pytest.raises(ArithmeticDegeneracyError):
            build_trace(metadata)


class TestTamperedTrace:

    def test_stale_sender_path_fails(self, scenario) -> None:
        md = scenario.metadata
        bad_path = [list(node) for node in md.sender_paths[0]]
        bad_path[1][0] += 1
        metadata = dataclasses.replace(md, sender_paths=[bad_path])
        trace = build_trace(metadata)
        report = scenario.air.check(trace)
        assert 'root_commit_old_0' in report.failures or 'root_commit_old_1' in report.failures

    def test_forged_balance_fails(self, scenario) -> None:
        md = scenario.metadata
        leaf = list(md.sender_leaves[0])
        leaf[2] += 1000
        metadata = dataclasses.replace(md, sender_leaves=[leaf])
        report = scenario.air.check(build_trace(metadata))
        assert not report.satisfied

    def test_flipped_register_detected(self, scenario) -> None:
        trace = scenario.trace.copy()
        trace.set(100, 's_leaf', [v + (i == 2) for i, v in enumerate(trace.get(100, 's_leaf'))])
        report = scenario.air.check(trace)
        assert report.failures['s_leaf_hold_2'] == [99, 100]
