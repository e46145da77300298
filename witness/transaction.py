"""Transaction trace assembler.

Each transaction fills one cycle of rows on its own: row 0 of the block gets
the leaves, delta, commitment x and the root before the transaction, and every
later row is derived from the previous one by the module owning that phase.
Blocks share nothing, so they are filled on a thread pool, each worker writing
its own disjoint row range of the preallocated buffer.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional

from primitives.field import STARK_PRIME
from protocol.air_config import AirConfig, Phase
from protocol.trace import ExecutionTrace, TraceFragment
from protocol.trace_layout import register
from protocol.transaction import TransactionMetadata, TransactionRecord
from .base import WitnessModule
from .merkle import MerklePathWitness
from .range_check import RangeCheckWitness
from .signature import SignatureWitness

logger = logging.getLogger(__name__)


class TransactionWitness:
    """Fills one cycle per transaction."""

    def __init__(self, config: AirConfig):
        self.config = config
        self.modules: Dict[Phase, WitnessModule] = {
            Phase.SENDER_PATH: MerklePathWitness(config),
            Phase.SIGNATURE: SignatureWitness(config),
            Phase.RANGE_CHECK: RangeCheckWitness(config),
            Phase.RECEIVER_PATH: MerklePathWitness(config, receiver=True),
        }
        ranges = config.phase_ranges()
        # row -> (phase, local step); starts -> phase entered on that row
        self._schedule = [None] * config.cycle_length
        self._starts = {}
        for phase, rows in ranges.items():
            self._starts[rows.start] = phase
            for local, t in enumerate(rows):
                self._schedule[t] = (phase, local)

    def fill_block(self, fragment: TraceFragment, record: TransactionRecord) -> None:
        data = {phase: module.prepare(record) for phase, module in self.modules.items()}

        first = fragment.row(0)
        first[register('s_leaf')] = [v % STARK_PRIME for v in record.sender_leaf]
        first[register('r_leaf')] = [v % STARK_PRIME for v in record.receiver_leaf]
        first[register('delta').start] = record.delta % STARK_PRIME
        first[register('sig_rx').start] = record.signature.r_x % STARK_PRIME
        first[register('root')] = list(record.initial_root)
        self._enter(0, first, data)

        for t in range(self.config.cycle_length - 1):
            cur, nxt = fragment.row(t), fragment.row(t + 1)
            nxt[:] = cur
            phase, local = self._schedule[t]
            self.modules[phase].step(cur, nxt, local, data[phase])
            self._enter(t + 1, nxt, data)

    def _enter(self, t: int, row, data) -> None:
        phase = self._starts.get(t)
        if phase is not None:
            self.modules[phase].enter(row, data[phase])


def build_trace(metadata: TransactionMetadata, config: Optional[AirConfig] = None,
                num_workers: int = 1) -> ExecutionTrace:
    """Build the execution trace for a transaction batch.

    Args:
        metadata: Batch produced by the sequential tree pass
        config: AIR configuration (default depth 3)
        num_workers: Threads filling blocks; 1 fills them in order

    Returns:
        Trace of num_transactions * cycle_length rows

    Raises:
        StructuralError: malformed batch (paths, leaves, indices)
        ArithmeticDegeneracyError: a signature normalizes to the point at infinity
    """
    config = config or AirConfig()
    metadata.validate(config)

    n = metadata.num_transactions
    length = config.cycle_length
    trace = ExecutionTrace(config.trace_length(n))
    witness = TransactionWitness(config)

    def fill(i: int) -> None:
        witness.fill_block(trace.fragment(i * length, length), metadata.record(i))

    start = time.perf_counter()
    if num_workers > 1:
        with ThreadPoolExecutor(max_workers=num_workers) as executor:
            futures = [executor.submit(fill, i) for i in range(n)]
            for f in futures:
                f.result()
    else:
        for i in range(n):
            fill(i)
    logger.debug("built trace for %d transactions (%d rows) in %.3fs",
                 n, trace.num_rows, time.perf_counter() - start)
    return trace
