"""Merkle path phases: the old and new leaf hashed up the same path.

Two hash lanes run side by side. The old lane proves the pre-transfer leaf
against the current root; the new lane derives the root after the update.
Both share the sibling and index bit registers, so they walk the same path.

Within a phase, step u with r = u % 8 and level c = u // 8 does:

    r < 7            one permutation round on both lanes
    r == 7, c < d    load [digest, sibling] (or [sibling, digest] when the
                     index bit is 1) and advance to the next sibling and bit
    u == P - 2       after the last round: commit the root
"""

from typing import List, NamedTuple

import numpy as np

from primitives.field import STARK_PRIME
from primitives.merkle_tree import MerklePath
from primitives.rescue import DIGEST_SIZE, HASH_CYCLE_LENGTH, NUM_HASH_ROUNDS, apply_round
from protocol.air_config import Phase
from protocol.trace_layout import register
from protocol.transaction import TransactionRecord
from .base import WitnessModule

OLD_LANE = register('old_lane')
NEW_LANE = register('new_lane')
SIBLING = register('sibling')
INDEX_BIT = register('index_bit').start
ROOT = register('root')


class PathData(NamedTuple):
    old_leaf: List[int]
    new_leaf: List[int]
    path: MerklePath
    index: int


class MerklePathWitness(WitnessModule):
    """Fills the sender or receiver path phase."""

    def __init__(self, config, receiver: bool = False):
        super().__init__(config)
        self.receiver = receiver
        self.phase = Phase.RECEIVER_PATH if receiver else Phase.SENDER_PATH

    def prepare(self, record: TransactionRecord) -> PathData:
        delta = record.delta
        if self.receiver:
            pkx, pky, bal, nonce = record.receiver_leaf
            new_leaf = [pkx, pky, (bal + delta) % STARK_PRIME, nonce]
            return PathData(list(record.receiver_leaf), new_leaf,
                            record.receiver_path, record.receiver_index)
        pkx, pky, bal, nonce = record.sender_leaf
        new_leaf = [pkx, pky, (bal - delta) % STARK_PRIME, (nonce + 1) % STARK_PRIME]
        return PathData(list(record.sender_leaf), new_leaf,
                        record.sender_path, record.sender_index)

    def enter(self, row: np.ndarray, data: PathData) -> None:
        row[OLD_LANE] = data.old_leaf
        row[NEW_LANE] = data.new_leaf
        self._load_level(row, data, 0)

    def step(self, cur: np.ndarray, nxt: np.ndarray, local: int, data: PathData) -> None:
        r, level = local % HASH_CYCLE_LENGTH, local // HASH_CYCLE_LENGTH
        if r < NUM_HASH_ROUNDS:
            apply_round(nxt[OLD_LANE], r)
            apply_round(nxt[NEW_LANE], r)
            if local == self.config.path_length - 2:
                nxt[ROOT] = nxt[NEW_LANE][:DIGEST_SIZE]
        elif level < self.config.tree_depth:
            sibling = list(cur[SIBLING])
            for lane in (OLD_LANE, NEW_LANE):
                digest = list(cur[lane][:DIGEST_SIZE])
                if cur[INDEX_BIT] == 1:
                    nxt[lane] = sibling + digest
                else:
                    nxt[lane] = digest + sibling
            self._load_level(nxt, data, level + 1)

    def _load_level(self, row: np.ndarray, data: PathData, level: int) -> None:
        if level < len(data.path):
            row[SIBLING] = data.path[level]
            row[INDEX_BIT] = (data.index >> level) & 1
        else:
            row[SIBLING] = [0] * DIGEST_SIZE
            row[INDEX_BIT] = 0
