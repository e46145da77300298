"""Binary Merkle tree commitment using the Rescue-style compression."""

import logging
from typing import List, Sequence

from primitives.errors import StructuralError
from primitives.rescue import DIGEST_SIZE, Digest, merge

logger = logging.getLogger(__name__)

# --- Constants ---

# Account leaves are two digest-sized halves: (pk_x, pk_y) and (balance, nonce).
LEAF_WIDTH = 2 * DIGEST_SIZE

# --- Type Aliases ---

MerkleRoot = Digest
MerklePath = List[Digest]


def hash_leaf(values: Sequence[int]) -> Digest:
    """Compress LEAF_WIDTH leaf elements into one digest."""
    if len(values) != LEAF_WIDTH:
        raise StructuralError(f"leaf must have {LEAF_WIDTH} elements, got {len(values)}")
    return merge(values[:DIGEST_SIZE], values[DIGEST_SIZE:])


# --- Merkle Tree ---


class MerkleTree:
    """Complete binary tree over 2^depth leaf digests.

    Nodes use heap layout: nodes[1] is the root, nodes[n + i] is leaf i, and
    node k has children 2k and 2k + 1. Index 0 is unused.
    """

    def __init__(self, leaves: Sequence[Sequence[int]]):
        n = len(leaves)
        if n < 2 or n & (n - 1):
            raise StructuralError(f"number of leaves must be a power of two >= 2, got {n}")

        self.num_leaves = n
        self.depth = n.bit_length() - 1
        self.nodes: List[Digest] = [[0] * DIGEST_SIZE for _ in range(n)]
        self.nodes.extend(list(leaf) for leaf in leaves)

        for k in range(n - 1, 0, -1):
            self.nodes[k] = merge(self.nodes[2 * k], self.nodes[2 * k + 1])
        logger.debug("built Merkle tree of depth %d over %d leaves", self.depth, n)

    # --- Core Operations ---

    @property
    def root(self) -> MerkleRoot:
        return list(self.nodes[1])

    def leaf(self, index: int) -> Digest:
        self._check_index(index)
        return list(self.nodes[self.num_leaves + index])

    def prove(self, index: int) -> MerklePath:
        """Sibling digests from the leaf's level up to (excluding) the root."""
        self._check_index(index)
        path: MerklePath = []
        k = self.num_leaves + index
        while k > 1:
            path.append(list(self.nodes[k ^ 1]))
            k >>= 1
        return path

    def update_leaf(self, index: int, leaf: Sequence[int]) -> None:
        """Overwrite one leaf and recompute only its ancestors."""
        self._check_index(index)
        k = self.num_leaves + index
        self.nodes[k] = list(leaf)
        k >>= 1
        while k >= 1:
            self.nodes[k] = merge(self.nodes[2 * k], self.nodes[2 * k + 1])
            k >>= 1

    # --- Verification ---

    @staticmethod
    def compute_root(index: int, leaf: Sequence[int], path: Sequence[Sequence[int]]) -> MerkleRoot:
        """Hash a leaf up its path; bit `level` of the index picks the side."""
        node = list(leaf)
        for level, sibling in enumerate(path):
            if (index >> level) & 1:
                node = merge(sibling, node)
            else:
                node = merge(node, sibling)
        return node

    @staticmethod
    def verify(root: Sequence[int], index: int, leaf: Sequence[int], path: Sequence[Sequence[int]]) -> bool:
        return MerkleTree.compute_root(index, leaf, path) == list(root)

    # --- Internal Helpers ---

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.num_leaves:
            raise StructuralError(f"leaf index {index} out of range [0, {self.num_leaves})")
