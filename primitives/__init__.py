"""Primitives - Field, curve, hash and Merkle building blocks."""

from primitives.curve import (
    GENERATOR,
    IDENTITY,
    SCALAR_BITS,
    SCALAR_MUL_LENGTH,
    apply_point_addition,
    apply_point_doubling,
    decompose_scalar,
    is_on_curve,
    point_addition,
    point_doubling,
    scalar_mul,
    to_affine,
)
from primitives.errors import ArithmeticDegeneracyError, StructuralError
from primitives.field import (
    FF,
    STARK_PRIME,
    element_from_bytes,
    element_to_bytes,
    elements_from_bytes,
    elements_to_bytes,
)
from primitives.merkle_tree import (
    LEAF_WIDTH,
    MerklePath,
    MerkleRoot,
    MerkleTree,
    hash_leaf,
)
from primitives.rescue import (
    DIGEST_SIZE,
    HASH_CYCLE_LENGTH,
    NUM_HASH_ROUNDS,
    STATE_WIDTH,
    Digest,
    apply_round,
    hash_chunks,
    merge,
    permute,
)

__all__ = [
    # Errors
    "StructuralError",
    "ArithmeticDegeneracyError",
    # Field
    "FF",
    "STARK_PRIME",
    "element_to_bytes",
    "element_from_bytes",
    "elements_to_bytes",
    "elements_from_bytes",
    # Curve
    "GENERATOR",
    "IDENTITY",
    "SCALAR_BITS",
    "SCALAR_MUL_LENGTH",
    "point_addition",
    "point_doubling",
    "apply_point_addition",
    "apply_point_doubling",
    "decompose_scalar",
    "scalar_mul",
    "to_affine",
    "is_on_curve",
    # Hash
    "DIGEST_SIZE",
    "STATE_WIDTH",
    "NUM_HASH_ROUNDS",
    "HASH_CYCLE_LENGTH",
    "Digest",
    "apply_round",
    "permute",
    "merge",
    "hash_chunks",
    # Merkle Tree
    "MerkleTree",
    "MerkleRoot",
    "MerklePath",
    "LEAF_WIDTH",
    "hash_leaf",
]
