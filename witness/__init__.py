"""Witness generation modules.

One WitnessModule per phase of the transaction cycle; build_trace drives them
block by block.
"""

from .base import WitnessModule
from .merkle import MerklePathWitness
from .range_check import RangeCheckWitness
from .signature import SignatureWitness, build_sig_info
from .transaction import TransactionWitness, build_trace

__all__ = [
    'WitnessModule',
    'MerklePathWitness',
    'SignatureWitness',
    'RangeCheckWitness',
    'TransactionWitness',
    'build_sig_info',
    'build_trace',
]
