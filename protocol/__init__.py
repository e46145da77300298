"""Protocol - Transaction AIR configuration and data model.

Import TransactionAir from protocol.air (it pulls in the constraints package).
"""

from protocol.air_config import AirConfig, Phase
from protocol.trace import ExecutionTrace, TraceFragment
from protocol.schnorr import Signature, build_tx_message, public_key, sign, verify
from protocol.transaction import (
    AccountState,
    AccountTree,
    PublicInputs,
    TransactionMetadata,
    TransactionRecord,
    Transfer,
)
from protocol.data import ProverData, VerifierData

__all__ = [
    # Configuration
    "AirConfig",
    "Phase",
    # Trace
    "ExecutionTrace",
    "TraceFragment",
    # Signatures
    "Signature",
    "build_tx_message",
    "public_key",
    "sign",
    "verify",
    # Transactions
    "AccountState",
    "AccountTree",
    "Transfer",
    "TransactionRecord",
    "TransactionMetadata",
    "PublicInputs",
    # Constraint evaluation
    "ProverData",
    "VerifierData",
]
