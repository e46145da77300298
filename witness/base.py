"""Base class for witness generation."""

from abc import ABC, abstractmethod
from typing import Any

import numpy as np

from protocol.air_config import AirConfig, Phase
from protocol.transaction import TransactionRecord


class WitnessModule(ABC):
    """Per-phase trace filling. Used by prover only.

    Each phase of the transaction cycle has its own WitnessModule. The trace
    builder copies row t into row t + 1 and then lets the module owning row t
    overwrite the registers its transition changes, so registers outside the
    active phase are held automatically. Modules keep no per-transaction state;
    whatever they precompute comes back from prepare() and is passed to every
    call, which lets blocks be filled on separate threads.
    """

    phase: Phase

    def __init__(self, config: AirConfig):
        self.config = config

    def prepare(self, record: TransactionRecord) -> Any:
        """Precompute per-transaction data (bit decompositions, chunks, ...)."""
        return record

    @abstractmethod
    def enter(self, row: np.ndarray, data: Any) -> None:
        """Write the phase-start values into the first row of the phase."""
        pass

    @abstractmethod
    def step(self, cur: np.ndarray, nxt: np.ndarray, local: int, data: Any) -> None:
        """Compute row local + 1 of the phase from row local.

        Args:
            cur: Current row (read only)
            nxt: Next row, already a copy of cur
            local: Step index relative to the phase start
            data: Result of prepare() for this transaction
        """
        pass
