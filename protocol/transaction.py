"""Accounts, transfers and the transaction batch handed to the trace builder.

The account tree is mutated strictly in transaction order: for each transfer
the sender path is captured, the sender leaf is updated, then the receiver
path is captured against the updated tree and the receiver leaf is updated.
Once that sequential pass is done, TransactionMetadata holds everything the
trace builder needs and the tree is no longer touched.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from primitives.curve import CURVE_ORDER
from primitives.errors import StructuralError
from primitives.field import STARK_PRIME, elements_to_bytes
from primitives.merkle_tree import LEAF_WIDTH, MerklePath, MerkleTree, hash_leaf
from primitives.rescue import DIGEST_SIZE, Digest
from protocol.air_config import RANGE_BITS, AirConfig
from protocol.schnorr import Signature, build_tx_message, public_key, sign

logger = logging.getLogger(__name__)

MAX_BALANCE = (1 << RANGE_BITS) - 1


# --- Accounts ---


@dataclass(frozen=True)
class AccountState:
    public_key: Tuple[int, int]
    balance: int
    nonce: int

    @classmethod
    def empty(cls) -> 'AccountState':
        return cls((0, 0), 0, 0)

    @classmethod
    def from_leaf(cls, values: Sequence[int]) -> 'AccountState':
        if len(values) != LEAF_WIDTH:
            raise StructuralError(f"leaf must have {LEAF_WIDTH} elements, got {len(values)}")
        return cls((values[0], values[1]), values[2], values[3])

    def to_leaf(self) -> List[int]:
        return [self.public_key[0], self.public_key[1], self.balance, self.nonce]

    def digest(self) -> Digest:
        return hash_leaf(self.to_leaf())


class AccountTree:
    """Account states plus the Merkle tree over their leaf digests."""

    def __init__(self, accounts: Sequence[AccountState], config: Optional[AirConfig] = None):
        self.config = config or AirConfig()
        if len(accounts) != self.config.num_leaves:
            raise StructuralError(
                f"tree of depth {self.config.tree_depth} needs {self.config.num_leaves} "
                f"accounts, got {len(accounts)}"
            )
        self.accounts = list(accounts)
        start = time.perf_counter()
        self.tree = MerkleTree([a.digest() for a in self.accounts])
        logger.debug("account tree built in %.3fs", time.perf_counter() - start)

    @classmethod
    def with_accounts(cls, accounts: Dict[int, AccountState],
                      config: Optional[AirConfig] = None) -> 'AccountTree':
        """Tree of empty leaves except for the given indices."""
        config = config or AirConfig()
        leaves = [AccountState.empty()] * config.num_leaves
        for index, state in accounts.items():
            if not 0 <= index < config.num_leaves:
                raise StructuralError(f"account index {index} out of range")
            leaves[index] = state
        return cls(leaves, config)

    @property
    def root(self) -> Digest:
        return self.tree.root

    def account(self, index: int) -> AccountState:
        if not 0 <= index < len(self.accounts):
            raise StructuralError(f"account index {index} out of range [0, {len(self.accounts)})")
        return self.accounts[index]

    def prove(self, index: int) -> MerklePath:
        return self.tree.prove(index)

    def update(self, index: int, state: AccountState) -> None:
        self.tree.update_leaf(index, state.digest())
        self.accounts[index] = state


# --- Transactions ---


@dataclass(frozen=True)
class Transfer:
    """A requested transfer. Exactly one of secret_key / signature is given."""
    sender: int
    receiver: int
    delta: int
    secret_key: Optional[int] = None
    signature: Optional[Signature] = None

    def __post_init__(self):
        if (self.secret_key is None) == (self.signature is None):
            raise StructuralError("transfer needs exactly one of secret_key or signature")


@dataclass(frozen=True)
class TransactionRecord:
    """Everything one trace cycle needs about one transaction."""
    initial_root: Digest
    sender_index: int
    receiver_index: int
    sender_leaf: List[int]
    receiver_leaf: List[int]
    sender_path: MerklePath
    receiver_path: MerklePath
    delta: int
    signature: Signature


@dataclass(frozen=True)
class PublicInputs:
    initial_root: Digest
    final_root: Digest

    def to_elements(self) -> List[int]:
        return [*self.initial_root, *self.final_root]

    def to_bytes(self) -> bytes:
        return elements_to_bytes(self.to_elements())


@dataclass
class TransactionMetadata:
    """A transaction batch as parallel vectors of equal length."""
    initial_roots: List[Digest]
    final_root: Digest
    sender_indices: List[int]
    receiver_indices: List[int]
    sender_leaves: List[List[int]]
    receiver_leaves: List[List[int]]
    sender_paths: List[MerklePath]
    receiver_paths: List[MerklePath]
    deltas: List[int]
    signatures: List[Signature]

    def __post_init__(self):
        lengths = {
            'initial_roots': len(self.initial_roots),
            'sender_indices': len(self.sender_indices),
            'receiver_indices': len(self.receiver_indices),
            'sender_leaves': len(self.sender_leaves),
            'receiver_leaves': len(self.receiver_leaves),
            'sender_paths': len(self.sender_paths),
            'receiver_paths': len(self.receiver_paths),
            'deltas': len(self.deltas),
            'signatures': len(self.signatures),
        }
        if len(set(lengths.values())) != 1:
            raise StructuralError(f"transaction vectors have mismatched lengths: {lengths}")
        if not self.initial_roots:
            raise StructuralError("transaction batch is empty")
        if len(self.final_root) != DIGEST_SIZE:
            raise StructuralError(f"final root must have {DIGEST_SIZE} elements")

    @property
    def num_transactions(self) -> int:
        return len(self.deltas)

    @property
    def public_inputs(self) -> PublicInputs:
        return PublicInputs(list(self.initial_roots[0]), list(self.final_root))

    def validate(self, config: AirConfig) -> None:
        """Check paths, leaves and indices against the tree shape."""
        depth = config.tree_depth
        for i in range(self.num_transactions):
            for role, index, leaf, path in (
                ('sender', self.sender_indices[i], self.sender_leaves[i], self.sender_paths[i]),
                ('receiver', self.receiver_indices[i], self.receiver_leaves[i], self.receiver_paths[i]),
            ):
                if not 0 <= index < config.num_leaves:
                    raise StructuralError(f"tx {i}: {role} index {index} out of range")
                if len(leaf) != LEAF_WIDTH:
                    raise StructuralError(f"tx {i}: {role} leaf must have {LEAF_WIDTH} elements")
                if len(path) != depth or any(len(node) != DIGEST_SIZE for node in path):
                    raise StructuralError(f"tx {i}: {role} path must hold {depth} digests")
            if len(self.initial_roots[i]) != DIGEST_SIZE:
                raise StructuralError(f"tx {i}: initial root must have {DIGEST_SIZE} elements")

    def record(self, i: int) -> TransactionRecord:
        return TransactionRecord(
            initial_root=self.initial_roots[i],
            sender_index=self.sender_indices[i],
            receiver_index=self.receiver_indices[i],
            sender_leaf=self.sender_leaves[i],
            receiver_leaf=self.receiver_leaves[i],
            sender_path=self.sender_paths[i],
            receiver_path=self.receiver_paths[i],
            delta=self.deltas[i],
            signature=self.signatures[i],
        )

    # --- Construction ---

    @classmethod
    def from_transfers(cls, tree: AccountTree, transfers: Sequence[Transfer]) -> 'TransactionMetadata':
        """Apply transfers to `tree` in order, capturing paths and leaves.

        Balances are updated with field arithmetic; an overdraft or overflow
        is not rejected here and only fails the range check constraints.
        """
        columns: Dict[str, list] = {
            'initial_roots': [], 'sender_indices': [], 'receiver_indices': [],
            'sender_leaves': [], 'receiver_leaves': [], 'sender_paths': [],
            'receiver_paths': [], 'deltas': [], 'signatures': [],
        }
        start = time.perf_counter()
        for t in transfers:
            sender = tree.account(t.sender)
            receiver_pk = tree.account(t.receiver).public_key
            delta = t.delta % STARK_PRIME
            signature = t.signature
            if signature is None:
                message = build_tx_message(sender.public_key, receiver_pk, delta, sender.nonce)
                signature = sign(message, t.secret_key)

            columns['initial_roots'].append(tree.root)
            columns['sender_indices'].append(t.sender)
            columns['sender_leaves'].append(sender.to_leaf())
            columns['sender_paths'].append(tree.prove(t.sender))
            tree.update(t.sender, AccountState(
                sender.public_key,
                (sender.balance - delta) % STARK_PRIME,
                (sender.nonce + 1) % STARK_PRIME,
            ))

            receiver = tree.account(t.receiver)
            columns['receiver_indices'].append(t.receiver)
            columns['receiver_leaves'].append(receiver.to_leaf())
            columns['receiver_paths'].append(tree.prove(t.receiver))
            tree.update(t.receiver, AccountState(
                receiver.public_key,
                (receiver.balance + delta) % STARK_PRIME,
                receiver.nonce,
            ))

            columns['deltas'].append(delta)
            columns['signatures'].append(signature)

        logger.debug("applied %d transfers in %.3fs", len(transfers), time.perf_counter() - start)
        return cls(final_root=tree.root, **columns)

    @classmethod
    def build_random(cls, num_transactions: int, rng: random.Random,
                     config: Optional[AirConfig] = None) -> Tuple['TransactionMetadata', AccountTree]:
        """Random valid batch over a fresh tree; returns the batch and the final tree."""
        config = config or AirConfig()
        secrets = [rng.randrange(1, CURVE_ORDER) for _ in range(config.num_leaves)]
        accounts = [
            AccountState(public_key(x), rng.randrange(0, 1 << 32), 0)
            for x in secrets
        ]
        tree = AccountTree(accounts, config)

        balances = [a.balance for a in accounts]
        transfers = []
        for _ in range(num_transactions):
            sender, receiver = rng.sample(range(config.num_leaves), 2)
            bound = min(balances[sender], MAX_BALANCE - balances[receiver])
            delta = rng.randrange(0, bound + 1)
            balances[sender] -= delta
            balances[receiver] += delta
            transfers.append(Transfer(sender, receiver, delta, secret_key=secrets[sender]))

        return cls.from_transfers(tree, transfers), tree
