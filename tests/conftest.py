"""
Pytest configuration and shared fixtures.

Building traces and evaluating constraints over them is the slow part of the
suite, so the standard scenarios are built once per session.
"""

import random
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

# Add the repository root to the path so absolute imports work
# (tests/ sits next to the packages, so parent is the root)
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from protocol.air import TransactionAir  # noqa: E402
from protocol.air_config import AirConfig  # noqa: E402
from protocol.schnorr import public_key  # noqa: E402
from protocol.transaction import AccountState, AccountTree, TransactionMetadata, Transfer  # noqa: E402
from witness.transaction import build_trace  # noqa: E402

SECRET_0 = 0x03C1A6F2B9D4E8F7A55AA0F0E1D2C3B4A69788796A5B4C3D2E1F001122334455
SECRET_1 = 0x0123456789ABCDEF0123456789ABCDEF0123456789ABCDEF0123456789ABCDE


def two_account_tree(balance_0: int = 100, balance_1: int = 0,
                     config: AirConfig = None) -> AccountTree:
    """Depth-3 tree: leaf 0 and leaf 1 funded, every other leaf zero."""
    return AccountTree.with_accounts({
        0: AccountState(public_key(SECRET_0), balance_0, 0),
        1: AccountState(public_key(SECRET_1), balance_1, 0),
    }, config)


def run_batch(tree: AccountTree, transfers, config: AirConfig = None):
    """Apply transfers, build the trace and check it. Returns (metadata, trace, report)."""
    config = config or AirConfig()
    metadata = TransactionMetadata.from_transfers(tree, transfers)
    trace = build_trace(metadata, config)
    report = TransactionAir(config, metadata.public_inputs).check(trace)
    return metadata, trace, report


@pytest.fixture(scope="session")
def config() -> AirConfig:
    return AirConfig(tree_depth=3)


@pytest.fixture(scope="session")
def scenario(config):
    """One transfer of 40 from leaf 0 (balance 100) to leaf 1 (balance 0)."""
    tree = two_account_tree(config=config)
    initial_root = tree.root
    metadata, trace, report = run_batch(tree, [Transfer(0, 1, 40, secret_key=SECRET_0)], config)
    return SimpleNamespace(
        tree=tree,
        initial_root=initial_root,
        metadata=metadata,
        trace=trace,
        report=report,
        air=TransactionAir(config, metadata.public_inputs),
    )


@pytest.fixture(scope="session")
def random_batch(config):
    """Five random transfers over a freshly funded tree."""
    metadata, tree = TransactionMetadata.build_random(5, random.Random(2024), config)
    trace = build_trace(metadata, config)
    return SimpleNamespace(metadata=metadata, tree=tree, trace=trace,
                           air=TransactionAir(config, metadata.public_inputs))
