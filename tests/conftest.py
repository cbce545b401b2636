import pytest

from metachain.config import DEFAULT_BURN_ADDRESS, IndexerConfig
from metachain.opcodes import OpcodeTable
from metachain.store import BlockStore
from metachain.tx import Transaction, extended_transaction


@pytest.fixture
def store(tmp_path):
    s = BlockStore(str(tmp_path / "blocks.db"))
    yield s
    s.close()


@pytest.fixture
def table():
    return OpcodeTable()


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides):
        values = {"data_dir": str(tmp_path), "checkpoint_interval": 10}
        values.update(overrides)
        return IndexerConfig(**values)

    return _make


@pytest.fixture
def burn():
    def _burn(sender, value, recipient=DEFAULT_BURN_ADDRESS, prefix="MCRC_"):
        return extended_transaction(sender, recipient, value, prefix + "01")

    return _burn


@pytest.fixture
def plain():
    def _plain(sender, recipient, value):
        return Transaction(sender=sender, recipient=recipient, value=value)

    return _plain
