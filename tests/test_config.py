import pytest

from metachain.config import DEFAULT_BURN_ADDRESS, IndexerConfig, parse_opcodes
from metachain.opcodes import Opcode


def test_defaults(monkeypatch, tmp_path):
    for name in ("METACHAIN_START_HEIGHT", "METACHAIN_OPCODES", "METACHAIN_DB_PATH", "METACHAIN_RESUME"):
        monkeypatch.delenv(name, raising=False)
    config = IndexerConfig.from_env(str(tmp_path))
    assert config.start_height == 0
    assert config.opcodes == tuple(Opcode)
    assert config.burn_address == DEFAULT_BURN_ADDRESS
    assert config.resume
    assert config.block_db_path == str(tmp_path / "blocks.db")


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("METACHAIN_START_HEIGHT", "100")
    monkeypatch.setenv("METACHAIN_OPCODES", "burn, transfer")
    monkeypatch.setenv("METACHAIN_OPCODE_PREFIX", "XX_")
    monkeypatch.setenv("METACHAIN_RESUME", "no")
    monkeypatch.setenv("METACHAIN_DB_PATH", str(tmp_path / "other.db"))
    config = IndexerConfig.from_env()
    assert config.start_height == 100
    assert config.opcodes == (Opcode.BURN, Opcode.TRANSFER)
    assert config.opcode_prefix == "XX_"
    assert not config.resume
    assert config.block_db_path == str(tmp_path / "other.db")


def test_bad_values(monkeypatch):
    monkeypatch.setenv("METACHAIN_START_HEIGHT", "-1")
    with pytest.raises(ValueError):
        IndexerConfig.from_env()
    monkeypatch.setenv("METACHAIN_START_HEIGHT", "ten")
    with pytest.raises(ValueError):
        IndexerConfig.from_env()


def test_parse_opcodes():
    assert parse_opcodes("BURN") == (Opcode.BURN,)
    with pytest.raises(ValueError):
        parse_opcodes("")
    with pytest.raises(ValueError):
        parse_opcodes("BURN,MINT")
    with pytest.raises(ValueError):
        parse_opcodes("BURN,burn")
