from metachain.block import GENESIS_PREV, Block
from metachain.opcodes import Opcode, OpcodeTable
from metachain.relevance import is_relevant
from metachain.tx import FORMAT_BASIC, Transaction


def _block(txs):
    return Block.build(GENESIS_PREV, 1, txs, timestamp=1)


def test_burn_payload_is_relevant(table, burn):
    assert is_relevant(_block([burn("A", 5)]), table)


def test_plain_and_empty_blocks_are_not_relevant(table, plain):
    assert not is_relevant(_block([]), table)
    assert not is_relevant(_block([plain("A", "B", 5)]), table)


def test_basic_format_with_opcode_bytes_is_not_relevant(table):
    tx = Transaction(sender="A", recipient="B", value=1, format=FORMAT_BASIC, data=b"MCRC_01")
    assert not is_relevant(_block([tx]), table)


def test_non_ascii_payload_is_ignored(table, burn):
    tx = burn("A", 1)
    tx.data = b"\xffMCRC_01"
    assert not is_relevant(_block([tx]), table)


def test_prefix_without_registered_code(table, burn):
    tx = burn("A", 1)
    tx.data = b"MCRC_99"
    assert not is_relevant(_block([tx]), table)


def test_only_registered_opcodes_count(burn):
    table = OpcodeTable(opcodes=[Opcode.TRANSFER])
    assert not is_relevant(_block([burn("A", 1)]), table)
    tx = burn("A", 1)
    tx.data = b"MCRC_03xyz"
    assert is_relevant(_block([tx]), table)


def test_first_match_wins_and_rest_is_args(burn):
    table = OpcodeTable()
    assert table.match("MCRC_01extra") == (Opcode.BURN, "extra")
    assert table.match("MCRC_1") is None
    assert table.match(None) is None
    cmd = table.parse(burn("A", 4))
    assert cmd.opcode is Opcode.BURN
    assert cmd.value == 4
    assert cmd.sender == "A"
