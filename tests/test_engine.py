import asyncio

import pytest

from metachain import handlers
from metachain.block import GENESIS_PREV, Block
from metachain.config import DEFAULT_BURN_ADDRESS
from metachain.engine import DuplicateHeightError, EngineState, ReplayEngine, ReplayError
from metachain.handlers import CommandResult, HandlerContext
from metachain.ledger import BalanceChange, LedgerError
from metachain.opcodes import Opcode
from metachain.utils import block_key

CTX = HandlerContext(burn_address=DEFAULT_BURN_ADDRESS, default_token="MCRC")


def _stored(store, height, txs, timestamp=None):
    block = Block.build(GENESIS_PREV, height, list(txs), timestamp=height if timestamp is None else timestamp)
    key = block_key(block.hash)
    store.put(key, block)
    return key


def test_parse_db_replays_in_height_order(store, table, burn):
    for height in (3, 1, 2):
        _stored(store, height, [burn("A", height)])

    async def scenario():
        engine = ReplayEngine(store, table, CTX)
        await engine.parse_db()
        return engine

    engine = asyncio.run(scenario())
    assert engine.state is EngineState.READY
    assert list(engine.blocks) == [1, 2, 3]
    assert engine.tip_height == 3
    assert engine.ledger.balance("A") == 6


def test_push_is_queued_until_ready(store, table, burn):
    _stored(store, 1, [burn("A", 1)])
    late = _stored(store, 5, [burn("B", 2)])

    async def scenario():
        engine = ReplayEngine(store, table, CTX)
        await engine.push(late)
        assert engine.pending == [late]
        assert engine.blocks == {}
        assert engine.ledger.balance("B") == 0
        await engine.parse_db()
        assert engine.pending == []
        return engine

    engine = asyncio.run(scenario())
    # the queued key was also in the store; it is applied once
    assert engine.ledger.balance("B") == 2
    assert list(engine.blocks) == [1, 5]


def test_push_after_ready_applies_immediately(store, table, burn):
    async def scenario():
        engine = ReplayEngine(store, table, CTX)
        await engine.parse_db()
        key = _stored(store, 9, [burn("A", 4)])
        await engine.push(key)
        await engine.push(key)
        return engine, key

    engine, key = asyncio.run(scenario())
    assert engine.has_applied(key)
    assert engine.ledger.balance("A") == 4


def test_parse_db_twice_is_an_error(store, table):
    async def scenario():
        engine = ReplayEngine(store, table, CTX)
        await engine.parse_db()
        await engine.parse_db()

    with pytest.raises(ReplayError):
        asyncio.run(scenario())


def test_push_unknown_key_fails(store, table):
    async def scenario():
        engine = ReplayEngine(store, table, CTX)
        await engine.parse_db()
        await engine.push(block_key("ab" * 32))

    with pytest.raises(ReplayError):
        asyncio.run(scenario())


def test_duplicate_height_is_rejected(store, table, burn):
    _stored(store, 4, [burn("A", 1)], timestamp=1)
    _stored(store, 4, [burn("A", 1)], timestamp=2)

    async def scenario():
        engine = ReplayEngine(store, table, CTX)
        await engine.parse_db()

    with pytest.raises(DuplicateHeightError) as err:
        asyncio.run(scenario())
    assert err.value.height == 4


def test_block_without_commands_is_recorded(store, table, plain):
    _stored(store, 2, [plain("A", "B", 1)])

    async def scenario():
        engine = ReplayEngine(store, table, CTX)
        await engine.parse_db()
        return engine

    engine = asyncio.run(scenario())
    assert list(engine.blocks) == [2]
    assert engine.ledger.totals() == {"MCRC": 0}


def test_handler_failure_leaves_ledger_untouched(store, table, burn, monkeypatch):
    calls = []

    def flaky_burn(cmd, ctx):
        calls.append(cmd.value)
        if cmd.value == 13:
            raise RuntimeError("handler failed")
        return handlers.handle_burn(cmd, ctx)

    monkeypatch.setitem(handlers.HANDLERS, Opcode.BURN, flaky_burn)
    block = Block.build(GENESIS_PREV, 1, [burn("A", 5), burn("A", 13)], timestamp=1)

    async def scenario():
        engine = ReplayEngine(store, table, CTX)
        await engine.parse_db()
        with pytest.raises(RuntimeError):
            await engine.process_block(block)
        return engine

    engine = asyncio.run(scenario())
    assert calls == [5, 13]
    assert engine.ledger.balance("A") == 0
    assert engine.blocks == {}
    assert not engine.has_applied(block_key(block.hash))


def test_negative_balance_rejects_whole_block(store, table, burn, monkeypatch):
    def debit(cmd, ctx):
        return CommandResult(cmd.opcode, (BalanceChange(ctx.default_token, cmd.sender, -cmd.value),))

    monkeypatch.setitem(handlers.HANDLERS, Opcode.DESTROY, debit)
    destroy = burn("A", 10)
    destroy.data = b"MCRC_04"
    block = Block.build(GENESIS_PREV, 1, [burn("A", 3), destroy], timestamp=1)

    async def scenario():
        engine = ReplayEngine(store, table, CTX)
        await engine.parse_db()
        with pytest.raises(LedgerError):
            await engine.process_block(block)
        return engine

    engine = asyncio.run(scenario())
    assert engine.ledger.balance("A") == 0
    assert engine.tip_height is None


def test_push_during_drain_waits_for_ready(store, table, burn):
    for height in (2, 1):
        _stored(store, height, [burn("A", 1)])
    k1 = _stored(store, 5, [burn("B", 1)])
    k2 = _stored(store, 7, [burn("B", 2)])

    async def scenario():
        engine = ReplayEngine(store, table, CTX)
        await engine.push(k1)
        await asyncio.gather(engine.parse_db(), engine.push(k2))
        return engine

    engine = asyncio.run(scenario())
    assert engine.is_ready
    assert list(engine.blocks) == [1, 2, 5, 7]
    assert engine.ledger.balance("B") == 3


def test_idle_opcode_is_a_no_op(store, table, burn):
    memo = burn("A", 50)
    memo.data = b"MCRC_08hello"
    _stored(store, 1, [memo])

    async def scenario():
        engine = ReplayEngine(store, table, CTX)
        await engine.parse_db()
        return engine

    engine = asyncio.run(scenario())
    assert list(engine.blocks) == [1]
    assert engine.ledger.balance("A") == 0
