import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from .block import Block, GENESIS_PREV
from .tx import Transaction

logger = logging.getLogger(__name__)

EVENT_ESTABLISHED = "established"
EVENT_LOST = "lost"
EVENT_HEAD_CHANGED = "head-changed"
EVENTS = (EVENT_ESTABLISHED, EVENT_LOST, EVENT_HEAD_CHANGED)

Listener = Callable[..., Awaitable[None]]


class FetchError(RuntimeError):
    pass


class ChainNode:
    """What the indexer needs from a base-chain node.

    Subclasses provide ``height`` and ``get_block_at``. Listeners are
    coroutines awaited in registration order: ``established`` and ``lost``
    take no arguments, ``head-changed`` receives the new head block.
    """

    def __init__(self) -> None:
        self.established = False
        self._listeners: Dict[str, List[Listener]] = {event: [] for event in EVENTS}

    @property
    def height(self) -> int:
        raise NotImplementedError

    async def get_block_at(self, height: int, include_body: bool = True) -> Optional[Block]:
        raise NotImplementedError

    def on(self, event: str, callback: Listener) -> None:
        if event not in self._listeners:
            raise ValueError(f"unknown event {event!r}")
        self._listeners[event].append(callback)

    def off(self, event: str, callback: Listener) -> None:
        if callback in self._listeners.get(event, []):
            self._listeners[event].remove(callback)

    async def _emit(self, event: str, *args) -> None:
        for callback in list(self._listeners[event]):
            await callback(*args)

    async def _set_established(self, established: bool) -> None:
        if established == self.established:
            return
        self.established = established
        await self._emit(EVENT_ESTABLISHED if established else EVENT_LOST)


class LocalChain(ChainNode):
    """A chain held in process memory; block ``i`` sits at height ``i``."""

    def __init__(self) -> None:
        super().__init__()
        self.blocks: List[Block] = []

    @property
    def height(self) -> int:
        return len(self.blocks) - 1

    @property
    def head(self) -> Optional[Block]:
        return self.blocks[-1] if self.blocks else None

    async def get_block_at(self, height: int, include_body: bool = True) -> Optional[Block]:
        if height < 0 or height >= len(self.blocks):
            return None
        block = self.blocks[height]
        return block if include_body else block.without_body()

    def extend(self, txs: Iterable[Transaction] = (), timestamp: Optional[int] = None) -> Block:
        """Append a block without notifying listeners (history that predates the indexer)."""
        prev_hash = self.head.hash if self.head else GENESIS_PREV
        block = Block.build(prev_hash, self.height + 1, list(txs), timestamp=timestamp)
        self.blocks.append(block)
        return block

    async def append(self, txs: Iterable[Transaction] = (), timestamp: Optional[int] = None) -> Block:
        block = self.extend(txs, timestamp=timestamp)
        logger.debug("Head changed to %d", block.height)
        await self._emit(EVENT_HEAD_CHANGED, block)
        return block

    async def establish(self) -> None:
        await self._set_established(True)

    async def lose(self) -> None:
        await self._set_established(False)
