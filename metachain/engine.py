import asyncio
import logging
from collections import deque
from enum import Enum
from typing import Deque, Dict, List, Optional, Set, Tuple

from .block import Block
from .handlers import CommandResult, HandlerContext, dispatch
from .ledger import Ledger
from .opcodes import OpcodeTable
from .store import BlockStore
from .utils import block_key

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    INITIALIZING = "INITIALIZING"
    READY = "READY"


class ReplayError(RuntimeError):
    pass


class DuplicateHeightError(ReplayError):
    def __init__(self, height: int, existing: str, incoming: str):
        super().__init__(
            f"two blocks claim height {height}: {existing} and {incoming}"
        )
        self.height = height
        self.existing = existing
        self.incoming = incoming


class ReplayEngine:
    """Folds relevant blocks into ledger state in ascending height order.

    The engine starts INITIALIZING. Keys pushed in that state are queued;
    ``parse_db`` replays every stored block sorted by height, drains the queue
    in arrival order and moves to READY, after which pushes are applied
    immediately. One lock serialises all of it, so ledger state only ever has a
    single writer.

    Each block key is applied at most once. Two different blocks at the same
    height are never reconciled: ``DuplicateHeightError`` is raised instead.
    """

    def __init__(
        self,
        store: BlockStore,
        table: OpcodeTable,
        context: HandlerContext,
        ledger: Optional[Ledger] = None,
    ) -> None:
        self.store = store
        self.table = table
        self.context = context
        self.ledger = ledger or Ledger(context.default_token)
        self.state = EngineState.INITIALIZING
        self.blocks: Dict[int, Block] = {}
        self.tip_height: Optional[int] = None
        self._applied: Set[str] = set()
        self._pending: Deque[str] = deque()
        self._lock = asyncio.Lock()
        logger.info("State engine %s", self.state.value)

    @property
    def pending(self) -> List[str]:
        return list(self._pending)

    @property
    def is_ready(self) -> bool:
        return self.state is EngineState.READY

    def has_applied(self, key: str) -> bool:
        return key in self._applied

    async def parse_db(self) -> None:
        async with self._lock:
            if self.state is EngineState.READY:
                raise ReplayError("backfill replay already completed")
            history = self._load_history()
            for block in history:
                self._process(block)
            # Pop only after a successful apply so a failed drain can be retried.
            while self._pending:
                self._process(self._load(self._pending[0]))
                self._pending.popleft()
            self.state = EngineState.READY
        logger.info("State engine %s with %d blocks", self.state.value, len(self.blocks))

    async def push(self, key: str) -> None:
        async with self._lock:
            if self.state is EngineState.INITIALIZING:
                self._pending.append(key)
                logger.debug("Queued block %s until backfill replay completes", key)
                return
            self._process(self._load(key))

    async def process_block(self, block: Block) -> List[CommandResult]:
        async with self._lock:
            return self._process(block)

    def _load(self, key: str) -> Block:
        block = self.store.get(key)
        if block is None:
            raise ReplayError(f"block {key} is not in the store")
        return block

    def _load_history(self) -> List[Block]:
        loaded: List[Tuple[int, Block]] = []
        seen: Dict[int, str] = {}
        for key in self.store.keys():
            block = self._load(key)
            other = seen.get(block.height)
            if other is not None:
                raise DuplicateHeightError(block.height, other, key)
            seen[block.height] = key
            loaded.append((block.height, block))
        loaded.sort(key=lambda item: item[0])
        return [block for _, block in loaded]

    def _process(self, block: Block) -> List[CommandResult]:
        key = block_key(block.hash)
        if key in self._applied:
            logger.debug("Block %d (%s) already applied, skipping", block.height, key)
            return []
        existing = self.blocks.get(block.height)
        if existing is not None:
            raise DuplicateHeightError(block.height, block_key(existing.hash), key)
        if self.tip_height is not None and block.height < self.tip_height:
            logger.warning("Block %d arrived below the replayed tip %d", block.height, self.tip_height)

        logger.info("Processing block %d", block.height)
        results: List[CommandResult] = []
        for tx in block.transactions:
            cmd = self.table.parse(tx)
            if cmd is None:
                continue
            result = dispatch(cmd, self.context)
            if result is not None:
                results.append(result)
        self.ledger.apply(change for result in results for change in result.changes)
        self.blocks[block.height] = block
        if self.tip_height is None or block.height > self.tip_height:
            self.tip_height = block.height
        self._applied.add(key)
        return results
