import asyncio
import logging
from typing import Awaitable, List, Optional

from .block import Block
from .chain import EVENT_ESTABLISHED, EVENT_HEAD_CHANGED, EVENT_LOST, ChainNode, FetchError
from .config import IndexerConfig
from .engine import ReplayEngine
from .handlers import HandlerContext
from .ledger import Ledger
from .opcodes import OpcodeTable
from .relevance import is_relevant
from .store import BlockStore
from .utils import block_key

logger = logging.getLogger(__name__)

SCANNED_HEIGHT = "scanned_height"


class Indexer:
    """Wires a chain node, the relevant-block store and the replay engine.

    On the first ``established`` event the backfill scan walks from the start
    height to the height seen at that moment, then hands over to
    ``ReplayEngine.parse_db``. Head changes are stored and pushed to the
    engine, which buffers them until the backfill replay is done. If consensus
    is regained after the engine is READY, a catch-up scan covers the gap and
    heads arriving meanwhile are deferred until it finishes. If it is regained
    while a scan is still running, a catch-up to the newly seen height follows
    that scan in the same task.

    Failures are not retried. They are logged and re-raised by ``run``.
    """

    def __init__(self, node: ChainNode, store: BlockStore, config: IndexerConfig) -> None:
        self.node = node
        self.store = store
        self.config = config
        self.table = OpcodeTable(config.opcode_prefix, config.opcodes)
        self.engine = ReplayEngine(
            store,
            self.table,
            HandlerContext(burn_address=config.burn_address, default_token=config.default_token),
        )
        raw = store.get_meta(SCANNED_HEIGHT)
        self.scanned_height: Optional[int] = int(raw) if raw is not None else None
        self.error: Optional[BaseException] = None
        self._failed = asyncio.Event()
        self._scan_task: Optional[asyncio.Task] = None
        self._catching_up = False
        self._deferred: List[str] = []
        self._scan_heads: List[int] = []
        self._rescan_to: Optional[int] = None

        node.on(EVENT_ESTABLISHED, self._on_established)
        node.on(EVENT_LOST, self._on_lost)
        node.on(EVENT_HEAD_CHANGED, self._on_head_changed)

    @property
    def ledger(self) -> Ledger:
        return self.engine.ledger

    @property
    def scanning(self) -> bool:
        return self._scan_task is not None and not self._scan_task.done()

    async def run(self) -> None:
        await self._failed.wait()
        raise self.error

    async def wait_idle(self) -> None:
        if self._scan_task is not None:
            await self._scan_task

    def _fail(self, exc: BaseException) -> None:
        logger.error("Indexer stopped: %s", exc, exc_info=exc)
        if self.error is None:
            self.error = exc
        self._failed.set()

    async def _guard(self, coro: Awaitable[None]) -> None:
        try:
            await coro
        except Exception as exc:
            self._fail(exc)

    async def _on_established(self) -> None:
        logger.info("Consensus established, height=%d", self.node.height)
        # The bound is read here, once, so a scan ends even while the chain keeps growing.
        max_height = self.node.height
        if self.scanning:
            logger.info("Scan running, catching up to %d after it", max_height)
            # Heads seen from now on wait for that catch-up.
            self._catching_up = True
            if self._rescan_to is None or max_height > self._rescan_to:
                self._rescan_to = max_height
            return
        if self.engine.is_ready:
            self._catching_up = True
            first = self.catch_up(max_height)
        else:
            first = self.backfill(max_height)
        self._scan_task = asyncio.create_task(self._guard(self._scan_session(first)))

    async def _scan_session(self, first: Awaitable[None]) -> None:
        try:
            await first
            while self._rescan_to is not None:
                max_height, self._rescan_to = self._rescan_to, None
                await self.catch_up(max_height)
            while self._deferred:
                await self.engine.push(self._deferred.pop(0))
        finally:
            self._catching_up = False
        self._settle_checkpoint()

    async def _on_lost(self) -> None:
        logger.warning("Consensus lost")

    async def _on_head_changed(self, head: Block) -> None:
        if not self.node.established:
            return
        try:
            await self.handle_head(head)
        except Exception as exc:
            self._fail(exc)
            raise

    def resume_height(self) -> int:
        start = self.config.start_height
        if self.config.resume and self.scanned_height is not None:
            start = max(start, self.scanned_height + 1)
        return start

    def store_if_relevant(self, block: Block) -> Optional[str]:
        """Store a relevant block once. Returns its key, or None when it is not relevant."""
        if not is_relevant(block, self.table):
            return None
        key = block_key(block.hash)
        if self.store.has(key):
            logger.info("Block %d already stored", block.height)
        elif self.store.put(key, block):
            logger.info("Block %d stored", block.height)
        return key

    def _checkpoint(self, height: int) -> None:
        self.scanned_height = height
        self.store.set_meta(SCANNED_HEIGHT, str(height))

    def _settle_checkpoint(self) -> None:
        # Heads seen during a scan continue the scanned range once it reaches them.
        later: List[int] = []
        for height in sorted(self._scan_heads):
            if self.scanned_height is not None and height <= self.scanned_height:
                continue
            if self.scanned_height == height - 1:
                self._checkpoint(height)
            else:
                later.append(height)
        self._scan_heads = later

    async def _scan(self, height: int, max_height: int, push: bool) -> int:
        found = 0
        last_checkpoint = height - 1
        scanned: Optional[int] = None
        while height <= max_height:
            try:
                block = await self.node.get_block_at(height, True)
            except FetchError:
                raise
            except Exception as exc:
                raise FetchError(f"cannot fetch block {height}") from exc
            if block is None:
                break
            key = self.store_if_relevant(block)
            if key is not None:
                found += 1
                if push:
                    await self.engine.push(key)
            scanned = block.height
            if scanned - last_checkpoint >= self.config.checkpoint_interval:
                self._checkpoint(scanned)
                last_checkpoint = scanned
                logger.info("Scanned up to block %d, head %d", scanned, max_height)
            height = block.height + 1
        if scanned is not None and scanned != last_checkpoint:
            self._checkpoint(scanned)
        return found

    async def backfill(self, max_height: Optional[int] = None) -> None:
        if max_height is None:
            max_height = self.node.height
        height = self.resume_height()
        logger.info("Backfill from %d to %d", height, max_height)
        found = await self._scan(height, max_height, push=False)
        logger.info("Backfill done, %d relevant blocks found, %d stored", found, self.store.count())
        await self.engine.parse_db()

    async def catch_up(self, max_height: Optional[int] = None) -> None:
        if max_height is None:
            max_height = self.node.height
        if self.scanned_height is None:
            height = self.config.start_height
        else:
            height = self.scanned_height + 1
        logger.info("Catching up from %d to %d", height, max_height)
        await self._scan(height, max_height, push=True)

    async def handle_head(self, head: Block) -> None:
        logger.info("Now at block: %d", head.height)
        key = self.store_if_relevant(head)
        if key is not None:
            if self._catching_up:
                self._deferred.append(key)
            else:
                logger.info("Pushing block %d to state engine", head.height)
                await self.engine.push(key)
        if self.scanning:
            self._scan_heads.append(head.height)
        elif self.engine.is_ready and self.scanned_height == head.height - 1:
            self._checkpoint(head.height)
            self._settle_checkpoint()
