import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator, List, Optional

from .block import Block
from .codec import BlockCodec

logger = logging.getLogger(__name__)


class BlockStore:
    """Append-only store of relevant blocks keyed by base64 block hash."""

    def __init__(self, path: str, codec: Optional[BlockCodec] = None):
        dir_name = os.path.dirname(path)
        if dir_name:
            os.makedirs(dir_name, exist_ok=True)
        self.path = path
        self.codec = codec or BlockCodec()
        self.conn = sqlite3.connect(path)
        self._init_tables()

    def _init_tables(self) -> None:
        cur = self.conn.cursor()
        cur.execute(
            "CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT)"
        )
        cur.execute(
            "CREATE TABLE IF NOT EXISTS blocks ("
            "key TEXT PRIMARY KEY,"
            "height INTEGER,"
            "data BLOB"
            ")"
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_blocks_height ON blocks(height)")
        self.conn.commit()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        cur = self.conn.cursor()
        try:
            yield cur
        except BaseException:
            self.conn.rollback()
            raise
        else:
            self.conn.commit()

    def has(self, key: str) -> bool:
        cur = self.conn.cursor()
        cur.execute("SELECT 1 FROM blocks WHERE key = ?", (key,))
        return cur.fetchone() is not None

    def put(self, key: str, block: Block) -> bool:
        raw = self.codec.encode(block)
        try:
            with self.transaction() as cur:
                cur.execute(
                    "INSERT INTO blocks (key, height, data) VALUES (?, ?, ?)",
                    (key, block.height, raw),
                )
        except sqlite3.IntegrityError:
            logger.debug("Block %s already stored", key)
            return False
        return True

    def get(self, key: str) -> Optional[Block]:
        cur = self.conn.cursor()
        cur.execute("SELECT data FROM blocks WHERE key = ?", (key,))
        row = cur.fetchone()
        if not row:
            return None
        return self.codec.decode(bytes(row[0]), key)

    def keys(self) -> List[str]:
        cur = self.conn.cursor()
        cur.execute("SELECT key FROM blocks")
        return [row[0] for row in cur.fetchall()]

    def count(self) -> int:
        cur = self.conn.cursor()
        cur.execute("SELECT COUNT(*) FROM blocks")
        return int(cur.fetchone()[0])

    def set_meta(self, key: str, value: str) -> None:
        with self.transaction() as cur:
            cur.execute(
                "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)",
                (key, value),
            )

    def get_meta(self, key: str) -> Optional[str]:
        cur = self.conn.cursor()
        cur.execute("SELECT value FROM meta WHERE key = ?", (key,))
        row = cur.fetchone()
        return row[0] if row else None

    def close(self) -> None:
        self.conn.close()
