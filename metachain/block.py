from dataclasses import dataclass
from typing import List, Optional

from .tx import Transaction
from .utils import json_dumps, sha256, now_ts

GENESIS_PREV = "0" * 64


def body_hash(txs: List[Transaction]) -> str:
    return sha256("".join(tx.txid for tx in txs).encode())


@dataclass
class BlockHeader:
    prev_hash: str
    body_hash: str
    timestamp: int
    height: int

    def to_dict(self) -> dict:
        return {
            "prev_hash": self.prev_hash,
            "body_hash": self.body_hash,
            "timestamp": self.timestamp,
            "height": self.height,
        }

    @staticmethod
    def from_dict(data: dict) -> "BlockHeader":
        return BlockHeader(
            prev_hash=str(data["prev_hash"]),
            body_hash=str(data["body_hash"]),
            timestamp=int(data["timestamp"]),
            height=int(data["height"]),
        )


@dataclass
class Block:
    header: BlockHeader
    txs: Optional[List[Transaction]] = None

    @property
    def hash(self) -> str:
        return sha256(json_dumps(self.header.to_dict()).encode())

    @property
    def height(self) -> int:
        return self.header.height

    @property
    def transactions(self) -> List[Transaction]:
        return self.txs or []

    def without_body(self) -> "Block":
        return Block(header=self.header, txs=None)

    def to_dict(self) -> dict:
        data = {"header": self.header.to_dict()}
        if self.txs is not None:
            data["txs"] = [tx.to_dict(include_sig=True) for tx in self.txs]
        return data

    @staticmethod
    def from_dict(data: dict) -> "Block":
        header = BlockHeader.from_dict(data["header"])
        raw_txs = data.get("txs")
        txs = None if raw_txs is None else [Transaction.from_dict(t) for t in raw_txs]
        return Block(header=header, txs=txs)

    @staticmethod
    def build(prev_hash: str, height: int, txs: List[Transaction], timestamp: Optional[int] = None) -> "Block":
        header = BlockHeader(
            prev_hash=prev_hash,
            body_hash=body_hash(txs),
            timestamp=now_ts() if timestamp is None else timestamp,
            height=height,
        )
        return Block(header=header, txs=list(txs))
