from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from .tx import Transaction

DEFAULT_PREFIX = "MCRC_"


class Opcode(Enum):
    BURN = "01"
    ISSUE = "02"
    TRANSFER = "03"
    DESTROY = "04"
    ORDER = "05"
    CANCEL = "06"
    LOCK = "07"
    MEMO = "08"
    BROADCAST = "09"
    BET = "10"
    DIVIDEND = "11"


@dataclass(frozen=True)
class Command:
    opcode: Opcode
    sender: str
    recipient: str
    value: int
    args: str = ""
    txid: str = ""


class OpcodeTable:
    """Ordered opcode strings (prefix + code); the first match against a payload wins."""

    def __init__(self, prefix: str = DEFAULT_PREFIX, opcodes: Optional[Iterable[Opcode]] = None):
        if not prefix:
            raise ValueError("opcode prefix must not be empty")
        self.prefix = prefix
        self.entries: List[Tuple[str, Opcode]] = []
        for op in (tuple(Opcode) if opcodes is None else opcodes):
            text = prefix + op.value
            if any(existing == op for _, existing in self.entries):
                raise ValueError(f"opcode {op.name} registered twice")
            self.entries.append((text, op))

    def match(self, payload: Optional[str]) -> Optional[Tuple[Opcode, str]]:
        if not payload or not payload.startswith(self.prefix):
            return None
        for text, op in self.entries:
            if payload.startswith(text):
                return op, payload[len(text):]
        return None

    def parse(self, tx: Transaction) -> Optional[Command]:
        if not tx.is_extended:
            return None
        matched = self.match(tx.ascii_data())
        if matched is None:
            return None
        op, args = matched
        return Command(
            opcode=op,
            sender=tx.sender,
            recipient=tx.recipient,
            value=tx.value,
            args=args,
            txid=tx.txid,
        )
