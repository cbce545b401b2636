from .block import Block
from .opcodes import OpcodeTable


def is_relevant(block: Block, table: OpcodeTable) -> bool:
    """True when some extended transaction's ASCII payload starts with a registered opcode."""
    for tx in block.transactions:
        if tx.is_extended and table.match(tx.ascii_data()) is not None:
            return True
    return False
