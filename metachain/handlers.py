"""Per-opcode handlers.

Every opcode in :class:`~metachain.opcodes.Opcode` has an entry in ``HANDLERS``.
Only BURN changes balances today; the other opcodes are dispatched to
``handle_unimplemented`` and produce no result, so blocks using them replay
cleanly until real handlers are added.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from .ledger import BalanceChange
from .opcodes import Command, Opcode
from .utils import normalize_address


@dataclass(frozen=True)
class HandlerContext:
    burn_address: str
    default_token: str


@dataclass(frozen=True)
class CommandResult:
    opcode: Opcode
    changes: Tuple[BalanceChange, ...] = ()


Handler = Callable[[Command, HandlerContext], Optional[CommandResult]]


def handle_burn(cmd: Command, ctx: HandlerContext) -> Optional[CommandResult]:
    if normalize_address(cmd.recipient) != normalize_address(ctx.burn_address):
        return None
    credit = BalanceChange(
        token=ctx.default_token,
        address=normalize_address(cmd.sender),
        amount=cmd.value,
    )
    return CommandResult(opcode=cmd.opcode, changes=(credit,))


def handle_unimplemented(cmd: Command, ctx: HandlerContext) -> Optional[CommandResult]:
    return None


HANDLERS: Dict[Opcode, Handler] = {
    Opcode.BURN: handle_burn,
    Opcode.ISSUE: handle_unimplemented,
    Opcode.TRANSFER: handle_unimplemented,
    Opcode.DESTROY: handle_unimplemented,
    Opcode.ORDER: handle_unimplemented,
    Opcode.CANCEL: handle_unimplemented,
    Opcode.LOCK: handle_unimplemented,
    Opcode.MEMO: handle_unimplemented,
    Opcode.BROADCAST: handle_unimplemented,
    Opcode.BET: handle_unimplemented,
    Opcode.DIVIDEND: handle_unimplemented,
}


def dispatch(cmd: Command, ctx: HandlerContext) -> Optional[CommandResult]:
    return HANDLERS[cmd.opcode](cmd, ctx)
