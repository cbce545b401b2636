from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from .utils import normalize_address


class LedgerError(RuntimeError):
    pass


@dataclass(frozen=True)
class BalanceChange:
    token: str
    address: str
    amount: int


class Ledger:
    """Derived balances, token -> address -> amount. Addresses are kept whitespace-free."""

    def __init__(self, default_token: str):
        self.default_token = default_token
        self.balances: Dict[str, Dict[str, int]] = {default_token: {}}

    def balance(self, address: str, token: Optional[str] = None) -> int:
        accounts = self.balances.get(token or self.default_token, {})
        return accounts.get(normalize_address(address), 0)

    def apply(self, changes: Iterable[BalanceChange]) -> None:
        # Stage everything first so a rejected change leaves balances untouched.
        staged: Dict[Tuple[str, str], int] = {}
        for change in changes:
            key = (change.token, normalize_address(change.address))
            current = staged.get(key, self.balance(key[1], key[0]))
            staged[key] = current + int(change.amount)
        for (token, address), amount in staged.items():
            if amount < 0:
                raise LedgerError(f"{token} balance of {address} would become {amount}")
        for (token, address), amount in staged.items():
            self.balances.setdefault(token, {})[address] = amount

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        return {token: dict(accounts) for token, accounts in self.balances.items()}

    def totals(self) -> Dict[str, int]:
        return {token: sum(accounts.values()) for token, accounts in self.balances.items()}
