import json
from dataclasses import dataclass
from typing import Dict

from . import crypto
from .opcodes import DEFAULT_PREFIX, Opcode
from .tx import Transaction, extended_transaction


@dataclass
class Wallet:
    priv: Dict[str, int]

    @staticmethod
    def create() -> "Wallet":
        return Wallet(priv=crypto.generate_keypair())

    @property
    def pub(self) -> Dict[str, int]:
        return crypto.public_key(self.priv)

    @property
    def address(self) -> str:
        return crypto.address_from_pubkey(self.pub)

    def to_dict(self) -> Dict[str, object]:
        return {"algo": "ecdsa", "private_key": crypto.key_to_hex(self.priv)}

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "Wallet":
        if str(data.get("algo", "ecdsa")) != "ecdsa":
            raise ValueError("Only ecdsa wallets are supported.")
        return Wallet(priv=crypto.key_from_hex(data.get("private_key", {})))

    def save(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    @staticmethod
    def load(path: str) -> "Wallet":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return Wallet.from_dict(data)

    def command_tx(
        self,
        opcode: Opcode,
        recipient: str,
        value: int,
        args: str = "",
        prefix: str = DEFAULT_PREFIX,
        fee: int = 0,
        validity_start_height: int = 0,
    ) -> Transaction:
        """Signed extended transaction whose payload is ``prefix + code + args``."""
        if value < 0:
            raise ValueError("value must be unsigned")
        tx = extended_transaction(
            self.address,
            recipient,
            value,
            prefix + opcode.value + args,
            fee=fee,
            validity_start_height=validity_start_height,
        )
        tx.sign(self.priv)
        return tx

    def burn_tx(self, burn_address: str, value: int, prefix: str = DEFAULT_PREFIX,
                fee: int = 0, validity_start_height: int = 0) -> Transaction:
        return self.command_tx(
            Opcode.BURN,
            burn_address,
            value,
            prefix=prefix,
            fee=fee,
            validity_start_height=validity_start_height,
        )
