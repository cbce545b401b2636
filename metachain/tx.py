from dataclasses import dataclass
from typing import Dict, Optional

from . import crypto
from .utils import json_dumps, normalize_address, sha256

FORMAT_BASIC = "basic"
FORMAT_EXTENDED = "extended"
FORMATS = (FORMAT_BASIC, FORMAT_EXTENDED)


@dataclass
class Transaction:
    sender: str
    recipient: str
    value: int
    fee: int = 0
    validity_start_height: int = 0
    format: str = FORMAT_BASIC
    data: bytes = b""
    pubkey: Optional[Dict[str, str]] = None
    signature: str = ""

    def to_dict(self, include_sig: bool = True) -> Dict[str, object]:
        data = {
            "sender": self.sender,
            "recipient": self.recipient,
            "value": self.value,
            "fee": self.fee,
            "validity_start_height": self.validity_start_height,
            "format": self.format,
            "data": self.data.hex(),
        }
        if include_sig:
            data["pubkey"] = self.pubkey
            data["signature"] = self.signature
        return data

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "Transaction":
        fmt = str(data.get("format", FORMAT_BASIC))
        if fmt not in FORMATS:
            raise ValueError(f"unknown transaction format {fmt!r}")
        value = int(data["value"])
        if value < 0:
            raise ValueError("transaction value must be unsigned")
        return Transaction(
            sender=str(data["sender"]),
            recipient=str(data["recipient"]),
            value=value,
            fee=int(data.get("fee", 0)),
            validity_start_height=int(data.get("validity_start_height", 0)),
            format=fmt,
            data=bytes.fromhex(str(data.get("data", ""))),
            pubkey=data.get("pubkey"),
            signature=str(data.get("signature", "")),
        )

    @property
    def txid(self) -> str:
        payload = json_dumps(self.to_dict(include_sig=False)).encode()
        return sha256(payload)

    @property
    def is_extended(self) -> bool:
        return self.format == FORMAT_EXTENDED

    def ascii_data(self) -> Optional[str]:
        """Payload as ASCII text, or None when the bytes are not ASCII."""
        try:
            return self.data.decode("ascii")
        except UnicodeDecodeError:
            return None

    def sign(self, priv: Dict[str, int]) -> None:
        pub = crypto.public_key(priv)
        self.pubkey = crypto.key_to_hex(pub)
        self.signature = crypto.sign(self.txid, priv)

    def verify(self) -> bool:
        if not self.pubkey or not self.signature:
            return False
        try:
            pub = crypto.key_from_hex(self.pubkey)
            if normalize_address(crypto.address_from_pubkey(pub)) != normalize_address(self.sender):
                return False
            return crypto.verify(self.txid, self.signature, pub)
        except (KeyError, TypeError, ValueError):
            return False


def extended_transaction(
    sender: str,
    recipient: str,
    value: int,
    message: str,
    fee: int = 0,
    validity_start_height: int = 0,
) -> Transaction:
    return Transaction(
        sender=sender,
        recipient=recipient,
        value=value,
        fee=fee,
        validity_start_height=validity_start_height,
        format=FORMAT_EXTENDED,
        data=message.encode("ascii"),
    )
