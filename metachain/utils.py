import base64
import hashlib
import json
import re
from typing import Any

_WHITESPACE = re.compile(r"\s")


def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def json_dumps(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"))


def now_ts() -> int:
    import time
    return int(time.time())


def normalize_address(address: str) -> str:
    """Drop every whitespace character so grouped and compact forms compare equal."""
    return _WHITESPACE.sub("", address or "")


def group_address(address: str, size: int = 4) -> str:
    compact = normalize_address(address)
    return " ".join(compact[i:i + size] for i in range(0, len(compact), size))


def block_key(block_hash: str) -> str:
    return base64.b64encode(bytes.fromhex(block_hash)).decode()


def hash_from_key(key: str) -> str:
    return base64.b64decode(key.encode()).hex()
