import json

from .block import Block
from .utils import hash_from_key, json_dumps


class CodecError(ValueError):
    pass


class BlockCodec:
    """Serializes blocks for the relevant-block store.

    Values are canonical JSON bytes. ``decode`` recomputes the header hash and
    checks it against the storage key, so a record can never be replayed under
    an identity other than the one it was stored with.
    """

    def encode(self, block: Block) -> bytes:
        return json_dumps(block.to_dict()).encode()

    def decode(self, raw: bytes, key: str) -> Block:
        try:
            block = Block.from_dict(json.loads(raw.decode()))
        except (KeyError, TypeError, ValueError) as exc:
            raise CodecError(f"cannot decode block {key}") from exc
        if block.hash != hash_from_key(key):
            raise CodecError(f"block hash does not match key {key}")
        return block
