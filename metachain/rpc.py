import asyncio
import json
import logging
from typing import Any, Dict, Optional
from urllib.error import URLError
from urllib.request import Request, urlopen

from .block import Block
from .chain import EVENT_HEAD_CHANGED, ChainNode, FetchError

logger = logging.getLogger(__name__)


def rpc_call(url: str, method: str, params: Optional[Dict[str, Any]] = None,
             token: Optional[str] = None, timeout: float = 10.0) -> Any:
    payload = json.dumps({"method": method, "params": params or {}}).encode()
    headers = {"Content-Type": "application/json"}
    if token:
        headers["X-Auth-Token"] = token
    req = Request(url, data=payload, headers=headers)
    with urlopen(req, timeout=timeout) as resp:
        data = json.loads(resp.read().decode())
    if not data.get("ok"):
        raise RuntimeError(data.get("error", "rpc error"))
    return data.get("result")


class RpcChain(ChainNode):
    """ChainNode backed by a node's JSON-RPC endpoint.

    ``run`` polls ``get_info``: a synced node means consensus is established,
    an unsynced or unreachable one means it was lost. While established, every
    height between the last seen head and the node's height is fetched and
    announced as ``head-changed`` in order. The first establishment only
    records the height, history is left to the backfill scan.
    """

    def __init__(self, url: str, token: Optional[str] = None,
                 timeout: float = 10.0, poll_interval: float = 2.0) -> None:
        super().__init__()
        self.url = url
        self.token = token
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._height = -1

    @property
    def height(self) -> int:
        return self._height

    async def _call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            return await asyncio.to_thread(rpc_call, self.url, method, params, self.token, self.timeout)
        except (URLError, OSError, ValueError, RuntimeError) as exc:
            raise FetchError(f"{method} failed: {exc}") from exc

    async def get_block_at(self, height: int, include_body: bool = True) -> Optional[Block]:
        result = await self._call("get_block_by_height", {"height": height})
        if not result:
            return None
        try:
            block = Block.from_dict(result)
        except (KeyError, TypeError, ValueError) as exc:
            raise FetchError(f"malformed block at height {height}") from exc
        return block if include_body else block.without_body()

    async def poll_once(self) -> None:
        try:
            info = await self._call("get_info") or {}
        except FetchError as exc:
            logger.warning("Node unreachable: %s", exc)
            await self._set_established(False)
            return
        height = int(info.get("height", -1))
        if not info.get("synced", True):
            await self._set_established(False)
            return
        if not self.established:
            self._height = height
            await self._set_established(True)
            return
        if height < self._height:
            logger.warning("Node height went back from %d to %d", self._height, height)
            self._height = height
            return
        while self._height < height:
            block = await self.get_block_at(self._height + 1)
            if block is None:
                break
            self._height = block.height
            await self._emit(EVENT_HEAD_CHANGED, block)

    async def run(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self.poll_interval)
