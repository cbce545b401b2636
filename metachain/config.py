import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .opcodes import DEFAULT_PREFIX, Opcode

DEFAULT_BURN_ADDRESS = "MC05 MECH AR0C HY00 0000 0000 0000 0000 0000 0000 0000"
DEFAULT_TOKEN = "MCRC"
DEFAULT_RPC_URL = "http://127.0.0.1:9334/rpc"
DEFAULT_DATA_DIR = os.path.join(os.getcwd(), "metachain_data")


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default)).strip()
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be > 0")
    return value


def _env_flag(name: str, default: bool) -> bool:
    return os.getenv(name, "1" if default else "0").strip().lower() in ("1", "true", "yes", "on")


def parse_opcodes(raw: str) -> Tuple[Opcode, ...]:
    names = [p.strip().upper() for p in raw.split(",") if p.strip()]
    if not names:
        raise ValueError("at least one opcode must be registered")
    out = []
    for name in names:
        try:
            op = Opcode[name]
        except KeyError as exc:
            raise ValueError(f"unknown opcode {name}") from exc
        if op in out:
            raise ValueError(f"opcode {name} registered twice")
        out.append(op)
    return tuple(out)


@dataclass(frozen=True)
class IndexerConfig:
    start_height: int = 0
    opcode_prefix: str = DEFAULT_PREFIX
    # Order matters: the first registered opcode matching a payload wins.
    opcodes: Tuple[Opcode, ...] = field(default_factory=lambda: tuple(Opcode))
    burn_address: str = DEFAULT_BURN_ADDRESS
    default_token: str = DEFAULT_TOKEN
    data_dir: str = DEFAULT_DATA_DIR
    db_path: Optional[str] = None
    checkpoint_interval: int = 1000
    resume: bool = True
    rpc_url: str = DEFAULT_RPC_URL
    rpc_token: Optional[str] = None
    rpc_timeout: float = 10.0
    poll_interval: float = 2.0

    @property
    def block_db_path(self) -> str:
        return self.db_path or os.path.join(self.data_dir, "blocks.db")

    @staticmethod
    def from_env(data_dir: Optional[str] = None) -> "IndexerConfig":
        prefix = os.getenv("METACHAIN_OPCODE_PREFIX", DEFAULT_PREFIX)
        if not prefix:
            raise ValueError("METACHAIN_OPCODE_PREFIX must not be empty")
        raw_opcodes = os.getenv("METACHAIN_OPCODES")
        opcodes = parse_opcodes(raw_opcodes) if raw_opcodes else tuple(Opcode)
        token = os.getenv("METACHAIN_DEFAULT_TOKEN", DEFAULT_TOKEN).strip()
        if not token:
            raise ValueError("METACHAIN_DEFAULT_TOKEN must not be empty")
        return IndexerConfig(
            start_height=_env_int("METACHAIN_START_HEIGHT", 0),
            opcode_prefix=prefix,
            opcodes=opcodes,
            burn_address=os.getenv("METACHAIN_BURN_ADDRESS", DEFAULT_BURN_ADDRESS),
            default_token=token,
            data_dir=data_dir or os.getenv("METACHAIN_DATA_DIR", DEFAULT_DATA_DIR),
            db_path=os.getenv("METACHAIN_DB_PATH") or None,
            checkpoint_interval=_env_int("METACHAIN_CHECKPOINT_INTERVAL", 1000, minimum=1),
            resume=_env_flag("METACHAIN_RESUME", True),
            rpc_url=os.getenv("METACHAIN_RPC", DEFAULT_RPC_URL),
            rpc_token=os.getenv("METACHAIN_RPC_TOKEN") or None,
            rpc_timeout=_env_float("METACHAIN_RPC_TIMEOUT", 10.0),
            poll_interval=_env_float("METACHAIN_POLL_INTERVAL", 2.0),
        )
