__all__ = [
    "block",
    "chain",
    "codec",
    "config",
    "crypto",
    "engine",
    "handlers",
    "indexer",
    "ledger",
    "opcodes",
    "relevance",
    "rpc",
    "store",
    "tx",
    "wallet",
]
