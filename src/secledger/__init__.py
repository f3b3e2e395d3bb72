"""secledger — per-user security ledger for chat accounts."""

__version__ = "0.1.0"
