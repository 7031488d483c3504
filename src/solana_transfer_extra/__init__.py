"""Submit a Solana self-transfer that references extra read-only accounts."""

__version__ = "0.1.0"
