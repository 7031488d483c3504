"""Shared Solana constants and display helpers."""

LAMPORTS_PER_SOL = 1_000_000_000

# The system program decodes instructions as a bincode enum; Transfer is variant 2.
SYSTEM_TRANSFER_TAG = 2
MAX_LAMPORTS = 2**64 - 1

# Cluster monikers accepted wherever a JSON RPC URL is expected.
CLUSTER_MONIKERS: dict[str, str] = {
    "m": "https://api.mainnet-beta.solana.com",
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
    "t": "https://api.testnet.solana.com",
    "testnet": "https://api.testnet.solana.com",
    "d": "https://api.devnet.solana.com",
    "devnet": "https://api.devnet.solana.com",
    "l": "http://localhost:8899",
    "localhost": "http://localhost:8899",
}

DEFAULT_RPC_URL = CLUSTER_MONIKERS["mainnet-beta"]


def format_sol(lamports: int) -> str:
    """Render a lamport amount the way the Solana CLI prints SOL values."""
    whole, frac = divmod(lamports, LAMPORTS_PER_SOL)
    return f"◎{whole}.{frac:09d}"


__all__ = [
    "CLUSTER_MONIKERS",
    "DEFAULT_RPC_URL",
    "LAMPORTS_PER_SOL",
    "MAX_LAMPORTS",
    "SYSTEM_TRANSFER_TAG",
    "format_sol",
]
