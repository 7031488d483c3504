"""System program transfer instruction with extra read-only accounts."""

from __future__ import annotations

import struct
from typing import Sequence

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID

from ..utils.constants import MAX_LAMPORTS, SYSTEM_TRANSFER_TAG

# bincode: u32 enum tag followed by u64 lamports, both little-endian.
_TRANSFER_LAYOUT = struct.Struct("<IQ")


def encode_transfer_data(lamports: int) -> bytes:
    if not 0 <= lamports <= MAX_LAMPORTS:
        raise ValueError(f"Lamports out of u64 range: {lamports}")
    return _TRANSFER_LAYOUT.pack(SYSTEM_TRANSFER_TAG, lamports)


def decode_transfer_data(data: bytes) -> int:
    if len(data) != _TRANSFER_LAYOUT.size:
        raise ValueError(f"Transfer payload must be {_TRANSFER_LAYOUT.size} bytes, got {len(data)}")
    tag, lamports = _TRANSFER_LAYOUT.unpack(data)
    if tag != SYSTEM_TRANSFER_TAG:
        raise ValueError(f"Not a system transfer payload (tag {tag})")
    return lamports


def transfer_with(
    from_pubkey: Pubkey,
    to_pubkey: Pubkey,
    lamports: int,
    extra_addresses: Sequence[Pubkey] = (),
) -> Instruction:
    """Build a system transfer that also references ``extra_addresses``.

    The system program resolves accounts by position: the funding account
    first, the recipient second. Extra addresses follow as read-only,
    non-signing references in the order given. Duplicate keys are passed
    through untouched; the runtime decides whether to accept them.
    """

    accounts = [
        AccountMeta(pubkey=from_pubkey, is_signer=True, is_writable=True),
        AccountMeta(pubkey=to_pubkey, is_signer=False, is_writable=True),
    ]
    accounts.extend(
        AccountMeta(pubkey=address, is_signer=False, is_writable=False)
        for address in extra_addresses
    )
    return Instruction(
        program_id=SYSTEM_PROGRAM_ID,
        data=encode_transfer_data(lamports),
        accounts=accounts,
    )


__all__ = ["decode_transfer_data", "encode_transfer_data", "transfer_with"]
