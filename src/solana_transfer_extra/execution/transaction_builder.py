"""Message assembly and signing for the self-transfer transaction."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence

from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from ..monitoring.logger import get_logger
from .errors import SigningError
from .wallet import TransferSigner


def assemble_message(instruction: Instruction, fee_payer: Pubkey, recent_blockhash: Hash) -> Message:
    """Wrap a single instruction into a message bound to ``recent_blockhash``.

    The blockhash must be fetched right before signing; it expires after the
    network's validity window.
    """

    return Message.new_with_blockhash([instruction], fee_payer, recent_blockhash)


def required_signers(message: Message) -> list[Pubkey]:
    return list(message.account_keys[: message.header.num_required_signatures])


def sign_message(
    message: Message,
    signers: Sequence[TransferSigner],
    *,
    logger: Optional[logging.Logger] = None,
) -> Transaction:
    """Collect one verified signature per required signer.

    Raises :class:`SigningError` when a required signer is missing, refuses
    to sign, or returns a signature that does not verify against its key.
    """

    log = logger or get_logger(__name__)
    by_key: Dict[Pubkey, TransferSigner] = {signer.public_key(): signer for signer in signers}
    message_bytes = bytes(message)
    signatures: list[Signature] = []
    for pubkey in required_signers(message):
        signer = by_key.get(pubkey)
        if signer is None:
            raise SigningError(f"missing signer for required account {pubkey}")
        signature = signer.sign(message_bytes)
        if not signature.verify(pubkey, message_bytes):
            raise SigningError(f"signature from {pubkey} does not verify")
        log.debug("Collected signature from %s", pubkey)
        signatures.append(signature)
    return Transaction.populate(message, signatures)


__all__ = ["assemble_message", "required_signers", "sign_message"]
