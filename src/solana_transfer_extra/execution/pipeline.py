"""End-to-end self-transfer: balance, amount, instruction, sign, submit."""

from __future__ import annotations

import logging
import sys
from typing import Optional, Protocol, Sequence, TextIO

from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from ..utils.constants import format_sol
from .amount import RandomSource, select_transfer_amount
from .instructions import transfer_with
from .transaction_builder import assemble_message, sign_message
from .wallet import TransferSigner


class LedgerClient(Protocol):
    """Query and submission surface the pipeline depends on."""

    @property
    def endpoint(self) -> str: ...

    async def get_balance(self, pubkey: Pubkey) -> int: ...

    async def get_latest_blockhash(self) -> Hash: ...

    async def submit_and_confirm(self, transaction: Transaction) -> Signature: ...


async def run_transfer(
    client: LedgerClient,
    signer: TransferSigner,
    extra_addresses: Sequence[Pubkey],
    *,
    logger: logging.Logger,
    verbose: bool = False,
    rng: Optional[RandomSource] = None,
    out: Optional[TextIO] = None,
) -> Signature:
    """Pay the signer a random share of its own balance.

    Each step feeds the next; any failure propagates as a
    :class:`~.errors.TransferError` and nothing is retried here. A zero
    amount is submitted like any other.
    """

    stream = out or sys.stdout
    if verbose:
        print(f"JSON RPC URL: {client.endpoint}", file=stream)

    fee_payer = signer.public_key()
    balance = await client.get_balance(fee_payer)
    amount = select_transfer_amount(balance, rng)
    logger.info(
        "Selected transfer amount",
        extra={"fee_payer": str(fee_payer), "balance": balance, "lamports": amount},
    )
    if verbose:
        print(f"Fee payer: {fee_payer}, Amount: {format_sol(amount)}", file=stream)
        print(f"Extra addresses: [{', '.join(str(address) for address in extra_addresses)}]", file=stream)

    instruction = transfer_with(fee_payer, fee_payer, amount, extra_addresses)
    blockhash = await client.get_latest_blockhash()
    message = assemble_message(instruction, fee_payer, blockhash)
    transaction = sign_message(message, [signer], logger=logger)
    logger.debug("Signed transaction against blockhash %s", blockhash)
    return await client.submit_and_confirm(transaction)


__all__ = ["LedgerClient", "run_transfer"]
