"""Solana RPC client wrapper: ledger queries and confirmed submission."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.core import RPCException, RPCNoResultException
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction
from solders.transaction_status import TransactionConfirmationStatus
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from ..config.settings import RPCConfig
from ..monitoring.logger import get_logger
from .errors import QueryError, SubmissionError, SubmissionTimeout

_TRANSIENT_ERRORS = (SolanaRpcException, httpx.TransportError)
_RPC_ERRORS = (RPCException, RPCNoResultException, SolanaRpcException, httpx.HTTPError)

_COMMITMENT_RANK = {"processed": 0, "confirmed": 1, "finalized": 2}


def _status_rank(status: Any) -> int:
    confirmation = status.confirmation_status
    # Nodes that omit confirmation_status only report rooted slots.
    if confirmation is None or confirmation == TransactionConfirmationStatus.Finalized:
        return 2
    if confirmation == TransactionConfirmationStatus.Confirmed:
        return 1
    return 0


class SolanaClient:
    """Ledger query and submission capability used by the transfer pipeline.

    Balance and blockhash queries retry transient transport failures a
    bounded number of times. Submission is sent once and then polled until
    the configured commitment is reached, the network reports an error, or
    ``confirm_timeout`` elapses.
    """

    def __init__(
        self,
        config: Optional[RPCConfig] = None,
        *,
        client: Optional[Any] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._config = config or RPCConfig()
        self._client = client or AsyncClient(
            self._config.json_rpc_url,
            commitment=self._config.commitment,
            timeout=self._config.request_timeout,
        )
        self._logger = logger or get_logger(__name__)

    @property
    def endpoint(self) -> str:
        return self._config.json_rpc_url

    async def __aenter__(self) -> "SolanaClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.close()

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._config.max_query_attempts),
            wait=wait_fixed(self._config.retry_wait_seconds),
            retry=retry_if_exception_type(_TRANSIENT_ERRORS),
            before_sleep=lambda state: self._logger.warning(
                "RPC query failed on %s (attempt %d): %s",
                self.endpoint,
                state.attempt_number,
                state.outcome.exception() if state.outcome else None,
            ),
            reraise=True,
        )

    async def get_balance(self, pubkey: Pubkey) -> int:
        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await self._client.get_balance(pubkey, commitment=self._config.commitment)
        except _RPC_ERRORS as exc:
            raise QueryError(str(exc), prefix="unable to get balance") from exc
        return int(response.value)

    async def get_latest_blockhash(self) -> Hash:
        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await self._client.get_latest_blockhash(commitment=self._config.commitment)
        except _RPC_ERRORS as exc:
            raise QueryError(str(exc), prefix="unable to get latest blockhash") from exc
        return response.value.blockhash

    async def submit_and_confirm(self, transaction: Transaction) -> Signature:
        opts = TxOpts(skip_confirmation=True, preflight_commitment=self._config.commitment)
        try:
            response = await self._client.send_raw_transaction(bytes(transaction), opts=opts)
        except _RPC_ERRORS as exc:
            raise SubmissionError(str(exc)) from exc
        signature = response.value
        self._logger.info("Submitted transaction %s", signature)
        try:
            await asyncio.wait_for(self._await_confirmation(signature), timeout=self._config.confirm_timeout)
        except asyncio.TimeoutError as exc:
            raise SubmissionTimeout(
                f"timed out after {self._config.confirm_timeout:g}s waiting for confirmation of {signature}"
            ) from exc
        self._logger.info("Transaction %s reached %s commitment", signature, self._config.commitment)
        return signature

    async def _await_confirmation(self, signature: Signature) -> None:
        target = _COMMITMENT_RANK[self._config.commitment]
        while True:
            try:
                response = await self._client.get_signature_statuses([signature])
            except _TRANSIENT_ERRORS as exc:
                self._logger.warning("Signature status poll failed for %s: %s", signature, exc)
            except (RPCException, RPCNoResultException) as exc:
                raise SubmissionError(f"unable to confirm {signature}: {exc}") from exc
            else:
                status = response.value[0]
                if status is not None:
                    if status.err is not None:
                        raise SubmissionError(f"transaction {signature} failed: {status.err}")
                    if _status_rank(status) >= target:
                        return
            await asyncio.sleep(self._config.poll_interval)


__all__ = ["SolanaClient"]
