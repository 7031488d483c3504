"""Error taxonomy for the transfer pipeline.

Every failure that ends a run is raised as a :class:`TransferError` subclass.
The ``prefix`` attribute is the operator-facing label printed after
``error:`` so construction failures can be told apart from submission
failures.
"""

from __future__ import annotations


class TransferError(RuntimeError):
    """Base class for fatal pipeline errors."""

    prefix = "transfer failed"

    def __init__(self, message: str, *, prefix: str | None = None) -> None:
        super().__init__(message)
        if prefix is not None:
            self.prefix = prefix

    def describe(self) -> str:
        return f"{self.prefix}: {self}"


class ResolutionError(TransferError):
    """Raised when the signer or an address cannot be resolved."""

    prefix = "unable to resolve signer"


class QueryError(TransferError):
    """Raised when a balance or blockhash query fails."""

    prefix = "unable to query ledger"


class SigningError(TransferError):
    """Raised when a required signature cannot be produced."""

    prefix = "failed to sign transaction"


class SubmissionError(TransferError):
    """Raised when the network rejects or does not confirm the transaction."""

    prefix = "send transaction"


class SubmissionTimeout(SubmissionError):
    """Raised when confirmation does not arrive within the bounded wait."""


__all__ = [
    "QueryError",
    "ResolutionError",
    "SigningError",
    "SubmissionError",
    "SubmissionTimeout",
    "TransferError",
]
