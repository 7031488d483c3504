"""Signer resolution for local keypairs and external signing processes."""

from __future__ import annotations

import base64
import json
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Protocol, runtime_checkable

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from .errors import ResolutionError, SigningError

if TYPE_CHECKING:  # pragma: no cover
    from ..config.settings import WalletConfig

FILE_SCHEME = "file://"
EXEC_SCHEME = "exec://"


@runtime_checkable
class TransferSigner(Protocol):
    """Anything that owns key material and can sign message bytes."""

    def public_key(self) -> Pubkey: ...

    def sign(self, message: bytes) -> Signature: ...


@dataclass(slots=True)
class KeypairSigner:
    """Wrapper around a local Solana keypair."""

    keypair: Keypair

    def public_key(self) -> Pubkey:
        return self.keypair.pubkey()

    def sign(self, message: bytes) -> Signature:
        return self.keypair.sign_message(message)


@dataclass(slots=True)
class ExternalSigner:
    """Signer backed by a helper process that holds the key.

    The helper receives the serialized message as base64 on stdin and writes
    a base58 signature to stdout. Invoked with ``--pubkey`` it prints the
    base58 public key instead. A non-zero exit while signing is treated as a
    refusal (for example the user rejecting the request on a device).
    """

    argv: List[str]
    timeout: float = 120.0
    _pubkey: Optional[Pubkey] = field(default=None, repr=False)

    def public_key(self) -> Pubkey:
        if self._pubkey is None:
            try:
                result = subprocess.run(
                    [*self.argv, "--pubkey"],
                    text=True,
                    capture_output=True,
                    check=True,
                    timeout=self.timeout,
                )
                self._pubkey = Pubkey.from_string(result.stdout.strip())
            except (OSError, subprocess.SubprocessError, ValueError) as exc:
                raise ResolutionError(f"external signer {self.argv[0]!r} did not report a public key: {exc}") from exc
        return self._pubkey

    def sign(self, message: bytes) -> Signature:
        payload = base64.b64encode(message).decode("ascii")
        try:
            result = subprocess.run(
                self.argv,
                input=payload,
                text=True,
                capture_output=True,
                check=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
            raise SigningError(f"external signer refused: {detail}") from exc
        except (OSError, subprocess.SubprocessError) as exc:
            raise SigningError(f"external signer unavailable: {exc}") from exc
        try:
            return Signature.from_string(result.stdout.strip())
        except ValueError as exc:
            raise SigningError(f"external signer returned a malformed signature: {exc}") from exc


def read_keypair_file(path: Path | str) -> Keypair:
    keypair_path = Path(path).expanduser()
    try:
        with keypair_path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, list):
            raise ValueError("expected a JSON array of 64 bytes")
        return Keypair.from_bytes(bytes(data))
    except (OSError, TypeError, ValueError) as exc:
        raise ResolutionError(f"{keypair_path}: {exc}") from exc


def resolve_signer(reference: str) -> TransferSigner:
    """Resolve a signer reference into a signing capability.

    Accepted forms are a keypair file path, ``file://<path>`` and
    ``exec://<command>``. Other URI schemes (``usb://`` for hardware
    wallets, for instance) have no transport here and fail resolution.
    """

    if reference.startswith(EXEC_SCHEME):
        argv = shlex.split(reference[len(EXEC_SCHEME):])
        if not argv:
            raise ResolutionError("exec:// signer reference has no command")
        signer = ExternalSigner(argv=argv)
        signer.public_key()
        return signer
    if reference.startswith(FILE_SCHEME):
        return KeypairSigner(keypair=read_keypair_file(reference[len(FILE_SCHEME):]))
    if "://" in reference:
        scheme = reference.split("://", 1)[0]
        raise ResolutionError(f"unsupported signer scheme {scheme!r} in {reference}")
    return KeypairSigner(keypair=read_keypair_file(reference))


def load_signer(config: WalletConfig) -> TransferSigner:
    """Build the fee payer signer from wallet configuration.

    A base58 ``private_key`` wins over ``keypair_path``.
    """

    if config.private_key:
        try:
            keypair = Keypair.from_bytes(base58.b58decode(config.private_key))
        except ValueError as exc:
            raise ResolutionError(f"invalid private key: {exc}") from exc
        return KeypairSigner(keypair=keypair)
    if config.keypair_path:
        return resolve_signer(config.keypair_path)
    raise ResolutionError("no keypair configured; pass --keypair or set wallet.keypair_path")


def resolve_pubkey(value: str) -> Pubkey:
    """Parse a base58 address, or read the public key of a keypair file."""

    try:
        return Pubkey.from_string(value)
    except ValueError:
        pass
    candidate = Path(value.removeprefix(FILE_SCHEME)).expanduser()
    if candidate.is_file():
        return read_keypair_file(candidate).pubkey()
    raise ResolutionError(f"{value} is not a public key or keypair file", prefix="invalid address")


__all__ = [
    "ExternalSigner",
    "KeypairSigner",
    "TransferSigner",
    "load_signer",
    "read_keypair_file",
    "resolve_pubkey",
    "resolve_signer",
]
