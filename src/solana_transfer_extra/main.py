"""Entrypoint for the self-transfer command."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence, TextIO

from pydantic import ValidationError
from solders.signature import Signature

from .config.settings import AppConfig, load_config
from .execution.errors import TransferError
from .execution.pipeline import run_transfer
from .execution.solana_client import SolanaClient
from .execution.wallet import TransferSigner, load_signer
from .monitoring.logger import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="solana-transfer-extra",
        description="Transfer a random share of the fee payer's balance to itself, "
        "referencing extra read-only accounts",
    )
    parser.add_argument("-C", "--config", dest="config_file", metavar="PATH", help="Configuration file to use")
    parser.add_argument(
        "--keypair",
        metavar="KEYPAIR",
        help="Filepath or URL to a keypair [default: client keypair]",
    )
    parser.add_argument("-v", "--verbose", action="store_true", default=None, help="Show additional information")
    parser.add_argument(
        "-u",
        "--url",
        dest="json_rpc_url",
        metavar="URL",
        help="JSON RPC URL for the cluster [default: value from configuration file]",
    )
    parser.add_argument("extra_addresses", metavar="ADDRESS", nargs="*", help="Extra addresses to append")
    return parser


async def run_async(
    config: AppConfig, signer: TransferSigner, logger: logging.Logger, out: TextIO
) -> Signature:
    async with SolanaClient(config.rpc, logger=logger) as client:
        return await run_transfer(
            client,
            signer,
            config.transfer.extra_addresses,
            logger=logger,
            verbose=config.transfer.verbose,
            out=out,
        )


def run(
    argv: Optional[Sequence[str]] = None,
    *,
    out: Optional[TextIO] = None,
    err: Optional[TextIO] = None,
) -> int:
    stdout = out or sys.stdout
    stderr = err or sys.stderr
    args_list = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    if not args_list:
        parser.print_help(stderr)
        return 2
    args = parser.parse_args(args_list)

    try:
        config = load_config(
            args.config_file,
            keypair=args.keypair,
            url=args.json_rpc_url,
            verbose=args.verbose,
            extra_addresses=args.extra_addresses or None,
        )
        signer = load_signer(config.wallet)
    except ValidationError as exc:
        print(f"error: invalid configuration: {exc}", file=stderr)
        return 1
    except TransferError as exc:
        print(f"error: {exc.describe()}", file=stderr)
        return 1

    logger = configure_logging(config.monitoring, stream=stderr)
    try:
        signature = asyncio.run(run_async(config, signer, logger, stdout))
    except TransferError as exc:
        logger.debug("Transfer aborted", exc_info=True)
        print(f"error: {exc.describe()}", file=stderr)
        return 1

    print(f"Signature: {signature}", file=stdout)
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
