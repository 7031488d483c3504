from __future__ import annotations

import io
from pathlib import Path

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from solana_transfer_extra import main as cli
from solana_transfer_extra.config import settings
from solana_transfer_extra.execution.errors import QueryError, SubmissionError
from solana_transfer_extra.execution.instructions import decode_transfer_data
from solana_transfer_extra.execution.wallet import KeypairSigner


class SpySigner(KeypairSigner):
    def __init__(self, keypair: Keypair) -> None:
        super().__init__(keypair=keypair)
        self.sign_calls = 0

    def sign(self, message: bytes) -> Signature:
        self.sign_calls += 1
        return super().sign(message)


class FakeLedger:
    endpoint = "http://localhost:8899"

    def __init__(self, balance: int = 1_000_000, blockhash_error=None, submit_error=None) -> None:
        self.balance = balance
        self.blockhash_error = blockhash_error
        self.submit_error = submit_error
        self.submitted = []
        self.closed = False

    async def __aenter__(self) -> "FakeLedger":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.closed = True

    async def get_balance(self, pubkey: Pubkey) -> int:
        return self.balance

    async def get_latest_blockhash(self) -> Hash:
        if self.blockhash_error is not None:
            raise self.blockhash_error
        return Hash.new_unique()

    async def submit_and_confirm(self, transaction) -> Signature:
        self.submitted.append(transaction)
        if self.submit_error is not None:
            raise self.submit_error
        return transaction.signatures[0]


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(settings.CONFIG_FILE_ENV_VAR, str(tmp_path / "absent.toml"))
    monkeypatch.delenv("TRANSFER_RPC__JSON_RPC_URL", raising=False)


@pytest.fixture
def signer() -> SpySigner:
    return SpySigner(Keypair())


def _install(monkeypatch: pytest.MonkeyPatch, ledger: FakeLedger, signer: SpySigner) -> None:
    monkeypatch.setattr(cli, "SolanaClient", lambda config, logger=None: ledger)
    monkeypatch.setattr(cli, "load_signer", lambda config: signer)


def _invoke(*argv: str) -> tuple[int, str, str]:
    out, err = io.StringIO(), io.StringIO()
    code = cli.run(list(argv), out=out, err=err)
    return code, out.getvalue(), err.getvalue()


def _transfer_accounts(transaction):
    """Return (pubkey, is_signer, is_writable) for each account of the single instruction."""

    message = transaction.message
    header = message.header
    keys = message.account_keys
    signed = header.num_required_signatures

    def writable(index: int) -> bool:
        if index < signed:
            return index < signed - header.num_readonly_signed_accounts
        return index < len(keys) - header.num_readonly_unsigned_accounts

    (instruction,) = message.instructions
    return [(keys[i], i < signed, writable(i)) for i in instruction.accounts], instruction


def test_scenario_a_no_extras(monkeypatch: pytest.MonkeyPatch, signer: SpySigner) -> None:
    ledger = FakeLedger(balance=1_000_000)
    _install(monkeypatch, ledger, signer)

    code, out, err = _invoke("--url", "l")

    assert code == 0, err
    (transaction,) = ledger.submitted
    accounts, instruction = _transfer_accounts(transaction)
    payer = signer.public_key()
    assert accounts == [(payer, True, True), (payer, True, True)]
    assert 0 <= decode_transfer_data(bytes(instruction.data)) < 500_000
    assert out == f"Signature: {transaction.signatures[0]}\n"
    assert ledger.closed


def test_scenario_b_extras_are_read_only_and_ordered(monkeypatch: pytest.MonkeyPatch, signer: SpySigner) -> None:
    ledger = FakeLedger(balance=1_000_000)
    _install(monkeypatch, ledger, signer)
    first, second = Pubkey.new_unique(), Pubkey.new_unique()

    code, _, err = _invoke("-u", "l", str(first), str(second))

    assert code == 0, err
    accounts, _ = _transfer_accounts(ledger.submitted[0])
    assert len(accounts) == 4
    assert accounts[2] == (first, False, False)
    assert accounts[3] == (second, False, False)


def test_scenario_c_zero_balance_still_submits(monkeypatch: pytest.MonkeyPatch, signer: SpySigner) -> None:
    ledger = FakeLedger(balance=0)
    _install(monkeypatch, ledger, signer)

    code, out, _ = _invoke("-u", "l")

    assert code == 0
    accounts, instruction = _transfer_accounts(ledger.submitted[0])
    assert decode_transfer_data(bytes(instruction.data)) == 0
    assert out.startswith("Signature: ")


def test_scenario_d_blockhash_failure_halts_before_signing(
    monkeypatch: pytest.MonkeyPatch, signer: SpySigner
) -> None:
    ledger = FakeLedger(blockhash_error=QueryError("connection refused", prefix="unable to get latest blockhash"))
    _install(monkeypatch, ledger, signer)

    code, out, err = _invoke("-u", "l")

    assert code != 0
    assert out == ""
    assert err.strip().splitlines()[-1] == "error: unable to get latest blockhash: connection refused"
    assert signer.sign_calls == 0
    assert ledger.submitted == []


def test_scenario_e_rejection_is_reported_as_submission_failure(
    monkeypatch: pytest.MonkeyPatch, signer: SpySigner
) -> None:
    ledger = FakeLedger(submit_error=SubmissionError("Transaction simulation failed: Blockhash not found"))
    _install(monkeypatch, ledger, signer)

    code, out, err = _invoke("-u", "l")

    assert code != 0
    assert "Signature" not in out
    last_line = err.strip().splitlines()[-1]
    assert last_line.startswith("error: send transaction: ")
    assert not last_line.startswith("error: unable to get latest blockhash")
    assert signer.sign_calls == 1


def test_verbose_prints_run_details(monkeypatch: pytest.MonkeyPatch, signer: SpySigner) -> None:
    ledger = FakeLedger(balance=1)
    _install(monkeypatch, ledger, signer)
    extra = Pubkey.new_unique()

    code, out, _ = _invoke("-v", "-u", "l", str(extra))

    assert code == 0
    lines = out.splitlines()
    assert lines[0] == "JSON RPC URL: http://localhost:8899"
    assert lines[1] == f"Fee payer: {signer.public_key()}, Amount: ◎0.000000000"
    assert lines[2] == f"Extra addresses: [{extra}]"
    assert lines[3].startswith("Signature: ")


def test_invalid_extra_address_exits_non_zero(monkeypatch: pytest.MonkeyPatch, signer: SpySigner) -> None:
    _install(monkeypatch, FakeLedger(), signer)

    code, out, err = _invoke("-u", "l", "not-an-address")

    assert code == 1
    assert out == ""
    assert err.startswith("error: invalid address: ")


def test_unresolvable_keypair_exits_non_zero(tmp_path: Path) -> None:
    code, out, err = _invoke("-u", "l", "--keypair", str(tmp_path / "missing.json"))

    assert code == 1
    assert out == ""
    assert "error: unable to resolve signer: " in err


def test_signer_is_resolved_before_the_client_opens(monkeypatch: pytest.MonkeyPatch, signer: SpySigner) -> None:
    events = []
    ledger = FakeLedger()

    def open_client(config, logger=None):
        events.append("client")
        return ledger

    def resolve(config):
        events.append("signer")
        return signer

    monkeypatch.setattr(cli, "SolanaClient", open_client)
    monkeypatch.setattr(cli, "load_signer", resolve)

    code, _, err = _invoke("-u", "l")

    assert code == 0, err
    assert events == ["signer", "client"]


def test_no_arguments_prints_help() -> None:
    code, out, err = _invoke()

    assert code == 2
    assert out == ""
    assert "usage:" in err
