"""
Pytest fixtures for the deployment scripts.

A tiny in-memory chain stands in for the node: it answers ``get_code``,
applies the effects of funding, proxy and creation transactions, and keeps
an ordered journal of everything it was asked to do so tests can assert on
ordering and transaction counts without a live RPC endpoint.
"""
import json
import os
import tempfile

# keep the log file out of the project tree while testing
os.environ.setdefault("IMT_LOGS_DIR", tempfile.mkdtemp(prefix="imt-logs-"))

import pytest
from hexbytes import HexBytes
from web3 import Web3

from Blockchain.errors import TransactionRejectedError
from Deployments import poseidon
from Deployments.poseidon import DETERMINISTIC_PROXY, create2_address

PLACEHOLDER = "__$" + "a" * 34 + "$__"
ZERO_SALT = "0x" + "00" * 32


class FakeEth:
    chain_id = 1337

    def __init__(self):
        self.codes = {}
        self.balances = {}
        self.receipts = {}
        self.journal = []
        self.created = 0
        self.reject_raw = False

    # provider capability
    def get_code(self, address):
        self.journal.append(("get_code", address.lower()))
        return HexBytes(self.codes.get(address.lower(), b""))

    def send_raw_transaction(self, raw_tx):
        self.journal.append(("raw", raw_tx))
        status = 0
        if raw_tx == DETERMINISTIC_PROXY.tx and not self.reject_raw:
            keyless = DETERMINISTIC_PROXY.from_address.lower()
            if self.balances.get(keyless, 0) >= DETERMINISTIC_PROXY.gas:
                self.balances[keyless] -= DETERMINISTIC_PROXY.gas
                self.codes[DETERMINISTIC_PROXY.address.lower()] = b"\x60\x00"
                status = 1
        return self._receipt(status)

    def wait_for_transaction_receipt(self, tx_hash):
        return self.receipts[tx_hash]

    # chain effects of a transaction sent by a signer
    def apply(self, tx):
        self.journal.append(("send", dict(tx)))
        to = tx.get("to")
        if to is None:
            self.created += 1
            address = Web3.to_checksum_address("0x" + f"{self.created:040x}")
            self.codes[address.lower()] = Web3.to_bytes(hexstr=tx["data"])
            return self._receipt(1, contractAddress=address)
        if to.lower() == DETERMINISTIC_PROXY.address.lower():
            if DETERMINISTIC_PROXY.address.lower() not in self.codes:
                return self._receipt(0)
            data = Web3.to_bytes(hexstr=tx["data"])
            salt, initcode = data[:32], data[32:]
            target = create2_address(DETERMINISTIC_PROXY.address, Web3.to_hex(salt), Web3.to_hex(initcode))
            if target.lower() in self.codes:
                return self._receipt(0)
            self.codes[target.lower()] = initcode
            return self._receipt(1)
        self.balances[to.lower()] = self.balances.get(to.lower(), 0) + tx.get("value", 0)
        return self._receipt(1)

    def _receipt(self, status, contractAddress=None):
        tx_hash = HexBytes(len(self.receipts).to_bytes(32, "big"))
        self.receipts[tx_hash] = {"status": status, "transactionHash": tx_hash,
                                  "contractAddress": contractAddress}
        return tx_hash

    # journal helpers
    def sends(self):
        return [entry[1] for entry in self.journal if entry[0] == "send"]

    def writes(self):
        return [entry for entry in self.journal if entry[0] in ("send", "raw")]


class FakeWeb3:
    def __init__(self):
        self.eth = FakeEth()


class RecordingSender:
    """Signer whose transactions are applied to the fake chain."""

    def __init__(self, w3, address="0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"):
        self.w3 = w3
        self.address = address

    def send_transaction(self, tx):
        tx = dict(tx, **{"from": self.address})
        tx_hash = self.w3.eth.apply(tx)
        rcpt = self.w3.eth.wait_for_transaction_receipt(tx_hash)
        if rcpt["status"] != 1:
            raise TransactionRejectedError(tx_hash, rcpt)
        return rcpt


@pytest.fixture
def w3():
    return FakeWeb3()


@pytest.fixture
def sender(w3):
    return RecordingSender(w3)


def write_artifact(artifacts_dir, name, bytecode, link_references=None, source=None):
    artifact = {
        "contractName": name,
        "sourceName": source or f"{name}.sol",
        "abi": [],
        "bytecode": bytecode,
        "deployedBytecode": bytecode,
        "linkReferences": link_references or {},
    }
    (artifacts_dir / f"{name}.json").write_text(json.dumps(artifact), encoding="utf-8")
    return artifact


def link_ref(library, start=2, source=None):
    return {source or f"{library}.sol": {library: [{"start": start, "length": 20}]}}


@pytest.fixture
def artifacts_dir(tmp_path):
    """A LazyIMT library and a LazyIMTTest linked against it."""
    path = tmp_path / "artifacts"
    path.mkdir()
    write_artifact(path, "LazyIMT", "0x6080604052600a600c")
    write_artifact(path, "LazyIMTTest", "0x6080" + PLACEHOLDER + "6000", link_ref("LazyIMT"))
    return path


def variant_initcode(width):
    return "0x60" + f"{width:02x}" + "600055"


@pytest.fixture
def variants_file(tmp_path, monkeypatch):
    """A poseidon-solidity style export whose payloads CREATE2 to the table addresses.

    The real payloads are kilobytes of bytecode, so the table is pointed at
    the addresses of these small stand-ins for the duration of the test.
    """
    export = {}
    for width, (name, _) in list(poseidon.POSEIDON_VARIANTS.items()):
        initcode = variant_initcode(width)
        address = create2_address(DETERMINISTIC_PROXY.address, ZERO_SALT, initcode)
        monkeypatch.setitem(poseidon.POSEIDON_VARIANTS, width, (name, address))
        export[name] = {"address": address, "data": ZERO_SALT + initcode[2:]}
    export["proxy"] = {"address": DETERMINISTIC_PROXY.address, "tx": DETERMINISTIC_PROXY.tx}
    path = tmp_path / "poseidon-variants.json"
    path.write_text(json.dumps(export), encoding="utf-8")
    return path
