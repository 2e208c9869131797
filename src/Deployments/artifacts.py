# artifacts.py
# load compiled artifacts, link library addresses, deploy by contract name
import json
import os
import re
from pathlib import Path
from web3 import Web3
import imt_config as Config
from Blockchain.errors import ArtifactNotFoundError, LinkError

logger = Config.get_logger(os.path.splitext(os.path.basename(__file__))[0])

PLACEHOLDER_RE = re.compile(r"__\$\w{34}\$__")


def has_unlinked_libs(bytecode):
    return "__$" in (bytecode or "")


def load_artifact(name, artifacts_dir=None):
    """Return the artifact dict of contract ``name``.

    Two shapes are supported, the same as the compile script writes and
    Hardhat exports:
    A) single-contract artifact ``<name>.json``: {"contractName","abi","bytecode",...}
    B) map of contracts in any json file: {Name: {abi, bytecode}, Name2: {...}}
    """
    artifacts_dir = Path(artifacts_dir or Config.ARTIFACTS_DIR)
    path = artifacts_dir / f"{name}.json"
    if path.is_file():
        data = json.loads(path.read_text(encoding="utf-8"))
        if "abi" in data and "bytecode" in data:
            return _normalize(name, data)
        if name in data:
            return _normalize(name, data[name])

    if artifacts_dir.is_dir():
        for art in sorted(artifacts_dir.glob("*.json")):
            if art.name == "_index.json" or art == path:
                continue
            data = json.loads(art.read_text(encoding="utf-8"))
            if "abi" in data and "bytecode" in data:
                if data.get("contractName") == name:
                    return _normalize(name, data)
            elif isinstance(data.get(name), dict):
                return _normalize(name, data[name])

    raise ArtifactNotFoundError(name, artifacts_dir)


def _normalize(name, obj):
    bytecode = obj.get("bytecode") or ""
    if isinstance(bytecode, dict):  # raw solc output shape
        bytecode = bytecode.get("object", "")
    if bytecode and not bytecode.startswith("0x"):
        bytecode = "0x" + bytecode
    return {
        "contractName": obj.get("contractName") or name,
        "sourceName": obj.get("sourceName"),
        "abi": obj.get("abi", []),
        "bytecode": bytecode,
        "linkReferences": obj.get("linkReferences") or {},
    }


# {source: {lib: [{start, length}]}} -> {"source:lib": [...]}
def _flatten_refs(link_references):
    return {
        f"{source}:{lib}": offsets
        for source, libs in (link_references or {}).items()
        for lib, offsets in libs.items()
    }


def library_names(artifact):
    return sorted({fq.rsplit(":", 1)[1] for fq in _flatten_refs(artifact["linkReferences"])})


def link_bytecode(contract_name, bytecode, link_references, libraries):
    """Write each library address into ``bytecode`` at its referenced offsets.

    ``libraries`` keys are bare names (``LazyIMT``) or fully qualified names
    (``contracts/LazyIMT.sol:LazyIMT``).
    """
    refs = _flatten_refs(link_references)
    code = bytecode[2:] if bytecode.startswith("0x") else bytecode
    linked = set()

    for key, address in (libraries or {}).items():
        matches = [fq for fq in refs if fq == key or fq.rsplit(":", 1)[1] == key]
        if not matches:
            raise LinkError(contract_name, f"{key} is not one of its libraries")
        if len(matches) > 1:
            raise LinkError(contract_name, f"{key} is ambiguous, use one of {matches}")
        fq = matches[0]
        if fq in linked:
            raise LinkError(contract_name, f"{fq} is given more than once")
        addr_hex = Web3.to_checksum_address(address)[2:].lower()
        for ref in refs[fq]:
            start, length = ref["start"] * 2, ref["length"] * 2
            if length != len(addr_hex):
                raise LinkError(contract_name, f"bad link length {ref['length']} for {fq}")
            code = code[:start] + addr_hex + code[start + length:]
        linked.add(fq)

    missing = sorted(set(refs) - linked)
    if missing:
        raise LinkError(contract_name, f"missing library addresses for {missing}")
    if has_unlinked_libs(code):
        placeholders = set(PLACEHOLDER_RE.findall(code))
        raise LinkError(contract_name, f"unlinked placeholders left in bytecode: {placeholders}")
    return "0x" + code


class ContractFactory:
    """Contract factory capability: deploy a named artifact, optionally linked."""

    def __init__(self, w3, sender, artifacts_dir=None, on_chain_info_dir=None):
        self.w3 = w3
        self.sender = sender
        self.artifacts_dir = Path(artifacts_dir or Config.ARTIFACTS_DIR)
        self.on_chain_info_dir = Path(on_chain_info_dir) if on_chain_info_dir else None

    def artifact(self, name):
        return load_artifact(name, self.artifacts_dir)

    def library_names(self, name):
        return library_names(self.artifact(name))

    def deploy(self, name, libraries=None) -> str:
        art = self.artifact(name)
        if not art["bytecode"] or art["bytecode"] == "0x":
            raise LinkError(name, "artifact has no bytecode (abstract contract or interface?)")
        bytecode = link_bytecode(name, art["bytecode"], art["linkReferences"], libraries)

        rcpt = self.sender.send_transaction({"data": bytecode})
        address = Web3.to_checksum_address(rcpt["contractAddress"])

        if self.on_chain_info_dir is not None:
            self.on_chain_info_dir.mkdir(parents=True, exist_ok=True)
            (self.on_chain_info_dir / f"{name}.address").write_text(address)
        logger.info(f"  ✔ deployed {name} -> {address}")
        return address
