# poseidon.py
# deploy the Poseidon hash libraries once, at chain-independent addresses
#
# Deployments go through the keyless deterministic deployment proxy
# (https://github.com/Arachnid/deterministic-deployment-proxy). The proxy is
# created by a presigned transaction whose sender has no private key, so its
# address is the same on every chain that accepts pre-EIP-155 transactions.
# The proxy then CREATE2s `initcode` for calldata `salt ‖ initcode`.
#
# There is no cross-process lock: two runs racing on a fresh chain can both
# see the proxy missing and both fund the keyless account, leaving a stray
# balance. The CREATE2 side of a race only wastes the second transaction.
import json
import os
from pathlib import Path
from dataclasses import dataclass
from web3 import Web3
import imt_config as Config
from Blockchain.chain import broadcast_raw_transaction, has_code
from Blockchain.errors import ArtifactNotFoundError, UnsupportedArityError, VariantDataError

logger = Config.get_logger(os.path.splitext(os.path.basename(__file__))[0])


@dataclass(frozen=True)
class DeterministicProxy:
    address: str
    from_address: str  # keyless account, recovered from the fixed signature
    gas: int  # wei, exactly gasPrice * gasLimit of `tx`
    tx: str


DETERMINISTIC_PROXY = DeterministicProxy(
    address="0x4e59b44847b379578588920cA78FbF26c0B4956C",
    from_address="0x3fab184622dc19b6109349b94811493bf2a45362",
    gas=100_000 * 100_000_000_000,
    tx=(
        "0xf8a58085174876e800830186a08080b853604580600e600039806000f350fe"
        "7fffffffffffffffffffffffffffffffffffffffffffffffffffffffffffffffe0"
        "3601600081602082378035828234f58015156039578182fd5b8082525050506014"
        "600cf31ba02222222222222222222222222222222222222222222222222222222222"
        "222222a022222222222222222222222222222222222222222222222222222222222"
        "22222"
    ),
)


@dataclass(frozen=True)
class VariantDescriptor:
    arity: int
    name: str
    address: str
    data: str


# width (arity + 1 capacity slot) -> (contract name, published address)
# addresses of the poseidon-solidity package, fixed by proxy, salt and initcode
POSEIDON_VARIANTS = {
    3: ("PoseidonT3", "0x3333333C0A88F9BE4fd23ed0536F9B6c427e3B93"),
    4: ("PoseidonT4", "0x4443338EF595F44e0121df4C21102677B142ECF0"),
    5: ("PoseidonT5", "0x555333f3f677Ca3930Bf7c56ffc75144c51D9767"),
    6: ("PoseidonT6", "0x666333F371685334CdD69bdDdaFBABc87CE7c7Db"),
}


def create2_address(deployer, salt, initcode):
    salt_b = Web3.to_bytes(hexstr=salt)
    if len(salt_b) != 32:
        raise ValueError(f"CREATE2 salt must be 32 bytes, got {len(salt_b)}")
    digest = Web3.keccak(
        b"\xff"
        + Web3.to_bytes(hexstr=deployer)
        + salt_b
        + Web3.keccak(hexstr=initcode)
    )
    return Web3.to_checksum_address(digest[12:])


def variant(arity):
    """Pure table lookup: (name, address) of the variant over ``arity + 1`` elements."""
    if isinstance(arity, bool) or not isinstance(arity, int) or arity + 1 not in POSEIDON_VARIANTS:
        raise UnsupportedArityError(arity, [w - 1 for w in POSEIDON_VARIANTS])
    name, address = POSEIDON_VARIANTS[arity + 1]
    return name, Web3.to_checksum_address(address)


# the poseidon-solidity export: {"PoseidonT3": {"address": ..., "data": ...}, ...}
# node -e 'console.log(JSON.stringify(require("poseidon-solidity")))' > poseidon-variants.json
def load_variant_data(name, variants_file=None):
    path = Path(variants_file or Config.POSEIDON_VARIANTS_FILE)
    if not path.is_file():
        raise ArtifactNotFoundError(name, path)
    entry = json.loads(path.read_text(encoding="utf-8")).get(name)
    if not isinstance(entry, dict) or not entry.get("data"):
        raise ArtifactNotFoundError(name, path)
    return entry


def resolve(arity, variants_file=None, proxy=DETERMINISTIC_PROXY) -> VariantDescriptor:
    """Map an arity to its Poseidon variant descriptor.

    The address always comes from the static table. The creation payload is
    read from the poseidon-solidity export and must CREATE2 to exactly that
    address through the proxy, otherwise :class:`VariantDataError` is raised
    and nothing is deployed. The arity is checked before any file is read.
    """
    name, address = variant(arity)
    entry = load_variant_data(name, variants_file)

    if entry.get("address") and Web3.to_checksum_address(entry["address"]) != address:
        raise VariantDataError(name, f"export lists {entry['address']}, expected {address}")
    data = Web3.to_bytes(hexstr=entry["data"])
    if len(data) <= 32:
        raise VariantDataError(name, "payload must be a 32 byte salt followed by initcode")
    derived = create2_address(proxy.address, Web3.to_hex(data[:32]), Web3.to_hex(data[32:]))
    if derived != address:
        raise VariantDataError(name, f"payload deploys to {derived}, expected {address}")

    return VariantDescriptor(arity=arity, name=name, address=address, data=Web3.to_hex(data))


def ensure_proxy(w3, sender, proxy=DETERMINISTIC_PROXY):
    if has_code(w3, proxy.address):
        logger.info(f"  ⤷ deterministic proxy already at {proxy.address}")
        return

    # fund the keyless account, exactly the cost of the presigned tx
    logger.info(f"  • funding keyless account {proxy.from_address} with {proxy.gas} wei")
    sender.send_transaction({"to": proxy.from_address, "value": proxy.gas})

    # then send the presigned transaction deploying the proxy
    broadcast_raw_transaction(w3, proxy.tx)
    logger.info(f"  ✔ deterministic proxy deployed -> {proxy.address}")


def deploy_singleton(w3, sender, descriptor, proxy=DETERMINISTIC_PROXY) -> str:
    if has_code(w3, descriptor.address):
        logger.info(f"  ⤷ {descriptor.name} already at {descriptor.address}")
        return descriptor.address

    sender.send_transaction({"to": proxy.address, "data": descriptor.data})
    logger.info(f"  ✔ deployed {descriptor.name} -> {descriptor.address}")
    return descriptor.address
