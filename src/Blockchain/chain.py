# chain.py
# read code, send and broadcast transactions against the connected node
import abc
import os
from web3 import Web3
import imt_config as Config
from Blockchain.errors import TransactionRejectedError

logger = Config.get_logger(os.path.splitext(os.path.basename(__file__))[0])


def connect(rpc_url=None):
    w3 = Web3(Web3.HTTPProvider(rpc_url or Config.RPC_URL))
    if not w3.is_connected():
        raise SystemExit(f"Cannot connect to RPC at {rpc_url or Config.RPC_URL}")
    return w3


# True when the account at address holds executable code, "0x" means none
def has_code(w3, address) -> bool:
    code = w3.eth.get_code(Web3.to_checksum_address(address))
    logger.debug(f"get_code({address}) -> {len(code)} bytes")
    return len(code) > 0


def wait_for_success(w3, tx_hash):
    rcpt = w3.eth.wait_for_transaction_receipt(tx_hash)
    if rcpt["status"] != 1:
        raise TransactionRejectedError(tx_hash, rcpt, "reverted on-chain")
    return rcpt


# send an already signed transaction as-is, no re-signing
def broadcast_raw_transaction(w3, raw_tx):
    tx_hash = w3.eth.send_raw_transaction(raw_tx)
    logger.debug(f"broadcast raw tx {Web3.to_hex(tx_hash)}")
    return wait_for_success(w3, tx_hash)


class _Sender(abc.ABC):
    """Signer capability: an address that can send transactions.

    ``send_transaction`` blocks until the transaction is mined and raises
    :class:`TransactionRejectedError` when the receipt reports a failure,
    so every later step observes the effects of the earlier ones.
    """

    def __init__(self, w3, address):
        self.w3 = w3
        self.address = Web3.to_checksum_address(address)

    def build(self, tx):
        tx = dict(tx)
        tx["from"] = self.address
        if "to" in tx:
            tx["to"] = Web3.to_checksum_address(tx["to"])
        tx.setdefault("value", 0)
        tx.setdefault("maxFeePerGas", self.w3.to_wei(Config.MAX_FEE_PER_GAS_GWEI, "gwei"))
        tx.setdefault("maxPriorityFeePerGas", self.w3.to_wei(Config.MAX_PRIORITY_FEE_GWEI, "gwei"))
        if "gas" not in tx:
            est = self.w3.eth.estimate_gas(tx)
            tx["gas"] = int(est * Config.GAS_MULTIPLIER)
            logger.debug(f"gas estimate {est} (using {tx['gas']})")
        return tx

    def send_transaction(self, tx):
        tx_hash = self._send(self.build(tx))
        logger.debug(f"sent tx {Web3.to_hex(tx_hash)} from {self.address}")
        return wait_for_success(self.w3, tx_hash)

    @abc.abstractmethod
    def _send(self, tx):
        """Hand the built transaction to the node, return its hash."""


# local private key, signs in-process
class AccountSender(_Sender):
    def __init__(self, w3, account):
        super().__init__(w3, account.address)
        self.account = account

    def build(self, tx):
        tx = super().build(tx)
        tx["nonce"] = self.w3.eth.get_transaction_count(self.address, "pending")
        tx["chainId"] = self.w3.eth.chain_id
        return tx

    def _send(self, tx):
        signed = self.account.sign_transaction(tx)
        return self.w3.eth.send_raw_transaction(signed.raw_transaction)


# unlocked account managed by the node (dev chains)
class NodeSender(_Sender):
    def _send(self, tx):
        return self.w3.eth.send_transaction(tx)
