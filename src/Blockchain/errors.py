# errors.py
# named failures of the deployment scripts, network errors from web3 are not wrapped


class DeploymentError(Exception):
    pass


class UnsupportedArityError(DeploymentError, ValueError):
    def __init__(self, arity, supported):
        self.arity = arity
        self.supported = sorted(supported)
        super().__init__(
            f"Unsupported arity {arity!r}: no Poseidon variant, "
            f"supported arities are {self.supported[0]}..{self.supported[-1]}"
        )


class TransactionRejectedError(DeploymentError):
    def __init__(self, tx_hash, receipt=None, detail=None):
        self.tx_hash = tx_hash
        self.receipt = receipt
        message = f"Transaction {_hex(tx_hash)} failed"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ArtifactNotFoundError(DeploymentError, FileNotFoundError):
    def __init__(self, name, artifacts_dir):
        self.name = name
        self.artifacts_dir = artifacts_dir
        super().__init__(f"No build artifact for {name!r} in {artifacts_dir}")


class LinkError(DeploymentError):
    def __init__(self, contract_name, detail):
        self.contract_name = contract_name
        super().__init__(f"Cannot link {contract_name}: {detail}")


class VariantDataError(DeploymentError):
    def __init__(self, name, detail):
        self.name = name
        super().__init__(f"Bad creation payload for {name}: {detail}")


def _hex(value):
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)
