# global configuration settings
from pathlib import Path
import logging
import os
from dotenv import load_dotenv

# Directory paths
BASE_DIR = Path(__file__).resolve().parents[1]

# real environment variables take precedence over .env
load_dotenv(BASE_DIR / ".env")


def _env(name, default):
    return os.getenv(f"IMT_{name}", default)


# Blockchain settings
RPC_URL = _env("RPC_URL", "http://127.0.0.1:8545")
# this key is used to deploy contracts, empty means the node's first account
PRIVATE_KEY = _env("PRIVATE_KEY", "")
CHAIN_ID = int(_env("CHAIN_ID", "1337"))

# Transaction settings
MAX_FEE_PER_GAS_GWEI = float(_env("MAX_FEE_PER_GAS_GWEI", "30"))
MAX_PRIORITY_FEE_GWEI = float(_env("MAX_PRIORITY_FEE_GWEI", "1.5"))
GAS_MULTIPLIER = float(_env("GAS_MULTIPLIER", "1.2"))

# Compiler settings
SOLC_VERSION = _env("SOLC_VERSION", "0.8.23")
EVM_VERSION = _env("EVM_VERSION", "paris")

# poseidon-solidity export holding the {address, data} of every hash variant
POSEIDON_VARIANTS_FILE = Path(_env("POSEIDON_VARIANTS_FILE", BASE_DIR / "poseidon-variants.json"))

CONTRACTS_DIR = Path(_env("CONTRACTS_DIR", BASE_DIR / "contracts"))
ARTIFACTS_DIR = Path(_env("ARTIFACTS_DIR", BASE_DIR / "artifacts"))
ON_CHAIN_INFO_DIR = Path(_env("ON_CHAIN_INFO_DIR", BASE_DIR / "on_chain_info"))
LOGS_DIR = Path(_env("LOGS_DIR", BASE_DIR / "logs"))
LOG_FILE = os.path.join(LOGS_DIR, "imt-deploy.log")

LOGS_DIR.mkdir(parents=True, exist_ok=True)

# logs
logging.basicConfig(
    level=getattr(logging, _env("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.FileHandler(LOG_FILE, encoding="utf-8"),
        logging.StreamHandler()
    ]
)

# logger
def get_logger(name=None):
    return logging.getLogger(name)
