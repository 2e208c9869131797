# compile.py
# compile all Solidity sources in contracts/ into artifacts/
import json
import os
from pathlib import Path
from solcx import install_solc, set_solc_version, compile_standard
import imt_config as Config

logger = Config.get_logger(os.path.splitext(os.path.basename(__file__))[0])


def node_module_remappings(node_modules):
    # "poseidon-solidity/=<abs>/node_modules/poseidon-solidity/", scoped packages too
    node_modules = Path(node_modules)
    if not node_modules.is_dir():
        return []
    remappings = []
    for pkg in sorted(node_modules.iterdir()):
        if not pkg.is_dir() or pkg.name.startswith("."):
            continue
        pkgs = sorted(p for p in pkg.iterdir() if p.is_dir()) if pkg.name.startswith("@") else [pkg]
        for p in pkgs:
            name = p.relative_to(node_modules).as_posix()
            remappings.append(f"{name}/={p.resolve().as_posix()}/")
    return remappings


def standard_input(sources, evm_version=None, remappings=None):
    return {
        "language": "Solidity",
        "sources": sources,
        "settings": {
            "remappings": list(remappings or []),
            "optimizer": {"enabled": True, "runs": 200},
            "evmVersion": evm_version or Config.EVM_VERSION,  # paris: no PUSH0 for older nodes
            "outputSelection": {
                "*": {
                    "*": [
                        "abi",
                        "evm.bytecode",
                        "evm.deployedBytecode",
                        "metadata",
                    ]
                }
            },
        },
    }


def _hex(code):
    # Normalize 0x prefix
    if code and not code.startswith("0x"):
        return "0x" + code
    return code


def to_artifact(src_name, contract_name, compiled, solc_version, evm_version):
    evm = compiled.get("evm", {})
    bytecode = evm.get("bytecode", {})
    return {
        "contractName": contract_name,
        "sourceName": src_name,
        "abi": compiled.get("abi", []),
        "bytecode": _hex(bytecode.get("object", "") or ""),
        "deployedBytecode": _hex(evm.get("deployedBytecode", {}).get("object", "") or ""),
        "linkReferences": bytecode.get("linkReferences", {}) or {},
        "compiler": {"version": solc_version, "evmVersion": evm_version},
    }


def compile_contracts(contracts_dir=None, artifacts_dir=None, solc_version=None, project_root=None):
    contracts_dir = Path(contracts_dir or Config.CONTRACTS_DIR)
    artifacts_dir = Path(artifacts_dir or Config.ARTIFACTS_DIR)
    project_root = Path(project_root or Config.BASE_DIR)
    solc_version = solc_version or Config.SOLC_VERSION
    evm_version = Config.EVM_VERSION

    artifacts_dir.mkdir(parents=True, exist_ok=True)

    # ---- Gather sources, keyed by path relative to contracts/ ----
    sol_files = sorted(contracts_dir.rglob("*.sol"))
    if not sol_files:
        raise SystemExit(f"No contract to compile in {contracts_dir}")
    sources = {
        p.relative_to(contracts_dir).as_posix(): {"content": p.read_text(encoding="utf-8")}
        for p in sol_files
    }

    # ---- Resolve package imports (poseidon-solidity, @zk-kit/...) from node_modules ----
    allow_paths = [str(contracts_dir)]
    node_modules = project_root / "node_modules"
    remappings = node_module_remappings(node_modules)
    if node_modules.exists():
        allow_paths.append(str(node_modules.resolve()))

    install_solc(solc_version)
    set_solc_version(solc_version)

    logger.info(f"Compiling {len(sources)} source(s) with solc {solc_version} (EVM={evm_version})...")
    res = compile_standard(
        standard_input(sources, evm_version, remappings),
        allow_paths=",".join(allow_paths),
        base_path=str(contracts_dir),
    )

    # ---- Write one artifact per contract ----
    written = 0
    index_per_source = {}

    for src_name, contracts in res["contracts"].items():
        index_per_source[src_name] = []
        for contract_name, compiled in contracts.items():
            artifact = to_artifact(src_name, contract_name, compiled, solc_version, evm_version)

            out_path = artifacts_dir / f"{contract_name}.json"
            out_path.write_text(json.dumps(artifact, indent=2), encoding="utf-8")
            index_per_source[src_name].append(contract_name)
            written += 1

            if artifact["linkReferences"]:
                libs = sorted({lib for refs in artifact["linkReferences"].values() for lib in refs})
                logger.info(f"  • {contract_name} links against {libs}")

            logger.info(f"  ✔ compiled {contract_name} (from {src_name}) -> {out_path.name}")

    (artifacts_dir / "_index.json").write_text(json.dumps(index_per_source, indent=2), encoding="utf-8")

    logger.info(f"Done. Wrote {written} artifact(s) to {artifacts_dir}")
    return index_per_source


def main():
    compile_contracts()


if __name__ == "__main__":
    main()
