"""
Configuration for hashvault.

Reads a deployment JSON file if one is given, then environment variables
override. Private keys are never read from here; the CLI takes them from
HASHVAULT_PRIVATE_KEY at the point of use.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path

_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class HashVaultConfig:
    """Runtime configuration. Immutable once loaded."""
    rpc_url: str = ""
    registry_address: str = ""
    chain_name: str = "ethereum"
    conceal_existence: bool = False  # Report unknown ids as Forbidden
    strict_length: bool = False      # Reject identifiers longer than 46 bytes
    log_level: str = "INFO"


def load_config(deployment_file: str | Path = None) -> HashVaultConfig:
    """Load config from a deployment file, then override with environment variables."""
    kwargs: dict = {}

    path = deployment_file or os.getenv("HASHVAULT_DEPLOYMENT")
    if path and Path(path).exists():
        data = json.loads(Path(path).read_text())
        for file_key, config_key in [
            ("rpc_url", "rpc_url"),
            ("contract_address", "registry_address"),
            ("network", "chain_name"),
        ]:
            if data.get(file_key):
                kwargs[config_key] = data[file_key]

    rpc_url = os.getenv("HASHVAULT_RPC_URL") or os.getenv("SEPOLIA_RPC_URL")
    if rpc_url:
        kwargs["rpc_url"] = rpc_url

    env_map = {
        "HASHVAULT_REGISTRY_ADDRESS": "registry_address",
        "HASHVAULT_CHAIN": "chain_name",
        "HASHVAULT_LOG_LEVEL": "log_level",
    }
    for env_key, config_key in env_map.items():
        val = os.getenv(env_key)
        if val is not None:
            kwargs[config_key] = val

    for env_key, config_key in [
        ("HASHVAULT_CONCEAL_EXISTENCE", "conceal_existence"),
        ("HASHVAULT_STRICT_LENGTH", "strict_length"),
    ]:
        val = os.getenv(env_key)
        if val is not None:
            kwargs[config_key] = val.strip().lower() in _TRUE

    return HashVaultConfig(**kwargs)
