"""Deployment manifest of already deployed contracts.

The frontend project writes the addresses of the contracts it deployed
to ``<frontend>/src/deploy/contracts.json``:

.. code-block:: json

    {
        "manager": "0x5FbDB2315678afecb367f032d93F642f64180aa3",
        "oracle": "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
    }

Only ``manager`` is required. Vault addresses are not stored, they are asked from the manager.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from eth_typing import HexAddress
from web3 import Web3

from vault_seeder.env import ConfigurationError

logger = logging.getLogger(__name__)


#: Where the manifest lives inside the frontend project
CONTRACTS_FILE = Path("src") / "deploy" / "contracts.json"


@dataclass(frozen=True, slots=True)
class DeploymentManifest:
    """Addresses of deployed contracts, read once at startup."""

    #: Manager contract mapping tokens to vaults
    manager: HexAddress

    #: All address entries of the file by their key, ``manager`` included
    contracts: Mapping[str, HexAddress]

    #: Where we read this from
    path: Path


def get_contracts_path(frontend_dir: Path) -> Path:
    """Manifest file location for a frontend directory."""
    return frontend_dir / CONTRACTS_FILE


def load_deployment_manifest(path: Path) -> DeploymentManifest:
    """Read and parse the deployment manifest.

    No retries. This is a one-shot startup precondition.

    :param path:
        ``contracts.json`` path, see :py:func:`get_contracts_path`

    :raise ConfigurationError:
        File is missing, not JSON, or lacks the manager address
    """

    try:
        with open(path, "rt", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Deployment manifest {path} not found. Deploy the contracts from the frontend project first.") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Deployment manifest {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Deployment manifest {path} must be a JSON object, got {type(data).__name__}")

    manager = data.get("manager")
    if not isinstance(manager, str) or not Web3.is_address(manager):
        raise ConfigurationError(f"Deployment manifest {path} has no valid manager address: {manager!r}")

    contracts = {k: Web3.to_checksum_address(v) for k, v in data.items() if isinstance(v, str) and Web3.is_address(v)}

    logger.info("Loaded %d contract addresses from %s, manager is %s", len(contracts), path, contracts["manager"])

    return DeploymentManifest(
        manager=contracts["manager"],
        contracts=MappingProxyType(contracts),
        path=path,
    )
