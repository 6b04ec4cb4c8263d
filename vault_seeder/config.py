"""Vault seeder run configuration.

Everything the seeding run needs is resolved once at the process start
into :py:class:`SeederConfig` and passed around explicitly.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from eth_typing import HexAddress

from vault_seeder.address_list import depositor_list
from vault_seeder.env import DEFAULT_ENV_FILE, ConfigurationError, get_frontend_dir, read_env_file
from vault_seeder.manifest import get_contracts_path
from vault_seeder.network import NetworkConfig, resolve_network
from vault_seeder.token import DEPOSIT_UNITS, TOKEN_MAP, TokenDescriptor

logger = logging.getLogger(__name__)


#: Gas ceiling we give to each ERC20.approve() call
DEFAULT_APPROVE_GAS_LIMIT = 2_000_000

#: How long we wait for a single transaction receipt, seconds
DEFAULT_RECEIPT_TIMEOUT = 120.0


@dataclass(frozen=True, slots=True)
class CallOptions:
    """Per-call transaction options.

    Any field left to ``None`` is filled in by the node.
    """

    #: Overrides the default gas ceiling for the call
    gas_limit: int | None = None


@dataclass(frozen=True)
class SeederConfig:
    """Configuration of one vault seeding run."""

    #: Network we talk to
    network: NetworkConfig

    #: Frontend project where the deployment manifest lives
    frontend_dir: Path

    #: Accounts we fund, in order
    depositors: tuple[HexAddress, ...] = depositor_list

    #: Tokens we deposit, symbol → descriptor
    tokens: Mapping[str, TokenDescriptor] = field(default_factory=lambda: TOKEN_MAP)

    #: Whole units of each token a depositor deposits
    deposit_units: Mapping[str, int] = field(default_factory=lambda: DEPOSIT_UNITS)

    #: Options for the approve() calls
    approve_options: CallOptions = field(default_factory=lambda: CallOptions(gas_limit=DEFAULT_APPROVE_GAS_LIMIT))

    #: Options for the deposit() calls
    deposit_options: CallOptions = field(default_factory=CallOptions)

    #: Override the network JSON-RPC endpoint
    json_rpc_url: str | None = None

    #: Fork the upstream chain at this block
    fork_block_number: int | None = None

    #: Receipt wait, seconds
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT

    #: Do not fund depositors that already hold shares in every vault
    skip_funded: bool = False

    #: Console log level name, from ``LOG_LEVEL``
    log_level: str = "info"

    @property
    def contracts_path(self) -> Path:
        """Where we read the deployed contract addresses from."""
        return get_contracts_path(self.frontend_dir)

    def get_deposit_amount(self, symbol: str) -> int:
        """Raw deposit amount for one depositor."""
        return self.tokens[symbol].convert_to_raw(self.deposit_units[symbol])

    @classmethod
    def create(
        cls,
        env_file: Path = DEFAULT_ENV_FILE,
        network_name: str = "hardhat",
        environ: Mapping[str, str] | None = None,
        cwd: Path | None = None,
        **kwargs,
    ) -> "SeederConfig":
        """Resolve the configuration from the environment file.

        :param env_file:
            ``.env.hardhat`` location

        :param network_name:
            See :py:func:`vault_seeder.network.get_networks`

        :param environ:
            Process environment. Defaults to ``os.environ``.

        :param cwd:
            Directory relative ``FRONTEND_PATH`` is resolved against

        :param kwargs:
            Other :py:class:`SeederConfig` fields

        :raise ConfigurationError:
            Env file or ``FRONTEND_PATH`` missing, or a bad network
        """
        env = read_env_file(env_file, required=True, environ=environ)

        frontend_dir = get_frontend_dir(env, cwd=cwd)
        if frontend_dir is None:
            raise ConfigurationError(f"No FRONTEND_PATH found in {env_file}, required for this script")

        network = resolve_network(env, network_name)
        kwargs.setdefault("log_level", env.get("LOG_LEVEL") or "info")
        logger.info("Using network %s, chain id %d, frontend at %s", network.name, network.chain_id, frontend_dir)
        return cls(network=network, frontend_dir=frontend_dir, **kwargs)
