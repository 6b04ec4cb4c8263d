"""Network definitions of the toolchain.

- ``hardhat``: a local Arbitrum One mainnet fork, launched with Anvil, see :py:mod:`vault_seeder.anvil`

- ``localhost``: a node you already run yourself, e.g. ``anvil`` or ``npx hardhat node``

- ``tenderly``: a remote Tenderly fork of Arbitrum One, enabled by ``TENDERLY_URL``
"""

import logging
from dataclasses import dataclass, field
from typing import Mapping

from vault_seeder.address_list import accounts_privates
from vault_seeder.env import ConfigurationError

logger = logging.getLogger(__name__)


#: Public Arbitrum One RPC the local fork copies its state from
ARBITRUM_PUBLIC_RPC = "https://arb1.arbitrum.io/rpc"

#: Chain id of the local fork
LOCAL_FORK_CHAIN_ID = 1337

#: Chain id of Arbitrum One, kept by the Tenderly fork
ARBITRUM_CHAIN_ID = 42161

#: Manually maintained shorthand names for the chains we touch
CHAIN_NAMES = {
    LOCAL_FORK_CHAIN_ID: "Local fork",
    31337: "Anvil",
    ARBITRUM_CHAIN_ID: "Arbitrum",
}


@dataclass(frozen=True, slots=True)
class NetworkConfig:
    """One named network we can run the scripts against."""

    #: Network name as given on the command line
    name: str

    #: Chain id we expect the node to report
    chain_id: int

    #: JSON-RPC endpoint.
    #:
    #: ``None`` for the local fork until Anvil has been launched.
    url: str | None = None

    #: Upstream JSON-RPC to fork from.
    #:
    #: If set, we launch Anvil ourselves.
    fork_url: str | None = None

    #: Private keys we sign with locally.
    #:
    #: Empty when the node holds the unlocked accounts.
    accounts: tuple[str, ...] = field(default_factory=tuple)

    def is_local_fork(self) -> bool:
        return self.fork_url is not None


def get_chain_name(chain_id: int) -> str:
    """Translate Ethereum chain id to its name."""
    name = CHAIN_NAMES.get(chain_id)
    if name:
        return name

    return f"<Unknown chain, id {chain_id}>"


def get_networks(env: Mapping[str, str]) -> dict[str, NetworkConfig]:
    """Build all network definitions.

    Tenderly is only configured if ``TENDERLY_URL`` looks like a real URL.

    :param env:
        Variables from :py:func:`vault_seeder.env.read_env_file`
    """
    networks = {
        "hardhat": NetworkConfig(
            name="hardhat",
            chain_id=LOCAL_FORK_CHAIN_ID,
            fork_url=ARBITRUM_PUBLIC_RPC,
        ),
        "localhost": NetworkConfig(
            name="localhost",
            chain_id=LOCAL_FORK_CHAIN_ID,
            url="http://127.0.0.1:8545",
        ),
    }

    tenderly_url = env.get("TENDERLY_URL")
    if tenderly_url is not None and len(tenderly_url) > 10:
        networks["tenderly"] = NetworkConfig(
            name="tenderly",
            chain_id=ARBITRUM_CHAIN_ID,
            url=tenderly_url,
            accounts=accounts_privates,
        )
    else:
        logger.info("TENDERLY_URL not set, tenderly network disabled")

    return networks


def resolve_network(env: Mapping[str, str], name: str) -> NetworkConfig:
    """Pick a network definition by its name.

    :raise ConfigurationError:
        Unknown network, or a network whose environment is not set up
    """
    networks = get_networks(env)
    network = networks.get(name)
    if network is None:
        if name == "tenderly":
            raise ConfigurationError("Network tenderly needs TENDERLY_URL in .env.hardhat")
        raise ConfigurationError(f"Unknown network {name}, we have {', '.join(networks)}")
    return network
