"""ABI loading from the bundled ABI files.

Provides functions to load ABI files and construct :py:class:`web3.contract.AsyncContract` instances.
The loaded files are cached for the speedup.

The bundled files cover only the functions the vault seeder calls:

- ``Manager.json``: token → vault registry

- ``Vault.json``: ERC-4626 style vault deposit and share balance

- ``ERC20.json``: token spend approval
"""

import json
from functools import lru_cache
from pathlib import Path

from eth_typing import HexAddress
from web3 import AsyncWeb3
from web3.contract import AsyncContract

# How big is our ABI cache
_CACHE_SIZE = 32


#: Ethereum 0x0000000000000000000000000000000000000000 address as a string.
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@lru_cache(maxsize=_CACHE_SIZE)
def get_abi_by_filename(fname: str) -> list[dict]:
    """Reads a embedded ABI file and returns it.

    Example::

        abi = get_abi_by_filename("Manager.json")

    Both Etherscan copy-pasted ABI lists and solc/Hardhat artifacts
    with an ``abi`` key are accepted.

    :param fname:
        JSON filename in the ``vault_seeder/abi`` folder, or an absolute path.

    :return:
        ABI as a list of entries
    """

    here = Path(__file__).resolve().parent
    abi_path = here / "abi" / Path(fname)
    with open(abi_path, "rt", encoding="utf-8") as f:
        contract_interface = json.load(f)

    if type(contract_interface) == list:
        # Etherscan
        return contract_interface

    # Hardhat artifact
    return contract_interface["abi"]


def get_deployed_contract(
    web3: AsyncWeb3,
    name: str,
    address: HexAddress | str,
) -> AsyncContract:
    """Get a contract proxy object for a contract deployed at a specific address.

    Example:

    .. code-block:: python

        manager = get_deployed_contract(web3, "Manager", manifest.manager)
        vault_address = await manager.functions.vaults(usdc.address).call()

    :param web3:
        Async web3 connection

    :param name:
        Contract name, matching a bundled ``<name>.json`` ABI file

    :param address:
        Deployed contract address. Checksummed for you.
    """
    assert name, "Contract name missing"
    abi = get_abi_by_filename(f"{name}.json")
    return web3.eth.contract(address=AsyncWeb3.to_checksum_address(address), abi=abi)
