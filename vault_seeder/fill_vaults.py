"""Fill vaults with test liquidity.

- Reads the deployed manager address from the frontend project deployment manifest
- Asks the manager for the USDC, USDT, WETH and WBTC vaults
- For each depositor approves and deposits all four tokens, depositors in parallel

Prerequisite: the frontend project has deployed the contracts and written
``src/deploy/contracts.json``, and ``.env.hardhat`` points ``FRONTEND_PATH`` to it.

To run against a local Arbitrum fork launched with Anvil:

.. code-block:: shell

    fill-vaults

To run against the remote Tenderly fork:

.. code-block:: shell

    fill-vaults --network tenderly

Running twice funds the depositors twice, unless ``--skip-funded`` is given.
"""

import argparse
import asyncio
import logging
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Mapping

from eth_typing import HexAddress
from web3 import Web3

from vault_seeder.abi import ZERO_ADDRESS
from vault_seeder.anvil import RPCRequestError, launch_anvil
from vault_seeder.client import ChainClient, ChainInteractionError, Web3ChainClient
from vault_seeder.config import DEFAULT_RECEIPT_TIMEOUT, SeederConfig
from vault_seeder.env import DEFAULT_ENV_FILE, ConfigurationError
from vault_seeder.manifest import DeploymentManifest, load_deployment_manifest
from vault_seeder.token import TokenDescriptor
from vault_seeder.utils import setup_console_logging

logger = logging.getLogger(__name__)


class DepositorFundingError(Exception):
    """Approve or deposit failed for one depositor.

    The original failure is the ``__cause__``.
    """

    def __init__(self, depositor: HexAddress, msg: str):
        super().__init__(msg)
        self.depositor = depositor


@dataclass(frozen=True, slots=True)
class FillResult:
    """What a vault seeding run did."""

    #: Token symbol → vault address as told by the manager
    vaults: Mapping[str, HexAddress]

    #: Depositors that got approve + deposit for all tokens
    funded: tuple[HexAddress, ...]

    #: Depositors skipped because they already had shares in every vault
    skipped: tuple[HexAddress, ...] = ()


async def resolve_vaults(
    client: ChainClient,
    manager: Any,
    tokens: Mapping[str, TokenDescriptor],
) -> dict[str, HexAddress]:
    """Ask the manager which vault holds each token.

    All queries run concurrently and we continue only after every one has answered.

    :param manager:
        Manager contract handle

    :return:
        Token symbol → vault address

    :raise ChainInteractionError:
        A query failed, or the manager has no vault for a token.
        Queries failing concurrently come out as an :py:class:`ExceptionGroup`.
    """
    async with asyncio.TaskGroup() as tg:
        tasks = {symbol: tg.create_task(client.call(manager.functions.vaults(token.address))) for symbol, token in tokens.items()}

    vaults = {}
    for symbol, task in tasks.items():
        address = task.result()
        if address == ZERO_ADDRESS:
            raise ChainInteractionError(f"Manager {manager.address} has no vault for {symbol} {tokens[symbol].address}")
        vaults[symbol] = Web3.to_checksum_address(address)
        logger.info("%s vault is %s", symbol, vaults[symbol])

    return vaults


async def is_funded(client: ChainClient, depositor: HexAddress, vaults: Mapping[str, Any]) -> bool:
    """Does the depositor hold shares in every vault already."""
    async with asyncio.TaskGroup() as tg:
        tasks = [tg.create_task(client.call(vault.functions.balanceOf(depositor))) for vault in vaults.values()]
    return all(task.result() > 0 for task in tasks)


async def fund_depositor(
    client: ChainClient,
    config: SeederConfig,
    depositor: HexAddress,
    vaults: Mapping[str, Any],
) -> bool:
    """Approve and deposit all tokens for one depositor.

    - All approvals run concurrently and must succeed before any deposit is sent

    - All deposits then run concurrently

    - A failing approval cancels the approvals still waiting and no deposit is made

    :param vaults:
        Token symbol → vault contract handle

    :return:
        True if funded, False if skipped as already funded
    """
    signer = await client.get_signer(depositor)

    if config.skip_funded and await is_funded(client, depositor, vaults):
        logger.info("Depositor %s already has shares in all vaults, skipping", depositor)
        return False

    amounts = {symbol: config.get_deposit_amount(symbol) for symbol in config.tokens}

    async with asyncio.TaskGroup() as tg:
        for symbol, token in config.tokens.items():
            erc20 = client.get_contract("ERC20", token.address)
            bound_call = erc20.functions.approve(vaults[symbol].address, amounts[symbol])
            tg.create_task(client.transact(signer, bound_call, config.approve_options))

    logger.info("Depositor %s approved all vaults", depositor)

    async with asyncio.TaskGroup() as tg:
        for symbol, token in config.tokens.items():
            bound_call = vaults[symbol].functions.deposit(amounts[symbol], depositor)
            tg.create_task(client.transact(signer, bound_call, config.deposit_options))

    logger.info(
        "Depositor %s deposited %s",
        depositor,
        ", ".join(f"{token.convert_to_decimals(amounts[symbol])} {symbol}" for symbol, token in config.tokens.items()),
    )
    return True


async def fill_vaults(
    client: ChainClient,
    config: SeederConfig,
    manifest: DeploymentManifest,
) -> FillResult:
    """Load liquidity to the vaults.

    Depositors are funded concurrently and independently:
    a failing depositor does not stop the others.
    Every depositor branch is waited for before failures are reported.

    :raise ExceptionGroup:
        One :py:class:`DepositorFundingError` per failed depositor
    """
    manager = client.get_contract("Manager", manifest.manager)
    vault_addresses = await resolve_vaults(client, manager, config.tokens)
    vaults = {symbol: client.get_contract("Vault", address) for symbol, address in vault_addresses.items()}

    logger.info("Funding %d depositors", len(config.depositors))

    results = await asyncio.gather(
        *(fund_depositor(client, config, depositor, vaults) for depositor in config.depositors),
        return_exceptions=True,
    )

    funded = []
    skipped = []
    failures = []
    for depositor, result in zip(config.depositors, results):
        if isinstance(result, Exception):
            error = DepositorFundingError(depositor, f"Funding depositor {depositor} failed: {result}")
            error.__cause__ = result
            failures.append(error)
        elif isinstance(result, BaseException):
            raise result
        elif result:
            funded.append(depositor)
        else:
            skipped.append(depositor)

    if failures:
        raise ExceptionGroup(f"Vault funding failed for {len(failures)} of {len(config.depositors)} depositors", failures)

    return FillResult(vaults=vault_addresses, funded=tuple(funded), skipped=tuple(skipped))


def format_summary(depositor_count: int) -> str:
    """Human-readable totals of what we distributed.

    Informational only, not read back from the chain.
    """
    return f"""Filled vaults with:
  - USDC: {91 * depositor_count}k
  - USDT: {78 * depositor_count}k
  - WETH: {9 * depositor_count}
  - WBTC: {4 * depositor_count}
"""


@contextmanager
def open_network(config: SeederConfig) -> Iterator[str]:
    """Get a JSON-RPC URL for the configured network.

    For the local fork network, launch Anvil for the duration of the block.
    """
    network = config.network

    if config.json_rpc_url:
        yield config.json_rpc_url
        return

    if not network.is_local_fork():
        yield network.url
        return

    launch = launch_anvil(
        network.fork_url,
        chain_id=network.chain_id,
        fork_block_number=config.fork_block_number,
        unlocked_addresses=config.depositors,
    )
    try:
        yield launch.json_rpc_url
    finally:
        launch.close(log_level=logging.ERROR)


def create_chain_client(config: SeederConfig, json_rpc_url: str) -> ChainClient:
    return Web3ChainClient.create(json_rpc_url, config.network, receipt_timeout=config.receipt_timeout)


async def run(client: ChainClient, config: SeederConfig, manifest: DeploymentManifest) -> FillResult:
    """Fill the vaults and release the client."""
    try:
        await client.check_connection()
        return await fill_vaults(client, config, manifest)
    finally:
        await client.close()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fill deployed vaults with test liquidity.")
    parser.add_argument("--network", type=str, default="hardhat", help="Network name: hardhat (local Anvil fork), localhost or tenderly")
    parser.add_argument("--env-file", type=Path, default=DEFAULT_ENV_FILE, help="Environment file with FRONTEND_PATH and TENDERLY_URL")
    parser.add_argument("--json-rpc-url", type=str, required=False, help="Use this JSON-RPC node instead of the network default")
    parser.add_argument("--fork-block-number", type=int, required=False, help="Fork Arbitrum at a specific block number")
    parser.add_argument("--receipt-timeout", type=float, default=DEFAULT_RECEIPT_TIMEOUT, help="Seconds to wait for each transaction to be mined")
    parser.add_argument("--skip-funded", action="store_true", help="Do not fund depositors that already hold shares in every vault")
    parser.add_argument("--simplified-logging", action="store_true", help="Use simplified output without timestamps")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the script.

    :return:
        Process exit code
    """
    args = parse_args(argv)

    try:
        config = SeederConfig.create(
            env_file=args.env_file,
            network_name=args.network,
            json_rpc_url=args.json_rpc_url,
            fork_block_number=args.fork_block_number,
            receipt_timeout=args.receipt_timeout,
            skip_funded=args.skip_funded,
        )
    except ConfigurationError as e:
        setup_console_logging(simplified_logging=args.simplified_logging)
        logger.warning("%s", e)
        return 1

    setup_console_logging(config.log_level, simplified_logging=args.simplified_logging)

    try:
        manifest = load_deployment_manifest(config.contracts_path)
    except ConfigurationError as e:
        logger.warning("%s", e)
        return 1

    try:
        with open_network(config) as json_rpc_url:
            client = create_chain_client(config, json_rpc_url)
            result = asyncio.run(run(client, config, manifest))
    except (ChainInteractionError, ExceptionGroup, RPCRequestError) as e:
        logger.exception("Filling vaults failed: %s", e)
        return 1

    if result.skipped:
        logger.info("Skipped %d already funded depositors", len(result.skipped))

    print(format_summary(len(result.funded)))
    return 0


def cli():
    sys.exit(main())


if __name__ == "__main__":
    cli()
