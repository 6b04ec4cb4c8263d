"""Local Arbitrum fork with Anvil.

The ``hardhat`` network of the toolchain is a local mainnet fork of Arbitrum One.
We run it with `Anvil <https://book.getfoundry.sh/reference/anvil/>`__,
a local testnet node from the `Foundry project <https://github.com/foundry-rs/foundry>`__.

To install Anvil:

.. code-block:: shell

    curl -L https://foundry.paradigm.xyz | bash
    PATH=~/.foundry/bin:$PATH
    foundryup

Example:

.. code-block:: python

    launch = launch_anvil(
        "https://arb1.arbitrum.io/rpc",
        chain_id=1337,
        unlocked_addresses=depositor_list,
    )
    try:
        client = Web3ChainClient.create(launch.json_rpc_url, network)
        ...
    finally:
        launch.close(log_level=logging.ERROR)

A fork left behind by a crashed run can be killed by its port:

.. code-block:: shell

    kill -SIGKILL $(lsof -ti:19999)
"""

import logging
import os
import shutil
import sys
import time
from dataclasses import dataclass
from subprocess import DEVNULL, PIPE
from typing import Any, Iterable, Optional

import psutil
import requests
from eth_typing import HexAddress
from web3 import HTTPProvider, Web3

from vault_seeder.utils import find_free_port, shutdown_hard

logger = logging.getLogger(__name__)


class RPCRequestError(Exception):
    """Anvil custom RPC method failed."""


#: Our argument names → Anvil command line flags
CLI_FLAGS = {
    "port": "--port",
    "fork_url": "--fork-url",
    "fork_block_number": "--fork-block-number",
    "chain_id": "--chain-id",
}


def build_command(cmd: str, **kwargs) -> list[str]:
    """Anvil command line.

    Arguments set to ``None`` are left out and Anvil uses its defaults.
    """
    cmd_list = cmd.split(" ")
    for key, value in kwargs.items():
        if value is not None:
            cmd_list += [CLI_FLAGS[key], str(value)]
    return cmd_list


def _launch(cmd_list: list[str]) -> psutil.Popen:
    logger.info("Launching anvil: %s", " ".join(cmd_list))
    out = DEVNULL if sys.platform == "win32" else PIPE
    env = os.environ.copy()
    env["RUST_BACKTRACE"] = "1"
    return psutil.Popen(cmd_list, stdin=DEVNULL, stdout=out, stderr=out, env=env)


def make_anvil_custom_rpc_request(web3: Web3, method: str, args: Optional[list] = None) -> Any:
    """Call one of the ``anvil_`` or ``evm_`` JSON-RPC methods.

    :raise RPCRequestError:
        Node not reachable or the method failed
    """
    try:
        response = web3.provider.make_request(method, list(args or ()))
    except requests.exceptions.ConnectionError as e:
        raise RPCRequestError(f"Anvil not reachable for {method}: {e}") from e

    if "result" not in response:
        raise RPCRequestError(f"{method} failed: {response['error']['message']}")

    return response["result"]


@dataclass
class AnvilLaunch:
    """Anvil process running on the background.

    Stop it with :py:meth:`close`.
    """

    #: Port Anvil listens to
    port: int

    #: Command line Anvil was started with
    cmd: list[str]

    #: JSON-RPC endpoint of the fork
    json_rpc_url: str

    #: The background process
    process: psutil.Popen

    def close(self, log_level: Optional[int] = None, block_timeout=30) -> tuple[bytes, bytes]:
        """Kill Anvil and wait until its port is free.

        :param log_level:
            Dump Anvil output to logging at this level

        :return:
            Anvil stdout, stderr
        """
        stdout, stderr = shutdown_hard(
            self.process,
            log_level=log_level,
            block_timeout=block_timeout,
            check_port=self.port,
        )
        logger.info("Anvil shutdown %s", self.json_rpc_url)
        return stdout, stderr


def _wait_until_ready(web3: Web3, launch_wait_seconds: float) -> tuple[int, int] | None:
    """Poll the fresh node until it answers.

    :return:
        ``(chain id, block number)`` or ``None`` if Anvil never answered
    """
    deadline = time.time() + launch_wait_seconds
    while time.time() < deadline:
        try:
            return web3.eth.chain_id, web3.eth.block_number
        except (requests.exceptions.ConnectionError, requests.exceptions.ReadTimeout):
            time.sleep(0.1)
    return None


def launch_anvil(
    fork_url: Optional[str] = None,
    unlocked_addresses: Iterable[HexAddress | str] = (),
    cmd="anvil",
    port: tuple[int, int, int] = (19999, 29999, 25),
    chain_id: Optional[int] = None,
    fork_block_number: Optional[int] = None,
    launch_wait_seconds=20.0,
    attempts=3,
    test_request_timeout=3.0,
) -> AnvilLaunch:
    """Start Anvil on the background.

    Blocks until the node answers JSON-RPC, which for a fork means
    the upstream state has been fetched.

    :param fork_url:
        JSON-RPC of the chain we fork. Without it we get an empty dev chain.

    :param unlocked_addresses:
        Accounts we can send transactions from without their private keys

    :param port:
        ``(min port, max port, attempts)`` for picking a random free port

    :param chain_id:
        Chain id the node reports instead of the forked one

    :param fork_block_number:
        Fork at this block instead of the latest. Needs an archive node upstream.

    :param attempts:
        Anvil sometimes dies silently when the upstream throttles us.
        Relaunch this many times.

    :raise RPCRequestError:
        Unlocking an account failed. Anvil has been shut down.
    """

    assert shutil.which(cmd.split(" ")[0]) is not None, f"anvil command not in PATH {os.environ.get('PATH')}"

    if fork_block_number is not None:
        assert fork_url, f"Got fork_block_number {fork_block_number} without a fork URL"

    port = find_free_port(*port)
    url = f"http://localhost:{port}"
    cmd_list = build_command(cmd, port=port, fork_url=fork_url, fork_block_number=fork_block_number, chain_id=chain_id)
    web3 = Web3(HTTPProvider(url, request_kwargs={"timeout": test_request_timeout}))

    for attempt in range(1, attempts + 1):
        process = _launch(cmd_list)
        ready = _wait_until_ready(web3, launch_wait_seconds)
        if ready is not None:
            break

        logger.error("Anvil at %s did not answer in %f seconds, attempt %d/%d", url, launch_wait_seconds, attempt, attempts)
        stdout, stderr = shutdown_hard(process, log_level=logging.ERROR, check_port=port)
        if stdout or attempt == attempts:
            raise AssertionError(f"Could not launch Anvil with '{' '.join(cmd_list)}' at {url}, stdout is {len(stdout)} bytes, stderr is {len(stderr)} bytes")

    reported_chain_id, current_block = ready
    logger.info("Anvil running at %s, chain %d, block %s", url, reported_chain_id, f"{current_block:,}")

    try:
        for address in unlocked_addresses:
            unlock_account(web3, address)
    except RPCRequestError:
        shutdown_hard(process, log_level=logging.ERROR, check_port=port)
        raise

    return AnvilLaunch(port, cmd_list, url, process)


def unlock_account(web3: Web3, address: str):
    """Let us send transactions from an account without its private key."""
    make_anvil_custom_rpc_request(web3, "anvil_impersonateAccount", [address])


def is_anvil(web3: Web3) -> bool:
    """Are we connected to Anvil node."""
    # 'anvil/v0.2.0'
    return "anvil/" in web3.client_version
