"""Shared fixtures.

The vault funding tests run against an in-memory chain client stub
that records every call and lets a test delay or fail individual calls.
"""

import asyncio
from pathlib import Path

import pytest
from web3 import Web3

from vault_seeder.client import ChainClient, ChainInteractionError, Signer
from vault_seeder.config import SeederConfig
from vault_seeder.manifest import DeploymentManifest
from vault_seeder.network import get_networks
from vault_seeder.token import TOKEN_MAP

#: Manager address in our test manifest
MANAGER = Web3.to_checksum_address("0x5fbdb2315678afecb367f032d93f642f64180aa3")

#: Vault we pretend the manager returns for each token
VAULTS = {
    "USDC": Web3.to_checksum_address("0x1000000000000000000000000000000000000001"),
    "USDT": Web3.to_checksum_address("0x1000000000000000000000000000000000000002"),
    "WETH": Web3.to_checksum_address("0x1000000000000000000000000000000000000003"),
    "WBTC": Web3.to_checksum_address("0x1000000000000000000000000000000000000004"),
}


class StubCall:
    """Bound contract function lookalike."""

    def __init__(self, contract: "StubContract", fn_name: str, args: tuple):
        self.contract = contract
        self.fn_name = fn_name
        self.args = args

    @property
    def address(self):
        return self.contract.address

    def __repr__(self):
        return f"<{self.contract.name}.{self.fn_name}{self.args}>"


class StubFunctions:
    def __init__(self, contract: "StubContract"):
        self._contract = contract

    def __getattr__(self, fn_name: str):
        return lambda *args: StubCall(self._contract, fn_name, args)


class StubContract:
    def __init__(self, name: str, address: str):
        self.name = name
        self.address = Web3.to_checksum_address(address)
        self.functions = StubFunctions(self)


class StubChainClient(ChainClient):
    """Chain client that never touches the network.

    :ivar log:
        Every call and transaction as ``(kind, from, contract name, contract address, fn_name, args, gas_limit)``

    :ivar gates:
        Token address → event a ``Manager.vaults()`` query for the token waits for

    :ivar failures:
        ``(from, contract address, fn_name)`` transactions that revert

    :ivar balances:
        ``(vault address, holder)`` → share balance
    """

    def __init__(self, vaults_by_token: dict[str, str]):
        self.vaults_by_token = vaults_by_token
        self.log = []
        self.gates: dict[str, asyncio.Event] = {}
        self.failures: set[tuple[str, str, str]] = set()
        self.balances: dict[tuple[str, str], int] = {}
        self.closed = False

    def get_contract(self, name, address):
        return StubContract(name, address)

    async def get_signer(self, address):
        return Signer(address=address)

    async def call(self, bound_call):
        self.log.append(("call", None, bound_call.contract.name, bound_call.address, bound_call.fn_name, bound_call.args, None))
        match bound_call.fn_name:
            case "vaults":
                token = bound_call.args[0]
                gate = self.gates.get(token)
                if gate is not None:
                    await gate.wait()
                return self.vaults_by_token[token]
            case "balanceOf":
                return self.balances.get((bound_call.address, bound_call.args[0]), 0)
        raise AssertionError(f"Unexpected call {bound_call}")

    async def transact(self, signer, bound_call, options=None):
        gas_limit = options.gas_limit if options else None
        self.log.append(("transact", signer.address, bound_call.contract.name, bound_call.address, bound_call.fn_name, bound_call.args, gas_limit))
        # Let other tasks run like a real RPC roundtrip would
        await asyncio.sleep(0)
        if (signer.address, bound_call.address, bound_call.fn_name) in self.failures:
            raise ChainInteractionError(f"Transaction {bound_call} reverted", revert_reason="execution reverted: stub")
        return {"status": 1}

    async def close(self):
        self.closed = True

    def get_transactions(self, depositor: str, fn_name: str | None = None) -> list[tuple]:
        return [entry for entry in self.log if entry[0] == "transact" and entry[1] == depositor and (fn_name is None or entry[4] == fn_name)]


@pytest.fixture()
def stub_client() -> StubChainClient:
    vaults_by_token = {TOKEN_MAP[symbol].address: address for symbol, address in VAULTS.items()}
    return StubChainClient(vaults_by_token)


@pytest.fixture()
def vaults() -> dict[str, str]:
    return VAULTS


@pytest.fixture()
def manifest(tmp_path: Path) -> DeploymentManifest:
    return DeploymentManifest(
        manager=MANAGER,
        contracts={"manager": MANAGER},
        path=tmp_path / "contracts.json",
    )


@pytest.fixture()
def config(tmp_path: Path) -> SeederConfig:
    network = get_networks({})["localhost"]
    return SeederConfig(network=network, frontend_dir=tmp_path)


@pytest.fixture()
def frontend_dir(tmp_path: Path) -> Path:
    """Frontend project with a deployment manifest."""
    path = tmp_path / "frontend"
    deploy = path / "src" / "deploy"
    deploy.mkdir(parents=True)
    (deploy / "contracts.json").write_text(f'{{"manager": "{MANAGER.lower()}", "oracle": "0xe7f1725e7734ce288f8367e1bb143e90bb3f0512"}}')
    return path
