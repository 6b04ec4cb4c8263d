"""Web3 chain client without a node."""

import pytest
from eth_account import Account

from vault_seeder.client import ChainClient, Signer, Web3ChainClient
from vault_seeder.network import NetworkConfig


def test_signer_allocates_nonces():
    signer = Signer(address="0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266", account=Account.create(), current_nonce=5)
    assert signer.is_local()
    assert [signer.allocate_nonce() for _ in range(4)] == [5, 6, 7, 8]
    assert signer.current_nonce == 9


def test_signer_needs_nonce_sync():
    signer = Signer(address="0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266", account=Account.create())
    with pytest.raises(AssertionError):
        signer.allocate_nonce()


@pytest.mark.asyncio
async def test_node_signer():
    """Accounts without a private key are signed by the node."""
    network = NetworkConfig(name="localhost", chain_id=1337, url="http://127.0.0.1:8545")
    client = Web3ChainClient.create(network.url, network)

    signer = await client.get_signer("0x70997970c51812dc3a010c7d01b50e0d17dc79c8")
    assert signer.address == "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
    assert not signer.is_local()
    assert await client.get_signer(signer.address) is signer


def test_local_accounts_from_network():
    account = Account.create()
    network = NetworkConfig(name="tenderly", chain_id=42161, url="https://rpc.tenderly.co/fork/1234", accounts=(account.key.hex(),))
    client = Web3ChainClient.create(network.url, network)
    assert list(client.local_accounts) == [account.address]


def test_contract_handle():
    network = NetworkConfig(name="localhost", chain_id=1337, url="http://127.0.0.1:8545")
    client = Web3ChainClient.create(network.url, network)

    manager = client.get_contract("Manager", "0x5fbdb2315678afecb367f032d93f642f64180aa3")
    assert manager.address == "0x5FbDB2315678afecb367f032d93F642f64180aa3"
    bound_call = manager.functions.vaults("0xaf88d065e77c8cC2239327C5EDb3A432268e5831")
    assert bound_call.fn_name == "vaults"

    vault = client.get_contract("Vault", "0x1000000000000000000000000000000000000001")
    assert vault.functions.deposit(1, "0x70997970C51812dc3A010C7d01b50e0d17dc79C8").fn_name == "deposit"


def test_chain_client_is_abstract():
    with pytest.raises(TypeError):
        ChainClient()
