"""Chain client.

The only place the vault seeder talks to a JSON-RPC node.
The orchestrator in :py:mod:`vault_seeder.fill_vaults` sees four operations:

- :py:meth:`ChainClient.get_contract`: contract handle by name and address

- :py:meth:`ChainClient.get_signer`: signer for an account address

- :py:meth:`ChainClient.call`: read-only contract call

- :py:meth:`ChainClient.transact`: submit a transaction and wait for the confirmation

Any failure comes out as :py:class:`ChainInteractionError`, whether it is a network problem
or a reverted transaction.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import AsyncWeb3
from web3.contract.async_contract import AsyncContractFunction
from web3.exceptions import Web3Exception
from web3.types import TxReceipt

from vault_seeder.abi import get_deployed_contract
from vault_seeder.config import CallOptions
from vault_seeder.network import NetworkConfig, get_chain_name
from vault_seeder.revert_reason import fetch_transaction_revert_reason

logger = logging.getLogger(__name__)


#: Everything the node connection may throw at us
_rpc_exceptions = (Web3Exception, aiohttp.ClientError, TimeoutError, ValueError)


class ChainInteractionError(Exception):
    """A contract call or transaction failed.

    Never retried.
    """

    def __init__(self, msg: str, revert_reason: str | None = None, tx_hash: HexBytes | None = None):
        super().__init__(msg)
        self.revert_reason = revert_reason
        self.tx_hash = tx_hash


@dataclass
class Signer:
    """An account we send transactions from.

    - Without a private key the node signs: unlocked dev account or an impersonated account on a fork

    - With a private key we sign locally and allocate nonces ourselves
    """

    #: Checksummed account address
    address: HexAddress

    #: Local private key account, if we sign ourselves
    account: LocalAccount | None = None

    #: Next nonce to use for locally signed transactions
    current_nonce: int | None = field(default=None, repr=False)

    def is_local(self) -> bool:
        return self.account is not None

    def allocate_nonce(self) -> int:
        """Get the next free available nonce to be used with a transaction.

        Increments the nonce counter. Call only between awaits,
        so that concurrent tasks never get the same nonce.
        """
        assert self.current_nonce is not None, "Nonce not synced for signer"
        nonce = self.current_nonce
        self.current_nonce += 1
        return nonce


class ChainClient(ABC):
    """Interface the vault seeding run consumes.

    Subclass for a real node connection or for test stubs.
    """

    @abstractmethod
    def get_contract(self, name: str, address: HexAddress | str) -> Any:
        """Contract handle by ABI name and address."""

    @abstractmethod
    async def get_signer(self, address: HexAddress | str) -> Signer:
        """Signer bound to an account address."""

    @abstractmethod
    async def call(self, bound_call: AsyncContractFunction) -> Any:
        """Perform a read-only call and return its result."""

    @abstractmethod
    async def transact(self, signer: Signer, bound_call: AsyncContractFunction, options: CallOptions | None = None) -> TxReceipt:
        """Submit a transaction and wait until it is mined successfully."""

    async def check_connection(self) -> int | None:
        """Check the node answers before we start sending transactions."""
        return None

    async def close(self):
        """Release the node connection."""


class Web3ChainClient(ChainClient):
    """Chain client using web3.py async API over HTTP."""

    def __init__(
        self,
        web3: AsyncWeb3,
        network: NetworkConfig,
        receipt_timeout: float = 120.0,
    ):
        """
        :param web3:
            Connected async web3

        :param network:
            Network definition, gives us the private keys if we sign locally

        :param receipt_timeout:
            How long we wait for each transaction to be mined, seconds
        """
        self.web3 = web3
        self.network = network
        self.receipt_timeout = receipt_timeout
        self.signers: dict[HexAddress, Signer] = {}
        self.local_accounts: dict[HexAddress, LocalAccount] = {}
        for private_key in network.accounts:
            account = Account.from_key(private_key)
            self.local_accounts[account.address] = account

    def __repr__(self):
        return f"<Web3ChainClient {self.network.name}>"

    @classmethod
    def create(cls, json_rpc_url: str, network: NetworkConfig, receipt_timeout: float = 120.0) -> "Web3ChainClient":
        """Connect to a JSON-RPC endpoint."""
        web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(json_rpc_url))
        return cls(web3, network, receipt_timeout=receipt_timeout)

    async def check_connection(self) -> int:
        """Check the node answers and is on the chain we expect.

        A mismatch is only logged: forks can be launched with a different chain id.

        :return:
            Chain id reported by the node
        """
        try:
            chain_id = await self.web3.eth.chain_id
            block_number = await self.web3.eth.block_number
        except _rpc_exceptions as e:
            raise ChainInteractionError(f"Could not connect to network {self.network.name}: {e}") from e

        if chain_id != self.network.chain_id:
            logger.warning("Network %s expected chain %d, node reports %d", self.network.name, self.network.chain_id, chain_id)

        logger.info(f"Connected to {get_chain_name(chain_id)}, the current block is {block_number:,}")
        return chain_id

    def get_contract(self, name: str, address: HexAddress | str):
        return get_deployed_contract(self.web3, name, address)

    async def get_signer(self, address: HexAddress | str) -> Signer:
        address = AsyncWeb3.to_checksum_address(address)
        signer = self.signers.get(address)
        if signer is not None:
            return signer

        account = self.local_accounts.get(address)
        signer = Signer(address=address, account=account)
        if account is not None:
            try:
                signer.current_nonce = await self.web3.eth.get_transaction_count(address, "pending")
            except _rpc_exceptions as e:
                raise ChainInteractionError(f"Could not sync nonce for {address}: {e}") from e
            logger.info("Signing locally for %s, nonce is %d", address, signer.current_nonce)

        # Another task may have created one while we were syncing
        return self.signers.setdefault(address, signer)

    async def call(self, bound_call: AsyncContractFunction) -> Any:
        try:
            return await bound_call.call()
        except _rpc_exceptions as e:
            raise ChainInteractionError(f"Call {bound_call.fn_name}() on {bound_call.address} failed: {e}") from e

    async def transact(self, signer: Signer, bound_call: AsyncContractFunction, options: CallOptions | None = None) -> TxReceipt:
        """Submit a transaction and wait for the confirmation.

        :param signer:
            See :py:meth:`get_signer`

        :param bound_call:
            Contract function with its arguments

        :param options:
            Gas overrides. Without ``gas_limit`` the node estimates the gas.

        :return:
            Receipt of the successful transaction

        :raise ChainInteractionError:
            RPC failure, timeout or a revert
        """

        if options is None:
            options = CallOptions()

        tx_params = {"from": signer.address}
        if options.gas_limit is not None:
            tx_params["gas"] = options.gas_limit

        desc = f"{bound_call.fn_name}() on {bound_call.address} from {signer.address}"

        try:
            if signer.is_local():
                tx_params["nonce"] = signer.allocate_nonce()
                tx = await bound_call.build_transaction(tx_params)
                signed_tx = signer.account.sign_transaction(tx)
                tx_hash = await self.web3.eth.send_raw_transaction(signed_tx.raw_transaction)
            else:
                tx_hash = await bound_call.transact(tx_params)

            logger.info("Broadcasted %s: %s", desc, tx_hash.hex())
            receipt = await self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except _rpc_exceptions as e:
            raise ChainInteractionError(f"Transaction {desc} failed: {e}") from e

        if receipt["status"] == 0:
            try:
                revert_reason = await fetch_transaction_revert_reason(self.web3, tx_hash)
            except _rpc_exceptions as e:
                logger.warning("Could not replay %s: %s", tx_hash.hex(), e)
                revert_reason = None
            raise ChainInteractionError(
                f"Transaction {desc} reverted: {tx_hash.hex()}\nRevert reason: {revert_reason}",
                revert_reason=revert_reason,
                tx_hash=tx_hash,
            )

        return receipt

    async def close(self):
        await self.web3.provider.disconnect()
