"""Accounts used on the test networks.

The accounts are the well-known development accounts derived from the
``test test test ... junk`` mnemonic that both Hardhat and Anvil unlock by default.
Never use them on a live network.
"""

from eth_typing import HexAddress
from web3 import Web3

#: Private keys handed to the remote Tenderly fork network
#:
#: Hardhat/Anvil accounts #0 - #2.
#:
accounts_privates: tuple[str, ...] = (
    "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80",
    "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d",
    "0x5de4111afa1a4b94908f83103eb1f1706367c2e68ca870fc3fb9a804cdab365a",
)

#: Accounts that receive vault shares, in the order they are funded
depositor_list: tuple[HexAddress, ...] = tuple(
    Web3.to_checksum_address(a)
    for a in (
        "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266",
        "0x70997970C51812dc3A010C7d01b50e0d17dc79C8",
        "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC",
    )
)
