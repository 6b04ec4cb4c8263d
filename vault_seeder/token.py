"""Token registry for the seeded vaults.

Static ERC-20 token descriptors on Arbitrum One, the chain our local
mainnet fork copies, and the amounts each depositor puts into the vaults.

Example:

.. code-block:: python

    usdc = TOKEN_MAP["USDC"]
    assert usdc.convert_to_raw(1000) == 1_000_000_000
"""

from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

from eth_typing import HexAddress
from web3 import Web3


@dataclass(frozen=True, slots=True)
class TokenDescriptor:
    """ERC-20 token we know without asking the chain.

    - Immutable, defined at startup from the static configuration

    - Deals with token value decimal conversions
    """

    #: Token symbol e.g. ``USDC``
    symbol: str

    #: Checksummed ERC-20 contract address
    address: HexAddress

    #: Number of decimals
    decimals: int

    def __repr__(self):
        return f"<{self.symbol} at {self.address}, {self.decimals} decimals>"

    def convert_to_raw(self, whole_units: int) -> int:
        """Convert whole token units to raw uint256 base units.

        Uses integer arithmetic only, so there is no rounding.

        Example:

        .. code-block:: python

            # Convert 9 WETH to raw units with 18 decimals
            assert TOKEN_MAP["WETH"].convert_to_raw(9) == 9 * 10**18

        """
        assert type(whole_units) == int, f"Got {type(whole_units)}, expected int: {whole_units}"
        return whole_units * 10**self.decimals

    def convert_to_decimals(self, raw_amount: int) -> Decimal:
        """Convert raw token units to decimals.

        Used when logging human-readable amounts.
        """
        assert type(raw_amount) == int, f"Got {type(raw_amount)}, expected int: {raw_amount}"
        return Decimal(raw_amount) / Decimal(10**self.decimals)


def _token(symbol: str, address: str, decimals: int) -> TokenDescriptor:
    return TokenDescriptor(symbol=symbol, address=Web3.to_checksum_address(address), decimals=decimals)


#: Tokens we seed, in the order vaults are resolved and funded.
#:
#: Addresses are Arbitrum One deployments.
#:
TOKEN_MAP: Mapping[str, TokenDescriptor] = MappingProxyType(
    {
        # https://arbiscan.io/token/0xaf88d065e77c8cc2239327c5edb3a432268e5831
        "USDC": _token("USDC", "0xaf88d065e77c8cC2239327C5EDb3A432268e5831", 6),
        # https://arbiscan.io/token/0xfd086bc7cd5c481dcc9c85ebe478a1c0b69fcbb9
        "USDT": _token("USDT", "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9", 6),
        # https://arbiscan.io/token/0x82af49447d8a07e3bd95bd0d56f35241523fbab1
        "WETH": _token("WETH", "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1", 18),
        # https://arbiscan.io/token/0x2f2a2543b76a4166549f7aab2e75bef0aefc5b0f
        "WBTC": _token("WBTC", "0x2f2a2543B76A4166549F7aaB2e75Bef0aefC5B0f", 8),
    }
)

#: How many whole token units every depositor puts into each vault
DEPOSIT_UNITS: Mapping[str, int] = MappingProxyType(
    {
        "USDC": 1000,
        "USDT": 78000,
        "WETH": 9,
        "WBTC": 4,
    }
)

