"""Token registry and base unit conversions."""

from decimal import Decimal

import pytest

from vault_seeder.token import DEPOSIT_UNITS, TOKEN_MAP, TokenDescriptor


@pytest.mark.parametrize(
    "symbol,decimals,expected",
    [
        ("USDC", 6, 1000 * 10**6),
        ("USDT", 6, 78000 * 10**6),
        ("WETH", 18, 9 * 10**18),
        ("WBTC", 8, 4 * 10**8),
    ],
)
def test_deposit_amount(symbol: str, decimals: int, expected: int):
    """Deposit amounts are whole units scaled with exact integer arithmetic."""
    assert TOKEN_MAP[symbol].decimals == decimals
    amount = TOKEN_MAP[symbol].convert_to_raw(DEPOSIT_UNITS[symbol])
    assert type(amount) == int
    assert amount == expected


def test_token_map_order():
    """Vaults are resolved and funded in a fixed token order."""
    assert list(TOKEN_MAP) == ["USDC", "USDT", "WETH", "WBTC"]
    assert list(DEPOSIT_UNITS) == list(TOKEN_MAP)


def test_convert_large_amount_without_rounding():
    weth = TOKEN_MAP["WETH"]
    raw = weth.convert_to_raw(123_456_789_123)
    assert raw == 123_456_789_123_000_000_000_000_000_000
    assert weth.convert_to_decimals(raw) == Decimal(123_456_789_123)


def test_convert_to_raw_needs_int():
    with pytest.raises(AssertionError):
        TOKEN_MAP["USDC"].convert_to_raw(1.5)


def test_token_descriptor_is_immutable():
    usdc = TOKEN_MAP["USDC"]
    assert isinstance(usdc, TokenDescriptor)
    assert usdc.address == "0xaf88d065e77c8cC2239327C5EDb3A432268e5831"
    with pytest.raises(AttributeError):
        usdc.decimals = 18
