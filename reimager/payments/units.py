"""Amount conversion and calldata helpers for EVM payments."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Union

ETHER_DECIMALS = 18

# keccak256("transfer(address,uint256)")[:4]
ERC20_TRANSFER_SELECTOR = "a9059cbb"

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

Amount = Union[str, int, Decimal]


def is_address(value: str) -> bool:
    """Return True for a 20-byte hex address with the 0x prefix."""
    return bool(_ADDRESS_RE.match(value or ""))


def parse_units(amount: Amount, decimals: int) -> int:
    """Convert a human-readable amount into integer base units.

    ``parse_units("0.00005", 18) == 50_000_000_000_000``. Amounts with more
    fractional digits than ``decimals`` are rejected rather than rounded.
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {amount!r}") from exc

    if not value.is_finite() or value < 0:
        raise ValueError(f"invalid amount: {amount!r}")

    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"amount {amount} has more than {decimals} decimal places")
    return int(scaled)


def parse_ether(amount: Amount) -> int:
    return parse_units(amount, ETHER_DECIMALS)


def to_quantity(value: int) -> str:
    """Hex-encode an integer the way JSON-RPC expects quantities."""
    if value < 0:
        raise ValueError("quantities must be non-negative")
    return hex(value)


def encode_erc20_transfer(recipient: str, amount: int) -> str:
    """ABI-encode ``transfer(recipient, amount)`` calldata."""
    if not is_address(recipient):
        raise ValueError(f"invalid recipient address: {recipient!r}")
    if amount < 0 or amount >= 2**256:
        raise ValueError("amount does not fit in uint256")

    address_word = recipient[2:].lower().rjust(64, "0")
    amount_word = format(amount, "x").rjust(64, "0")
    return "0x" + ERC20_TRANSFER_SELECTOR + address_word + amount_word
