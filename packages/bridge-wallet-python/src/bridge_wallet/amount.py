"""Conversion between display amounts and base units."""

import re

from .types import BridgeWalletError, ErrorCode

_AMOUNT_RE = re.compile(r"([0-9]*)(?:\.([0-9]*))?")


def parse_amount(value: str, decimals: int) -> int:
    """
    Parse a decimal string into base units.

    Example:
        >>> parse_amount("0.01", 18)
        10000000000000000
    """
    if decimals < 0:
        raise BridgeWalletError(ErrorCode.INVALID_AMOUNT, f"Invalid decimals: {decimals}")

    match = _AMOUNT_RE.fullmatch(str(value).strip())
    if match is None or not (match.group(1) or match.group(2)):
        raise BridgeWalletError(ErrorCode.INVALID_AMOUNT, f"Invalid amount: {value!r}")

    whole = match.group(1)
    fraction = (match.group(2) or "").rstrip("0")
    if len(fraction) > decimals:
        raise BridgeWalletError(
            ErrorCode.INVALID_AMOUNT,
            f"Amount {value} has more than {decimals} fractional digits",
        )

    return int(whole or "0") * 10**decimals + int(fraction.ljust(decimals, "0") or "0")


def format_amount(units: int, decimals: int) -> str:
    """Format base units as a decimal string without trailing zeros."""
    if units < 0:
        raise BridgeWalletError(ErrorCode.INVALID_AMOUNT, f"Negative amount: {units}")

    divisor = 10**decimals
    whole = units // divisor
    fraction = units % divisor

    if fraction == 0:
        return str(whole)

    fraction_str = str(fraction).zfill(decimals).rstrip("0")
    return f"{whole}.{fraction_str}"
