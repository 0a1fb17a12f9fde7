import decimal
import typing as T

from web3 import Web3
from web3.types import Wei

from utils import logger

TokenAmount = T.Union[str, int, decimal.Decimal]

TOKEN_DECIMALS = 18
DECIMAL_PRECISION = 999


def to_decimal(amount: TokenAmount) -> decimal.Decimal:
    """
    Parse a human readable token amount, rejecting floats so that no binary
    rounding ever leaks into an on-chain value.
    """
    if isinstance(amount, float):
        raise ValueError(f"Token amounts must be decimal strings, got float {amount}")
    try:
        value = decimal.Decimal(str(amount).strip())
    except decimal.InvalidOperation:
        raise ValueError(f"Invalid token amount: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"Invalid token amount: {amount!r}")
    return value


def format_decimal(value: decimal.Decimal) -> str:
    """
    Canonical plain notation: no exponent, no trailing zeros
    """
    if value == 0:
        return "0"
    with decimal.localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return format(value.normalize(), "f")


def token_to_wei(token: TokenAmount) -> Wei:
    """
    The conversion is 1 token = 10^18 Wei.
    """
    amount = to_decimal(token)
    if amount < 0:
        raise ValueError(f"Token amount cannot be negative: {token}")
    with decimal.localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        scaled = amount.scaleb(TOKEN_DECIMALS)
        if scaled != scaled.to_integral_value():
            raise ValueError(f"Token amount {token} is finer than one wei")
    return T.cast(Wei, Web3.to_wei(amount, "ether"))


def wei_to_token(wei: Wei) -> str:
    """
    Convert Wei to a token decimal string
    """
    return format_decimal(decimal.Decimal(Web3.from_wei(int(wei), "ether")))


def is_gas_too_high(gas_price_gwei: float, max_price_gwei: float, margin: int = 0) -> bool:
    if gas_price_gwei is None:
        return True

    gas_price_limit = max_price_gwei + margin
    if gas_price_gwei > gas_price_limit:
        logger.print_warn(f"Warning: High Gas ({gas_price_gwei}) > {gas_price_limit}!")
        return True
    return False
