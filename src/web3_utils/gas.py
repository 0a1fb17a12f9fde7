import decimal
import typing as T

from eth_typing import Address
from web3 import AsyncWeb3, Web3
from web3.types import Wei

from utils import logger
from utils.config_types import NetworkConfig
from utils.price import is_gas_too_high


async def estimate_gas(from_address: Address, contract_function: T.Callable, *args: T.Any) -> int:
    """
    Estimate the gas units needed to run `contract_function(*args)` from
    `from_address`. Errors from the node are not caught.
    """
    return await contract_function(*args).estimate_gas({"from": from_address})


async def get_fair_gas_price(w3: AsyncWeb3, config: T.Optional[NetworkConfig]) -> Wei:
    """
    Node gas price scaled by the network's gas fee multiplier (rounded down)
    and capped at the network's max gas price, if one is set.
    """
    gas_price = decimal.Decimal(await w3.eth.gas_price)
    if not config:
        return Wei(int(gas_price))

    multiplier = config.get("gas_fee_multiplier")
    if multiplier:
        gas_price = gas_price * decimal.Decimal(str(multiplier))

    max_gas_price_gwei = config.get("max_gas_price_gwei")
    if max_gas_price_gwei is not None:
        gas_price_gwei = decimal.Decimal(Web3.from_wei(int(gas_price), "gwei"))
        max_price_gwei = decimal.Decimal(str(max_gas_price_gwei))
        if is_gas_too_high(gas_price_gwei, max_price_gwei):
            logger.print_warn(f"Capping gas price at {max_price_gwei} gwei")
            return Wei(Web3.to_wei(max_price_gwei, "gwei"))

    return Wei(int(gas_price))
