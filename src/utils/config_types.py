import typing as T
from eth_typing import Address


class NetworkConfig(T.TypedDict):
    network: str
    chain_id: int
    node_uri: str
    dispenser_address: T.Optional[Address]
    gas_fee_multiplier: float
    max_gas_price_gwei: T.Optional[float]
    transaction_polling_timeout: float
    transaction_poll_latency: float
