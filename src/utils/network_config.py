import copy
import typing as T

from utils.config_types import NetworkConfig

UNKNOWN_NETWORK = "unknown"

DEFAULT_CONFIG = NetworkConfig(
    network=UNKNOWN_NETWORK,
    chain_id=0,
    node_uri="http://127.0.0.1:8545",
    dispenser_address=None,
    gas_fee_multiplier=1.0,
    max_gas_price_gwei=None,
    transaction_polling_timeout=750.0,
    transaction_poll_latency=0.1,
)


def _network(**overrides: T.Any) -> NetworkConfig:
    config = copy.deepcopy(DEFAULT_CONFIG)
    config.update(overrides)
    return config


NETWORK_CONFIGS: T.Dict[str, NetworkConfig] = {
    UNKNOWN_NETWORK: DEFAULT_CONFIG,
    "development": _network(
        network="development",
        chain_id=8996,
        transaction_poll_latency=0.5,
    ),
    "mainnet": _network(
        network="mainnet",
        chain_id=1,
        node_uri="https://mainnet.infura.io/v3",
        transaction_poll_latency=2.0,
    ),
    "goerli": _network(
        network="goerli",
        chain_id=5,
        node_uri="https://goerli.infura.io/v3",
        transaction_poll_latency=2.0,
    ),
    "polygon": _network(
        network="polygon",
        chain_id=137,
        node_uri="https://polygon-rpc.com",
        gas_fee_multiplier=1.6,
        max_gas_price_gwei=500.0,
        transaction_poll_latency=1.0,
    ),
    "mumbai": _network(
        network="mumbai",
        chain_id=80001,
        node_uri="https://rpc-mumbai.maticvigil.com",
        gas_fee_multiplier=1.1,
        transaction_poll_latency=1.0,
    ),
}


def get_network_config(network: T.Optional[T.Union[str, int]] = None) -> NetworkConfig:
    """
    Resolve a network name or chain id to a fresh copy of its config, falling
    back to the local "unknown" network when nothing matches.
    """
    if network is None:
        return copy.deepcopy(DEFAULT_CONFIG)

    if isinstance(network, str) and network.strip().isdigit():
        network = int(network)

    for name, config in NETWORK_CONFIGS.items():
        if isinstance(network, int) and not isinstance(network, bool):
            if config["chain_id"] == network and name != UNKNOWN_NETWORK:
                return copy.deepcopy(config)
        elif name == str(network).lower():
            return copy.deepcopy(config)

    return copy.deepcopy(DEFAULT_CONFIG)
