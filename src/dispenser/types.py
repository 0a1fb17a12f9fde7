import typing as T

from eth_typing import Address

ZERO_ADDRESS = T.cast(Address, "0x0000000000000000000000000000000000000000")


class DispenserToken(T.TypedDict):
    active: bool
    owner: Address
    max_tokens: str
    max_balance: str
    balance: str
    is_minter: bool
    allowed_swapper: Address
