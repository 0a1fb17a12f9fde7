import os
import typing as T

from eth_typing import Address
from web3 import Web3

from utils.price import wei_to_token
from web3_utils.web3_client import Web3Client


class DatatokenWeb3Client(Web3Client):
    """
    Read balances of any ERC20 datatoken
    """

    this_dir = os.path.dirname(os.path.realpath(__file__))
    abi_dir = os.path.join(this_dir, "abi", "abi-erc20.json")
    abi = Web3Client.get_contract_abi_from_file(abi_dir)

    async def balance(self, token_address: Address, holder_address: Address) -> str:
        """
        Balance of `holder_address` in token units, as a decimal string
        """
        token = self.w3.eth.contract(address=Web3.to_checksum_address(token_address), abi=self.abi)
        balance_wei: int = await token.functions.balanceOf(
            Web3.to_checksum_address(holder_address)
        ).call()
        return wei_to_token(balance_wei)
