from __future__ import annotations

import json
import typing as T

from eth_account import Account
from eth_typing import Address, ChecksumAddress
from hexbytes import HexBytes
from web3 import AsyncWeb3, Web3
from web3.contract import AsyncContract
from web3.contract.async_contract import AsyncContractFunction
from web3.types import TxParams, TxReceipt

from utils.config_types import NetworkConfig
from utils.network_config import get_network_config


class MissingParameter(Exception):
    pass


class Web3Client:
    """
    Async client to interact with a blockchain, with smart
    contract support.

    Wrapper of the AsyncWeb3 library bound to one contract and
    one network config.

    Attributes
    ----------
    w3: AsyncWeb3
    config: NetworkConfig
    contract_address: Address = None
    abi: T.List[T.Dict[str, T.Any]] = None
    user_address: Address = None
    private_key: str = None

    Derived attributes
    ----------
    contract_checksum_address: ChecksumAddress = None
    contract: AsyncContract = None
    """

    contract_address: T.Optional[Address] = None
    abi: T.Optional[T.List[T.Dict[str, T.Any]]] = None

    def __init__(
        self,
        w3: T.Optional[AsyncWeb3],
        config: T.Optional[NetworkConfig] = None,
        contract_address: T.Optional[Address] = None,
        abi: T.Optional[T.List[T.Dict[str, T.Any]]] = None,
    ) -> None:
        self.w3 = w3
        self.config = config if config is not None else get_network_config()
        self.user_address: T.Optional[ChecksumAddress] = None
        self.private_key: T.Optional[str] = None
        self.contract_checksum_address: T.Optional[ChecksumAddress] = None
        self.contract: T.Optional[AsyncContract] = None

        if contract_address is not None:
            self.contract_address = contract_address
        if abi is not None:
            self.abi = abi

        if self.w3 is not None and self.contract_address:
            self.set_contract(address=self.contract_address, abi=self.abi)

    ####################
    # Read
    ####################

    def get_function(self, function_name: str) -> AsyncContractFunction:
        if self.contract is None:
            raise MissingParameter("Contract not set, call set_contract() first")
        return getattr(self.contract.functions, function_name)

    async def call(self, function_name: str, *args: T.Any) -> T.Any:
        """
        Run a read-only contract call and return the raw result
        """
        return await self.get_function(function_name)(*args).call()

    ####################
    # Sign & send Tx
    ####################

    async def send(self, function_name: str, *args: T.Any, tx_params: TxParams) -> TxReceipt:
        """
        Submit a contract transaction and wait for its receipt.

        With credentials set the transaction is signed locally, otherwise
        the node signs it for the `from` account.
        """
        contract_function = self.get_function(function_name)(*args)

        if self.private_key:
            tx_hash = await self.sign_and_send_transaction(contract_function, tx_params)
        else:
            tx_hash = await contract_function.transact(tx_params)

        return await self.get_transaction_receipt(tx_hash)

    async def sign_and_send_transaction(
        self, contract_function: AsyncContractFunction, tx_params: TxParams
    ) -> HexBytes:
        sender = Web3.to_checksum_address(tx_params["from"])
        if sender != self.user_address:
            raise ValueError(f"Credentials are for {self.user_address}, cannot send from {sender}")

        tx_params = dict(tx_params)
        tx_params["nonce"] = await self.w3.eth.get_transaction_count(sender, "pending")
        tx = await contract_function.build_transaction(tx_params)
        signed_tx = Account.sign_transaction(tx, self.private_key)
        return await self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)

    async def get_transaction_receipt(self, tx_hash: HexBytes) -> TxReceipt:
        """
        Given a transaction hash, wait for the blockchain to confirm
        it and return the tx receipt.
        """
        return await self.w3.eth.wait_for_transaction_receipt(
            tx_hash,
            timeout=self.config["transaction_polling_timeout"],
            poll_latency=self.config["transaction_poll_latency"],
        )

    ####################
    # Setters
    ####################

    def set_contract(
        self,
        address: Address,
        abi: T.Optional[T.List[T.Dict[str, T.Any]]] = None,
    ) -> Web3Client:
        """
        Load the smart contract, required before any call or send
        """
        self.contract_address = address
        self.contract_checksum_address = Web3.to_checksum_address(address)
        if abi:
            self.abi = abi
        if not self.abi:
            raise MissingParameter("Missing ABI")
        self.contract = self.w3.eth.contract(address=self.contract_checksum_address, abi=self.abi)
        return self

    def set_credentials(self, user_address: Address, private_key: str) -> Web3Client:
        """
        Set credentials for local signing, the key must belong to `user_address`
        """
        user_address = Web3.to_checksum_address(user_address)
        if Account.from_key(private_key).address != user_address:
            raise ValueError(f"Private key does not belong to {user_address}")
        self.user_address = user_address
        self.private_key = private_key
        return self

    @staticmethod
    def get_contract_abi_from_file(file_name: str) -> T.Any:
        with open(file_name) as file:
            return json.load(file)
