import os
import typing as T

from eth_typing import Address
from web3 import AsyncWeb3, Web3
from web3.types import TxReceipt

from dispenser.types import DispenserToken
from utils import logger
from utils.config_types import NetworkConfig
from utils.network_config import get_network_config
from utils.price import TokenAmount, to_decimal, token_to_wei, wei_to_token
from web3_utils.datatoken_web3_client import DatatokenWeb3Client
from web3_utils.gas import estimate_gas, get_fair_gas_price
from web3_utils.web3_client import MissingParameter, Web3Client


class DispenserWeb3Client(Web3Client):
    """
    Interact with a datatoken Dispenser contract, which hands out a
    capped amount of datatokens to each requester.

    Amounts going in and out are human readable decimal strings, the
    contract works in wei.
    """

    this_dir = os.path.dirname(os.path.realpath(__file__))
    abi_dir = os.path.join(
        os.path.dirname(this_dir), "web3_utils", "abi", "abi-dispenser.json"
    )
    abi = Web3Client.get_contract_abi_from_file(abi_dir)

    def __init__(
        self,
        w3: T.Optional[AsyncWeb3],
        network: T.Optional[T.Union[str, int]] = None,
        dispenser_address: T.Optional[Address] = None,
        dispenser_abi: T.Optional[T.List[T.Dict[str, T.Any]]] = None,
        config: T.Optional[NetworkConfig] = None,
    ) -> None:
        if config is None:
            config = get_network_config(network)
        if dispenser_address is None:
            dispenser_address = config.get("dispenser_address")
        if not dispenser_address:
            raise MissingParameter(f"No dispenser address for network {config['network']}")

        super().__init__(w3, config, contract_address=dispenser_address, abi=dispenser_abi)

    async def _send_with_gas(
        self, function_name: str, from_address: Address, gas_estimate: int, *args: T.Any
    ) -> TxReceipt:
        return await self.send(
            function_name,
            *args,
            tx_params={
                "from": from_address,
                "gas": gas_estimate + 1,
                "gasPrice": await get_fair_gas_price(self.w3, self.config),
            },
        )

    ####################
    # Status
    ####################

    async def status(self, datatoken_address: Address) -> T.Optional[DispenserToken]:
        """
        Get information about a datatoken dispenser, None if there is none
        """
        try:
            (
                active,
                owner,
                is_minter,
                max_tokens,
                max_balance,
                balance,
                allowed_swapper,
            ) = await self.call("status", Web3.to_checksum_address(datatoken_address))
            return DispenserToken(
                active=active,
                owner=owner,
                max_tokens=wei_to_token(max_tokens),
                max_balance=wei_to_token(max_balance),
                balance=wei_to_token(balance),
                is_minter=is_minter,
                allowed_swapper=allowed_swapper,
            )
        except Exception as e:
            logger.print_warn(f"No dispenser available for datatoken: {datatoken_address} ({e})")
            return None

    ####################
    # Create
    ####################

    async def estimate_gas_create(
        self,
        datatoken_address: Address,
        owner: Address,
        max_tokens: TokenAmount,
        max_balance: TokenAmount,
        allowed_swapper: Address,
    ) -> int:
        owner = Web3.to_checksum_address(owner)
        return await estimate_gas(
            owner,
            self.get_function("create"),
            Web3.to_checksum_address(datatoken_address),
            token_to_wei(max_tokens),
            token_to_wei(max_balance),
            owner,
            Web3.to_checksum_address(allowed_swapper),
        )

    async def create(
        self,
        datatoken_address: Address,
        owner: Address,
        max_tokens: TokenAmount,
        max_balance: TokenAmount,
        allowed_swapper: Address,
    ) -> TxReceipt:
        """
        Create a new dispenser for a datatoken. Set `allowed_swapper` to the
        zero address to let anyone request tokens. Errors are raised.
        """
        datatoken_address = Web3.to_checksum_address(datatoken_address)
        owner = Web3.to_checksum_address(owner)
        allowed_swapper = Web3.to_checksum_address(allowed_swapper)

        gas_estimate = await self.estimate_gas_create(
            datatoken_address, owner, max_tokens, max_balance, allowed_swapper
        )
        return await self._send_with_gas(
            "create",
            owner,
            gas_estimate,
            datatoken_address,
            token_to_wei(max_tokens),
            token_to_wei(max_balance),
            owner,
            allowed_swapper,
        )

    ####################
    # Activate / Deactivate
    ####################

    async def estimate_gas_activate(
        self,
        datatoken_address: Address,
        max_tokens: TokenAmount,
        max_balance: TokenAmount,
        owner: Address,
    ) -> int:
        return await estimate_gas(
            Web3.to_checksum_address(owner),
            self.get_function("activate"),
            Web3.to_checksum_address(datatoken_address),
            token_to_wei(max_tokens),
            token_to_wei(max_balance),
        )

    async def activate(
        self,
        datatoken_address: Address,
        max_tokens: TokenAmount,
        max_balance: TokenAmount,
        owner: Address,
    ) -> T.Optional[TxReceipt]:
        """
        Activate a dispenser. Requesters holding `max_balance` or more are
        rejected by the contract.
        """
        try:
            datatoken_address = Web3.to_checksum_address(datatoken_address)
            owner = Web3.to_checksum_address(owner)
            gas_estimate = await self.estimate_gas_activate(
                datatoken_address, max_tokens, max_balance, owner
            )
            return await self._send_with_gas(
                "activate",
                owner,
                gas_estimate,
                datatoken_address,
                token_to_wei(max_tokens),
                token_to_wei(max_balance),
            )
        except Exception as e:
            logger.print_fail(f"ERROR: Failed to activate dispenser: {e}")
            return None

    async def estimate_gas_deactivate(self, datatoken_address: Address, owner: Address) -> int:
        return await estimate_gas(
            Web3.to_checksum_address(owner),
            self.get_function("deactivate"),
            Web3.to_checksum_address(datatoken_address),
        )

    async def deactivate(self, datatoken_address: Address, owner: Address) -> T.Optional[TxReceipt]:
        try:
            datatoken_address = Web3.to_checksum_address(datatoken_address)
            owner = Web3.to_checksum_address(owner)
            gas_estimate = await self.estimate_gas_deactivate(datatoken_address, owner)
            return await self._send_with_gas("deactivate", owner, gas_estimate, datatoken_address)
        except Exception as e:
            logger.print_fail(f"ERROR: Failed to deactivate dispenser: {e}")
            return None

    ####################
    # Allowed swapper
    ####################

    async def estimate_gas_set_allowed_swapper(
        self, datatoken_address: Address, owner: Address, new_allowed_swapper: Address
    ) -> int:
        return await estimate_gas(
            Web3.to_checksum_address(owner),
            self.get_function("setAllowedSwapper"),
            Web3.to_checksum_address(datatoken_address),
            Web3.to_checksum_address(new_allowed_swapper),
        )

    async def set_allowed_swapper(
        self, datatoken_address: Address, owner: Address, new_allowed_swapper: Address
    ) -> T.Optional[TxReceipt]:
        try:
            datatoken_address = Web3.to_checksum_address(datatoken_address)
            owner = Web3.to_checksum_address(owner)
            new_allowed_swapper = Web3.to_checksum_address(new_allowed_swapper)
            gas_estimate = await self.estimate_gas_set_allowed_swapper(
                datatoken_address, owner, new_allowed_swapper
            )
            return await self._send_with_gas(
                "setAllowedSwapper", owner, gas_estimate, datatoken_address, new_allowed_swapper
            )
        except Exception as e:
            logger.print_fail(f"ERROR: Failed to set allowed swapper: {e}")
            return None

    ####################
    # Dispense / Withdraw
    ####################

    async def estimate_gas_dispense(
        self,
        datatoken_address: Address,
        requester: Address,
        amount: TokenAmount = "1",
        destination: T.Optional[Address] = None,
    ) -> int:
        if destination is None:
            destination = requester
        return await estimate_gas(
            Web3.to_checksum_address(requester),
            self.get_function("dispense"),
            Web3.to_checksum_address(datatoken_address),
            token_to_wei(amount),
            Web3.to_checksum_address(destination),
        )

    async def dispense(
        self,
        datatoken_address: Address,
        requester: Address,
        amount: TokenAmount = "1",
        destination: T.Optional[Address] = None,
    ) -> T.Optional[TxReceipt]:
        """
        Dispense datatokens to `destination` (the requester by default).
        The dispenser must be active, hold enough tokens or be a minter and
        respect its max tokens / max balance limits.

        Gas estimation errors are raised, send errors are logged.
        """
        datatoken_address = Web3.to_checksum_address(datatoken_address)
        requester = Web3.to_checksum_address(requester)
        destination = Web3.to_checksum_address(destination or requester)

        gas_estimate = await self.estimate_gas_dispense(
            datatoken_address, requester, amount, destination
        )

        try:
            return await self._send_with_gas(
                "dispense",
                requester,
                gas_estimate,
                datatoken_address,
                token_to_wei(amount),
                destination,
            )
        except Exception as e:
            logger.print_fail(f"ERROR: Failed to dispense tokens: {e}")
            return None

    async def estimate_gas_owner_withdraw(self, datatoken_address: Address, owner: Address) -> int:
        return await estimate_gas(
            Web3.to_checksum_address(owner),
            self.get_function("ownerWithdraw"),
            Web3.to_checksum_address(datatoken_address),
        )

    async def owner_withdraw(
        self, datatoken_address: Address, owner: Address
    ) -> T.Optional[TxReceipt]:
        """
        Withdraw all tokens held by the dispenser back to its owner.

        Gas estimation errors are raised, send errors are logged.
        """
        datatoken_address = Web3.to_checksum_address(datatoken_address)
        owner = Web3.to_checksum_address(owner)

        gas_estimate = await self.estimate_gas_owner_withdraw(datatoken_address, owner)

        try:
            return await self._send_with_gas(
                "ownerWithdraw", owner, gas_estimate, datatoken_address
            )
        except Exception as e:
            logger.print_fail(f"ERROR: Failed to withdraw tokens: {e}")
            return None

    ####################
    # Checks
    ####################

    async def is_dispensable(
        self,
        datatoken_address: Address,
        datatoken: DatatokenWeb3Client,
        requester: Address,
        amount: TokenAmount = "1",
    ) -> bool:
        """
        Client side approximation of the contract's dispense checks
        """
        status = await self.status(datatoken_address)
        if not status:
            return False

        if not status["active"]:
            return False

        try:
            user_balance = to_decimal(await datatoken.balance(datatoken_address, requester))
        except Exception as e:
            logger.print_warn(f"Could not get {requester} balance of {datatoken_address}: {e}")
            return False
        if user_balance >= to_decimal(status["max_balance"]):
            return False

        try:
            requested = to_decimal(amount)
        except ValueError as e:
            logger.print_warn(f"{e}")
            return False
        if requested > to_decimal(status["max_tokens"]):
            return False

        return to_decimal(status["balance"]) >= requested or status["is_minter"] is True
