import asyncio
import typing as T

import pytest
from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, InvalidAddress

from dispenser.dispenser_web3_client import DispenserWeb3Client
from dispenser.types import ZERO_ADDRESS
from utils.network_config import get_network_config
from utils.price import token_to_wei, wei_to_token
from web3_utils.datatoken_web3_client import DatatokenWeb3Client
from web3_utils.gas import get_fair_gas_price
from web3_utils.web3_client import MissingParameter

DISPENSER = "0x94fde8df71106cf2cf0141ce77546c2b3e35b243"
DATATOKEN = "0x325a9463e93ab79bf0302353c99ef70f43f33637"
DATATOKEN_CHECKSUM = Web3.to_checksum_address(DATATOKEN)
OWNER = Web3.to_checksum_address("0xae55967c2c5fae2cf2529b12f5a7344e99037656")
REQUESTER = Web3.to_checksum_address("0x8191efdc4b4a1250481624a908c6cb349a60590e")
GAS_PRICE_WEI = Web3.to_wei(10, "gwei")
GAS_ESTIMATE = 54321


def check_addresses(*values: T.Any) -> None:
    """
    web3 rejects addresses that are not checksummed before encoding a call
    """
    for value in values:
        if isinstance(value, str) and Web3.is_address(value):
            if not Web3.is_checksum_address(value):
                raise InvalidAddress(f"web3.py only accepts checksum addresses: {value}")


class FakeBoundFunction:
    def __init__(self, contract: "FakeContract", name: str, args: T.Tuple[T.Any, ...]) -> None:
        self.contract = contract
        self.name = name
        self.args = args

    async def call(self) -> T.Any:
        result = self.contract.call_results[self.name]
        if isinstance(result, Exception):
            raise result
        return result

    async def estimate_gas(self, tx: T.Dict[str, T.Any]) -> int:
        check_addresses(tx["from"])
        self.contract.estimated.append((self.name, self.args, tx))
        if self.contract.estimate_error is not None:
            raise self.contract.estimate_error
        return self.contract.gas_estimate

    async def transact(self, tx: T.Dict[str, T.Any]) -> bytes:
        check_addresses(tx["from"])
        self.contract.sent.append((self.name, self.args, tx))
        if self.contract.send_error is not None:
            raise self.contract.send_error
        return b"\x12" * 32

    async def build_transaction(self, tx: T.Dict[str, T.Any]) -> T.Dict[str, T.Any]:
        check_addresses(tx["from"])
        self.contract.sent.append((self.name, self.args, tx))
        built = dict(tx)
        built.pop("from")
        built.update({"to": self.contract.address, "value": 0, "chainId": 8996, "data": "0x"})
        return built


class FakeFunctions:
    def __init__(self, contract: "FakeContract") -> None:
        self._contract = contract

    def __getattr__(self, name: str) -> T.Callable[..., FakeBoundFunction]:
        def bind(*args: T.Any) -> FakeBoundFunction:
            check_addresses(*args)
            return FakeBoundFunction(self._contract, name, args)

        return bind


class FakeContract:
    def __init__(self, address: str) -> None:
        self.address = address
        self.functions = FakeFunctions(self)
        self.call_results: T.Dict[str, T.Any] = {}
        self.gas_estimate = GAS_ESTIMATE
        self.estimate_error: T.Optional[Exception] = None
        self.send_error: T.Optional[Exception] = None
        self.estimated: T.List[T.Tuple[str, T.Tuple[T.Any, ...], T.Dict[str, T.Any]]] = []
        self.sent: T.List[T.Tuple[str, T.Tuple[T.Any, ...], T.Dict[str, T.Any]]] = []


class FakeEth:
    def __init__(self) -> None:
        self.contracts: T.Dict[str, FakeContract] = {}
        self.gas_price_wei = GAS_PRICE_WEI
        self.raw_transactions: T.List[bytes] = []

    @property
    def gas_price(self) -> T.Awaitable[int]:
        return self._gas_price()

    async def _gas_price(self) -> int:
        return self.gas_price_wei

    def contract(self, address: str, abi: T.Any) -> FakeContract:
        return self.contracts.setdefault(address, FakeContract(address))

    async def get_transaction_count(self, address: str, block: str) -> int:
        return 7

    async def send_raw_transaction(self, raw_tx: bytes) -> bytes:
        self.raw_transactions.append(raw_tx)
        return b"\x34" * 32

    async def wait_for_transaction_receipt(
        self, tx_hash: bytes, timeout: float, poll_latency: float
    ) -> T.Dict[str, T.Any]:
        return {"status": 1, "transactionHash": tx_hash}


class FakeWeb3:
    def __init__(self) -> None:
        self.eth = FakeEth()


class FakeDatatoken:
    def __init__(self, balance: str = "0", error: T.Optional[Exception] = None) -> None:
        self._balance = balance
        self._error = error
        self.calls = 0

    async def balance(self, token_address: str, holder_address: str) -> str:
        self.calls += 1
        if self._error is not None:
            raise self._error
        return self._balance


def make_dispenser(config_network: str = "unknown") -> T.Tuple[DispenserWeb3Client, FakeContract]:
    w3 = FakeWeb3()
    dispenser = DispenserWeb3Client(w3, network=config_network, dispenser_address=DISPENSER)
    return dispenser, dispenser.contract


def set_status(
    contract: FakeContract,
    active: bool = True,
    is_minter: bool = False,
    max_tokens: str = "10",
    max_balance: str = "5",
    balance: str = "2",
    allowed_swapper: str = ZERO_ADDRESS,
) -> None:
    contract.call_results["status"] = (
        active,
        OWNER,
        is_minter,
        token_to_wei(max_tokens),
        token_to_wei(max_balance),
        token_to_wei(balance),
        allowed_swapper,
    )


def test_token_wei_round_trip() -> None:
    for amount in ["0", "1", "10", "1.5", "0.000000000000000001", "123456789.123456789"]:
        assert wei_to_token(token_to_wei(amount)) == amount, f"Round trip failed for {amount}"

    big_amounts = [
        "12345678901234567890123456789",
        "12345678901234567890123456789.123456789012345678",
        "115792089237316195423570985008687907853269984665640564039457.584007913129639935",
    ]
    for amount in big_amounts:
        assert wei_to_token(token_to_wei(amount)) == amount, f"Round trip failed for {amount}"

    max_uint256 = 2**256 - 1
    assert token_to_wei(wei_to_token(max_uint256)) == max_uint256


def test_token_to_wei() -> None:
    assert token_to_wei("1") == 10**18
    assert token_to_wei("0.5") == 5 * 10**17
    assert token_to_wei(3) == 3 * 10**18
    assert wei_to_token(10**19) == "10"
    assert wei_to_token(0) == "0"

    for bad_amount in ["abc", "-1", "0.0000000000000000001", "NaN", 1.5]:
        with pytest.raises(ValueError):
            token_to_wei(bad_amount)


def test_get_network_config() -> None:
    assert get_network_config()["network"] == "unknown"
    assert get_network_config("polygon")["chain_id"] == 137
    assert get_network_config(80001)["network"] == "mumbai"
    assert get_network_config("1")["network"] == "mainnet"
    assert get_network_config("not-a-network")["network"] == "unknown"
    assert get_network_config(424242)["network"] == "unknown"

    config = get_network_config("polygon")
    config["gas_fee_multiplier"] = 99.0
    assert get_network_config("polygon")["gas_fee_multiplier"] == 1.6


def test_fair_gas_price() -> None:
    w3 = FakeWeb3()
    assert asyncio.run(get_fair_gas_price(w3, None)) == GAS_PRICE_WEI
    assert asyncio.run(get_fair_gas_price(w3, get_network_config("unknown"))) == GAS_PRICE_WEI
    assert asyncio.run(get_fair_gas_price(w3, get_network_config("mumbai"))) == Web3.to_wei(
        11, "gwei"
    )

    config = get_network_config("polygon")
    assert asyncio.run(get_fair_gas_price(w3, config)) == Web3.to_wei(16, "gwei")
    config["max_gas_price_gwei"] = 12.0
    assert asyncio.run(get_fair_gas_price(w3, config)) == Web3.to_wei(12, "gwei")


def test_missing_dispenser_address() -> None:
    with pytest.raises(MissingParameter):
        DispenserWeb3Client(FakeWeb3(), network="development")


def test_status() -> None:
    dispenser, contract = make_dispenser()
    set_status(contract, max_tokens="10", max_balance="5", balance="2.5")

    status = asyncio.run(dispenser.status(DATATOKEN))
    assert status == {
        "active": True,
        "owner": OWNER,
        "max_tokens": "10",
        "max_balance": "5",
        "balance": "2.5",
        "is_minter": False,
        "allowed_swapper": ZERO_ADDRESS,
    }


def test_status_without_dispenser() -> None:
    dispenser, contract = make_dispenser()
    contract.call_results["status"] = ContractLogicError("execution reverted")

    assert asyncio.run(dispenser.status(DATATOKEN)) is None


def test_status_large_values() -> None:
    dispenser, contract = make_dispenser()
    balance = "12345678901234567890123456789.123456789012345678"
    set_status(contract, max_tokens="100000000000000000000000000000000", balance=balance)

    status = asyncio.run(dispenser.status(DATATOKEN))
    assert status["balance"] == balance
    assert status["max_tokens"] == "100000000000000000000000000000000"

    datatoken = FakeDatatoken(balance="0")
    assert asyncio.run(dispenser.is_dispensable(DATATOKEN, datatoken, REQUESTER, balance))
    one_wei_more = "12345678901234567890123456789.123456789012345679"
    assert not asyncio.run(dispenser.is_dispensable(DATATOKEN, datatoken, REQUESTER, one_wei_more))


def test_is_dispensable_without_dispenser() -> None:
    dispenser, contract = make_dispenser()
    contract.call_results["status"] = ContractLogicError("execution reverted")
    datatoken = FakeDatatoken(balance="0")

    assert not asyncio.run(dispenser.is_dispensable(DATATOKEN, datatoken, REQUESTER, "1"))
    assert datatoken.calls == 0


def test_is_dispensable_inactive() -> None:
    dispenser, contract = make_dispenser()
    set_status(contract, active=False, is_minter=True, balance="100")

    assert not asyncio.run(
        dispenser.is_dispensable(DATATOKEN, FakeDatatoken(balance="0"), REQUESTER, "1")
    )


def test_is_dispensable() -> None:
    dispenser, contract = make_dispenser()
    set_status(contract, max_tokens="10", max_balance="5", balance="3", is_minter=False)

    assert asyncio.run(
        dispenser.is_dispensable(DATATOKEN, FakeDatatoken(balance="1"), REQUESTER, "3")
    )
    # default amount is one token
    assert asyncio.run(dispenser.is_dispensable(DATATOKEN, FakeDatatoken(balance="1"), REQUESTER))


def test_is_dispensable_not_enough_dispenser_balance() -> None:
    dispenser, contract = make_dispenser()
    set_status(contract, max_tokens="10", max_balance="5", balance="2", is_minter=False)

    assert not asyncio.run(
        dispenser.is_dispensable(DATATOKEN, FakeDatatoken(balance="1"), REQUESTER, "3")
    )


def test_is_dispensable_minter() -> None:
    dispenser, contract = make_dispenser()
    set_status(contract, max_tokens="10", max_balance="5", balance="2", is_minter=True)

    assert asyncio.run(
        dispenser.is_dispensable(DATATOKEN, FakeDatatoken(balance="1"), REQUESTER, "3")
    )


def test_is_dispensable_requester_balance_too_high() -> None:
    dispenser, contract = make_dispenser()
    set_status(contract, max_tokens="10", max_balance="5", balance="100", is_minter=True)

    for requester_balance in ["6", "5"]:
        assert not asyncio.run(
            dispenser.is_dispensable(
                DATATOKEN, FakeDatatoken(balance=requester_balance), REQUESTER, "1"
            )
        )


def test_is_dispensable_amount_over_max_tokens() -> None:
    dispenser, contract = make_dispenser()
    set_status(contract, max_tokens="10", max_balance="5", balance="100", is_minter=True)
    datatoken = FakeDatatoken(balance="0")

    assert asyncio.run(dispenser.is_dispensable(DATATOKEN, datatoken, REQUESTER, "10"))
    assert not asyncio.run(
        dispenser.is_dispensable(DATATOKEN, datatoken, REQUESTER, "10.000000000000000001")
    )


def test_is_dispensable_balance_error() -> None:
    dispenser, contract = make_dispenser()
    set_status(contract)
    datatoken = FakeDatatoken(error=ConnectionError("node down"))

    assert not asyncio.run(dispenser.is_dispensable(DATATOKEN, datatoken, REQUESTER, "1"))


def test_mutators_send_estimate_plus_one() -> None:
    dispenser, contract = make_dispenser()
    calls = [
        ("create", dispenser.create(DATATOKEN, OWNER, "10", "5", ZERO_ADDRESS)),
        ("activate", dispenser.activate(DATATOKEN, "10", "5", OWNER)),
        ("deactivate", dispenser.deactivate(DATATOKEN, OWNER)),
        ("setAllowedSwapper", dispenser.set_allowed_swapper(DATATOKEN, OWNER, REQUESTER)),
        ("dispense", dispenser.dispense(DATATOKEN, REQUESTER, "2", REQUESTER)),
        ("ownerWithdraw", dispenser.owner_withdraw(DATATOKEN, OWNER)),
    ]

    for name, coroutine in calls:
        receipt = asyncio.run(coroutine)
        assert receipt["status"] == 1, f"{name} did not return a receipt"
        sent_name, _, tx = contract.sent[-1]
        assert sent_name == name
        assert tx["gas"] == GAS_ESTIMATE + 1
        assert tx["gasPrice"] == GAS_PRICE_WEI

    assert [tx["from"] for _, _, tx in contract.sent] == [
        OWNER,
        OWNER,
        OWNER,
        OWNER,
        REQUESTER,
        OWNER,
    ]


def test_create_converts_units() -> None:
    dispenser, contract = make_dispenser()
    asyncio.run(dispenser.create(DATATOKEN, OWNER, "10", "0.5", ZERO_ADDRESS))

    expected_args = (DATATOKEN_CHECKSUM, 10 * 10**18, 5 * 10**17, OWNER, ZERO_ADDRESS)
    assert contract.estimated[-1][1] == expected_args
    assert contract.sent[-1][1] == expected_args


def test_estimate_gas_delegates() -> None:
    dispenser, contract = make_dispenser()

    assert asyncio.run(dispenser.estimate_gas_activate(DATATOKEN, "1", "2", OWNER)) == GAS_ESTIMATE
    name, args, tx = contract.estimated[-1]
    assert name == "activate"
    assert args == (DATATOKEN_CHECKSUM, 10**18, 2 * 10**18)
    assert tx == {"from": OWNER}

    assert asyncio.run(dispenser.estimate_gas_dispense(DATATOKEN, REQUESTER)) == GAS_ESTIMATE
    name, args, tx = contract.estimated[-1]
    assert name == "dispense"
    assert args == (DATATOKEN_CHECKSUM, 10**18, REQUESTER)
    assert tx == {"from": REQUESTER}
    assert contract.sent == []


def test_create_raises_on_failure() -> None:
    dispenser, contract = make_dispenser()
    contract.send_error = ContractLogicError("execution reverted: already created")

    with pytest.raises(ContractLogicError):
        asyncio.run(dispenser.create(DATATOKEN, OWNER, "10", "5", ZERO_ADDRESS))


def test_soft_failing_mutators_return_none() -> None:
    dispenser, contract = make_dispenser()
    contract.send_error = ContractLogicError("execution reverted: not owner")

    assert asyncio.run(dispenser.activate(DATATOKEN, "10", "5", OWNER)) is None
    assert asyncio.run(dispenser.deactivate(DATATOKEN, OWNER)) is None
    assert asyncio.run(dispenser.set_allowed_swapper(DATATOKEN, OWNER, REQUESTER)) is None
    assert asyncio.run(dispenser.dispense(DATATOKEN, REQUESTER, "1", REQUESTER)) is None
    assert asyncio.run(dispenser.owner_withdraw(DATATOKEN, OWNER)) is None


def test_estimate_errors() -> None:
    dispenser, contract = make_dispenser()
    contract.estimate_error = ContractLogicError("execution reverted")

    # estimation sits inside the error handling of these
    assert asyncio.run(dispenser.activate(DATATOKEN, "10", "5", OWNER)) is None
    assert asyncio.run(dispenser.deactivate(DATATOKEN, OWNER)) is None
    assert asyncio.run(dispenser.set_allowed_swapper(DATATOKEN, OWNER, REQUESTER)) is None

    with pytest.raises(ContractLogicError):
        asyncio.run(dispenser.dispense(DATATOKEN, REQUESTER, "1", REQUESTER))
    with pytest.raises(ContractLogicError):
        asyncio.run(dispenser.owner_withdraw(DATATOKEN, OWNER))
    with pytest.raises(ContractLogicError):
        asyncio.run(dispenser.estimate_gas_deactivate(DATATOKEN, OWNER))
    assert contract.sent == []


def test_local_signing() -> None:
    dispenser, contract = make_dispenser()
    private_key = "0x" + "11" * 32
    signer = Account.from_key(private_key).address
    dispenser.set_credentials(signer, private_key)

    receipt = asyncio.run(dispenser.deactivate(DATATOKEN, signer))
    assert receipt["transactionHash"] == b"\x34" * 32
    assert len(dispenser.w3.eth.raw_transactions) == 1
    assert contract.sent[-1][2]["nonce"] == 7

    # cannot sign for another account
    assert asyncio.run(dispenser.deactivate(DATATOKEN, OWNER)) is None
    assert len(dispenser.w3.eth.raw_transactions) == 1


def test_datatoken_balance() -> None:
    w3 = FakeWeb3()
    datatoken = DatatokenWeb3Client(w3)
    contract = w3.eth.contract(address=Web3.to_checksum_address(DATATOKEN), abi=None)
    contract.call_results["balanceOf"] = 25 * 10**17

    assert asyncio.run(datatoken.balance(DATATOKEN, REQUESTER)) == "2.5"


def test_set_credentials_checks_key() -> None:
    dispenser, _ = make_dispenser()
    private_key = "0x" + "11" * 32

    with pytest.raises(ValueError):
        dispenser.set_credentials(OWNER, private_key)
    assert dispenser.private_key is None

    signer = Account.from_key(private_key).address
    dispenser.set_credentials(signer.lower(), private_key)
    assert dispenser.user_address == signer


def test_lowercase_addresses_are_checksummed() -> None:
    dispenser, contract = make_dispenser()
    owner = OWNER.lower()
    requester = REQUESTER.lower()
    calls = [
        dispenser.create(DATATOKEN, owner, "10", "5", ZERO_ADDRESS),
        dispenser.activate(DATATOKEN, "10", "5", owner),
        dispenser.deactivate(DATATOKEN, owner),
        dispenser.set_allowed_swapper(DATATOKEN, owner, requester),
        dispenser.dispense(DATATOKEN, requester, "2"),
        dispenser.owner_withdraw(DATATOKEN, owner),
    ]

    for coroutine in calls:
        assert asyncio.run(coroutine)["status"] == 1

    assert len(contract.sent) == 6
    for name, args, tx in contract.estimated + contract.sent:
        assert args[0] == DATATOKEN_CHECKSUM, f"{name} got {args[0]}"
        assert tx["from"] in (OWNER, REQUESTER)
    assert contract.sent[3][1][1] == REQUESTER
    assert contract.sent[4][1][2] == REQUESTER
    assert contract.sent[4][2]["from"] == REQUESTER

    assert asyncio.run(dispenser.estimate_gas_owner_withdraw(DATATOKEN, owner)) == GAS_ESTIMATE
    assert contract.estimated[-1][1] == (DATATOKEN_CHECKSUM,)
