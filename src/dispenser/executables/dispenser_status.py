"""
Print the status of a datatoken dispenser and, optionally, whether a
requester can get tokens from it
"""
import argparse
import asyncio
import sys

from web3 import AsyncWeb3

from dispenser.dispenser_web3_client import DispenserWeb3Client
from utils import logger
from utils.network_config import NETWORK_CONFIGS, get_network_config
from web3_utils.datatoken_web3_client import DatatokenWeb3Client


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--network", default="unknown", help=f"{list(NETWORK_CONFIGS.keys())}")
    parser.add_argument("--node-uri", default=None, help="Override the network's node URI")
    parser.add_argument("--dispenser", default=None, help="Dispenser contract address")
    parser.add_argument("--datatoken", required=True, help="Datatoken address")
    parser.add_argument("--requester", default=None)
    parser.add_argument("--amount", default="1")
    return parser.parse_args()


async def run(args: argparse.Namespace) -> bool:
    config = get_network_config(args.network)
    node_uri = args.node_uri or config["node_uri"]
    w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(node_uri))

    dispenser = DispenserWeb3Client(w3, dispenser_address=args.dispenser, config=config)
    status = await dispenser.status(args.datatoken)
    if status is None:
        logger.print_fail(f"No dispenser for {args.datatoken} on {config['network']}")
        return False

    logger.print_bold(f"Dispenser for {args.datatoken}:")
    for key, value in status.items():
        logger.print_ok_blue(f"{key}: {value}")

    if args.requester:
        datatoken = DatatokenWeb3Client(w3, config)
        dispensable = await dispenser.is_dispensable(
            args.datatoken, datatoken, args.requester, args.amount
        )
        if dispensable:
            logger.print_ok(f"{args.amount} tokens can be dispensed to {args.requester}")
        else:
            logger.print_warn(f"{args.amount} tokens cannot be dispensed to {args.requester}")

    return True


def main() -> None:
    args = parse_args()
    if not asyncio.run(run(args)):
        sys.exit(1)


if __name__ == "__main__":
    main()
