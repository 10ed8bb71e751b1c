"""Command line entry point: connect to a pool and mine its jobs."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from .miner import DEFAULT_NONCE_LIMIT
from .stratum import PoolConnection

DEFAULT_USERNAME = "ITA_Miner"
DEFAULT_WORKERNAME = "worker1"


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stratumminer", description="Mine jobs from a Stratum pool."
    )
    parser.add_argument("address", help="pool address as host:port")
    parser.add_argument("-u", "--username", default=DEFAULT_USERNAME, help="pool account name")
    parser.add_argument("-w", "--workername", default=DEFAULT_WORKERNAME, help="worker name")
    parser.add_argument(
        "--nonce-limit",
        type=int,
        default=DEFAULT_NONCE_LIMIT,
        help="number of nonces tried per job",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the miner; return the process exit status."""
    args = _parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        conn = PoolConnection.connect(args.username, args.address, args.workername)
    except (ConnectionError, ValueError) as exc:
        print(f"stratumminer: {exc}", file=sys.stderr)
        return 1
    conn.nonce_limit = args.nonce_limit
    try:
        conn.handle_datastream()
    except (PermissionError, ConnectionError) as exc:
        print(f"stratumminer: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
    finally:
        conn.stream.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())