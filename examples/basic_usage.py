#!/usr/bin/env python3
"""
Basic usage example for the thctl library
"""

from thctl import CallContext, LotusClient, load_config, format_bytes, format_fixed_point
from thctl.exceptions import ClientError


def main():
    # Settings from LOTUS_API_URL / LOTUS_API_TOKEN or a .thctl.env file
    config = load_config()
    miner_id = "f01234"

    with LotusClient(config) as client:
        ctx = CallContext.background().with_timeout(config.timeout)

        try:
            head = client.chain_head(ctx)
            print(f"Chain head height: {head.height}")

            info = client.get_miner_info(ctx, miner_id)
            print(f"Owner: {info.owner}")
            print(f"Worker: {info.worker}")
            print(f"Sector size: {format_bytes(info.sector_size)}")

            balance = client.get_miner_available_balance(ctx, miner_id)
            print(f"Available balance: {format_fixed_point(balance)}")

            sectors = client.list_sectors(ctx, miner_id, only_active=True)
            print(f"Active sectors: {len(sectors)}")
        except ClientError as e:
            print(f"ERROR {e.kind.value}: {e}")


if __name__ == "__main__":
    main()
