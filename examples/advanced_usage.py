#!/usr/bin/env python3
"""
Advanced usage example for the thctl library
"""

import json

from thctl import CallContext, LotusClient, MinerInfoAggregator, load_config
from thctl.exceptions import ClientError, RPCTimeoutError
from thctl.response_format import format_json, standard_response


def main():
    # Explicit overrides win over the environment and .thctl.env
    config = load_config(endpoint="/ip4/127.0.0.1/tcp/1234/http", timeout=10.0, retry_count=2)

    miner_ids = ["f01234", "f05678", "f09999"]
    results = []

    with LotusClient(config) as client:
        aggregator = MinerInfoAggregator(client, timeout=config.timeout)

        for miner_id in miner_ids:
            print(f"\n{'='*60}")
            print(f"Aggregating {miner_id}")
            print('='*60)

            try:
                aggregate = aggregator.aggregate(CallContext.background(), miner_id)
            except RPCTimeoutError as e:
                print(f"WARNING {miner_id} timed out, keeping partial data")
                aggregate = e.partial
            except ClientError as e:
                print(f"ERROR {miner_id}: {e}")
                continue

            if aggregate is None:
                continue

            print(f"Raw power: {aggregate.formatted['raw_byte_power']}")
            print(f"Network share: {aggregate.formatted['network_power_share']}")
            print(f"Completeness: {aggregate.data_completeness:.0%}")
            for error in aggregate.errors:
                print(f"  unavailable: {error}")
            results.append(aggregate)

    response = standard_response(results, operation="miner.info", data_type="miner")
    print(format_json(response, pretty=True))

    # Summary
    print(f"\n{'='*60}")
    print("AGGREGATION SUMMARY")
    print('='*60)
    print(json.dumps({a.miner_id: a.sources for a in results}, indent=2))


if __name__ == "__main__":
    main()
