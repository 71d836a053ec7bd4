#!/usr/bin/env python3
"""
OPS Quota Check

Makes one lightweight OPS call and prints the fair-use quota reported
with the response. Optionally prints usage statistics for a time range.
Run with: python scripts/check_quota.py

Credentials are read from EPO_OPS_CONSUMER_KEY / EPO_OPS_CONSUMER_SECRET
(environment or .env).

Options:
    --number        Publication to fetch (docdb), default EP.1000000.B1
    --usage         Also print usage statistics, e.g. 01/10/2025~07/10/2025
"""

import argparse
import asyncio
import json
import logging
import sys

from epo_ops.client import OPSClient
from epo_ops.core.api_errors import APIError
from epo_ops.core.config import get_settings

logger = logging.getLogger(__name__)


async def run(args) -> int:
    async with OPSClient.from_settings() as client:
        try:
            await client.get_biblio("publication", "docdb", args.number)
        except APIError as e:
            logger.error(f"Request failed: {e}")
            return 1

        quota = client.get_last_quota()
        if quota is None:
            print("No quota headers returned")
        else:
            print(json.dumps(quota.to_dict(), indent=2))

        if args.usage:
            stats = await client.get_usage_stats(args.usage)
            print(f"\nUsage {stats.time_range}:")
            print(f"  Messages: {stats.total_messages}")
            print(f"  Response bytes: {stats.total_response_size}")
    return 0


def main():
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Print the current OPS fair-use quota")
    parser.add_argument(
        "--number", type=str, default="EP.1000000.B1",
        help="Publication number in docdb format"
    )
    parser.add_argument(
        "--usage", type=str, default=None,
        help="Usage statistics time range (dd/mm/yyyy or dd/mm/yyyy~dd/mm/yyyy)"
    )
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
