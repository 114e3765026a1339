"""Protean Engine runner for the ledger domain.

Only needed when events are processed asynchronously (the ``production``
overlay): the Engine feeds MaterialRequest events to the request stats
projector.

Usage:
    python src/server.py
    python src/server.py --test-mode   # drain pending messages and exit
"""

import argparse
import asyncio

from protean.server.engine import Engine

from ledger.domain import ledger


async def run(test_mode=False):
    ledger.init()
    engine = Engine(ledger, test_mode=test_mode)
    await engine.run()


def main():
    parser = argparse.ArgumentParser(description="SiteLedger Engine runner")
    parser.add_argument(
        "--test-mode",
        action="store_true",
        help="Process pending messages once and exit",
    )
    args = parser.parse_args()

    asyncio.run(run(test_mode=args.test_mode))


if __name__ == "__main__":
    main()
