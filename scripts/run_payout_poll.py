from __future__ import annotations

import argparse
import asyncio
import logging

from app.providers.factory import close_providers
from services.pending_batches import run_pending_batches
from settings import settings


async def _poll_once(limit: int) -> dict:
    try:
        return await run_pending_batches(limit=limit)
    finally:
        await close_providers()


def main() -> None:
    parser = argparse.ArgumentParser(description="Poll the payout provider once for every pending batch.")
    parser.add_argument("--limit", type=int, default=settings.PAYOUT_POLL_BATCH_LIMIT)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    summary = asyncio.run(_poll_once(args.limit))

    print(
        "counts:",
        f"expenses_checked={summary['expenses_checked']}",
        f"batches_checked={summary['batches_checked']}",
        f"batches_failed={summary['batches_failed']}",
        f"paid={summary['paid']}",
        f"errored={summary['errored']}",
        f"in_flight={summary['in_flight']}",
        f"already_applied={summary['already_applied']}",
        f"degraded={summary['degraded']}",
        f"item_failures={summary['item_failures']}",
    )


if __name__ == "__main__":
    main()
