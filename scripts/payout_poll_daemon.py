# scripts/payout_poll_daemon.py
from __future__ import annotations

import asyncio
import logging

from app.payouts.deps import default_deps
from app.providers.factory import close_providers
from services.pending_batches import run_pending_batches
from settings import settings


logger = logging.getLogger("payout_poll_daemon")


async def _loop(interval: int) -> None:
    deps = default_deps()
    try:
        while True:
            summary = await run_pending_batches(deps)
            logger.info(
                "Payout poll | batches_checked=%s batches_failed=%s paid=%s errored=%s in_flight=%s item_failures=%s",
                summary.get("batches_checked"),
                summary.get("batches_failed"),
                summary.get("paid"),
                summary.get("errored"),
                summary.get("in_flight"),
                summary.get("item_failures"),
            )
            await asyncio.sleep(interval)
    finally:
        await close_providers()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    interval = settings.PAYOUT_POLL_INTERVAL_SECONDS
    logger.info("Payout poll daemon starting; interval=%ss", interval)
    try:
        asyncio.run(_loop(interval))
    except KeyboardInterrupt:
        logger.info("Payout poll daemon exiting")


if __name__ == "__main__":
    main()
