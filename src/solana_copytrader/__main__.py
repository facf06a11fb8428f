"""Run the monitor: ``python -m solana_copytrader``."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from solana_copytrader.config import get_settings
from solana_copytrader.pipeline import Pipeline

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.get_logging_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Configuration: %s", settings.redacted_summary())

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(Pipeline(settings).run())


if __name__ == "__main__":
    main()
