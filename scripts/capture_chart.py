#!/usr/bin/env python3
"""Capture today's chart once and print where it was saved."""
import asyncio
import sys

from cyclescope.core.config import settings
from cyclescope.core.dates import today_partition_key
from cyclescope.core.exceptions import AppException
from cyclescope.core.logging import setup_logging
from cyclescope.services.capture import ChartCaptureEngine
from cyclescope.services.storage import PartitionedFileStore


async def main() -> int:
    setup_logging()
    if not settings.chart_url:
        print("CHART_URL is not set")
        return 1

    date = sys.argv[1] if len(sys.argv) > 1 else today_partition_key()
    store = PartitionedFileStore(settings.data_dir, settings.retention_days)
    engine = ChartCaptureEngine.from_settings(store)

    try:
        path = await engine.capture_with_retry(date)
    except AppException as e:
        print(f"Capture failed: {e.message}")
        return 1

    print(f"Chart saved to: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
