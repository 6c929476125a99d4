"""Date-partitioned artifact storage.

Each calendar day gets one folder under the data directory::

    <data_dir>/2025-11-30/original_chart.png
    <data_dir>/2025-11-30/annotated_chart.png
    <data_dir>/2025-11-30/analysis.json

Disk IO runs in a worker thread so request handlers stay responsive.
"""

from __future__ import annotations

import asyncio
import json
import shutil
from datetime import date
from pathlib import Path
from typing import Any

from cyclescope.core.dates import is_older_than, is_partition_key, today_partition_key
from cyclescope.core.logging import get_logger

logger = get_logger("storage")

ORIGINAL_CHART = "original_chart.png"
ANNOTATED_CHART = "annotated_chart.png"
ANALYSIS_JSON = "analysis.json"

DEFAULT_RETENTION_DAYS = 30


class PartitionedFileStore:
    """Maps a YYYY-MM-DD partition key to a folder of artifacts."""

    def __init__(self, root: str | Path, retention_days: int = DEFAULT_RETENTION_DAYS):
        self.root = Path(root)
        self.retention_days = retention_days

    def partition_dir(self, key: str | None = None) -> Path:
        return self.root / (key or today_partition_key())

    def file_path(self, filename: str, key: str | None = None) -> Path:
        return self.partition_dir(key) / filename

    def ensure_root(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Data directory ensured: {self.root}")
        return self.root

    def ensure_partition(self, key: str | None = None) -> Path:
        path = self.partition_dir(key)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def file_exists(self, filename: str, key: str | None = None) -> bool:
        return self.file_path(filename, key).is_file()

    async def save_file(self, filename: str, data: bytes | str, key: str | None = None) -> Path:
        """Write bytes (or text) into the partition, creating it if needed."""

        def _write() -> Path:
            self.ensure_partition(key)
            path = self.file_path(filename, key)
            if isinstance(data, str):
                path.write_text(data, encoding="utf-8")
            else:
                path.write_bytes(data)
            return path

        path = await asyncio.to_thread(_write)
        logger.info(f"File saved: {path}")
        return path

    async def save_json(self, filename: str, payload: Any, key: str | None = None) -> Path:
        return await self.save_file(filename, json.dumps(payload, indent=2, default=str), key)

    async def read_file(self, filename: str, key: str | None = None) -> bytes:
        """Read a partition file. Raises FileNotFoundError if absent."""
        path = self.file_path(filename, key)
        return await asyncio.to_thread(path.read_bytes)

    def list_partitions(self) -> list[str]:
        """Partition keys present on disk, newest first."""
        if not self.root.is_dir():
            return []
        keys = [
            entry.name
            for entry in self.root.iterdir()
            if entry.is_dir() and is_partition_key(entry.name)
        ]
        return sorted(keys, reverse=True)

    def latest_partition(self) -> str | None:
        partitions = self.list_partitions()
        return partitions[0] if partitions else None

    def prune(self, retention_days: int | None = None, today: date | None = None) -> int:
        """Delete partitions older than the retention window.

        A partition that cannot be parsed or removed is logged and skipped.
        Returns the number of partitions removed.
        """
        days = retention_days if retention_days is not None else self.retention_days
        removed = 0

        for key in self.list_partitions():
            try:
                if not is_older_than(key, days, today=today):
                    continue
                shutil.rmtree(self.partition_dir(key))
                logger.info(f"Removed old partition: {key}")
                removed += 1
            except (OSError, ValueError) as e:
                logger.error(f"Failed to remove partition {key}: {e}")

        if removed:
            logger.info(f"Cleanup complete: {removed} partitions removed")
        else:
            logger.info("Cleanup complete: no old partitions to remove")
        return removed

    async def prune_async(self, retention_days: int | None = None) -> int:
        return await asyncio.to_thread(self.prune, retention_days)
