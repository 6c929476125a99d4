"""Tests for the partitioned file store."""

from __future__ import annotations

import json
import shutil
from datetime import date
from unittest.mock import patch

import pytest

from cyclescope.services.storage import (
    ANALYSIS_JSON,
    ORIGINAL_CHART,
    PartitionedFileStore,
)


class TestFiles:
    """Writing and reading partition files."""

    @pytest.mark.asyncio
    async def test_save_file_creates_partition(self, store: PartitionedFileStore):
        path = await store.save_file(ORIGINAL_CHART, b"\x89PNG", "2025-11-30")

        assert path == store.root / "2025-11-30" / ORIGINAL_CHART
        assert path.read_bytes() == b"\x89PNG"
        assert store.file_exists(ORIGINAL_CHART, "2025-11-30")

    @pytest.mark.asyncio
    async def test_save_json(self, store: PartitionedFileStore):
        await store.save_json(ANALYSIS_JSON, {"layer1": {"a": 1}}, "2025-11-30")

        raw = await store.read_file(ANALYSIS_JSON, "2025-11-30")
        assert json.loads(raw) == {"layer1": {"a": 1}}

    @pytest.mark.asyncio
    async def test_read_missing_file_raises(self, store: PartitionedFileStore):
        with pytest.raises(FileNotFoundError):
            await store.read_file(ORIGINAL_CHART, "2025-11-30")

    def test_file_exists_false_for_missing(self, store: PartitionedFileStore):
        assert not store.file_exists(ORIGINAL_CHART, "2025-11-30")


class TestPartitions:
    """Listing and pruning."""

    def test_list_partitions_missing_root(self, tmp_path):
        store = PartitionedFileStore(tmp_path / "nope")
        assert store.list_partitions() == []
        assert store.latest_partition() is None

    def test_list_partitions_sorted_desc_and_filtered(self, store: PartitionedFileStore):
        for key in ["2025-11-28", "2025-11-30", "2025-11-29"]:
            store.ensure_partition(key)
        (store.root / "scratch").mkdir()
        (store.root / "2025-12-01.txt").write_text("x")

        assert store.list_partitions() == ["2025-11-30", "2025-11-29", "2025-11-28"]
        assert store.latest_partition() == "2025-11-30"

    def test_prune_removes_only_old_partitions(self, store: PartitionedFileStore):
        for key in ["2025-10-01", "2025-10-30", "2025-10-31", "2025-11-30"]:
            store.ensure_partition(key)

        removed = store.prune(today=date(2025, 11, 30))

        assert removed == 2
        assert store.list_partitions() == ["2025-11-30", "2025-10-31"]

    def test_prune_custom_retention(self, store: PartitionedFileStore):
        store.ensure_partition("2025-11-25")
        store.ensure_partition("2025-11-30")

        assert store.prune(retention_days=3, today=date(2025, 11, 30)) == 1
        assert store.list_partitions() == ["2025-11-30"]

    def test_prune_skips_partition_that_cannot_be_removed(self, store: PartitionedFileStore):
        store.ensure_partition("2025-01-01")
        store.ensure_partition("2025-01-02")

        real_rmtree = shutil.rmtree

        def flaky_rmtree(path, *args, **kwargs):
            if path.name == "2025-01-02":
                raise PermissionError("locked")
            return real_rmtree(path, *args, **kwargs)

        with patch("cyclescope.services.storage.shutil.rmtree", side_effect=flaky_rmtree):
            removed = store.prune(today=date(2025, 11, 30))

        assert removed == 1
        assert store.list_partitions() == ["2025-01-02"]

    def test_prune_empty_store(self, store: PartitionedFileStore):
        assert store.prune(today=date(2025, 11, 30)) == 0
