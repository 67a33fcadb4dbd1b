"""Tests for the generic entity reconciler."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from chainsync.services.data_source import DataSource
from chainsync.services.reconciler import (
    EntityReconciler,
    FieldCorrection,
    gather_tolerant,
)


def items(*keys: str, value: str = "indexed") -> list[dict]:
    return [{"id": k, "value": value, "label": f"item {k}"} for k in keys]


class ChainValues:
    """Scriptable chain read returning a value per item id."""

    def __init__(self, values: dict[str, object]):
        self.values = values
        self.calls: list[str] = []

    async def __call__(self, item: dict) -> object:
        self.calls.append(item["id"])
        await asyncio.sleep(0)
        result = self.values[item["id"]]
        if isinstance(result, Exception):
            raise result
        return result


def make_reconciler(pull, read=None, **kwargs) -> EntityReconciler:
    corrections = [FieldCorrection("value", read)] if read is not None else []
    return EntityReconciler(
        name="Things",
        pull=pull,
        key=lambda item: item["id"],
        corrections=corrections,
        **kwargs,
    )


class TestGatherTolerant:
    """Tests for gather_tolerant."""

    @pytest.mark.asyncio
    async def test_outcomes_in_input_order(self):
        """Test results keep input order and capture failures."""

        async def ok(v):
            await asyncio.sleep(0.01 if v == 1 else 0)
            return v

        async def fail():
            raise ValueError("boom")

        outcomes = await gather_tolerant([ok(1), fail(), ok(3)])

        assert [o.ok for o in outcomes] == [True, False, True]
        assert outcomes[0].value == 1
        assert outcomes[2].value == 3
        assert isinstance(outcomes[1].error, ValueError)

    @pytest.mark.asyncio
    async def test_empty(self):
        """Test joining nothing."""
        assert await gather_tolerant([]) == []

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        """Test cancelling the caller cancels pending operations."""
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def slow():
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        task = asyncio.create_task(gather_tolerant([slow()]))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert cancelled.is_set()


class TestEntityReconciler:
    """Tests for EntityReconciler.refresh."""

    @pytest.mark.asyncio
    async def test_first_refresh(self):
        """Test pulled items are corrected and published."""
        read = ChainValues({"a": 1, "b": 2})
        reconciler = make_reconciler(
            AsyncMock(return_value=items("a", "b")),
            read,
            source=lambda: DataSource.BACKUP,
        )

        report = await reconciler.refresh()

        assert reconciler.snapshot == {
            "a": {"id": "a", "value": "1", "label": "item a"},
            "b": {"id": "b", "value": "2", "label": "item b"},
        }
        assert report.pulled == 2
        assert report.corrected == 2
        assert report.retained == 0
        assert report.added == 2
        assert report.total == 2
        assert report.source == DataSource.BACKUP
        assert reconciler.version == 1
        assert reconciler.last_report is report

    @pytest.mark.asyncio
    @pytest.mark.parametrize("pulled", [None, []])
    async def test_empty_pull_keeps_snapshot(self, pulled):
        """Test empty or failed pulls leave the snapshot untouched."""
        pull = AsyncMock(return_value=items("a"))
        read = ChainValues({"a": 1})
        reconciler = make_reconciler(pull, read)
        await reconciler.refresh()
        before = dict(reconciler.snapshot)

        pull.return_value = pulled
        report = await reconciler.refresh()

        assert report.skipped is True
        assert "No Things found" in report.error
        assert dict(reconciler.snapshot) == before
        assert reconciler.version == 1
        assert read.calls == ["a"]

    @pytest.mark.asyncio
    async def test_one_failed_read_keeps_previous_value(self):
        """Test a single failed read only affects its own field."""
        pull = AsyncMock(return_value=items("a", "b", "c"))
        await_values = ChainValues({"a": 10, "b": 10, "c": 10})
        reconciler = make_reconciler(pull, await_values)
        await reconciler.refresh()

        await_values.values = {"a": 20, "b": RuntimeError("rpc down"), "c": 20}
        report = await reconciler.refresh()

        assert reconciler.get("a")["value"] == "20"
        assert reconciler.get("b")["value"] == "10"
        assert reconciler.get("c")["value"] == "20"
        assert report.corrected == 2
        assert report.retained == 1
        assert report.updated == 3

    @pytest.mark.asyncio
    async def test_failed_read_for_new_key_uses_indexer_value(self):
        """Test a new key whose read fails falls back to the indexer value."""
        read = ChainValues({"a": RuntimeError("rpc down")})
        reconciler = make_reconciler(AsyncMock(return_value=items("a")), read)

        await reconciler.refresh()

        assert reconciler.get("a")["value"] == "indexed"

    @pytest.mark.asyncio
    async def test_absent_keys_retained(self):
        """Test keys missing from a pull keep their previous entry."""
        pull = AsyncMock(return_value=items("a", "b"))
        reconciler = make_reconciler(pull)
        await reconciler.refresh()
        entry_b = reconciler.get("b")

        pull.return_value = items("a", "c", value="new")
        await reconciler.refresh()

        assert set(reconciler.snapshot) == {"a", "b", "c"}
        assert reconciler.get("a")["value"] == "new"
        assert reconciler.get("b") is entry_b

    @pytest.mark.asyncio
    async def test_pulled_keys_replaced_wholesale(self):
        """Test a pulled key's entry is rebuilt from the new item."""
        pull = AsyncMock(return_value=[{"id": "a", "extra": 1}])
        reconciler = make_reconciler(pull)
        await reconciler.refresh()

        pull.return_value = [{"id": "a", "other": 2}]
        await reconciler.refresh()

        assert reconciler.get("a") == {"id": "a", "other": 2}

    @pytest.mark.asyncio
    async def test_merge_failure_keeps_previous_entry(self):
        """Test a merge error for one item keeps that item's entry."""

        def merge(item, corrected, previous):
            if item.get("broken"):
                raise KeyError("price")
            return {**item, **corrected}

        pull = AsyncMock(return_value=items("a", "b"))
        reconciler = make_reconciler(pull, merge=merge)
        await reconciler.refresh()
        entry_a = reconciler.get("a")

        pull.return_value = [{"id": "a", "broken": True}, {"id": "b", "value": "x"}]
        report = await reconciler.refresh()

        assert reconciler.get("a") is entry_a
        assert reconciler.get("b") == {"id": "b", "value": "x"}
        assert report.updated == 1

    @pytest.mark.asyncio
    async def test_replace_on_pull_drops_absent_keys(self):
        """Test replace mode publishes only the pulled keys."""
        pull = AsyncMock(return_value=items("a", "b"))
        reconciler = make_reconciler(pull, replace_on_pull=True)
        await reconciler.refresh()

        pull.return_value = items("b", "c")
        report = await reconciler.refresh()

        assert set(reconciler.snapshot) == {"b", "c"}
        assert report.total == 2

    @pytest.mark.asyncio
    async def test_replace_on_pull_keeps_entry_on_merge_failure(self):
        """Test replace mode still keeps a pulled key whose merge failed."""

        def merge(item, corrected, previous):
            if item.get("broken"):
                raise ValueError("unavailable")
            return {**item, **corrected}

        pull = AsyncMock(return_value=items("a", "b"))
        reconciler = make_reconciler(pull, merge=merge, replace_on_pull=True)
        await reconciler.refresh()
        entry_a = reconciler.get("a")

        pull.return_value = [{"id": "a", "broken": True}]
        await reconciler.refresh()

        assert dict(reconciler.snapshot) == {"a": entry_a}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("pulled,expected", [([], set()), (None, {"a"})])
    async def test_replace_on_pull_empty(self, pulled, expected):
        """Test an empty list clears a replace-mode snapshot, a failed pull does not."""
        pull = AsyncMock(return_value=items("a"))
        reconciler = make_reconciler(pull, replace_on_pull=True)
        await reconciler.refresh()

        pull.return_value = pulled
        report = await reconciler.refresh()

        assert set(reconciler.snapshot) == expected
        assert report.skipped is (pulled is None)

    @pytest.mark.asyncio
    async def test_reads_issued_concurrently(self):
        """Test all chain reads are in flight at the same time."""
        in_flight = 0
        peak = 0

        async def read(item):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return 1

        reconciler = EntityReconciler(
            name="Things",
            pull=AsyncMock(return_value=items("a", "b", "c")),
            key=lambda item: item["id"],
            corrections=[FieldCorrection("value", read), FieldCorrection("other", read)],
        )

        await reconciler.refresh()

        assert peak == 6

    @pytest.mark.asyncio
    async def test_readers_see_previous_snapshot_during_refresh(self):
        """Test the snapshot is only replaced once the refresh completes."""
        pull = AsyncMock(return_value=items("a"))
        reconciler = make_reconciler(pull, ChainValues({"a": 1}))
        await reconciler.refresh()
        seen = []

        async def read(item):
            seen.append(dict(reconciler.snapshot))
            return 2

        reconciler.corrections = (FieldCorrection("value", read),)
        pull.return_value = items("a", "b")
        await reconciler.refresh()

        assert seen[0] == {"a": {"id": "a", "value": "1", "label": "item a"}}
        assert reconciler.get("b")["value"] == "2"

    @pytest.mark.asyncio
    async def test_snapshot_is_read_only(self):
        """Test consumers cannot mutate the published snapshot."""
        reconciler = make_reconciler(AsyncMock(return_value=items("a")))
        await reconciler.refresh()

        with pytest.raises(TypeError):
            reconciler.snapshot["b"] = {}

    @pytest.mark.asyncio
    async def test_needs_correction_filter(self):
        """Test only selected items get chain reads."""
        read = ChainValues({"a": 1, "b": 2})
        reconciler = make_reconciler(
            AsyncMock(return_value=items("a", "b")),
            read,
            needs_correction=lambda item: item["id"] == "b",
        )

        await reconciler.refresh()

        assert read.calls == ["b"]
        assert reconciler.get("a")["value"] == "indexed"
        assert reconciler.get("b")["value"] == "2"

    @pytest.mark.asyncio
    async def test_items_without_key_skipped(self):
        """Test malformed items are dropped from the pull."""
        reconciler = make_reconciler(
            AsyncMock(return_value=[{"value": "orphan"}, {"id": "a", "value": "x"}])
        )

        report = await reconciler.refresh()

        assert report.pulled == 1
        assert list(reconciler.snapshot) == ["a"]

    @pytest.mark.asyncio
    async def test_read_raising_before_await_is_isolated(self):
        """Test a read failing on a missing item field is a partial failure."""
        reconciler = make_reconciler(
            AsyncMock(return_value=items("a")),
            lambda item: item["missing"],
        )

        report = await reconciler.refresh()

        assert report.retained == 1
        assert reconciler.get("a")["value"] == "indexed"
