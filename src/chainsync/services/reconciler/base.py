"""Generic indexer + live chain read reconciliation.

Each entity type is described by three things: a pull function returning
the indexer's items, a list of field corrections read live from the chain,
and a merge function building the published record. ``EntityReconciler``
runs the refresh pass shared by all of them.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Generic, Iterable, Mapping, Protocol, Sequence, TypeVar

from chainsync.core.exceptions import EmptyPullFailure, PartialReadFailure
from chainsync.services.data_source.schemas import DataSource

logger = logging.getLogger(__name__)

T = TypeVar("T")

Record = dict[str, Any]
PullFn = Callable[[], Awaitable[list[Record] | None]]
KeyFn = Callable[[Record], str]
MergeFn = Callable[[Record, Record, Record | None], Record]


@dataclass
class Outcome(Generic[T]):
    """Result of one operation joined by ``gather_tolerant``."""

    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def gather_tolerant(aws: Iterable[Awaitable[T]]) -> list[Outcome[T]]:
    """Run awaitables concurrently and wait for all of them.

    Individual failures are captured in the returned outcomes (same order as
    the input) instead of aborting the batch. Cancelling the caller still
    cancels every pending operation.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    return [
        Outcome(error=r) if isinstance(r, BaseException) else Outcome(value=r)
        for r in results
    ]


@dataclass(frozen=True)
class FieldCorrection:
    """A field whose value must come from a live chain read."""

    field: str
    read: Callable[[Record], Awaitable[Any]]
    convert: Callable[[Any], Any] = str


@dataclass
class MergeReport:
    """Outcome of one reconciler refresh."""

    entity: str
    source: DataSource | None = None
    pulled: int = 0
    corrected: int = 0
    retained: int = 0
    added: int = 0
    updated: int = 0
    total: int = 0
    skipped: bool = False
    error: str | None = None
    duration_ms: float = 0.0
    finished_at: datetime | None = None


class Refreshable(Protocol):
    """Anything the scheduler can fan out to."""

    name: str

    async def refresh(self) -> MergeReport: ...


def default_merge(item: Record, corrected: Record, previous: Record | None) -> Record:
    return {**item, **corrected}


class EntityReconciler:
    """Keeps one entity snapshot in sync with the indexer and the chain.

    Refresh pass:
    1. Pull the item list (an empty or failed pull keeps the snapshot as is)
    2. Issue one concurrent chain read per (item, correction)
    3. Join all reads; a failed read keeps the previous value of that field
    4. Merge pulled items over the previous snapshot; keys missing from
       the pull are kept unchanged unless ``replace_on_pull`` is set
    5. Publish the new snapshot by swapping the reference

    The reconciler is the only writer of its snapshot. Readers get a
    read-only view of a fully built mapping.
    """

    def __init__(
        self,
        name: str,
        pull: PullFn,
        key: KeyFn,
        corrections: Sequence[FieldCorrection] = (),
        merge: MergeFn = default_merge,
        needs_correction: Callable[[Record], bool] | None = None,
        source: Callable[[], DataSource] | None = None,
        replace_on_pull: bool = False,
    ):
        """Initialize reconciler.

        Args:
            name: Entity name used in logs and reports
            pull: Returns the indexer items or None
            key: Natural key of an item
            corrections: Chain-authoritative fields
            merge: Builds a record from (item, corrected fields, previous record)
            needs_correction: Selects items that get chain reads (default all)
            source: Reports which indexer served the pull
            replace_on_pull: Publish only the pulled keys; an empty list
                then clears the snapshot instead of being skipped
        """
        self.name = name
        self._pull = pull
        self._key = key
        self.corrections = tuple(corrections)
        self._merge = merge
        self._needs_correction = needs_correction
        self._source = source
        self.replace_on_pull = replace_on_pull

        self._snapshot: dict[str, Record] = {}
        self.version = 0
        self.last_report: MergeReport | None = None

    @property
    def snapshot(self) -> Mapping[str, Record]:
        """Read-only view of the published snapshot."""
        return MappingProxyType(self._snapshot)

    def get(self, key: str) -> Record | None:
        return self._snapshot.get(key)

    def values(self) -> list[Record]:
        return list(self._snapshot.values())

    def __len__(self) -> int:
        return len(self._snapshot)

    async def refresh(self) -> MergeReport:
        """Run one reconciliation pass."""
        started = time.monotonic()
        logger.debug(f"Updating {self.name}")
        report = MergeReport(entity=self.name)

        items = await self._pull()
        if self._source is not None:
            report.source = self._source()

        keyed = self._keyed_items(items or [])
        if not keyed and (items is None or not self.replace_on_pull):
            failure = EmptyPullFailure(self.name)
            logger.warning(str(failure))
            report.skipped = True
            report.error = str(failure)
            report.total = len(self._snapshot)
            return self._finish(report, started)

        report.pulled = len(keyed)
        previous_snapshot = self._snapshot
        corrected_by_index = await self._read_corrections(keyed, previous_snapshot, report)

        merged: dict[str, Record] = {}
        for idx, (key, item) in enumerate(keyed):
            previous = previous_snapshot.get(key)
            try:
                merged[key] = self._merge(item, corrected_by_index.get(idx, {}), previous)
            except Exception as e:
                logger.warning(f"{self.name}[{key}] merge failed, keeping previous entry: {e}")
                if previous is not None:
                    merged[key] = previous
                continue
            if previous is None:
                report.added += 1
            else:
                report.updated += 1

        if self.replace_on_pull:
            next_snapshot = merged
            dropped = len(previous_snapshot.keys() - merged.keys())
            if dropped:
                logger.info(f"{self.name}: dropped {dropped} entries no longer pulled")
        else:
            next_snapshot = dict(previous_snapshot)
            next_snapshot.update(merged)

        if len(next_snapshot) > len(previous_snapshot):
            logger.info(
                f"{self.name} merging, from {len(previous_snapshot)} to {len(next_snapshot)} entries"
            )

        # Publish
        self._snapshot = next_snapshot
        self.version += 1
        report.total = len(next_snapshot)
        return self._finish(report, started)

    def _keyed_items(self, items: list[Record]) -> list[tuple[str, Record]]:
        keyed: list[tuple[str, Record]] = []
        for item in items:
            try:
                keyed.append((self._key(item), item))
            except (KeyError, TypeError, AttributeError) as e:
                logger.warning(f"{self.name}: skipping item without key ({e!r})")
        return keyed

    async def _read_corrections(
        self,
        keyed: list[tuple[str, Record]],
        previous_snapshot: Mapping[str, Record],
        report: MergeReport,
    ) -> dict[int, Record]:
        """Read every correction concurrently and resolve each field value."""
        if not self.corrections:
            return {}

        jobs: list[tuple[int, FieldCorrection]] = []
        reads: list[Awaitable[Any]] = []
        for idx, (_, item) in enumerate(keyed):
            if self._needs_correction is not None and not self._needs_correction(item):
                continue
            for correction in self.corrections:
                jobs.append((idx, correction))
                reads.append(_invoke(correction.read, item))

        outcomes = await gather_tolerant(reads)

        resolved: dict[int, Record] = {}
        for (idx, correction), outcome in zip(jobs, outcomes):
            key, item = keyed[idx]
            fields = resolved.setdefault(idx, {})
            if outcome.ok:
                try:
                    fields[correction.field] = correction.convert(outcome.value)
                    report.corrected += 1
                    continue
                except (TypeError, ValueError) as e:
                    failure = PartialReadFailure(self.name, key, correction.field, e)
            else:
                failure = PartialReadFailure(self.name, key, correction.field, outcome.error)

            logger.debug(str(failure))
            report.retained += 1
            previous = previous_snapshot.get(key)
            if previous is not None and correction.field in previous:
                fields[correction.field] = previous[correction.field]
            else:
                fields[correction.field] = item.get(correction.field)

        if report.retained:
            logger.warning(
                f"{self.name}: {report.retained} of {len(jobs)} chain reads failed, "
                f"previous values kept"
            )
        return resolved

    def _finish(self, report: MergeReport, started: float) -> MergeReport:
        report.duration_ms = (time.monotonic() - started) * 1000
        report.finished_at = datetime.now(timezone.utc)
        self.last_report = report
        return report


async def _invoke(read: Callable[[Record], Awaitable[Any]], item: Record) -> Any:
    # Errors raised while building the call are captured like read errors
    return await read(item)
