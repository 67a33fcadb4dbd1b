"""Minting hub positions and their minting updates (V1 and V2)."""

import logging
import time
from collections import defaultdict
from typing import Any

from web3 import Web3

from chainsync.core.exceptions import PartialReadFailure
from chainsync.infrastructure.blockchain.contracts import ContractReader
from chainsync.infrastructure.indexer.query import DEFAULT_LIMIT, ListQuery
from chainsync.services.data_source.router import SourceRouter
from chainsync.services.reconciler.base import (
    EntityReconciler,
    FieldCorrection,
    Record,
    gather_tolerant,
)

logger = logging.getLogger(__name__)

FIVE_DAYS_SECONDS = 5 * 24 * 60 * 60

_COMMON_FIELDS = (
    "position", "owner", "zchf", "collateral", "price",
    "created", "isOriginal", "isClone", "denied", "closed", "original",
    "minimumCollateral", "reserveContribution",
    "start", "cooldown", "expiration", "challengePeriod",
    "zchfName", "zchfSymbol", "zchfDecimals",
    "collateralName", "collateralSymbol", "collateralDecimals", "collateralBalance",
    "limitForClones", "availableForClones", "minted",
)

POSITION_V1_FIELDS = _COMMON_FIELDS + (
    "annualInterestPPM", "limitForPosition", "availableForPosition",
)

POSITION_V2_FIELDS = _COMMON_FIELDS + (
    "parent", "riskPremiumPPM", "availableForMinting",
)

_MINTING_UPDATE_FIELDS = (
    "id", "count", "txHash", "created", "position", "owner", "isClone",
    "collateral", "collateralName", "collateralSymbol", "collateralDecimals",
    "size", "price", "minted", "sizeAdjusted", "priceAdjusted", "mintedAdjusted",
    "annualInterestPPM", "reserveContribution", "feeTimeframe", "feePPM", "feePaid",
)

MINTING_UPDATE_V1_FIELDS = _MINTING_UPDATE_FIELDS
MINTING_UPDATE_V2_FIELDS = _MINTING_UPDATE_FIELDS + ("basePremiumPPM", "riskPremiumPPM")

ADDRESS_FIELDS = ("position", "owner", "zchf", "collateral", "original")
INTEGER_FIELDS = ("created", "start", "cooldown", "expiration", "challengePeriod")


def position_key(item: Record) -> str:
    return item["position"].lower()


def _normalize(item: Record, address_fields: tuple[str, ...]) -> Record:
    record = dict(item)
    for name in address_fields:
        record[name] = Web3.to_checksum_address(item[name])
    for name in INTEGER_FIELDS:
        record[name] = int(item[name])
    return record


def merge_position_v1(item: Record, corrected: Record, previous: Record | None) -> Record:
    """Build a V1 position record."""
    record = _normalize(item, ADDRESS_FIELDS)
    record.update(corrected)
    record["version"] = 1
    return record


def minting_update_key(item: Record) -> str:
    return f"{item['position'].lower()}-{int(item['count'])}"


def _versioned_update(version: int):
    def merge(item: Record, corrected: Record, previous: Record | None) -> Record:
        record = dict(item)
        for name in ("position", "owner", "collateral"):
            record[name] = Web3.to_checksum_address(item[name])
        record["count"] = int(item["count"])
        record["created"] = int(item["created"])
        record["id"] = minting_update_key(item)
        record["version"] = version
        return record

    return merge


class PositionsService:
    """Keeps the V1 and V2 position and minting update snapshots and serves read views."""

    def __init__(
        self,
        router: SourceRouter,
        reader: ContractReader,
        savings_address: str,
        limit: int = DEFAULT_LIMIT,
    ):
        self.router = router
        self.reader = reader
        self.savings_address = savings_address
        self._lead_rate_ppm: int | None = None

        self.v1_query = ListQuery(
            entity="mintingHubV1PositionV1s",
            fields=POSITION_V1_FIELDS,
            order_by="created",
            limit=limit,
        )
        self.v2_query = ListQuery(
            entity="mintingHubV2PositionV2s",
            fields=POSITION_V2_FIELDS,
            order_by="created",
            limit=limit,
        )

        self.v1 = EntityReconciler(
            name="Positions V1",
            pull=lambda: self.router.fetch_items(self.v1_query),
            key=position_key,
            corrections=[
                FieldCorrection(
                    "collateralBalance",
                    lambda p: self.reader.balance_of(p["collateral"], p["position"]),
                ),
                FieldCorrection(
                    "minted",
                    lambda p: self.reader.position_v1_call(p["position"], "minted"),
                ),
                FieldCorrection(
                    "availableForClones",
                    lambda p: self.reader.position_v1_call(p["position"], "limitForClones"),
                ),
            ],
            merge=merge_position_v1,
            source=lambda: self.router.current_source,
        )
        self.v2 = EntityReconciler(
            name="Positions V2",
            pull=self._pull_v2,
            key=position_key,
            corrections=[
                FieldCorrection(
                    "collateralBalance",
                    lambda p: self.reader.balance_of(p["collateral"], p["position"]),
                ),
                FieldCorrection(
                    "minted",
                    lambda p: self.reader.position_v2_call(p["position"], "minted"),
                ),
                FieldCorrection(
                    "availableForClones",
                    lambda p: self.reader.position_v2_call(p["original"], "availableForClones"),
                ),
                FieldCorrection(
                    "availableForMinting",
                    lambda p: self.reader.position_v2_call(p["position"], "availableForMinting"),
                ),
            ],
            merge=self._merge_v2,
            source=lambda: self.router.current_source,
        )
        self.minting_updates_v1 = self._minting_update_reconciler(
            "MintingUpdates V1", "mintingHubV1MintingUpdateV1s", MINTING_UPDATE_V1_FIELDS, 1, limit
        )
        self.minting_updates_v2 = self._minting_update_reconciler(
            "MintingUpdates V2", "mintingHubV2MintingUpdateV2s", MINTING_UPDATE_V2_FIELDS, 2, limit
        )

    def _minting_update_reconciler(self, name, entity, fields, version, limit) -> EntityReconciler:
        query = ListQuery(entity=entity, fields=fields, order_by="created", limit=limit)
        return EntityReconciler(
            name=name,
            pull=lambda: self.router.fetch_items(query),
            key=minting_update_key,
            merge=_versioned_update(version),
            source=lambda: self.router.current_source,
        )

    @property
    def reconcilers(self) -> list[EntityReconciler]:
        return [self.v1, self.v2, self.minting_updates_v1, self.minting_updates_v2]

    @property
    def lead_rate_ppm(self) -> int | None:
        """Last successfully read savings lead rate."""
        return self._lead_rate_ppm

    async def _pull_v2(self) -> list[Record] | None:
        # The lead rate is read once per refresh alongside the pull
        items, rate = await gather_tolerant(
            [
                self.router.fetch_items(self.v2_query),
                self.reader.lead_rate_ppm(self.savings_address),
            ]
        )
        if rate.ok:
            self._lead_rate_ppm = int(rate.value)
        else:
            failure = PartialReadFailure("Positions V2", "savings", "currentRatePPM", rate.error)
            logger.warning(str(failure))
        if not items.ok:
            logger.error(f"Positions V2 pull failed: {items.error}")
            return None
        return items.value

    def _merge_v2(self, item: Record, corrected: Record, previous: Record | None) -> Record:
        """Build a V2 position record with its derived limits."""
        record = _normalize(item, ADDRESS_FIELDS + ("parent",))
        record.update(corrected)
        record["version"] = 2

        risk_premium = int(item["riskPremiumPPM"])
        if self._lead_rate_ppm is not None:
            record["annualInterestPPM"] = self._lead_rate_ppm + risk_premium
        elif previous is not None and "annualInterestPPM" in previous:
            record["annualInterestPPM"] = previous["annualInterestPPM"]
        else:
            record["annualInterestPPM"] = risk_premium

        balance = int(record["collateralBalance"])
        limit = balance * int(item["price"]) // 10 ** int(item["zchfDecimals"])
        record["limitForPosition"] = str(limit)
        record["availableForPosition"] = str(limit - int(record["minted"]))
        return record

    # Read views

    def all(self) -> dict[str, Record]:
        """All positions keyed by lowercase address, V2 over V1."""
        return {**self.v1.snapshot, **self.v2.snapshot}

    def get(self, address: str) -> Record | None:
        key = address.lower()
        return self.v2.get(key) or self.v1.get(key)

    def open(self) -> dict[str, Record]:
        """Positions neither closed nor denied that still hold collateral."""
        return {
            key: p
            for key, p in self.all().items()
            if not p.get("closed") and not p.get("denied") and _as_int(p.get("collateralBalance")) > 0
        }

    def requests(self, now: float | None = None) -> dict[str, Record]:
        """Positions started within the last five days."""
        now = time.time() if now is None else now
        return {
            key: p
            for key, p in self.all().items()
            if _as_int(p.get("start")) + FIVE_DAYS_SECONDS > now
        }

    def by_owner(self) -> dict[str, list[Record]]:
        """Positions grouped by lowercase owner address."""
        owners: dict[str, list[Record]] = defaultdict(list)
        for p in self.all().values():
            owners[p["owner"].lower()].append(p)
        return dict(owners)

    def minting_updates(self) -> list[Record]:
        """Minting updates of both hubs, newest first."""
        updates = [*self.minting_updates_v1.values(), *self.minting_updates_v2.values()]
        return sorted(updates, key=lambda m: (m["created"], m["count"]), reverse=True)

    def minting_updates_by_position(self) -> dict[str, list[Record]]:
        """Minting updates grouped by lowercase position address, newest first."""
        grouped: dict[str, list[Record]] = defaultdict(list)
        for m in self.minting_updates():
            grouped[m["position"].lower()].append(m)
        return dict(grouped)


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
