"""Minting hub challenges, bids and live challenge prices."""

import logging
from collections import defaultdict

from chainsync.infrastructure.blockchain.contracts import ContractReader
from chainsync.infrastructure.indexer.query import DEFAULT_LIMIT, ListQuery
from chainsync.services.data_source.router import SourceRouter
from chainsync.services.reconciler.base import EntityReconciler, FieldCorrection, Record

logger = logging.getLogger(__name__)

CHALLENGE_FIELDS = (
    "position", "number", "challenger", "start", "created", "duration",
    "size", "liqPrice", "bids", "filledSize", "acquiredCollateral", "status",
)

BID_FIELDS = (
    "position", "number", "numberBid", "bidder", "created", "bidType",
    "bid", "price", "filledSize", "acquiredCollateral", "challengeSize",
)

ACTIVE_STATUS = "Active"


def challenge_key(item: Record) -> str:
    return f"{item['position'].lower()}-challenge-{item['number']}"


def bid_key(item: Record) -> str:
    return f"{challenge_key(item)}-bid-{item['numberBid']}"


def _versioned(version: int, key_fn):
    def merge(item: Record, corrected: Record, previous: Record | None) -> Record:
        return {**item, **corrected, "version": version, "id": key_fn(item)}

    return merge


def merge_price(item: Record, corrected: Record, previous: Record | None) -> Record:
    price = corrected.get("price")
    if price is None:
        raise ValueError("price unavailable")
    return {"id": item["id"], "version": item["version"], "price": price}


class ChallengesService:
    """Keeps challenge, bid and price snapshots for both hub versions."""

    def __init__(
        self,
        router: SourceRouter,
        reader: ContractReader,
        minting_hubs: dict[int, str],
        limit: int = DEFAULT_LIMIT,
    ):
        """Initialize challenges service.

        Args:
            router: Indexer query router
            reader: Contract reader for price calls
            minting_hubs: Minting hub address per hub version
            limit: Page size of list queries
        """
        self.router = router
        self.reader = reader
        self.minting_hubs = minting_hubs

        self.challenges_v1 = self._list_reconciler(
            "Challenges V1", "mintingHubV1ChallengeV1s", CHALLENGE_FIELDS,
            "status", "asc", challenge_key, 1, limit,
        )
        self.challenges_v2 = self._list_reconciler(
            "Challenges V2", "mintingHubV2ChallengeV2s", CHALLENGE_FIELDS,
            "status", "asc", challenge_key, 2, limit,
        )
        self.bids_v1 = self._list_reconciler(
            "Bids V1", "mintingHubV1ChallengeBidV1s", BID_FIELDS,
            "created", "desc", bid_key, 1, limit,
        )
        self.bids_v2 = self._list_reconciler(
            "Bids V2", "mintingHubV2ChallengeBidV2s", BID_FIELDS,
            "created", "desc", bid_key, 2, limit,
        )
        self.prices = EntityReconciler(
            name="Challenge prices",
            pull=self._pull_active,
            key=lambda c: c["id"],
            corrections=[FieldCorrection("price", self._read_price)],
            merge=merge_price,
            replace_on_pull=True,
        )

    def _list_reconciler(
        self, name, entity, fields, order_by, direction, key_fn, version, limit
    ) -> EntityReconciler:
        query = ListQuery(
            entity=entity,
            fields=fields,
            order_by=order_by,
            order_direction=direction,
            limit=limit,
        )
        return EntityReconciler(
            name=name,
            pull=lambda: self.router.fetch_items(query),
            key=key_fn,
            merge=_versioned(version, key_fn),
            source=lambda: self.router.current_source,
        )

    @property
    def reconcilers(self) -> list[EntityReconciler]:
        return [
            self.challenges_v1,
            self.challenges_v2,
            self.bids_v1,
            self.bids_v2,
            self.prices,
        ]

    async def _pull_active(self) -> list[Record]:
        # Reads the challenges snapshot published by the latest refresh
        return [c for c in self.challenges().values() if c.get("status") == ACTIVE_STATUS]

    async def _read_price(self, challenge: Record) -> int:
        hub = self.minting_hubs[int(challenge["version"])]
        return await self.reader.challenge_price(hub, int(challenge["number"]))

    # Read views

    def challenges(self) -> dict[str, Record]:
        return {**self.challenges_v1.snapshot, **self.challenges_v2.snapshot}

    def bids(self) -> dict[str, Record]:
        return {**self.bids_v1.snapshot, **self.bids_v2.snapshot}

    def challenge_prices(self) -> dict[str, str]:
        """Latest auction price per challenge id."""
        return {key: record["price"] for key, record in self.prices.snapshot.items()}

    def by_position(self) -> dict[str, list[Record]]:
        """Challenges grouped by lowercase position address."""
        grouped: dict[str, list[Record]] = defaultdict(list)
        for c in self.challenges().values():
            grouped[c["position"].lower()].append(c)
        return dict(grouped)

    def by_challenger(self) -> dict[str, list[Record]]:
        grouped: dict[str, list[Record]] = defaultdict(list)
        for c in self.challenges().values():
            grouped[c["challenger"].lower()].append(c)
        return dict(grouped)

    def bids_by_challenge(self) -> dict[str, list[Record]]:
        """Bids grouped by the id of the challenge they belong to."""
        grouped: dict[str, list[Record]] = defaultdict(list)
        for b in self.bids().values():
            grouped[challenge_key(b)].append(b)
        return dict(grouped)
