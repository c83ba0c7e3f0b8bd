from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from datamarket.models import (
    DEFAULT_FEE_BPS,
    BuyerStats,
    Listing,
    MarketEvent,
    Principal,
    PurchaseRecord,
    SellerStats,
)

PurchaseKey = tuple[Principal, int]

_ABSENT = object()


class LedgerStore:
    """Single source of truth for listings, purchases, participant stats and config.

    While a transaction is open every write records how to undo itself; a
    failed block replays those entries newest-first. Only the ``put_*``,
    ``allocate_listing_id``, ``append_event`` and ``fee_rate_bps`` writers are
    covered, so callers must not mutate the collections directly.
    """

    def __init__(self, fee_rate_bps: int = DEFAULT_FEE_BPS) -> None:
        self.listings: dict[int, Listing] = {}
        self.purchases: dict[PurchaseKey, PurchaseRecord] = {}
        self.seller_stats: dict[Principal, SellerStats] = {}
        self.buyer_stats: dict[Principal, BuyerStats] = {}
        self.events: list[MarketEvent] = []
        self._fee_rate_bps = fee_rate_bps
        self.next_listing_id = 1
        self._undo: Optional[list[tuple[Callable[..., Any], tuple]]] = None

    # ── atomic units ──────────────────────────────────────────────────────────

    def _remember(self, undo: Callable[..., Any], *args) -> None:
        if self._undo is not None:
            self._undo.append((undo, args))

    def _restore_key(self, mapping: dict, key, prior) -> None:
        if prior is _ABSENT:
            mapping.pop(key, None)
        else:
            mapping[key] = prior

    def _put(self, mapping: dict, key, value) -> None:
        self._remember(self._restore_key, mapping, key, mapping.get(key, _ABSENT))
        mapping[key] = value

    @contextmanager
    def transaction(self) -> Iterator["LedgerStore"]:
        """Apply every write in the block, or none of them if it raises."""
        if self._undo is not None:
            # nested: the outermost block owns the log
            yield self
            return

        self._undo = []
        try:
            yield self
        except BaseException:
            for undo, args in reversed(self._undo):
                undo(*args)
            raise
        finally:
            self._undo = None

    # ── writes ────────────────────────────────────────────────────────────────

    @property
    def fee_rate_bps(self) -> int:
        return self._fee_rate_bps

    @fee_rate_bps.setter
    def fee_rate_bps(self, value: int) -> None:
        self._remember(setattr, self, "_fee_rate_bps", self._fee_rate_bps)
        self._fee_rate_bps = value

    def allocate_listing_id(self) -> int:
        listing_id = self.next_listing_id
        self._remember(setattr, self, "next_listing_id", listing_id)
        self.next_listing_id += 1
        return listing_id

    def put_listing(self, listing: Listing) -> None:
        self._put(self.listings, listing.id, listing)

    def put_purchase(self, record: PurchaseRecord) -> None:
        self._put(self.purchases, (record.buyer, record.listing_id), record)

    def put_seller_stats(self, seller: Principal, stats: SellerStats) -> None:
        self._put(self.seller_stats, seller, stats)

    def put_buyer_stats(self, buyer: Principal, stats: BuyerStats) -> None:
        self._put(self.buyer_stats, buyer, stats)

    def append_event(self, event: MarketEvent) -> None:
        self._remember(self.events.pop)
        self.events.append(event)

    def clear(self, fee_rate_bps: int = DEFAULT_FEE_BPS) -> None:
        self.__init__(fee_rate_bps)

    # ── reads ─────────────────────────────────────────────────────────────────

    def get_listing(self, listing_id: int) -> Optional[Listing]:
        return self.listings.get(listing_id)

    def get_purchase(self, buyer: Principal, listing_id: int) -> Optional[PurchaseRecord]:
        return self.purchases.get((buyer, listing_id))

    def seller_stats_or_default(self, seller: Principal) -> SellerStats:
        return self.seller_stats.get(seller, SellerStats())

    def buyer_stats_or_default(self, buyer: Principal) -> BuyerStats:
        return self.buyer_stats.get(buyer, BuyerStats())

    def list_listings(self) -> list[Listing]:
        return sorted(self.listings.values(), key=lambda l: l.id)

    def next_event_sequence(self) -> int:
        return len(self.events) + 1
