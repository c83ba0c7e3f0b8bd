"""Read-only projections over the ledger store. Nothing here mutates state."""

from typing import Optional

from datamarket.engine import compute_fee_split
from datamarket.models import (
    BuyerStats,
    FeeSplit,
    Listing,
    MarketEvent,
    Principal,
    PurchaseRecord,
    SellerStats,
)
from datamarket.store import LedgerStore


def get_listing(store: LedgerStore, listing_id: int) -> Optional[Listing]:
    return store.get_listing(listing_id)


def get_purchase(store: LedgerStore, buyer: Principal, listing_id: int) -> Optional[PurchaseRecord]:
    return store.get_purchase(buyer, listing_id)


def get_seller_stats(store: LedgerStore, seller: Principal) -> SellerStats:
    return store.seller_stats_or_default(seller)


def get_buyer_stats(store: LedgerStore, buyer: Principal) -> BuyerStats:
    return store.buyer_stats_or_default(buyer)


def has_access(store: LedgerStore, buyer: Principal, listing_id: int) -> bool:
    record = store.get_purchase(buyer, listing_id)
    return record is not None and record.access_granted


def get_fee_rate(store: LedgerStore) -> int:
    return store.fee_rate_bps


def get_next_listing_id(store: LedgerStore) -> int:
    return store.next_listing_id


def quote(store: LedgerStore, listing_id: int) -> Optional[FeeSplit]:
    """Fee split a purchase of this listing would use at the current rate."""
    listing = store.get_listing(listing_id)
    if listing is None:
        return None
    return compute_fee_split(listing.price, store.fee_rate_bps)


def browse_listings(
    store: LedgerStore,
    seller: Optional[Principal] = None,
    category: Optional[str] = None,
    active: Optional[bool] = None,
) -> list[Listing]:
    return [
        l for l in store.list_listings()
        if (seller is None or l.seller == seller)
        and (category is None or l.category == category)
        and (active is None or l.active == active)
    ]


def list_events(store: LedgerStore, listing_id: Optional[int] = None) -> list[MarketEvent]:
    if listing_id is None:
        return list(store.events)
    return [e for e in store.events if e.listing_id == listing_id]
