"""
Unit tests for the ledger store and the read-only query layer.
"""

import pytest
from pydantic import ValidationError

from datamarket import queries
from datamarket.models import (
    BuyerStats,
    EventKind,
    Listing,
    MarketEvent,
    PurchaseRecord,
    SellerStats,
)
from datamarket.store import LedgerStore


def make_listing(id, seller="seller-a", category="weather", active=True, price=500):
    return Listing(
        id=id,
        seller=seller,
        title=f"Dataset {id}",
        description="",
        category=category,
        price=price,
        content_ref=f"ref-{id}",
        active=active,
        created_at=0,
    )


class TestDefaults:
    def test_fresh_store_config(self):
        store = LedgerStore()
        assert store.fee_rate_bps == 250
        assert store.next_listing_id == 1

    def test_stats_default_to_zero(self):
        store = LedgerStore()
        assert queries.get_seller_stats(store, "nobody") == SellerStats()
        assert queries.get_buyer_stats(store, "nobody") == BuyerStats(total_purchases=0, total_spent=0)
        # reading must not create entries
        assert store.seller_stats == {}
        assert store.buyer_stats == {}

    def test_missing_records_are_none(self):
        store = LedgerStore()
        assert queries.get_listing(store, 1) is None
        assert queries.get_purchase(store, "b", 1) is None
        assert queries.has_access(store, "b", 1) is False
        assert queries.quote(store, 1) is None


class TestTransaction:
    def test_commit(self):
        store = LedgerStore()
        with store.transaction():
            store.put_listing(make_listing(store.allocate_listing_id()))
        assert store.next_listing_id == 2
        assert 1 in store.listings

    def test_rollback_restores_everything(self):
        store = LedgerStore()
        store.put_listing(make_listing(store.allocate_listing_id()))

        with pytest.raises(RuntimeError):
            with store.transaction():
                store.put_listing(make_listing(store.allocate_listing_id()))
                store.put_seller_stats("seller-a", SellerStats(data_count=9))
                store.fee_rate_bps = 999
                raise RuntimeError("boom")

        assert list(store.listings) == [1]
        assert store.next_listing_id == 2
        assert store.fee_rate_bps == 250
        assert store.seller_stats == {}

    def test_rollback_restores_overwritten_records_and_events(self):
        store = LedgerStore()
        original = make_listing(store.allocate_listing_id(), price=500)
        store.put_listing(original)

        with pytest.raises(RuntimeError):
            with store.transaction():
                store.put_listing(original.model_copy(update={"price": 900}))
                store.put_listing(original.model_copy(update={"active": False}))
                store.append_event(MarketEvent(
                    sequence=store.next_event_sequence(),
                    kind=EventKind.UPDATED, at=1, actor="seller-a", listing_id=1))
                raise RuntimeError("boom")

        assert store.get_listing(1) == original
        assert store.events == []

    def test_transaction_logs_only_its_own_writes(self):
        store = LedgerStore()
        for _ in range(2000):
            store.put_listing(make_listing(store.allocate_listing_id()))

        with store.transaction():
            store.put_seller_stats("seller-a", SellerStats(data_count=1))
            assert len(store._undo) == 1
        assert store._undo is None

    def test_clear(self):
        store = LedgerStore(fee_rate_bps=100)
        store.put_listing(make_listing(store.allocate_listing_id()))
        store.clear(fee_rate_bps=300)
        assert store.listings == {}
        assert store.next_listing_id == 1
        assert store.fee_rate_bps == 300


class TestQueries:
    def test_has_access_follows_record(self):
        store = LedgerStore()
        store.put_purchase(PurchaseRecord(buyer="b", listing_id=1, purchased_at=3, price_paid=10))
        assert queries.has_access(store, "b", 1) is True
        store.put_purchase(PurchaseRecord(
            buyer="b", listing_id=1, purchased_at=3, price_paid=10, access_granted=False))
        assert queries.has_access(store, "b", 1) is False

    def test_browse_filters(self):
        store = LedgerStore()
        store.put_listing(make_listing(3, seller="s2", category="finance"))
        store.put_listing(make_listing(1, seller="s1", category="weather"))
        store.put_listing(make_listing(2, seller="s1", category="finance", active=False))

        assert [l.id for l in queries.browse_listings(store)] == [1, 2, 3]
        assert [l.id for l in queries.browse_listings(store, seller="s1")] == [1, 2]
        assert [l.id for l in queries.browse_listings(store, category="finance")] == [2, 3]
        assert [l.id for l in queries.browse_listings(store, active=True)] == [1, 3]
        assert [l.id for l in queries.browse_listings(store, seller="s1", active=False)] == [2]

    def test_quote_uses_current_rate(self):
        store = LedgerStore()
        store.put_listing(make_listing(1, price=10_000))
        assert queries.quote(store, 1).fee == 250
        store.fee_rate_bps = 0
        assert queries.quote(store, 1).fee == 0
        assert queries.get_next_listing_id(store) == 1

    def test_records_are_immutable(self):
        listing = make_listing(1)
        with pytest.raises(ValidationError):
            listing.price = 1

    def test_models_reject_non_positive_prices(self):
        with pytest.raises(ValidationError):
            make_listing(1, price=0)
        with pytest.raises(ValidationError):
            PurchaseRecord(buyer="b", listing_id=1, purchased_at=0, price_paid=-3)
