import functools
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from datamarket.clock import Clock
from datamarket.errors import (
    AlreadyExists,
    InvalidPrice,
    MarketError,
    NotFound,
    OwnerOnly,
    Unauthorized,
    Unavailable,
)
from datamarket.models import (
    BPS_DENOMINATOR,
    MAX_FEE_BPS,
    EventKind,
    FeeSplit,
    Listing,
    MarketEvent,
    Principal,
    PurchaseReceipt,
    PurchaseRecord,
)
from datamarket.store import LedgerStore
from datamarket.transfer import PaymentBatch, TransferPrimitive

logger = logging.getLogger(__name__)


def compute_fee_split(price: int, fee_rate_bps: int) -> FeeSplit:
    # Integer floor; the truncated remainder stays with the seller.
    fee = price * fee_rate_bps // BPS_DENOMINATOR
    return FeeSplit(
        price=price,
        fee_rate_bps=fee_rate_bps,
        fee=fee,
        seller_amount=price - fee,
    )


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _guarded(transactional: bool):
    def decorate(op):
        @functools.wraps(op)
        def wrapper(self: "MarketplaceEngine", caller: Principal, *args, **kwargs):
            with self._lock:
                try:
                    if not transactional:
                        return op(self, caller, *args, **kwargs)
                    with self.store.transaction():
                        return op(self, caller, *args, **kwargs)
                except MarketError as exc:
                    logger.warning("%s rejected for %s: %s (%s)",
                                   op.__name__, caller, exc.kind.value, exc)
                    raise

        return wrapper

    return decorate


# Writers run serialized inside one store transaction; readers only serialized.
_atomic = _guarded(transactional=True)
_serialized = _guarded(transactional=False)


class MarketplaceEngine:
    """Invariant-preserving state transitions over a ``LedgerStore``.

    Every public operation takes the authenticated caller first. The
    administrator and fee recipient are fixed for the engine's lifetime.
    """

    def __init__(
        self,
        store: LedgerStore,
        transfers: TransferPrimitive,
        clock: Clock,
        admin: Principal,
        fee_recipient: Optional[Principal] = None,
    ) -> None:
        self.store = store
        self.transfers = transfers
        self.clock = clock
        self._admin = admin
        self._fee_recipient = fee_recipient or admin
        self._lock = threading.RLock()

    @property
    def admin(self) -> Principal:
        return self._admin

    @property
    def fee_recipient(self) -> Principal:
        return self._fee_recipient

    @contextmanager
    def exclusive(self) -> Iterator["MarketplaceEngine"]:
        """Hold the engine lock across several operations or a reset."""
        with self._lock:
            yield self

    # ── helpers ───────────────────────────────────────────────────────────────

    def _record(self, kind: EventKind, actor: Principal,
                listing_id: Optional[int] = None, **data) -> None:
        self.store.append_event(MarketEvent(
            sequence=self.store.next_event_sequence(),
            kind=kind,
            at=self.clock.now(),
            actor=actor,
            listing_id=listing_id,
            data=data,
        ))

    def _owned_listing(self, caller: Principal, listing_id: int) -> Listing:
        listing = self.store.get_listing(listing_id)
        if listing is None:
            raise NotFound(f"listing {listing_id} does not exist")
        if listing.seller != caller:
            raise Unauthorized(f"{caller} is not the seller of listing {listing_id}")
        return listing

    def _require_admin(self, caller: Principal) -> None:
        if caller != self._admin:
            raise OwnerOnly(f"{caller} is not the marketplace administrator")

    # ── listing lifecycle ─────────────────────────────────────────────────────

    @_atomic
    def list_data(
        self,
        caller: Principal,
        title: str,
        description: str,
        category: str,
        price: int,
        content_ref: str,
    ) -> int:
        if not _is_positive_int(price):
            raise InvalidPrice(f"price must be a positive integer, got {price!r}")

        store = self.store
        listing_id = store.allocate_listing_id()
        store.put_listing(Listing(
            id=listing_id,
            seller=caller,
            title=title,
            description=description,
            category=category,
            price=price,
            content_ref=content_ref,
            active=True,
            created_at=self.clock.now(),
        ))
        stats = store.seller_stats_or_default(caller)
        store.put_seller_stats(caller, stats.model_copy(
            update={"data_count": stats.data_count + 1}))
        self._record(EventKind.LISTED, caller, listing_id, price=price, category=category)

        logger.info("Listing %d created by %s at price %d", listing_id, caller, price)
        return listing_id

    @_atomic
    def update_listing(
        self,
        caller: Principal,
        listing_id: int,
        new_price: int,
        new_description: str,
        new_active: bool,
    ) -> Listing:
        listing = self._owned_listing(caller, listing_id)
        if not _is_positive_int(new_price):
            raise InvalidPrice(f"price must be a positive integer, got {new_price!r}")

        updated = listing.model_copy(update={
            "price": new_price,
            "description": new_description,
            "active": bool(new_active),
        })
        self.store.put_listing(updated)
        self._record(EventKind.UPDATED, caller, listing_id,
                     price=new_price, active=updated.active)

        logger.info("Listing %d updated by %s (price=%d, active=%s)",
                    listing_id, caller, new_price, updated.active)
        return updated

    @_atomic
    def deactivate_listing(self, caller: Principal, listing_id: int) -> Listing:
        listing = self._owned_listing(caller, listing_id)
        updated = listing.model_copy(update={"active": False})
        self.store.put_listing(updated)
        self._record(EventKind.DEACTIVATED, caller, listing_id)

        logger.info("Listing %d deactivated by %s", listing_id, caller)
        return updated

    # ── purchasing ────────────────────────────────────────────────────────────

    @_atomic
    def purchase_data(self, caller: Principal, listing_id: int) -> PurchaseReceipt:
        store = self.store
        listing = store.get_listing(listing_id)
        if listing is None:
            raise NotFound(f"listing {listing_id} does not exist")
        if not listing.active:
            raise Unavailable(f"listing {listing_id} is not active")
        if store.get_purchase(caller, listing_id) is not None:
            raise AlreadyExists(f"{caller} already purchased listing {listing_id}")

        split = compute_fee_split(listing.price, store.fee_rate_bps)

        with PaymentBatch(self.transfers) as batch:
            batch.pay(split.seller_amount, caller, listing.seller)
            batch.pay(split.fee, caller, self._fee_recipient)

            now = self.clock.now()
            record = PurchaseRecord(
                buyer=caller,
                listing_id=listing_id,
                purchased_at=now,
                price_paid=listing.price,
                access_granted=True,
            )
            store.put_purchase(record)

            seller = store.seller_stats_or_default(listing.seller)
            store.put_seller_stats(listing.seller, seller.model_copy(update={
                "total_sales": seller.total_sales + 1,
                "total_revenue": seller.total_revenue + split.seller_amount,
            }))
            buyer = store.buyer_stats_or_default(caller)
            store.put_buyer_stats(caller, buyer.model_copy(update={
                "total_purchases": buyer.total_purchases + 1,
                "total_spent": buyer.total_spent + listing.price,
            }))
            self._record(EventKind.PURCHASED, caller, listing_id,
                         price=split.price, fee=split.fee,
                         seller_amount=split.seller_amount)
            receipt = PurchaseReceipt(
                record=record,
                seller=listing.seller,
                fee_recipient=self._fee_recipient,
                split=split,
            )

        logger.info("Listing %d purchased by %s for %d (fee %d to %s)",
                    listing_id, caller, split.price, split.fee, self._fee_recipient)
        return receipt

    @_serialized
    def get_data_access(self, caller: Principal, listing_id: int) -> str:
        # A missing record is reported as Unauthorized, not NotFound.
        record = self.store.get_purchase(caller, listing_id)
        if record is None:
            raise Unauthorized(f"{caller} has not purchased listing {listing_id}")
        if not record.access_granted:
            raise Unauthorized(f"access to listing {listing_id} was revoked for {caller}")
        listing = self.store.get_listing(listing_id)
        if listing is None:
            raise NotFound(f"listing {listing_id} does not exist")
        return listing.content_ref

    # ── administration ────────────────────────────────────────────────────────

    @_atomic
    def set_fee(self, caller: Principal, new_fee_bps: int) -> int:
        self._require_admin(caller)
        if (isinstance(new_fee_bps, bool) or not isinstance(new_fee_bps, int)
                or not 0 <= new_fee_bps <= MAX_FEE_BPS):
            raise InvalidPrice(
                f"fee must be between 0 and {MAX_FEE_BPS} bps, got {new_fee_bps!r}")

        previous = self.store.fee_rate_bps
        self.store.fee_rate_bps = new_fee_bps
        self._record(EventKind.FEE_CHANGED, caller, previous=previous, current=new_fee_bps)

        logger.info("Fee rate changed from %d to %d bps", previous, new_fee_bps)
        return new_fee_bps

    @_atomic
    def revoke_access(self, caller: Principal, buyer: Principal, listing_id: int) -> PurchaseRecord:
        self._require_admin(caller)
        record = self.store.get_purchase(buyer, listing_id)
        if record is None:
            raise NotFound(f"{buyer} holds no purchase of listing {listing_id}")

        revoked = record.model_copy(update={"access_granted": False})
        self.store.put_purchase(revoked)
        self._record(EventKind.ACCESS_REVOKED, caller, listing_id, buyer=buyer)

        logger.info("Access to listing %d revoked for %s", listing_id, buyer)
        return revoked
