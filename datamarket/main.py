import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from datamarket import queries
from datamarket.clock import LogicalClock
from datamarket.config import settings
from datamarket.engine import MarketplaceEngine
from datamarket.errors import ErrorKind, MarketError, OwnerOnly
from datamarket.store import LedgerStore
from datamarket.transfer import InMemoryBank

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# module-level singletons used by the app
store = LedgerStore(fee_rate_bps=settings.default_fee_bps)
bank = InMemoryBank()
clock = LogicalClock()
engine = MarketplaceEngine(
    store, bank, clock,
    admin=settings.admin,
    fee_recipient=settings.fee_account,
)

_STATUS_BY_KIND = {
    ErrorKind.OWNER_ONLY: 403,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INSUFFICIENT_FUNDS: 402,
    ErrorKind.ALREADY_EXISTS: 409,
    ErrorKind.UNAVAILABLE: 409,
    ErrorKind.INVALID_PRICE: 422,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Auto-seed on startup so the service is immediately usable
    if settings.seed_on_startup:
        from scripts.seed_data import seed
        seed(engine, bank, clock)
        logger.info("Seeded %d listings", len(store.listings))
    yield


app = FastAPI(
    title="Data Marketplace Ledger",
    version="1.0.0",
    description="Listing, purchase and access ledger for priced data assets",
    lifespan=lifespan,
)


@app.exception_handler(MarketError)
async def market_error_handler(request: Request, exc: MarketError):
    return JSONResponse(
        status_code=_STATUS_BY_KIND[exc.kind],
        content={"error": exc.kind.value, "code": exc.code, "detail": str(exc)},
    )


@app.middleware("http")
async def advance_clock(request: Request, call_next):
    # Every write request happens at a new logical height
    if request.method not in ("GET", "HEAD", "OPTIONS"):
        clock.advance()
    return await call_next(request)


# ── Request bodies ───────────────────────────────────────────────────────────

class ListingCreate(BaseModel):
    title: str
    description: str = ""
    category: str
    price: int
    content_ref: str


class ListingUpdate(BaseModel):
    price: int
    description: str
    active: bool


class FeeUpdate(BaseModel):
    fee_bps: int


class RevokeRequest(BaseModel):
    buyer: str
    listing_id: int


# ── Listings ─────────────────────────────────────────────────────────────────

@app.post("/api/v1/listings", status_code=201, summary="Create a listing")
def create_listing(body: ListingCreate, x_caller: str = Header(...)):
    listing_id = engine.list_data(
        x_caller, body.title, body.description, body.category, body.price, body.content_ref,
    )
    return {"listing_id": listing_id}


@app.get("/api/v1/listings", summary="Browse listings")
def browse_listings(
    seller: Optional[str] = None,
    category: Optional[str] = None,
    active: Optional[bool] = None,
):
    listings = queries.browse_listings(store, seller=seller, category=category, active=active)
    return {"listings": [l.model_dump() for l in listings]}


@app.get("/api/v1/listings/{listing_id}", summary="Get listing details")
def get_listing(listing_id: int):
    listing = queries.get_listing(store, listing_id)
    if not listing:
        raise HTTPException(404, f"Listing {listing_id} not found")
    return listing.model_dump()


@app.put("/api/v1/listings/{listing_id}", summary="Update price, description and status")
def update_listing(listing_id: int, body: ListingUpdate, x_caller: str = Header(...)):
    listing = engine.update_listing(x_caller, listing_id, body.price, body.description, body.active)
    return listing.model_dump()


@app.post("/api/v1/listings/{listing_id}/deactivate", summary="Deactivate a listing")
def deactivate_listing(listing_id: int, x_caller: str = Header(...)):
    return engine.deactivate_listing(x_caller, listing_id).model_dump()


@app.get("/api/v1/listings/{listing_id}/quote", summary="Fee split at the current rate")
def get_quote(listing_id: int):
    split = queries.quote(store, listing_id)
    if split is None:
        raise HTTPException(404, f"Listing {listing_id} not found")
    return split.model_dump()


@app.get("/api/v1/listings/{listing_id}/events", summary="Journal entries for a listing")
def get_listing_events(listing_id: int):
    return {"events": [e.model_dump() for e in queries.list_events(store, listing_id)]}


# ── Purchases & access ───────────────────────────────────────────────────────

@app.post("/api/v1/listings/{listing_id}/purchase", status_code=201, summary="Purchase a listing")
def purchase_listing(listing_id: int, x_caller: str = Header(...)):
    return engine.purchase_data(x_caller, listing_id).model_dump()


@app.get("/api/v1/listings/{listing_id}/content", summary="Content reference for a buyer")
def get_content(listing_id: int, x_caller: str = Header(...)):
    return {"content_ref": engine.get_data_access(x_caller, listing_id)}


@app.get("/api/v1/purchases/{buyer}/{listing_id}", summary="Get a purchase record")
def get_purchase(buyer: str, listing_id: int):
    record = queries.get_purchase(store, buyer, listing_id)
    if not record:
        raise HTTPException(404, f"No purchase of listing {listing_id} by '{buyer}'")
    return record.model_dump()


@app.get("/api/v1/access/{buyer}/{listing_id}", summary="Whether a buyer holds access")
def get_access(buyer: str, listing_id: int):
    return {"has_access": queries.has_access(store, buyer, listing_id)}


# ── Stats ────────────────────────────────────────────────────────────────────

@app.get("/api/v1/sellers/{seller}/stats", summary="Seller aggregates")
def get_seller_stats(seller: str):
    return queries.get_seller_stats(store, seller).model_dump()


@app.get("/api/v1/buyers/{buyer}/stats", summary="Buyer aggregates")
def get_buyer_stats(buyer: str):
    return queries.get_buyer_stats(store, buyer).model_dump()


@app.get("/api/v1/config", summary="Fee rate and next listing id")
def get_config():
    return {
        "fee_rate_bps": queries.get_fee_rate(store),
        "next_listing_id": queries.get_next_listing_id(store),
        "fee_recipient": engine.fee_recipient,
    }


# ── Admin ─────────────────────────────────────────────────────────────────────

@app.put("/api/v1/admin/fee", summary="Set the marketplace fee rate")
def set_fee(body: FeeUpdate, x_caller: str = Header(...)):
    return {"fee_rate_bps": engine.set_fee(x_caller, body.fee_bps)}


@app.post("/api/v1/admin/revoke", summary="Revoke a buyer's access")
def revoke_access(body: RevokeRequest, x_caller: str = Header(...)):
    return engine.revoke_access(x_caller, body.buyer, body.listing_id).model_dump()


@app.post("/api/v1/admin/seed", summary="Re-seed demo data")
def reseed(x_caller: str = Header(...)):
    if x_caller != engine.admin:
        raise OwnerOnly(f"{x_caller} is not the marketplace administrator")
    from scripts.seed_data import seed
    with engine.exclusive():
        store.clear(settings.default_fee_bps)
        bank.clear()
        seed(engine, bank, clock)
        return {
            "status": "seeded",
            "listings": len(store.listings),
            "purchases": len(store.purchases),
        }
