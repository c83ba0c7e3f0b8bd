from pydantic import BaseModel, ConfigDict, Field
from enum import Enum
from typing import Any, Optional

# Authenticated identity of a caller, seller, buyer or the administrator.
Principal = str

DEFAULT_FEE_BPS = 250
MAX_FEE_BPS = 1000
BPS_DENOMINATOR = 10_000


class Listing(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    seller: Principal
    title: str
    description: str
    category: str
    price: int = Field(gt=0)  # smallest currency unit
    content_ref: str
    active: bool = True
    created_at: int


class PurchaseRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    buyer: Principal
    listing_id: int
    purchased_at: int
    price_paid: int = Field(gt=0)  # snapshot at purchase time
    access_granted: bool = True


class SellerStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_sales: int = 0
    total_revenue: int = 0  # net of fees
    data_count: int = 0


class BuyerStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_purchases: int = 0
    total_spent: int = 0  # gross, pre-fee


class EventKind(str, Enum):
    LISTED = "listed"
    PURCHASED = "purchased"
    UPDATED = "updated"
    DEACTIVATED = "deactivated"
    FEE_CHANGED = "fee-changed"
    ACCESS_REVOKED = "access-revoked"


class MarketEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    sequence: int
    kind: EventKind
    at: int
    actor: Principal
    listing_id: Optional[int] = None
    data: dict[str, Any] = Field(default_factory=dict)


# ── Response models ──────────────────────────────────────────────────────────

class FeeSplit(BaseModel):
    price: int
    fee_rate_bps: int
    fee: int
    seller_amount: int


class PurchaseReceipt(BaseModel):
    record: PurchaseRecord
    seller: Principal
    fee_recipient: Principal
    split: FeeSplit
