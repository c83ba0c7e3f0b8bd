"""
Deterministic demo-data generator.

Produces:
  - 3 sellers, each with a starting balance of zero
  - 12 listings across 4 categories (one deactivated afterwards)
  - 6 funded buyers making ~20 purchases of active listings
  - 1 access revocation by the administrator
"""

import random

from datamarket.clock import LogicalClock
from datamarket.engine import MarketplaceEngine
from datamarket.errors import AlreadyExists, InsufficientFunds
from datamarket.transfer import InMemoryBank

SEED = 42

SELLERS = ["seller-atlas", "seller-borealis", "seller-cygnus"]
BUYERS = [f"buyer-{n:02d}" for n in range(1, 7)]
CATEGORIES = ["weather", "finance", "genomics", "mobility"]

BUYER_FUNDS = 20_000_000


def seed(engine: MarketplaceEngine, bank: InMemoryBank, clock: LogicalClock) -> None:
    rng = random.Random(SEED)

    for buyer in BUYERS:
        bank.deposit(buyer, BUYER_FUNDS)

    # ── listings ─────────────────────────────────────────────────────────────
    listing_ids: list[int] = []
    for n in range(12):
        seller = SELLERS[n % len(SELLERS)]
        category = rng.choice(CATEGORIES)
        listing_ids.append(engine.list_data(
            seller,
            title=f"{category.title()} dataset #{n + 1}",
            description=f"Curated {category} records, batch {n + 1}",
            category=category,
            price=rng.randrange(100_000, 5_000_000, 1_000),
            content_ref=f"ipfs://demo/{category}/{n + 1:03d}",
        ))
        clock.advance()

    retired = listing_ids[-1]
    engine.deactivate_listing(SELLERS[(len(listing_ids) - 1) % len(SELLERS)], retired)

    # ── purchases ────────────────────────────────────────────────────────────
    purchases: list[tuple[str, int]] = []
    for _ in range(20):
        buyer = rng.choice(BUYERS)
        listing_id = rng.choice(listing_ids[:-1])
        try:
            engine.purchase_data(buyer, listing_id)
        except (AlreadyExists, InsufficientFunds):
            continue
        purchases.append((buyer, listing_id))
        clock.advance()

    if purchases:
        buyer, listing_id = purchases[0]
        engine.revoke_access(engine.admin, buyer, listing_id)
