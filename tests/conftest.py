"""Pytest configuration and fixtures."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from buyermatch.models import Buyer, BuyerDealScore, ChildRecord, Deal
from buyermatch.store import Store

BASE_TIME = datetime(2025, 1, 1, tzinfo=UTC)


@pytest.fixture
def sample_deal() -> Deal:
    """A single-location collision shop in Wyoming."""
    return Deal(
        id="deal-1",
        tracker_id="collision",
        deal_name="Cheyenne Collision",
        geography=["Wyoming"],
        headquarters="Cheyenne, WY",
        location_count=1,
        revenue=4.5,
        ebitda=0.9,
        service_mix="Collision repair, paint and ADAS calibration",
    )


@pytest.fixture
def make_buyer() -> Callable[..., Buyer]:
    """Factory for buyers in the collision tracker."""
    counter = {"n": 0}

    def _make(**fields: Any) -> Buyer:
        counter["n"] += 1
        defaults: dict[str, Any] = {
            "id": f"buyer-{counter['n']}",
            "tracker_id": "collision",
            "created_at": BASE_TIME + timedelta(days=counter["n"]),
        }
        defaults.update(fields)
        return Buyer(**defaults)

    return _make


@pytest.fixture
def make_score() -> Callable[..., BuyerDealScore]:
    """Factory for decision rows on deal-1."""
    counter = {"n": 0}

    def _make(**fields: Any) -> BuyerDealScore:
        counter["n"] += 1
        defaults: dict[str, Any] = {
            "id": f"score-{counter['n']}",
            "buyer_id": f"buyer-{counter['n']}",
            "deal_id": "deal-1",
        }
        defaults.update(fields)
        return BuyerDealScore(**defaults)

    return _make


@pytest.fixture
def store(tmp_path: Path) -> Store:
    """An empty store backed by a temp file."""
    return Store(tmp_path / "buyermatch.json")


@pytest.fixture
def populated_store(
    store: Store, sample_deal: Deal, make_buyer: Callable[..., Buyer]
) -> Store:
    """Store with one deal, three buyers and a few child rows."""
    store.upsert_deal(sample_deal)
    store.upsert_buyer(
        make_buyer(
            id="b-co",
            platform_company_name="Front Range Auto Body",
            pe_firm_name="Summit Capital",
            hq_city="Denver",
            hq_state="CO",
            services_offered="collision repair; paint",
        )
    )
    store.upsert_buyer(
        make_buyer(
            id="b-fl",
            platform_company_name="Sunshine Collision",
            pe_firm_name="Gulf Partners",
            target_geographies=["Florida", "Georgia"],
        )
    )
    store.upsert_buyer(
        make_buyer(
            id="b-on",
            platform_company_name="Maple Auto",
            hq_city="Toronto",
            hq_state="ON",
            hq_country="Canada",
        )
    )
    store.upsert_child(
        ChildRecord(id="c-1", table="buyer_contacts", buyer_id="b-co", data={"name": "Pat"})
    )
    return store
