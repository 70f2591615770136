"""Tests for Pydantic models."""

import pytest
from pydantic import ValidationError

from buyermatch.models import (
    Buyer,
    BuyerGeographyProfile,
    Deal,
    DealGeographyResult,
    DedupeResult,
    DuplicateGroup,
    GeographyScore,
    ScoringAdjustments,
    TrackerServiceCriteria,
)


class TestDeal:
    """Tests for Deal model."""

    def test_defaults(self) -> None:
        """Test a bare deal is a single location with no geography."""
        deal = Deal(id="d")
        assert deal.location_count == 1
        assert deal.geography == []
        assert deal.created_at.tzinfo is not None

    def test_location_count_positive(self) -> None:
        """Test zero locations is rejected."""
        with pytest.raises(ValidationError):
            Deal(id="d", location_count=0)

    def test_extra_forbidden(self) -> None:
        """Test unknown fields fail fast."""
        with pytest.raises(ValidationError):
            Deal(id="d", asking_price=10)


class TestBuyer:
    """Tests for Buyer model."""

    def test_display_name_fallbacks(self) -> None:
        """Test platform, then PE firm, then id."""
        assert Buyer(id="b", tracker_id="t", platform_company_name="Acme").display_name() == "Acme"
        assert Buyer(id="b", tracker_id="t", pe_firm_name="Summit").display_name() == "Summit"
        assert Buyer(id="b", tracker_id="t").display_name() == "b"

    def test_tracker_required(self) -> None:
        """Test buyers belong to a tracker."""
        with pytest.raises(ValidationError):
            Buyer(id="b", tracker_id="")


class TestScoringAdjustments:
    """Tests for ScoringAdjustments bounds."""

    def test_neutral_defaults(self) -> None:
        """Test defaults are 1.0."""
        adj = ScoringAdjustments(deal_id="d")
        assert adj.geography_weight_mult == adj.size_weight_mult == adj.services_weight_mult == 1.0

    @pytest.mark.parametrize("value", [0.59, 1.41])
    def test_out_of_bounds(self, value: float) -> None:
        """Test multipliers outside [0.6, 1.4] are rejected."""
        with pytest.raises(ValidationError):
            ScoringAdjustments(deal_id="d", size_weight_mult=value)


class TestDerivedProperties:
    """Tests for computed helpers."""

    def test_canada_only(self) -> None:
        """Test provinces without states is Canada-only."""
        assert BuyerGeographyProfile(provinces=["ON"]).is_canada_only
        assert not BuyerGeographyProfile(states=["NY"], provinces=["ON"]).is_canada_only
        assert not BuyerGeographyProfile().is_canada_only

    def test_disqualified_count(self) -> None:
        """Test disqualified scores are counted."""
        result = DealGeographyResult(
            deal_id="d",
            scores=[
                GeographyScore(score=0, disqualified=True, explanation="x"),
                GeographyScore(score=95, explanation="y"),
            ],
        )
        assert result.disqualified_count == 1

    def test_dedupe_counts(self) -> None:
        """Test group size and total duplicates."""
        group = DuplicateGroup(
            key="acme.com",
            match_type="platform_domain",
            keeper_id="a",
            duplicate_ids=["b", "c"],
            buyer_ids=["a", "b", "c"],
        )
        assert group.count == 3
        assert DedupeResult(tracker_id="t", groups=[group, group]).total_duplicates == 4

    def test_criteria_is_empty(self) -> None:
        """Test empty criteria detection."""
        assert TrackerServiceCriteria().is_empty()
        assert not TrackerServiceCriteria(primary_focus=["collision"]).is_empty()
