"""Tests for the buyer geography scorer."""

from collections.abc import Callable

import pytest

from buyermatch.geo_scorer import (
    build_buyer_profile,
    collect_deal_states,
    score_buyer_geography,
    score_deal_geography,
)
from buyermatch.models import Buyer, BuyerGeographyProfile, Deal
from buyermatch.store import RecordNotFoundError, Store


def _profile(states: list[str] | None = None, provinces: list[str] | None = None) -> BuyerGeographyProfile:
    return BuyerGeographyProfile(buyer_id="b", states=states or [], provinces=provinces or [])


class TestSingleLocationDeals:
    """Deals with fewer than 3 locations are proximity-gated."""

    def test_exact_match(self) -> None:
        """Test same-state presence scores 95."""
        score = score_buyer_geography(_profile(["WY", "TX"]), ["WY"], 1)
        assert score.score == 95
        assert not score.disqualified
        assert "WY" in score.explanation

    def test_adjacent_match(self) -> None:
        """Test a bordering state scores 75."""
        score = score_buyer_geography(_profile(["CO"]), ["WY"], 1)
        assert score.score == 75
        assert not score.disqualified
        assert "CO" in score.explanation

    def test_non_adjacent_disqualified(self) -> None:
        """Test a distant buyer is disqualified."""
        score = score_buyer_geography(_profile(["FL"]), ["WY"], 1)
        assert score.score == 0
        assert score.disqualified
        assert score.reason is not None
        assert "FL" in score.reason and "WY" in score.reason

    def test_two_locations_still_strict(self) -> None:
        """Test location_count 2 is still single-location logic."""
        assert score_buyer_geography(_profile(["FL"]), ["WY"], 2).disqualified

    def test_no_buyer_geography_disqualified(self) -> None:
        """Test an unknown buyer cannot show proximity for a small deal."""
        score = score_buyer_geography(_profile(), ["WY"], 1)
        assert score.disqualified
        assert "Unknown" in (score.reason or "")


class TestMultiLocationDeals:
    """Deals with 3+ locations never disqualify on US geography."""

    def test_exact_match(self) -> None:
        """Test direct overlap scores 90."""
        assert score_buyer_geography(_profile(["TX"]), ["TX", "OK"], 5).score == 90

    def test_adjacent_match(self) -> None:
        """Test adjacency scores 70."""
        assert score_buyer_geography(_profile(["NM"]), ["TX"], 3).score == 70

    def test_distant_presence(self) -> None:
        """Test US presence elsewhere scores 40 without disqualifying."""
        score = score_buyer_geography(_profile(["FL"]), ["WA"], 3)
        assert score.score == 40
        assert not score.disqualified

    def test_no_geography_is_neutral(self) -> None:
        """Test missing buyer geography scores 50, never disqualified."""
        score = score_buyer_geography(_profile(), ["WY"], 5)
        assert score.score == 50
        assert not score.disqualified


class TestCanadaOnlyBuyers:
    """Canada-only buyers against US deals."""

    def test_single_location_disqualified(self) -> None:
        """Test single-location US deals disqualify Canada-only buyers."""
        score = score_buyer_geography(_profile(provinces=["ON"]), ["NY"], 1)
        assert score.score == 0
        assert score.disqualified
        assert "Canada" in (score.reason or "")

    def test_multi_location_weak(self) -> None:
        """Test multi-location deals give a weak, non-disqualifying 25."""
        score = score_buyer_geography(_profile(provinces=["ON", "QC"]), ["NY"], 4)
        assert score.score == 25
        assert not score.disqualified

    def test_cross_border_buyer_uses_us_rules(self) -> None:
        """Test a buyer with US and Canadian presence is scored on US states."""
        score = score_buyer_geography(_profile(["NY"], ["ON"]), ["NY"], 1)
        assert score.score == 95

    def test_space_separated_provinces(self, make_buyer: Callable[..., Buyer]) -> None:
        """Test a buyer listing 'ON QC' is treated as Canada-only."""
        profile = build_buyer_profile(make_buyer(target_geographies=["ON QC"]))
        assert profile.provinces == ["ON", "QC"]
        assert score_buyer_geography(profile, ["NY"], 5).score == 25


class TestUnknownDealGeography:
    """Deals without resolvable states."""

    def test_unknown_deal_is_neutral(self) -> None:
        """Test a deal with no states scores 50 without disqualifying."""
        score = score_buyer_geography(_profile(["TX"]), [], 1)
        assert score.score == 50
        assert not score.disqualified


class TestBuildBuyerProfile:
    """Tests for build_buyer_profile."""

    def test_unions_all_signals(self, make_buyer: Callable[..., Buyer]) -> None:
        """Test HQ, targets, service regions and footprint are unioned."""
        buyer = make_buyer(
            hq_state="Texas",
            target_geographies=["Southwest"],
            service_regions=["Louisiana"],
            geographic_footprint=["Jackson, MS"],
        )
        profile = build_buyer_profile(buyer)
        assert profile.states == ["AZ", "LA", "MS", "NM", "OK", "TX"]
        assert profile.provinces == []

    def test_hq_city_fallback(self, make_buyer: Callable[..., Buyer]) -> None:
        """Test state is parsed from hq_city when hq_state is empty."""
        profile = build_buyer_profile(make_buyer(hq_city="Dallas, TX"))
        assert profile.states == ["TX"]

    def test_canada_only(self, make_buyer: Callable[..., Buyer]) -> None:
        """Test a Canadian buyer has provinces and no states."""
        profile = build_buyer_profile(make_buyer(hq_city="Toronto", hq_state="Ontario"))
        assert profile.states == []
        assert profile.provinces == ["ON"]
        assert profile.is_canada_only

    def test_operating_locations_presence(self, make_buyer: Callable[..., Buyer]) -> None:
        """Test structured locations are recorded as presence only."""
        profile = build_buyer_profile(make_buyer(operating_locations=[{"city": "Austin"}]))
        assert profile.has_operating_locations
        assert profile.states == []


class TestCollectDealStates:
    """Tests for collect_deal_states."""

    def test_geography_plus_headquarters(self) -> None:
        """Test headquarters suffix is added to the geography list."""
        deal = Deal(id="d", geography=["Oklahoma"], headquarters="Dallas, Texas")
        assert collect_deal_states(deal) == ["OK", "TX"]

    def test_headquarters_only(self) -> None:
        """Test a deal with only a headquarters."""
        assert collect_deal_states(Deal(id="d", headquarters="Jackson, MS")) == ["MS"]


class TestScoreDealGeography:
    """Tests for store-backed batch scoring."""

    def test_scores_tracker_buyers(self, populated_store: Store) -> None:
        """Test every buyer in the deal's tracker is scored."""
        result = score_deal_geography(populated_store, "deal-1")
        by_id = {s.buyer_id: s for s in result.scores}

        assert result.deal_states == ["WY"]
        assert result.deal_location_count == 1
        assert by_id["b-co"].score == 75
        assert by_id["b-fl"].disqualified
        assert by_id["b-on"].disqualified
        assert result.disqualified_count == 2

    def test_scores_listed_buyers_only(self, populated_store: Store) -> None:
        """Test buyer_ids restricts the batch."""
        result = score_deal_geography(populated_store, "deal-1", buyer_ids=["b-co"])
        assert [s.buyer_id for s in result.scores] == ["b-co"]

    def test_unknown_deal(self, populated_store: Store) -> None:
        """Test an unknown deal id raises."""
        with pytest.raises(RecordNotFoundError):
            score_deal_geography(populated_store, "nope")

    def test_logs_summary(self, populated_store: Store, capsys: pytest.CaptureFixture[str]) -> None:
        """Test the scored summary line is logged."""
        from buyermatch.logger import ProgressLogger

        score_deal_geography(populated_store, "deal-1", logger=ProgressLogger("t"))
        assert "[Scored] 3 buyers (2 disqualified)" in capsys.readouterr().out
