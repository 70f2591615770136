"""
BuyerMatch geography scorer - buyer/deal proximity decisions.

Small deals are proximity-gated: a buyer needs presence in the deal's state
or a bordering one (a ~100 mile proxy). Deals with 3+ locations are scored
leniently since a platform can justify entering a new region.
"""

from .adjacency import are_adjacent
from .geography import (
    extract_canadian_provinces,
    extract_state_from_headquarters,
    normalize_geography,
)
from .logger import ProgressLogger
from .models import Buyer, BuyerGeographyProfile, Deal, DealGeographyResult, GeographyScore
from .store import Store

# =============================================================================
# SCORING CONSTANTS
# =============================================================================

MULTI_LOCATION_THRESHOLD = 3

SINGLE_EXACT_SCORE = 95
SINGLE_ADJACENT_SCORE = 75
MULTI_EXACT_SCORE = 90
MULTI_ADJACENT_SCORE = 70
MULTI_DISTANT_SCORE = 40
UNKNOWN_SCORE = 50
CANADA_MULTI_SCORE = 25
DISQUALIFIED_SCORE = 0


# =============================================================================
# PROFILE BUILDING
# =============================================================================


def build_buyer_profile(buyer: Buyer, logger: ProgressLogger | None = None) -> BuyerGeographyProfile:
    """
    Union a buyer's geographic signals into one state set.

    HQ comes from hq_state, falling back to parsing hq_city when the state
    column is empty (legacy rows often hold "Dallas, TX" in the city field).
    """
    states: set[str] = set()

    if buyer.hq_state:
        states.update(normalize_geography([buyer.hq_state], logger))
    elif buyer.hq_city:
        hq = extract_state_from_headquarters(buyer.hq_city)
        city_states = [hq] if hq else normalize_geography([buyer.hq_city], logger)
        if city_states and logger:
            logger.decision("geography", f'HQ {",".join(city_states)} from hq_city "{buyer.hq_city}"')
        states.update(city_states)

    for signal in (buyer.target_geographies, buyer.service_regions, buyer.geographic_footprint):
        states.update(normalize_geography(signal, logger))

    province_sources = [buyer.hq_state, buyer.hq_city, *buyer.target_geographies]
    province_sources += buyer.service_regions + buyer.geographic_footprint
    if buyer.hq_country and buyer.hq_country.strip().lower() == "canada" and not states:
        province_sources.append("Canada")

    return BuyerGeographyProfile(
        buyer_id=buyer.id,
        states=sorted(states),
        provinces=extract_canadian_provinces(province_sources),
        has_operating_locations=bool(buyer.operating_locations),
    )


def collect_deal_states(deal: Deal, logger: ProgressLogger | None = None) -> list[str]:
    """Deal states from its geography list plus the headquarters suffix."""
    states = set(normalize_geography(deal.geography, logger))
    hq = extract_state_from_headquarters(deal.headquarters)
    if hq:
        states.add(hq)
    return sorted(states)


# =============================================================================
# SCORING
# =============================================================================


def score_buyer_geography(
    profile: BuyerGeographyProfile,
    deal_states: list[str],
    deal_location_count: int,
) -> GeographyScore:
    """
    Score one buyer's geographic fit for a deal.

    Args:
        profile: Buyer signals from build_buyer_profile().
        deal_states: Canonical deal state codes.
        deal_location_count: Number of deal locations (governs strictness).

    Returns:
        GeographyScore with score, disqualification flag, and explanation.
    """
    buyer_id = profile.buyer_id
    buyer_states = profile.states
    single_location = deal_location_count < MULTI_LOCATION_THRESHOLD
    deal_list = ", ".join(deal_states)

    if not deal_states:
        return GeographyScore(
            buyer_id=buyer_id,
            score=UNKNOWN_SCORE,
            explanation="Unknown: Deal geography not specified. Manual review recommended.",
        )

    if profile.is_canada_only:
        if single_location:
            return GeographyScore(
                buyer_id=buyer_id,
                score=DISQUALIFIED_SCORE,
                disqualified=True,
                reason=(
                    "Buyer operates exclusively in Canada. Single-location US deals "
                    "require buyer presence within 100 miles."
                ),
                explanation=(
                    "DISQUALIFIED: Operates in Canada only. Cannot acquire single-location "
                    "US business without nearby presence."
                ),
            )
        return GeographyScore(
            buyer_id=buyer_id,
            score=CANADA_MULTI_SCORE,
            explanation=(
                "Geographic mismatch: Buyer operates in Canada. May still consider "
                "multi-location deal for market entry."
            ),
        )

    exact = [s for s in deal_states if s in buyer_states]
    adjacent = [s for s in buyer_states if any(are_adjacent(d, s) for d in deal_states)]

    if single_location:
        if exact:
            return GeographyScore(
                buyer_id=buyer_id,
                score=SINGLE_EXACT_SCORE,
                explanation=(
                    f"Strong fit: Buyer has presence in {', '.join(exact)} - same state as deal."
                ),
            )
        if adjacent:
            return GeographyScore(
                buyer_id=buyer_id,
                score=SINGLE_ADJACENT_SCORE,
                explanation=(
                    f"Acceptable: Buyer operates in {', '.join(adjacent)} (adjacent to deal "
                    "location). May be within 100-mile range."
                ),
            )
        return GeographyScore(
            buyer_id=buyer_id,
            score=DISQUALIFIED_SCORE,
            disqualified=True,
            reason=(
                f"No presence within 100 miles. Buyer's locations: "
                f"{', '.join(buyer_states) or 'Unknown'}. Deal: {deal_list}."
            ),
            explanation=(
                f"DISQUALIFIED: No presence near {deal_list}. Single-location deals "
                "require buyer within 100 miles."
            ),
        )

    if exact:
        return GeographyScore(
            buyer_id=buyer_id,
            score=MULTI_EXACT_SCORE,
            explanation=(
                f"Strong fit: Buyer targets {', '.join(exact)} - direct overlap with deal geography."
            ),
        )
    if adjacent:
        return GeographyScore(
            buyer_id=buyer_id,
            score=MULTI_ADJACENT_SCORE,
            explanation=(
                f"Good fit: Buyer operates in {', '.join(adjacent)} (adjacent). Multi-location "
                "deal provides infrastructure for expansion."
            ),
        )
    if buyer_states:
        return GeographyScore(
            buyer_id=buyer_id,
            score=MULTI_DISTANT_SCORE,
            explanation=(
                f"Weak fit: Buyer operates in {', '.join(buyer_states[:3])}. No overlap with "
                f"{deal_list}, but multi-location deal may enable market entry."
            ),
        )
    return GeographyScore(
        buyer_id=buyer_id,
        score=UNKNOWN_SCORE,
        explanation="Unknown: Buyer's geographic preferences not specified. Manual review recommended.",
    )


def score_deal_geography(
    store: Store,
    deal_id: str,
    buyer_ids: list[str] | None = None,
    logger: ProgressLogger | None = None,
) -> DealGeographyResult:
    """
    Score every candidate buyer for a deal.

    Scores the listed buyers, or every buyer in the deal's tracker when
    buyer_ids is empty. Raises RecordNotFoundError for an unknown deal.
    """
    deal = store.get_deal(deal_id)
    deal_states = collect_deal_states(deal, logger)

    if buyer_ids:
        buyers = store.list_buyers(ids=buyer_ids)
    else:
        buyers = store.list_buyers(tracker_id=deal.tracker_id)

    if logger:
        logger.phase(
            "Geography",
            f"{deal.deal_name or deal.id}: states={','.join(deal_states) or 'none'}, "
            f"locations={deal.location_count}",
        )

    scores = []
    for buyer in buyers:
        score = score_buyer_geography(
            build_buyer_profile(buyer, logger), deal_states, deal.location_count
        )
        if logger:
            logger.decision(buyer.display_name(), f"{score.score} {score.explanation}")
        scores.append(score)

    result = DealGeographyResult(
        deal_id=deal.id,
        deal_states=deal_states,
        deal_location_count=deal.location_count,
        scores=scores,
    )
    if logger:
        logger.scored(len(scores), result.disqualified_count)
    return result
