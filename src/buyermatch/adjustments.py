"""
BuyerMatch adjustment engine - learn per-deal weight multipliers from decisions.

Always a full recompute from the current approve/pass rows, never an online
blend, so the stored multipliers are explainable from the decisions alone and
re-running is harmless.
"""

from datetime import UTC, datetime

from .logger import ProgressLogger
from .models import BuyerDealScore, RecalculationResult, ScoringAdjustments
from .store import Store

# =============================================================================
# CONSTANTS
# =============================================================================

MIN_MULT = 0.6
MAX_MULT = 1.4
BASELINE_SCORE = 60.0
DEFAULT_MEAN = 50.0
MIN_DECISIONS = 2
MIN_APPROVED_FOR_DECREASE = 2
MIN_PASSES_FOR_INCREASE = 2
PASS_SHARE_THRESHOLD = 0.3
INCREASE_SCALE = 0.5

INSIGHT_LOW = 0.9
INSIGHT_HIGH = 1.1

# Pass category substrings -> dimension bucket (not mutually exclusive)
GEOGRAPHY_TERMS = ("geography", "location")
SIZE_TERMS = ("size", "small", "large", "revenue")
SERVICES_TERMS = ("service", "industry", "focus")

# dimension -> (BuyerDealScore attribute, label used in insights)
DIMENSIONS: dict[str, tuple[str, str]] = {
    "geography": ("geography_score", "Geography"),
    "size": ("acquisition_score", "Size"),
    "services": ("service_score", "Services"),
}


def _is_approved(row: BuyerDealScore) -> bool:
    return row.selected_for_outreach and not row.passed_on_deal


def pass_buckets(category: str | None) -> list[str]:
    """Dimensions a pass category counts toward (possibly several, possibly none)."""
    if not category:
        return []
    lower = category.lower()
    buckets = []
    if any(term in lower for term in GEOGRAPHY_TERMS):
        buckets.append("geography")
    if any(term in lower for term in SIZE_TERMS):
        buckets.append("size")
    if any(term in lower for term in SERVICES_TERMS):
        buckets.append("services")
    return buckets


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else DEFAULT_MEAN


def _adjust_multiplier(
    dimension: str,
    approved_mean: float,
    approved_count: int,
    passed_count: int,
    total_decisions: int,
    logger: ProgressLogger | None,
) -> float:
    mult = 1.0

    if approved_mean < BASELINE_SCORE and approved_count >= MIN_APPROVED_FOR_DECREASE:
        mult = max(MIN_MULT, 1 - (BASELINE_SCORE - approved_mean) / 100)
        if logger:
            logger.decision(
                dimension,
                f"less important (avg approved: {approved_mean:.1f}), mult: {mult:.2f}",
            )

    # Evaluated last: a high pass count overrides a low approved mean
    if (
        passed_count >= MIN_PASSES_FOR_INCREASE
        and passed_count > approved_count * PASS_SHARE_THRESHOLD
    ):
        mult = min(MAX_MULT, 1 + (passed_count / total_decisions) * INCREASE_SCALE)
        if logger:
            logger.decision(dimension, f"more important ({passed_count} passed), mult: {mult:.2f}")

    return mult


def compute_adjustments(
    deal_id: str,
    decisions: list[BuyerDealScore],
    logger: ProgressLogger | None = None,
    now: datetime | None = None,
) -> RecalculationResult:
    """
    Derive weight multipliers from a deal's full decision history.

    Pure function of `decisions`: the same rows always give the same
    multipliers. Multipliers stay at 1.0 until there are at least two
    qualifying decisions.
    """
    approved = [row for row in decisions if _is_approved(row)]
    passed = {name: 0 for name in DIMENSIONS}
    for row in decisions:
        if row.passed_on_deal:
            for bucket in pass_buckets(row.pass_category):
                passed[bucket] += 1

    means: dict[str, float] = {}
    for name, (attr, _label) in DIMENSIONS.items():
        values = [getattr(row, attr) for row in approved if getattr(row, attr) is not None]
        means[name] = _mean(values)

    total = len(approved) + sum(passed.values())
    multipliers = {name: 1.0 for name in DIMENSIONS}
    if total >= MIN_DECISIONS:
        for name in DIMENSIONS:
            multipliers[name] = _adjust_multiplier(
                name, means[name], len(approved), passed[name], total, logger
            )

    adjustments = ScoringAdjustments(
        deal_id=deal_id,
        geography_weight_mult=multipliers["geography"],
        size_weight_mult=multipliers["size"],
        services_weight_mult=multipliers["services"],
        approved_count=len(approved),
        rejected_count=sum(1 for row in decisions if row.hidden_from_deal),
        passed_geography=passed["geography"],
        passed_size=passed["size"],
        passed_services=passed["services"],
        last_calculated_at=now or datetime.now(UTC),
    )
    return RecalculationResult(
        adjustments=adjustments,
        insights=generate_insights(adjustments),
        total_decisions=total,
        average_approved_scores={name: round(mean, 1) for name, mean in means.items()},
    )


def generate_insights(adjustments: ScoringAdjustments) -> list[str]:
    """One human-readable sentence per multiplier that moved noticeably."""
    rows = [
        ("Geography", "geo", "geography", adjustments.geography_weight_mult, adjustments.passed_geography),
        ("Size", "size", "size", adjustments.size_weight_mult, adjustments.passed_size),
        ("Services", "service", "services", adjustments.services_weight_mult, adjustments.passed_services),
    ]
    insights = []
    for label, score_word, reason_word, mult, passed in rows:
        pct = int(mult * 100 + 0.5)
        if mult < INSIGHT_LOW:
            insights.append(
                f"{label} weight reduced to {pct}% - approved buyers show lower {score_word} scores"
            )
        elif mult > INSIGHT_HIGH:
            insights.append(
                f"{label} weight increased to {pct}% - {passed} buyers passed due to {reason_word}"
            )
    return insights


# =============================================================================
# STORE-BACKED OPERATIONS
# =============================================================================


def recalculate_deal_weights(
    store: Store, deal_id: str, logger: ProgressLogger | None = None
) -> RecalculationResult:
    """Recompute and upsert the deal's adjustments row."""
    deal = store.get_deal(deal_id)
    decisions = store.list_scores(deal_id=deal.id)
    if logger:
        logger.phase("Recalculate", f"{deal.deal_name or deal.id}: {len(decisions)} decision rows")

    result = compute_adjustments(deal.id, decisions, logger)
    store.upsert_adjustments(result.adjustments)
    return result


def get_adjustments(store: Store, deal_id: str) -> ScoringAdjustments:
    """Stored adjustments, or neutral 1.0 multipliers if never calculated."""
    return store.get_adjustments(deal_id) or ScoringAdjustments(deal_id=deal_id)


def reset_adjustments(store: Store, deal_id: str) -> bool:
    """Delete the deal's learned adjustments. True if a row existed."""
    return store.delete_adjustments(deal_id)
