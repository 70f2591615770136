"""
BuyerMatch data models - strict Pydantic schemas for buyer/deal matching.

Design principles:
- extra="forbid" everywhere (fail fast on unknown fields from the store or the AI)
- Free-text geography stays free text on the records; canonical state codes
  only exist on derived results
- Missing data is a first-class value (None / empty list), never an error
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# TYPE LITERALS
# =============================================================================

PassCategory = Literal[
    "geography",
    "size",
    "size_too_small",
    "size_too_large",
    "services",
    "industry",
    "timing",
    "portfolio_conflict",
    "other",
]

Alignment = Literal["strong", "good", "partial", "weak", "conflict"]

Confidence = Literal["high", "medium", "low"]

MatchType = Literal["platform_domain", "pe_firm_domain", "pe_firm_name", "platform_name"]

ChildTable = Literal[
    "buyer_contacts",
    "buyer_deal_scores",
    "buyer_transcripts",
    "call_intelligence",
    "outreach_records",
]


def _now() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# DEAL
# =============================================================================


class Deal(BaseModel):
    """A target company for sale."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    tracker_id: str | None = Field(default=None, description="Owning buyer universe")
    deal_name: str = Field(default="", description="Display name")

    # Geography
    geography: list[str] = Field(default_factory=list, description="Free-text operating states")
    headquarters: str | None = Field(default=None, description="City, State free text")
    location_count: int = Field(default=1, ge=1, description="Number of operating locations")

    # Size
    revenue: float | None = Field(default=None, description="Revenue in $M")
    ebitda: float | None = Field(default=None, description="EBITDA in $M")

    # Services
    service_mix: str | None = Field(default=None, description="Free-text service description")

    created_at: datetime = Field(default_factory=_now)


# =============================================================================
# BUYER
# =============================================================================


class Buyer(BaseModel):
    """
    An acquisition entity: conceptually a (PE firm, platform company) pair.
    Legacy rows may carry only the PE firm.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    tracker_id: str = Field(..., min_length=1)

    # Identity
    pe_firm_name: str | None = None
    pe_firm_website: str | None = None
    platform_company_name: str | None = None
    platform_website: str | None = None

    # Geography (four overlapping free-text signals)
    hq_city: str | None = None
    hq_state: str | None = None
    hq_country: str | None = None
    target_geographies: list[str] = Field(default_factory=list)
    service_regions: list[str] = Field(default_factory=list)
    geographic_footprint: list[str] = Field(default_factory=list)
    operating_locations: list[dict[str, Any]] = Field(
        default_factory=list, description="Structured locations, presence only"
    )

    # Services
    services_offered: str | None = None
    target_services: list[str] = Field(default_factory=list)
    target_industries: list[str] = Field(default_factory=list)

    # Thesis / profile
    business_summary: str | None = None
    thesis_summary: str | None = None
    strategic_priorities: str | None = None
    portfolio_companies: list[str] = Field(default_factory=list)
    recent_acquisitions: list[str] = Field(default_factory=list)
    deal_breakers: list[str] = Field(default_factory=list)
    key_quotes: list[str] = Field(default_factory=list)

    # Size criteria
    min_revenue: float | None = None
    max_revenue: float | None = None
    min_ebitda: float | None = None
    max_ebitda: float | None = None
    acquisition_frequency: str | None = None
    acquisition_timeline: str | None = None

    created_at: datetime = Field(default_factory=_now)

    def display_name(self) -> str:
        """Platform name, falling back to PE firm name."""
        return self.platform_company_name or self.pe_firm_name or self.id


# =============================================================================
# BUYER / DEAL SCORE (decision history)
# =============================================================================


class BuyerDealScore(BaseModel):
    """One buyer scored against one deal, plus the user's decision on it."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    buyer_id: str = Field(..., min_length=1)
    deal_id: str = Field(..., min_length=1)

    # Dimension sub-scores (0-100)
    geography_score: float | None = Field(default=None, ge=0, le=100)
    acquisition_score: float | None = Field(default=None, ge=0, le=100, description="Size")
    service_score: float | None = Field(default=None, ge=0, le=100)
    composite_score: float | None = Field(default=None, ge=0, le=100)
    fit_reasoning: str | None = None

    # Decisions
    selected_for_outreach: bool = False
    passed_on_deal: bool = False
    pass_category: str | None = Field(
        default=None, description="Usually a PassCategory; legacy rows hold free text"
    )
    pass_reason: str | None = None
    interested: bool = False
    hidden_from_deal: bool = False

    scored_at: datetime = Field(default_factory=_now)


# =============================================================================
# SCORING ADJUSTMENTS (learned weights, one per deal)
# =============================================================================


class ScoringAdjustments(BaseModel):
    """Weight multipliers learned from approve/pass decisions for one deal."""

    model_config = ConfigDict(extra="forbid")

    deal_id: str = Field(..., min_length=1)
    geography_weight_mult: float = Field(default=1.0, ge=0.6, le=1.4)
    size_weight_mult: float = Field(default=1.0, ge=0.6, le=1.4)
    services_weight_mult: float = Field(default=1.0, ge=0.6, le=1.4)

    approved_count: int = Field(default=0, ge=0)
    rejected_count: int = Field(default=0, ge=0)
    passed_geography: int = Field(default=0, ge=0)
    passed_size: int = Field(default=0, ge=0)
    passed_services: int = Field(default=0, ge=0)

    last_calculated_at: datetime | None = Field(default=None)


class RecalculationResult(BaseModel):
    """Adjustments plus the explanation of how they were reached."""

    model_config = ConfigDict(extra="forbid")

    adjustments: ScoringAdjustments
    insights: list[str] = Field(default_factory=list)
    total_decisions: int = 0
    average_approved_scores: dict[str, float] = Field(default_factory=dict)


# =============================================================================
# CHILD RECORDS (anything keyed by buyer_id that is not a score)
# =============================================================================


class ChildRecord(BaseModel):
    """A row in one of the buyer-owned child tables (contacts, transcripts, ...)."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    table: ChildTable
    buyer_id: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# GEOGRAPHY RESULTS
# =============================================================================


class BuyerGeographyProfile(BaseModel):
    """A buyer's geographic signals, resolved to canonical codes."""

    model_config = ConfigDict(extra="forbid")

    buyer_id: str | None = None
    states: list[str] = Field(default_factory=list, description="US state codes")
    provinces: list[str] = Field(default_factory=list, description="Canadian province codes")
    has_operating_locations: bool = False

    @property
    def is_canada_only(self) -> bool:
        return not self.states and bool(self.provinces)


class GeographyScore(BaseModel):
    """Geography fit of one buyer for one deal."""

    model_config = ConfigDict(extra="forbid")

    buyer_id: str | None = None
    score: int = Field(..., ge=0, le=100)
    disqualified: bool = False
    reason: str | None = Field(default=None, description="Disqualification reason")
    explanation: str = Field(..., min_length=1)


class DealGeographyResult(BaseModel):
    """Geography scores for every buyer considered for a deal."""

    model_config = ConfigDict(extra="forbid")

    deal_id: str
    deal_states: list[str] = Field(default_factory=list)
    deal_location_count: int = 1
    scores: list[GeographyScore] = Field(default_factory=list)

    @property
    def disqualified_count(self) -> int:
        return sum(1 for s in self.scores if s.disqualified)


# =============================================================================
# SERVICE FIT
# =============================================================================


class TrackerServiceCriteria(BaseModel):
    """Service criteria configured on a tracker (buyer universe)."""

    model_config = ConfigDict(extra="forbid")

    required_services: list[str] = Field(default_factory=list)
    preferred_services: list[str] = Field(default_factory=list)
    excluded_services: list[str] = Field(default_factory=list)
    primary_focus: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.required_services
            or self.preferred_services
            or self.excluded_services
            or self.primary_focus
        )


class ServiceFitRequest(BaseModel):
    """Inputs to a service-fit comparison."""

    model_config = ConfigDict(extra="forbid")

    deal_service_text: str | None = None
    criteria: TrackerServiceCriteria = Field(default_factory=TrackerServiceCriteria)
    buyer_services_text: str | None = None
    buyer_target_services: list[str] = Field(default_factory=list)
    industry_name: str = ""


class ServiceFitResult(BaseModel):
    """Service fit of one buyer for one deal, from either scoring path."""

    model_config = ConfigDict(extra="forbid")

    score: int = Field(..., ge=0, le=100)
    alignment: Alignment
    reasoning: str = ""
    matched_services: list[str] = Field(default_factory=list)
    conflicting_services: list[str] = Field(default_factory=list)
    confidence: Confidence
    used_ai: bool = False


# =============================================================================
# DEDUPLICATION
# =============================================================================


class DuplicateGroup(BaseModel):
    """A set of buyer rows that refer to the same real-world entity."""

    model_config = ConfigDict(extra="forbid")

    key: str
    match_type: MatchType
    keeper_id: str
    duplicate_ids: list[str] = Field(default_factory=list)
    buyer_ids: list[str] = Field(default_factory=list, description="Keeper first")
    platform_names: list[str] = Field(default_factory=list)
    pe_firm_names: list[str | None] = Field(default_factory=list)
    merged_pe_firm_name: str = ""
    keeper_name: str = ""

    @property
    def count(self) -> int:
        return len(self.buyer_ids)


class DedupeResult(BaseModel):
    """Outcome of a dedupe run (preview or merge)."""

    model_config = ConfigDict(extra="forbid")

    tracker_id: str
    preview_only: bool = True
    groups: list[DuplicateGroup] = Field(default_factory=list)
    groups_merged: int = 0
    duplicates_deleted: int = 0
    errors: list[str] = Field(default_factory=list)

    @property
    def total_duplicates(self) -> int:
        return sum(len(g.duplicate_ids) for g in self.groups)
