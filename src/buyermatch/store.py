"""
BuyerMatch store - JSON-file persistence for deals, buyers and decisions.

Only the operations the engine needs: fetch by id or filter, upsert by id,
delete by id list. Every write is idempotent so an interrupted merge can be
re-run safely.
"""

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .models import (
    Buyer,
    BuyerDealScore,
    ChildRecord,
    ChildTable,
    Deal,
    ScoringAdjustments,
)

DEFAULT_DATA_FILE = "buyermatch.json"


class RecordNotFoundError(LookupError):
    """Raised when a deal or buyer id does not exist."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} not found: {record_id}")
        self.kind = kind
        self.record_id = record_id


class StoreData(BaseModel):
    """On-disk layout of the store file."""

    model_config = ConfigDict(extra="forbid")

    deals: list[Deal] = Field(default_factory=list)
    buyers: list[Buyer] = Field(default_factory=list)
    buyer_deal_scores: list[BuyerDealScore] = Field(default_factory=list)
    deal_scoring_adjustments: list[ScoringAdjustments] = Field(default_factory=list)
    child_records: list[ChildRecord] = Field(default_factory=list)


def get_data_path() -> Path:
    """Store file location: $BUYERMATCH_DATA or ./buyermatch.json."""
    return Path(os.getenv("BUYERMATCH_DATA", DEFAULT_DATA_FILE))


class Store:
    """In-memory tables keyed by id, loaded from and saved to one JSON file."""

    def __init__(self, path: Path | None = None):
        self.path = path
        self.deals: dict[str, Deal] = {}
        self.buyers: dict[str, Buyer] = {}
        self.scores: dict[str, BuyerDealScore] = {}
        self.adjustments: dict[str, ScoringAdjustments] = {}
        self.children: dict[str, ChildRecord] = {}

    @classmethod
    def load(cls, path: Path) -> "Store":
        """Load a store file; a missing file gives an empty store."""
        store = cls(path)
        if path.exists():
            data = StoreData.model_validate_json(path.read_text(encoding="utf-8"))
            store.deals = {d.id: d for d in data.deals}
            store.buyers = {b.id: b for b in data.buyers}
            store.scores = {s.id: s for s in data.buyer_deal_scores}
            store.adjustments = {a.deal_id: a for a in data.deal_scoring_adjustments}
            store.children = {c.id: c for c in data.child_records}
        return store

    def save(self, path: Path | None = None) -> Path:
        """Write every table back to disk."""
        target = path or self.path
        if target is None:
            raise ValueError("No store path configured")
        data = StoreData(
            deals=list(self.deals.values()),
            buyers=list(self.buyers.values()),
            buyer_deal_scores=list(self.scores.values()),
            deal_scoring_adjustments=list(self.adjustments.values()),
            child_records=list(self.children.values()),
        )
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(data.model_dump_json(indent=2), encoding="utf-8")
        return target

    # -------------------------------------------------------------------------
    # Deals / buyers
    # -------------------------------------------------------------------------

    def get_deal(self, deal_id: str) -> Deal:
        if deal_id not in self.deals:
            raise RecordNotFoundError("Deal", deal_id)
        return self.deals[deal_id]

    def upsert_deal(self, deal: Deal) -> Deal:
        self.deals[deal.id] = deal
        return deal

    def get_buyer(self, buyer_id: str) -> Buyer:
        if buyer_id not in self.buyers:
            raise RecordNotFoundError("Buyer", buyer_id)
        return self.buyers[buyer_id]

    def upsert_buyer(self, buyer: Buyer) -> Buyer:
        self.buyers[buyer.id] = buyer
        return buyer

    def list_buyers(
        self, tracker_id: str | None = None, ids: list[str] | None = None
    ) -> list[Buyer]:
        """Buyers in insertion order, filtered by tracker and/or id list."""
        buyers = list(self.buyers.values())
        if tracker_id is not None:
            buyers = [b for b in buyers if b.tracker_id == tracker_id]
        if ids is not None:
            wanted = set(ids)
            buyers = [b for b in buyers if b.id in wanted]
        return buyers

    def update_buyer(self, buyer_id: str, **fields: object) -> Buyer:
        """Replace selected fields on a buyer (validated)."""
        buyer = self.get_buyer(buyer_id)
        updated = Buyer.model_validate({**buyer.model_dump(), **fields})
        self.buyers[buyer_id] = updated
        return updated

    def delete_buyers(self, buyer_ids: list[str]) -> int:
        """Delete buyers by id. Already-absent ids are ignored."""
        deleted = 0
        for buyer_id in buyer_ids:
            if self.buyers.pop(buyer_id, None) is not None:
                deleted += 1
        return deleted

    # -------------------------------------------------------------------------
    # Scores / decisions
    # -------------------------------------------------------------------------

    def upsert_score(self, score: BuyerDealScore) -> BuyerDealScore:
        self.scores[score.id] = score
        return score

    def list_scores(
        self, deal_id: str | None = None, buyer_id: str | None = None
    ) -> list[BuyerDealScore]:
        scores = list(self.scores.values())
        if deal_id is not None:
            scores = [s for s in scores if s.deal_id == deal_id]
        if buyer_id is not None:
            scores = [s for s in scores if s.buyer_id == buyer_id]
        return scores

    # -------------------------------------------------------------------------
    # Scoring adjustments (one row per deal)
    # -------------------------------------------------------------------------

    def get_adjustments(self, deal_id: str) -> ScoringAdjustments | None:
        return self.adjustments.get(deal_id)

    def upsert_adjustments(self, adjustments: ScoringAdjustments) -> ScoringAdjustments:
        self.adjustments[adjustments.deal_id] = adjustments
        return adjustments

    def delete_adjustments(self, deal_id: str) -> bool:
        return self.adjustments.pop(deal_id, None) is not None

    # -------------------------------------------------------------------------
    # Child records
    # -------------------------------------------------------------------------

    def upsert_child(self, child: ChildRecord) -> ChildRecord:
        self.children[child.id] = child
        return child

    def list_children(
        self, buyer_id: str | None = None, table: ChildTable | None = None
    ) -> list[ChildRecord]:
        children = list(self.children.values())
        if buyer_id is not None:
            children = [c for c in children if c.buyer_id == buyer_id]
        if table is not None:
            children = [c for c in children if c.table == table]
        return children

    def repoint_children(self, from_ids: list[str], to_id: str) -> int:
        """
        Move every row owned by from_ids (child records and scores) to to_id.

        Returns the number of rows changed; rows already on to_id are untouched.
        """
        sources = set(from_ids) - {to_id}
        moved = 0
        for child_id, child in self.children.items():
            if child.buyer_id in sources:
                self.children[child_id] = child.model_copy(update={"buyer_id": to_id})
                moved += 1
        for score_id, score in self.scores.items():
            if score.buyer_id in sources:
                self.scores[score_id] = score.model_copy(update={"buyer_id": to_id})
                moved += 1
        return moved
