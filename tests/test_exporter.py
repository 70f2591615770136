"""Tests for JSON and markdown export."""

import json
from pathlib import Path

import pytest

from buyermatch.exporter import (
    dedupe_report,
    export_json,
    export_result,
    geography_report,
    recalculation_report,
)
from buyermatch.models import (
    DealGeographyResult,
    DedupeResult,
    DuplicateGroup,
    GeographyScore,
    RecalculationResult,
    ScoringAdjustments,
    ServiceFitResult,
)


@pytest.fixture
def geography_result() -> DealGeographyResult:
    """Two scored buyers, one disqualified."""
    return DealGeographyResult(
        deal_id="deal-1",
        deal_states=["WY"],
        scores=[
            GeographyScore(buyer_id="b-fl", score=0, disqualified=True, reason="too far", explanation="too far"),
            GeographyScore(buyer_id="b-co", score=75, explanation="Adjacent state presence (CO)"),
        ],
    )


class TestExportJson:
    """Tests for export_json."""

    def test_writes_model(self, tmp_path: Path, geography_result: DealGeographyResult) -> None:
        """Test the JSON file mirrors the model."""
        path = export_json(geography_result, tmp_path / "out" / "geo.json")
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["deal_id"] == "deal-1"
        assert len(data["scores"]) == 2


class TestReports:
    """Tests for markdown reports."""

    def test_geography_report_sorted(self, geography_result: DealGeographyResult) -> None:
        """Test best scores come first and disqualifications are flagged."""
        report = geography_report(geography_result)
        assert report.startswith("# BuyerMatch Geography Report")
        assert "| Disqualified | 1 |" in report
        assert report.index("| b-co | 75 |") < report.index("| b-fl | 0 | yes |")

    def test_recalculation_report(self) -> None:
        """Test multipliers and insights are listed."""
        result = RecalculationResult(
            adjustments=ScoringAdjustments(deal_id="deal-1", size_weight_mult=1.25, passed_size=2),
            insights=["Size weight increased to 125% - 2 buyers passed due to size"],
            total_decisions=4,
            average_approved_scores={"geography": 70.0, "size": 50.0, "services": 80.0},
        )
        report = recalculation_report(result)
        assert "| Size | 1.25 | 2 | 50.0 |" in report
        assert "- Total qualifying decisions: 4" in report
        assert "## Insights" in report
        assert "- Size weight increased to 125%" in report

    def test_recalculation_report_no_insights(self) -> None:
        """Test the insights section is omitted when empty."""
        report = recalculation_report(RecalculationResult(adjustments=ScoringAdjustments(deal_id="d")))
        assert "## Insights" not in report

    def test_dedupe_report(self) -> None:
        """Test groups and errors are listed."""
        result = DedupeResult(
            tracker_id="collision",
            preview_only=False,
            groups=[
                DuplicateGroup(
                    key="acme.com",
                    match_type="platform_domain",
                    keeper_id="keep",
                    duplicate_ids=["dup"],
                    buyer_ids=["keep", "dup"],
                    keeper_name="Acme",
                    merged_pe_firm_name="Summit / Peak",
                )
            ],
            groups_merged=1,
            duplicates_deleted=1,
            errors=['Error processing group "x": boom'],
        )
        report = dedupe_report(result)
        assert "| Mode | merge |" in report
        assert "| acme.com | platform_domain | Acme | 2 | Summit / Peak |" in report
        assert '- Error processing group "x": boom' in report


class TestExportResult:
    """Tests for export_result."""

    def test_writes_json_and_report(self, tmp_path: Path, geography_result: DealGeographyResult) -> None:
        """Test both files are written."""
        paths = export_result(geography_result, tmp_path, "geography")
        assert [p.name for p in paths] == ["geography.json", "report.md"]
        assert all(p.exists() for p in paths)

    def test_unknown_result_type(self, tmp_path: Path) -> None:
        """Test results without a report raise."""
        result = ServiceFitResult(score=50, alignment="partial", confidence="low")
        with pytest.raises(TypeError):
            export_result(result, tmp_path, "service")
