"""
BuyerMatch exporter - JSON results plus a markdown report per run.
"""

import json
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel

from .models import DealGeographyResult, DedupeResult, RecalculationResult


def export_json(result: BaseModel, output: Path) -> Path:
    """Write a result model as indented JSON (canonical format)."""
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w", encoding="utf-8") as f:
        json.dump(result.model_dump(mode="json"), f, indent=2, default=str)
    return output


def _header(title: str) -> str:
    return f"# {title}\n\nGenerated: {datetime.now(UTC).isoformat()}\n"


def geography_report(result: DealGeographyResult) -> str:
    """Markdown summary of a deal's geography scores, best first."""
    report = _header("BuyerMatch Geography Report")
    report += f"""
## Deal
| Field | Value |
|---|---|
| Deal ID | {result.deal_id} |
| States | {", ".join(result.deal_states) or "Unknown"} |
| Locations | {result.deal_location_count} |
| Buyers Scored | {len(result.scores)} |
| Disqualified | {result.disqualified_count} |

## Scores
| Buyer | Score | Disqualified | Explanation |
|---|---|---|---|
"""
    for score in sorted(result.scores, key=lambda s: -s.score):
        flag = "yes" if score.disqualified else ""
        report += f"| {score.buyer_id} | {score.score} | {flag} | {score.explanation} |\n"
    return report


def recalculation_report(result: RecalculationResult) -> str:
    """Markdown summary of learned weight multipliers."""
    adj = result.adjustments
    report = _header("BuyerMatch Weight Report")
    report += f"""
## Multipliers
| Dimension | Multiplier | Passed | Avg Approved Score |
|---|---|---|---|
| Geography | {adj.geography_weight_mult:.2f} | {adj.passed_geography} | {result.average_approved_scores.get("geography", 50.0):.1f} |
| Size | {adj.size_weight_mult:.2f} | {adj.passed_size} | {result.average_approved_scores.get("size", 50.0):.1f} |
| Services | {adj.services_weight_mult:.2f} | {adj.passed_services} | {result.average_approved_scores.get("services", 50.0):.1f} |

## Decisions
- Deal: {adj.deal_id}
- Total qualifying decisions: {result.total_decisions}
- Approved: {adj.approved_count}
- Hidden: {adj.rejected_count}
"""
    if result.insights:
        report += "\n## Insights\n"
        for insight in result.insights:
            report += f"- {insight}\n"
    return report


def dedupe_report(result: DedupeResult) -> str:
    """Markdown summary of duplicate groups and merge outcome."""
    report = _header("BuyerMatch Dedupe Report")
    mode = "preview" if result.preview_only else "merge"
    report += f"""
## Run
| Field | Value |
|---|---|
| Tracker | {result.tracker_id} |
| Mode | {mode} |
| Groups Found | {len(result.groups)} |
| Duplicates | {result.total_duplicates} |
| Groups Merged | {result.groups_merged} |
| Duplicates Deleted | {result.duplicates_deleted} |

## Groups
| Key | Match | Keeper | Members | Merged PE Firm |
|---|---|---|---|---|
"""
    for group in result.groups:
        report += (
            f"| {group.key} | {group.match_type} | {group.keeper_name or group.keeper_id} "
            f"| {group.count} | {group.merged_pe_firm_name} |\n"
        )

    if result.errors:
        report += "\n## Errors\n"
        for err in result.errors:
            report += f"- {err}\n"
    return report


def write_report(markdown: str, output: Path) -> Path:
    """Write a markdown report to disk."""
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w", encoding="utf-8") as f:
        f.write(markdown)
    return output


def export_result(result: BaseModel, output_dir: Path, name: str) -> list[Path]:
    """Write `<name>.json` and `report.md` for a scoring or dedupe result."""
    if isinstance(result, DealGeographyResult):
        markdown = geography_report(result)
    elif isinstance(result, RecalculationResult):
        markdown = recalculation_report(result)
    elif isinstance(result, DedupeResult):
        markdown = dedupe_report(result)
    else:
        raise TypeError(f"No report for {type(result).__name__}")
    return [
        export_json(result, output_dir / f"{name}.json"),
        write_report(markdown, output_dir / "report.md"),
    ]
