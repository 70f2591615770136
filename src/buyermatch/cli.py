"""
BuyerMatch CLI - command line interface.
"""

import os
import sys
import uuid
from datetime import datetime
from pathlib import Path

import click
from dotenv import load_dotenv
from pydantic import BaseModel

from .logger import ProgressLogger
from .store import RecordNotFoundError, Store, get_data_path

# Load environment variables
load_dotenv()


def _new_run_id(command: str) -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S") + f"_{command}_" + uuid.uuid4().hex[:6]


def _open_store(data: str | None) -> Store:
    path = Path(data) if data else get_data_path()
    if not path.exists():
        click.echo(f"Store file not found: {path}", err=True)
        sys.exit(1)
    try:
        return Store.load(path)
    except ValueError as e:
        click.echo(f"Invalid store file {path}: {e}", err=True)
        sys.exit(1)


def _export(result: BaseModel, output: str | None, name: str) -> None:
    if not output:
        return
    from .exporter import export_result

    for path in export_result(result, Path(output), name):
        click.echo(f"  Wrote: {path}")


data_option = click.option(
    "--data",
    "-d",
    type=click.Path(),
    default=None,
    help="Store JSON file (default: $BUYERMATCH_DATA or buyermatch.json)",
)
output_option = click.option(
    "--output",
    "-o",
    type=click.Path(),
    default=None,
    help="Write <name>.json and report.md into this directory",
)
verbose_option = click.option("--verbose", "-v", is_flag=True, help="Show decisions and skips")


@click.group()
@click.version_option(version="0.1.0", prog_name="buyermatch")
def main() -> None:
    """BuyerMatch - buyer/deal fit scoring for M&A trackers"""
    pass


@main.command()
def check() -> None:
    """Show which configuration is in effect."""
    click.echo("Checking configuration...\n")

    openai_key = os.getenv("OPENAI_API_KEY")
    if openai_key:
        click.echo(f"  OPENAI_API_KEY:  {openai_key[:8]}...{openai_key[-4:]} (semantic service fit)")
    else:
        click.echo("  OPENAI_API_KEY:  NOT SET (keyword service fit only)")

    base_url = os.getenv("OPENAI_BASE_URL")
    click.echo(f"  OPENAI_BASE_URL: {base_url or 'default'}")
    click.echo(f"  Model:           {os.getenv('BUYERMATCH_MODEL', 'gpt-4o-mini')}")

    from .criteria import get_trackers_dir

    data_path = get_data_path()
    click.echo(f"\n  Store:    {data_path} ({'found' if data_path.exists() else 'missing'})")
    trackers_dir = get_trackers_dir()
    click.echo(f"  Trackers: {trackers_dir} ({'found' if trackers_dir.exists() else 'missing'})")

    if not data_path.exists():
        click.echo("\nNo store file. Set BUYERMATCH_DATA or pass --data to each command.")
        sys.exit(1)


@main.command()
@click.argument("geography", nargs=-1)
@click.option("--region", "-r", default=None, help="List the states in a named region instead")
@verbose_option
def normalize(geography: tuple[str, ...], region: str | None, verbose: bool) -> None:
    """Normalize free-text geography into state codes."""
    from .adjacency import REGIONS, regions_for_state, states_in_region
    from .geography import REGION_TO_STATES, normalize_geography

    if region:
        # Census regions first, then the normalizer's wider vocabulary (Tri-State)
        states = states_in_region(region)
        if not states:
            states = sorted(REGION_TO_STATES.get(region.strip().lower(), ()))
        if not states:
            click.echo(f"Unknown region: {region}", err=True)
            click.echo(f"Known regions: {', '.join(REGIONS)}", err=True)
            sys.exit(1)
        click.echo(", ".join(states))
        return

    if not geography:
        click.echo("Nothing to normalize. Pass one or more geography strings.", err=True)
        sys.exit(1)

    logger = ProgressLogger(_new_run_id("normalize"), verbose=verbose)
    states = normalize_geography(list(geography), logger)
    click.echo(", ".join(states) if states else "(no states recognized)")
    if verbose and len(states) == 1:
        click.echo(f"  Regions: {', '.join(regions_for_state(states[0])) or 'none'}")


@main.command("score-geography")
@click.argument("deal_id")
@click.option("--buyer", "-b", "buyer_ids", multiple=True, help="Buyer id (default: deal's tracker)")
@data_option
@output_option
@verbose_option
def score_geography(
    deal_id: str,
    buyer_ids: tuple[str, ...],
    data: str | None,
    output: str | None,
    verbose: bool,
) -> None:
    """Score geographic fit of buyers for a deal."""
    from .geo_scorer import score_deal_geography

    store = _open_store(data)
    logger = ProgressLogger(_new_run_id("geography"), verbose=verbose)
    try:
        result = score_deal_geography(store, deal_id, list(buyer_ids) or None, logger)
    except RecordNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"\n{'Buyer':<30} {'Score':>5}  Explanation")
    click.echo("-" * 80)
    for score in sorted(result.scores, key=lambda s: -s.score):
        name = store.buyers[score.buyer_id].display_name() if score.buyer_id in store.buyers else "?"
        click.echo(f"{name[:30]:<30} {score.score:>5}  {score.explanation}")

    _export(result, output, "geography")
    logger.finish(f"{len(result.scores)} buyers, {result.disqualified_count} disqualified")


@main.command("service-fit")
@click.argument("deal_id")
@click.argument("buyer_id")
@click.option("--keyword-only", is_flag=True, help="Skip the semantic (AI) path")
@data_option
@verbose_option
def service_fit(
    deal_id: str, buyer_id: str, keyword_only: bool, data: str | None, verbose: bool
) -> None:
    """Score service fit of one buyer for one deal."""
    from .criteria import TrackerCriteria, load_criteria_or_empty
    from .service_fit import ServiceFitScorer, get_service_scorer

    store = _open_store(data)
    logger = ProgressLogger(_new_run_id("service"), verbose=verbose)
    try:
        deal = store.get_deal(deal_id)
        buyer = store.get_buyer(buyer_id)
    except RecordNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    tracker_id = deal.tracker_id or buyer.tracker_id
    criteria = load_criteria_or_empty(tracker_id, logger)
    if criteria is None:
        criteria = TrackerCriteria(tracker_id=tracker_id)
    if criteria.services.is_empty():
        logger.info(f"No service criteria for tracker {tracker_id}")

    scorer = ServiceFitScorer(logger=logger) if keyword_only else get_service_scorer(logger)
    result = scorer.score(
        criteria.to_request(deal.service_mix, buyer.services_offered, buyer.target_services)
    )

    click.echo(f"\nService fit: {buyer.display_name()} -> {deal.deal_name or deal.id}")
    click.echo("-" * 40)
    click.echo(f"Score:      {result.score}")
    click.echo(f"Alignment:  {result.alignment}")
    click.echo(f"Confidence: {result.confidence}")
    click.echo(f"Used AI:    {'yes' if result.used_ai else 'no'}")
    if result.matched_services:
        click.echo(f"Matched:    {', '.join(result.matched_services)}")
    if result.conflicting_services:
        click.echo(f"Conflicts:  {', '.join(result.conflicting_services)}")
    click.echo(f"\n{result.reasoning}")


@main.command()
@click.argument("deal_id")
@data_option
@output_option
@verbose_option
def recalculate(deal_id: str, data: str | None, output: str | None, verbose: bool) -> None:
    """Recompute learned weight multipliers for a deal."""
    from .adjustments import recalculate_deal_weights

    store = _open_store(data)
    logger = ProgressLogger(_new_run_id("weights"), verbose=verbose)
    try:
        result = recalculate_deal_weights(store, deal_id, logger)
    except RecordNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    store.save()

    adj = result.adjustments
    click.echo(f"\nGeography: {adj.geography_weight_mult:.2f}")
    click.echo(f"Size:      {adj.size_weight_mult:.2f}")
    click.echo(f"Services:  {adj.services_weight_mult:.2f}")
    click.echo(f"\nDecisions: {result.total_decisions} (approved {adj.approved_count})")
    for insight in result.insights:
        click.echo(f"  - {insight}")

    _export(result, output, "weights")


@main.command("reset-weights")
@click.argument("deal_id")
@data_option
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def reset_weights(deal_id: str, data: str | None, yes: bool) -> None:
    """Delete a deal's learned weights (back to neutral)."""
    from .adjustments import reset_adjustments

    store = _open_store(data)
    if not yes:
        click.confirm(f"Reset learned weights for deal '{deal_id}'?", abort=True)

    if reset_adjustments(store, deal_id):
        store.save()
        click.echo(f"Reset: {deal_id}")
    else:
        click.echo(f"No learned weights for deal: {deal_id}")


@main.command()
@click.argument("tracker_id")
@click.option("--merge", is_flag=True, help="Merge duplicates (default: preview only)")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@data_option
@output_option
@verbose_option
def dedupe(
    tracker_id: str,
    merge: bool,
    yes: bool,
    data: str | None,
    output: str | None,
    verbose: bool,
) -> None:
    """Find (and optionally merge) duplicate buyers in a tracker."""
    from .dedupe import dedupe_buyers

    store = _open_store(data)
    logger = ProgressLogger(_new_run_id("dedupe"), verbose=verbose)

    preview = dedupe_buyers(store, tracker_id, preview_only=True, logger=logger)
    if not preview.groups:
        click.echo("No duplicates found.")
        return

    click.echo(f"\n{len(preview.groups)} groups, {preview.total_duplicates} duplicates\n")
    for group in preview.groups:
        click.echo(f"  [{group.match_type}] {group.key}: keep {group.keeper_name or group.keeper_id}")
        for name in group.platform_names[1:]:
            click.echo(f"      merge {name}")

    result = preview
    if merge:
        if not yes:
            click.confirm("Merge these groups? This deletes the duplicate rows", abort=True)
        result = dedupe_buyers(store, tracker_id, preview_only=False, logger=logger)
        store.save()
        for err in result.errors:
            click.echo(f"  - {err}", err=True)

    _export(result, output, "dedupe")
    logger.finish(
        f"{result.groups_merged} merged, {result.duplicates_deleted} deleted"
        if merge
        else "Preview only; re-run with --merge to apply"
    )


if __name__ == "__main__":
    main()
