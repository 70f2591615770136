"""
BuyerMatch buyer deduplication - find and merge rows for the same acquirer.

Four passes, highest confidence first; a buyer claimed by an earlier pass is
not reconsidered later:
1. platform website domain
2. PE firm website domain + similar platform names
3. normalized PE firm name + similar platform names
4. normalized platform name
"""

import re
from collections.abc import Callable
from urllib.parse import urlparse

from .logger import ProgressLogger
from .models import Buyer, DedupeResult, DuplicateGroup, MatchType
from .store import Store

# =============================================================================
# NORMALIZATION
# =============================================================================

PE_FIRM_SUFFIXES = (
    "capital",
    "partners",
    "group",
    "holdings",
    "equity",
    "investments",
    "investment",
    "management",
    "advisors",
    "ventures",
    "fund",
    "llc",
    "lp",
    "inc",
    "co",
)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_WORD_RE = re.compile(r"[a-z0-9]+")
_HOST_RE = re.compile(r"^[a-z0-9-]+(\.[a-z0-9-]+)+$")


def normalize_domain(value: str | None) -> str | None:
    """
    Reduce a URL or bare domain to a lowercase host.

    Strips protocol, www, path and port. None unless the result is a dotted
    host name (letters, digits, hyphens).
    """
    if not value or not value.strip():
        return None
    domain = value.strip()
    if "://" in domain or "/" in domain:
        try:
            parsed = urlparse(domain if "://" in domain else f"https://{domain}")
            domain = parsed.netloc or domain
        except ValueError:
            # Scraped junk like "http://[acme.com/x"; fall through to string cleanup
            pass
    domain = re.sub(r"^https?://", "", domain, flags=re.IGNORECASE)
    domain = re.sub(r"^www\.", "", domain, flags=re.IGNORECASE)
    domain = domain.split("/")[0].split(":")[0].lower()
    if not _HOST_RE.match(domain):
        return None
    return domain


def normalize_name(value: str | None) -> str | None:
    """Lowercase and strip every non-alphanumeric character."""
    if not value:
        return None
    return _NON_ALNUM_RE.sub("", value.lower().strip()) or None


def normalize_pe_firm_name(value: str | None) -> str | None:
    """PE firm name without trailing corporate words ("Capital Partners", "Group")."""
    if not value:
        return None
    words = _WORD_RE.findall(value.lower())
    while len(words) > 1 and words[-1] in PE_FIRM_SUFFIXES:
        words.pop()
    return "".join(words) or None


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def names_similar(a: str | None, b: str | None) -> bool:
    """
    Fuzzy name match: equal after normalization, one contains the other, or
    within min(3, 20% of the longer length) edits.
    """
    na, nb = normalize_name(a), normalize_name(b)
    if not na or not nb:
        return False
    if na == nb or na in nb or nb in na:
        return True
    threshold = min(3, int(0.2 * max(len(na), len(nb))))
    return levenshtein(na, nb) <= threshold


# =============================================================================
# COMPLETENESS
# =============================================================================

COMPLETENESS_FIELDS = (
    "business_summary",
    "services_offered",
    "thesis_summary",
    "strategic_priorities",
    "target_industries",
    "target_geographies",
    "target_services",
    "portfolio_companies",
    "recent_acquisitions",
    "geographic_footprint",
    "hq_city",
    "hq_state",
    "hq_country",
    "min_revenue",
    "max_revenue",
    "min_ebitda",
    "max_ebitda",
    "acquisition_frequency",
    "acquisition_timeline",
    "deal_breakers",
    "key_quotes",
)

WEBSITE_BASE_POINTS = 1
WEBSITE_BONUS_POINTS = 2


def _is_filled(value: object) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, dict)):
        return bool(value)
    return True


def completeness_score(buyer: Buyer) -> int:
    """Count of populated profile fields; a platform website is worth 3."""
    score = sum(1 for field in COMPLETENESS_FIELDS if _is_filled(getattr(buyer, field)))
    if _is_filled(buyer.platform_website):
        score += WEBSITE_BASE_POINTS + WEBSITE_BONUS_POINTS
    return score


# =============================================================================
# GROUP DISCOVERY
# =============================================================================


def _platform_similar(a: Buyer, b: Buyer) -> bool:
    # Two PE-only legacy rows under the same firm key are the same firm
    if not normalize_name(a.platform_company_name) and not normalize_name(b.platform_company_name):
        return True
    return names_similar(a.platform_company_name, b.platform_company_name)


def _cluster_by_platform(members: list[Buyer]) -> list[list[Buyer]]:
    """Greedy clustering: join the first cluster whose seed name is similar."""
    clusters: list[list[Buyer]] = []
    for buyer in members:
        for cluster in clusters:
            if _platform_similar(cluster[0], buyer):
                cluster.append(buyer)
                break
        else:
            clusters.append([buyer])
    return clusters


def _bucket(buyers: list[Buyer], key_fn: Callable[[Buyer], str | None]) -> dict[str, list[Buyer]]:
    buckets: dict[str, list[Buyer]] = {}
    for buyer in buyers:
        key = key_fn(buyer)
        if key:
            buckets.setdefault(key, []).append(buyer)
    return buckets


def _make_group(key: str, match_type: MatchType, members: list[Buyer], order: dict[str, int]) -> DuplicateGroup:
    ranked = sorted(
        members,
        key=lambda b: (-completeness_score(b), b.created_at, order[b.id]),
    )
    keeper = ranked[0]

    pe_names: list[str] = []
    for buyer in ranked:
        if buyer.pe_firm_name and buyer.pe_firm_name.strip() not in pe_names:
            pe_names.append(buyer.pe_firm_name.strip())

    return DuplicateGroup(
        key=key,
        match_type=match_type,
        keeper_id=keeper.id,
        duplicate_ids=[b.id for b in ranked[1:]],
        buyer_ids=[b.id for b in ranked],
        platform_names=[b.platform_company_name or b.pe_firm_name or "" for b in ranked],
        pe_firm_names=[b.pe_firm_name for b in ranked],
        merged_pe_firm_name=" / ".join(pe_names),
        keeper_name=keeper.platform_company_name or keeper.pe_firm_name or "",
    )


def find_duplicate_groups(
    buyers: list[Buyer], logger: ProgressLogger | None = None
) -> list[DuplicateGroup]:
    """
    Discover duplicate groups (2+ members) across the four passes.

    Keeper is the most complete member; ties go to the earliest created_at,
    then to input order.
    """
    order = {b.id: i for i, b in enumerate(buyers)}
    assigned: set[str] = set()
    groups: list[DuplicateGroup] = []

    passes: list[tuple[MatchType, Callable[[Buyer], str | None], bool]] = [
        ("platform_domain", lambda b: normalize_domain(b.platform_website), False),
        ("pe_firm_domain", lambda b: normalize_domain(b.pe_firm_website), True),
        ("pe_firm_name", lambda b: normalize_pe_firm_name(b.pe_firm_name), True),
        ("platform_name", lambda b: normalize_name(b.platform_company_name), False),
    ]

    for match_type, key_fn, needs_similar_platform in passes:
        remaining = [b for b in buyers if b.id not in assigned]
        found = 0
        for key, members in _bucket(remaining, key_fn).items():
            clusters = _cluster_by_platform(members) if needs_similar_platform else [members]
            for cluster in clusters:
                if len(cluster) < 2:
                    continue
                groups.append(_make_group(key, match_type, cluster, order))
                assigned.update(b.id for b in cluster)
                found += 1
        if logger:
            logger.phase("Dedupe", f"{match_type}: {found} groups")

    return groups


# =============================================================================
# MERGE
# =============================================================================


def merge_duplicate_groups(
    store: Store, groups: list[DuplicateGroup], logger: ProgressLogger | None = None
) -> tuple[int, int, list[str]]:
    """
    Merge each group into its keeper: rename, re-point children, delete.

    Steps are idempotent, so a partially merged group can simply be re-run.
    Failures are collected per group; earlier groups are not rolled back.

    Returns:
        (groups_merged, duplicates_deleted, errors)
    """
    merged = 0
    deleted = 0
    errors: list[str] = []

    for i, group in enumerate(groups, start=1):
        if logger:
            logger.progress(
                "Group",
                i,
                len(groups),
                f'"{group.key}" keep {group.keeper_id}, delete {len(group.duplicate_ids)}',
            )
        try:
            store.update_buyer(group.keeper_id, pe_firm_name=group.merged_pe_firm_name or None)
            store.repoint_children(group.duplicate_ids, group.keeper_id)
            deleted += store.delete_buyers(group.duplicate_ids)
            merged += 1
        except Exception as e:
            errors.append(f'Error processing group "{group.key}": {e}')
            if logger:
                logger.error(errors[-1])

    return merged, deleted, errors


def dedupe_buyers(
    store: Store,
    tracker_id: str,
    preview_only: bool = True,
    logger: ProgressLogger | None = None,
) -> DedupeResult:
    """Find duplicate buyers in a tracker and, unless previewing, merge them."""
    buyers = store.list_buyers(tracker_id=tracker_id)
    if logger:
        logger.phase("Dedupe", f"tracker {tracker_id}: {len(buyers)} buyers")

    result = DedupeResult(
        tracker_id=tracker_id,
        preview_only=preview_only,
        groups=find_duplicate_groups(buyers, logger),
    )
    if preview_only or not result.groups:
        return result

    merged, deleted, errors = merge_duplicate_groups(store, result.groups, logger)
    result.groups_merged = merged
    result.duplicates_deleted = deleted
    result.errors = errors
    if logger:
        logger.merged(merged, deleted, len(errors))
    return result
