"""
BuyerMatch geography normalizer - free text to canonical US state codes.

Handles:
- State codes and full names (California -> CA)
- Misspellings (Conneticut -> CT)
- Regions (Midwest, Sun Belt, Tri-State -> constituent states)
- National coverage (national, nationwide, USA, "41 states" -> all 50)
- City, State strings (Jackson, Mississippi (and 5 surrounding towns) -> MS)
- Space-separated codes (TX OK AR LA)

Unrecognized input is dropped, never raised.
"""

import re
from collections.abc import Iterable

from .adjacency import CANADIAN_PROVINCES, PROVINCE_NAME_TO_ABBREV, REGIONS, is_canadian
from .logger import ProgressLogger

# =============================================================================
# STATE TABLES
# =============================================================================

STATE_NAME_TO_ABBREV: dict[str, str] = {
    "alabama": "AL",
    "alaska": "AK",
    "arizona": "AZ",
    "arkansas": "AR",
    "california": "CA",
    "colorado": "CO",
    "connecticut": "CT",
    "delaware": "DE",
    "district of columbia": "DC",
    "florida": "FL",
    "georgia": "GA",
    "hawaii": "HI",
    "idaho": "ID",
    "illinois": "IL",
    "indiana": "IN",
    "iowa": "IA",
    "kansas": "KS",
    "kentucky": "KY",
    "louisiana": "LA",
    "maine": "ME",
    "maryland": "MD",
    "massachusetts": "MA",
    "michigan": "MI",
    "minnesota": "MN",
    "mississippi": "MS",
    "missouri": "MO",
    "montana": "MT",
    "nebraska": "NE",
    "nevada": "NV",
    "new hampshire": "NH",
    "new jersey": "NJ",
    "new mexico": "NM",
    "new york": "NY",
    "north carolina": "NC",
    "north dakota": "ND",
    "ohio": "OH",
    "oklahoma": "OK",
    "oregon": "OR",
    "pennsylvania": "PA",
    "rhode island": "RI",
    "south carolina": "SC",
    "south dakota": "SD",
    "tennessee": "TN",
    "texas": "TX",
    "utah": "UT",
    "vermont": "VT",
    "virginia": "VA",
    "washington": "WA",
    "west virginia": "WV",
    "wisconsin": "WI",
    "wyoming": "WY",
}

# The 50 states. DC is a valid code but not part of "national" expansion.
FIFTY_STATES: tuple[str, ...] = tuple(
    sorted(code for code in STATE_NAME_TO_ABBREV.values() if code != "DC")
)
VALID_STATE_CODES: frozenset[str] = frozenset(STATE_NAME_TO_ABBREV.values())

GEO_MISSPELLINGS: dict[str, str] = {
    "conneticut": "CT",
    "conecticut": "CT",
    "conneticutt": "CT",
    "massachusets": "MA",
    "massachussetts": "MA",
    "massachucetts": "MA",
    "pennsilvania": "PA",
    "pensylvania": "PA",
    "tennesee": "TN",
    "tennesse": "TN",
    "missisipi": "MS",
    "mississipi": "MS",
    "missisippi": "MS",
    "louisianna": "LA",
    "lousiana": "LA",
    "virgina": "VA",
    "north carolia": "NC",
    "n carolina": "NC",
    "n. carolina": "NC",
    "south carolia": "SC",
    "s carolina": "SC",
    "s. carolina": "SC",
    "west virgina": "WV",
    "w virginia": "WV",
    "w. virginia": "WV",
    "new jersery": "NJ",
}

# =============================================================================
# REGION VOCABULARY (one-to-many expansion)
# =============================================================================

# Census names come from adjacency.REGIONS so both lookups agree
_MIDWEST = REGIONS["Midwest"]
_NORTHEAST = REGIONS["Northeast"]
_SOUTH = (
    "AL", "AR", "DE", "FL", "GA", "KY", "LA", "MD", "MS", "NC", "OK", "SC", "TN", "TX", "VA", "WV",
)
_SOUTHEAST = REGIONS["Southeast"]
_SOUTHWEST = REGIONS["Southwest"]
_WEST = REGIONS["West"]
_NORTHWEST = ("OR", "WA", "ID", "MT", "WY")
_PACIFIC_NORTHWEST = ("OR", "WA", "ID")
_MID_ATLANTIC = REGIONS["Mid-Atlantic"]
_EAST_COAST = (
    "CT", "DE", "FL", "GA", "MA", "MD", "ME", "NC", "NH", "NJ", "NY", "PA", "RI", "SC", "VA", "VT",
)
_GULF = ("AL", "FL", "LA", "MS", "TX")
_SUN_BELT = ("AL", "AZ", "CA", "FL", "GA", "LA", "MS", "NM", "NV", "SC", "TX")
_RUST_BELT = ("IL", "IN", "MI", "OH", "PA", "WI")
_ROCKIES = ("CO", "ID", "MT", "UT", "WY")

REGION_TO_STATES: dict[str, tuple[str, ...]] = {
    "midwest": _MIDWEST,
    "the midwest": _MIDWEST,
    "midwestern": _MIDWEST,
    "northeast": _NORTHEAST,
    "the northeast": _NORTHEAST,
    "northeastern": _NORTHEAST,
    "new england": REGIONS["New England"],
    "south": _SOUTH,
    "the south": _SOUTH,
    "southern": _SOUTH,
    "southeast": _SOUTHEAST,
    "the southeast": _SOUTHEAST,
    "southeastern": _SOUTHEAST,
    "southwest": _SOUTHWEST,
    "the southwest": _SOUTHWEST,
    "southwestern": _SOUTHWEST,
    "west": _WEST,
    "the west": _WEST,
    "western": _WEST,
    "pacific northwest": _PACIFIC_NORTHWEST,
    "the pacific northwest": _PACIFIC_NORTHWEST,
    "pnw": _PACIFIC_NORTHWEST,
    "northwest": _NORTHWEST,
    "the northwest": _NORTHWEST,
    "northwestern": _NORTHWEST,
    "mountain west": ("AZ", "CO", "ID", "MT", "NV", "NM", "UT", "WY"),
    "rocky mountain": _ROCKIES,
    "rockies": _ROCKIES,
    "great plains": ("KS", "NE", "ND", "OK", "SD", "TX"),
    "plains states": ("KS", "NE", "ND", "OK", "SD"),
    "mid-atlantic": _MID_ATLANTIC,
    "mid atlantic": _MID_ATLANTIC,
    "midatlantic": _MID_ATLANTIC,
    "east coast": _EAST_COAST,
    "eastern seaboard": _EAST_COAST,
    "west coast": ("CA", "OR", "WA"),
    "pacific": ("CA", "OR", "WA", "AK", "HI"),
    "gulf coast": _GULF,
    "gulf states": _GULF,
    "sun belt": _SUN_BELT,
    "sunbelt": _SUN_BELT,
    "rust belt": _RUST_BELT,
    "rustbelt": _RUST_BELT,
    "tri-state": ("CT", "NJ", "NY"),
    "tristate": ("CT", "NJ", "NY"),
    "carolinas": ("NC", "SC"),
    "the carolinas": ("NC", "SC"),
    "dakotas": ("ND", "SD"),
    "the dakotas": ("ND", "SD"),
    "upper midwest": ("IA", "MN", "ND", "SD", "WI"),
    "lower midwest": ("IL", "IN", "KS", "MO", "NE", "OH"),
    "deep south": ("AL", "GA", "LA", "MS", "SC"),
    "texas triangle": ("TX",),
}

NATIONAL_SYNONYMS = frozenset(
    {"national", "nationwide", "usa", "us", "u.s.", "united states", "all states"}
)

# Counts at or above this in "<N> states" are treated as national coverage
NATIONAL_STATE_COUNT_THRESHOLD = 30

MIN_TOKEN_LENGTH = 2
MAX_TOKEN_LENGTH = 100

# UI text, URLs, garbage data
SKIP_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"find\s*(a\s*)?shop", re.IGNORECASE),
    re.compile(r"near\s*(you|me)", re.IGNORECASE),
    re.compile(r"body-shop", re.IGNORECASE),
    re.compile(r"locations?$", re.IGNORECASE),
    re.compile(r"^https?://", re.IGNORECASE),
    re.compile(r"\.(com|net|org)\b", re.IGNORECASE),
    re.compile(r"click\s*here", re.IGNORECASE),
    re.compile(r"learn\s*more", re.IGNORECASE),
    re.compile(r"(view|see)\s*all", re.IGNORECASE),
    re.compile(r"^[\d\s]+$"),
)

_N_STATES_RE = re.compile(r"^(\d+)\s*states?$")
_SPACED_CODES_RE = re.compile(r"^[A-Za-z]{2}(\s+[A-Za-z]{2})+$")
_PARENTHETICAL_RE = re.compile(r"\s*\([^)]*\)\s*")


def _split_tokens(items: str | Iterable[str | None] | None) -> list[str]:
    """Flatten the input into trimmed, non-empty tokens.

    A bare string is treated as a comma-separated list. List items are kept
    whole so "City, State" entries reach the suffix rule intact.
    """
    if not items:
        return []
    if isinstance(items, str):
        return [part.strip() for part in items.split(",") if part.strip()]
    return [item.strip() for item in items if isinstance(item, str) and item.strip()]


def _lookup_state(text: str) -> str | None:
    """Resolve a single state code, name, or misspelling; None otherwise."""
    cleaned = _PARENTHETICAL_RE.sub(" ", text).strip()
    # "D.C." / "T.X." style codes
    code = cleaned.replace(".", "").upper()
    if code in VALID_STATE_CODES:
        return code
    lower = cleaned.rstrip(".").lower()
    return STATE_NAME_TO_ABBREV.get(lower) or GEO_MISSPELLINGS.get(lower)


def _normalize_token(token: str, logger: ProgressLogger | None) -> list[str]:
    """Resolve one token to zero or more state codes."""
    trimmed = token.strip()

    if any(p.search(trimmed) for p in SKIP_PATTERNS):
        if logger:
            logger.skip("Garbage geography", trimmed)
        return []

    if len(trimmed) < MIN_TOKEN_LENGTH or len(trimmed) > MAX_TOKEN_LENGTH:
        return []

    upper = trimmed.upper()
    lower = trimmed.lower()

    if upper.replace(".", "") in VALID_STATE_CODES:
        return [upper.replace(".", "")]

    if lower in STATE_NAME_TO_ABBREV:
        return [STATE_NAME_TO_ABBREV[lower]]

    if lower in GEO_MISSPELLINGS:
        if logger:
            logger.decision("geography", f'fixed misspelling "{trimmed}" -> {GEO_MISSPELLINGS[lower]}')
        return [GEO_MISSPELLINGS[lower]]

    if lower in REGION_TO_STATES:
        return list(REGION_TO_STATES[lower])

    if lower in NATIONAL_SYNONYMS:
        return list(FIFTY_STATES)

    states_match = _N_STATES_RE.match(lower)
    if states_match:
        if int(states_match.group(1)) >= NATIONAL_STATE_COUNT_THRESHOLD:
            return list(FIFTY_STATES)
        # Too few to mean "national", and no explicit list to go on
        if logger:
            logger.skip("Ambiguous state count", trimmed)
        return []

    # "City, State" / "City, Full State Name (and 5 surrounding towns)"
    if "," in trimmed:
        suffix = trimmed.rsplit(",", 1)[1]
        state = _lookup_state(suffix)
        if state:
            return [state]

    # "TX OK AR LA"
    if _SPACED_CODES_RE.match(trimmed):
        valid = [p for p in upper.split() if p in VALID_STATE_CODES]
        if valid:
            return valid

    if logger:
        logger.skip("Unrecognized geography", trimmed)
    return []


def normalize_geography(
    items: str | Iterable[str | None] | None,
    logger: ProgressLogger | None = None,
) -> list[str]:
    """
    Normalize free-text geography into sorted, unique 2-letter US state codes.

    Args:
        items: A single (optionally comma-separated) string, a list of strings,
            or None.
        logger: Optional logger; dropped tokens are reported via skip().

    Returns:
        Sorted list of unique state codes. Empty when nothing is recognised.
    """
    normalized: set[str] = set()
    for token in _split_tokens(items):
        normalized.update(_normalize_token(token, logger))
    return sorted(normalized)


def extract_state_from_headquarters(headquarters: str | None) -> str | None:
    """
    Extract the state from a "City, ST" or "City, State Name" string.

    Returns None when there is no comma suffix or it is not a US state.
    """
    if not headquarters or "," not in headquarters:
        return None
    return _lookup_state(headquarters.strip().rsplit(",", 1)[1])


def merge_geography(existing: list[str] | None, new_values: list[str] | None) -> list[str] | None:
    """Union two state lists; None if the union is empty."""
    merged = set(existing or []) | set(new_values or [])
    return sorted(merged) if merged else None


def extract_canadian_provinces(items: str | Iterable[str | None] | None) -> list[str]:
    """
    Find Canadian province codes in free-text geography.

    Mirrors the US rules that make sense north of the border: bare codes,
    full names, "City, Province" suffixes and space-separated codes.
    """
    found: set[str] = set()
    for token in _split_tokens(items):
        candidates = [token]
        if "," in token:
            candidates.append(token.rsplit(",", 1)[1])
        for candidate in candidates:
            cleaned = _PARENTHETICAL_RE.sub(" ", candidate).strip()
            upper = cleaned.upper()
            if is_canadian(upper):
                found.add(upper)
            elif _SPACED_CODES_RE.match(cleaned):
                found.update(p for p in upper.split() if is_canadian(p))
            elif cleaned.lower() in PROVINCE_NAME_TO_ABBREV:
                found.add(PROVINCE_NAME_TO_ABBREV[cleaned.lower()])
            elif cleaned.lower() == "canada":
                found.update(CANADIAN_PROVINCES)
    return sorted(found)
