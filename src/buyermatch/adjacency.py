"""
BuyerMatch state adjacency graph and region groupings.

Static lookups only. The scorer uses STATE_ADJACENCY as a ~100 mile proxy;
REGIONS exists for region-based filtering in the query layer.
"""

# =============================================================================
# STATE ADJACENCY (symmetric; AK and HI have no land neighbours)
# =============================================================================

STATE_ADJACENCY: dict[str, tuple[str, ...]] = {
    "AL": ("FL", "GA", "MS", "TN"),
    "AK": (),
    "AZ": ("CA", "CO", "NM", "NV", "UT"),
    "AR": ("LA", "MO", "MS", "OK", "TN", "TX"),
    "CA": ("AZ", "NV", "OR"),
    "CO": ("AZ", "KS", "NE", "NM", "OK", "UT", "WY"),
    "CT": ("MA", "NY", "RI"),
    "DE": ("MD", "NJ", "PA"),
    "DC": ("MD", "VA"),
    "FL": ("AL", "GA"),
    "GA": ("AL", "FL", "NC", "SC", "TN"),
    "HI": (),
    "ID": ("MT", "NV", "OR", "UT", "WA", "WY"),
    "IL": ("IA", "IN", "KY", "MO", "WI"),
    "IN": ("IL", "KY", "MI", "OH"),
    "IA": ("IL", "MN", "MO", "NE", "SD", "WI"),
    "KS": ("CO", "MO", "NE", "OK"),
    "KY": ("IL", "IN", "MO", "OH", "TN", "VA", "WV"),
    "LA": ("AR", "MS", "TX"),
    "ME": ("NH",),
    "MD": ("DC", "DE", "PA", "VA", "WV"),
    "MA": ("CT", "NH", "NY", "RI", "VT"),
    "MI": ("IN", "OH", "WI"),
    "MN": ("IA", "ND", "SD", "WI"),
    "MS": ("AL", "AR", "LA", "TN"),
    "MO": ("AR", "IA", "IL", "KS", "KY", "NE", "OK", "TN"),
    "MT": ("ID", "ND", "SD", "WY"),
    "NE": ("CO", "IA", "KS", "MO", "SD", "WY"),
    "NV": ("AZ", "CA", "ID", "OR", "UT"),
    "NH": ("MA", "ME", "VT"),
    "NJ": ("DE", "NY", "PA"),
    "NM": ("AZ", "CO", "OK", "TX", "UT"),
    "NY": ("CT", "MA", "NJ", "PA", "VT"),
    "NC": ("GA", "SC", "TN", "VA"),
    "ND": ("MN", "MT", "SD"),
    "OH": ("IN", "KY", "MI", "PA", "WV"),
    "OK": ("AR", "CO", "KS", "MO", "NM", "TX"),
    "OR": ("CA", "ID", "NV", "WA"),
    "PA": ("DE", "MD", "NJ", "NY", "OH", "WV"),
    "RI": ("CT", "MA"),
    "SC": ("GA", "NC"),
    "SD": ("IA", "MN", "MT", "ND", "NE", "WY"),
    "TN": ("AL", "AR", "GA", "KY", "MO", "MS", "NC", "VA"),
    "TX": ("AR", "LA", "NM", "OK"),
    "UT": ("AZ", "CO", "ID", "NM", "NV", "WY"),
    "VT": ("MA", "NH", "NY"),
    "VA": ("DC", "KY", "MD", "NC", "TN", "WV"),
    "WA": ("ID", "OR"),
    "WV": ("KY", "MD", "OH", "PA", "VA"),
    "WI": ("IA", "IL", "MI", "MN"),
    "WY": ("CO", "ID", "MT", "NE", "SD", "UT"),
}

# =============================================================================
# REGIONS (census-like groupings for the query layer)
# =============================================================================

REGIONS: dict[str, tuple[str, ...]] = {
    "Northeast": ("CT", "MA", "ME", "NH", "NJ", "NY", "PA", "RI", "VT"),
    "Southeast": ("AL", "FL", "GA", "KY", "MS", "NC", "SC", "TN", "VA", "WV"),
    "Midwest": ("IA", "IL", "IN", "KS", "MI", "MN", "MO", "ND", "NE", "OH", "SD", "WI"),
    "Southwest": ("AZ", "NM", "OK", "TX"),
    "West": ("AK", "AZ", "CA", "CO", "HI", "ID", "MT", "NM", "NV", "OR", "UT", "WA", "WY"),
    "Mid-Atlantic": ("DC", "DE", "MD", "NJ", "NY", "PA"),
    "New England": ("CT", "MA", "ME", "NH", "RI", "VT"),
}

# =============================================================================
# CANADA (disjoint from US codes; used to detect cross-border mismatches)
# =============================================================================

CANADIAN_PROVINCES: tuple[str, ...] = (
    "AB", "BC", "MB", "NB", "NL", "NS", "NT", "NU", "ON", "PE", "QC", "SK", "YT",
)

PROVINCE_NAME_TO_ABBREV: dict[str, str] = {
    "alberta": "AB",
    "british columbia": "BC",
    "manitoba": "MB",
    "new brunswick": "NB",
    "newfoundland": "NL",
    "newfoundland and labrador": "NL",
    "nova scotia": "NS",
    "northwest territories": "NT",
    "nunavut": "NU",
    "ontario": "ON",
    "prince edward island": "PE",
    "quebec": "QC",
    "québec": "QC",
    "saskatchewan": "SK",
    "yukon": "YT",
}


def get_adjacent_states(state: str) -> tuple[str, ...]:
    """States sharing a land border with `state` (empty for unknown codes)."""
    return STATE_ADJACENCY.get(state.strip().upper(), ())


def are_adjacent(a: str, b: str) -> bool:
    """True if two state codes share a border."""
    return b.strip().upper() in get_adjacent_states(a)


def is_canadian(code: str) -> bool:
    """Check if a code is a Canadian province or territory."""
    return code.strip().upper() in CANADIAN_PROVINCES


def _region_key(name: str) -> str | None:
    wanted = name.strip().lower().replace("-", " ")
    if wanted.startswith("the "):
        wanted = wanted[4:]
    for region in REGIONS:
        if region.lower().replace("-", " ") == wanted:
            return region
    return None


def states_in_region(name: str) -> list[str]:
    """Sorted state codes in a named region; empty for unknown regions."""
    key = _region_key(name)
    if key is None:
        return []
    return sorted(REGIONS[key])


def regions_for_state(state: str) -> list[str]:
    """Names of every region containing the given state code."""
    code = state.strip().upper()
    return [region for region, states in REGIONS.items() if code in states]
