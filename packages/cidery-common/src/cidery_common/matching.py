"""
Fuzzy string matching for apple varieties and inventory rows.

Uses RapidFuzz for fast, accurate fuzzy matching with support for
variety name normalisation and alias resolution.
"""

from typing import Callable, TypeVar

from rapidfuzz import fuzz, process

from cidery_common.exceptions import MatchingError
from cidery_common.models import ConsolidatedInventoryRow


T = TypeVar("T")


def match_string(
    query: str,
    candidates: list[str],
    threshold: float = 0.7,
    limit: int = 5,
) -> list[tuple[str, float]]:
    """
    Match a query string against candidates using fuzzy matching.

    Uses token_sort_ratio which handles word order variations well,
    making it suitable for names like "Kingston Black" vs "Black, Kingston".

    Args:
        query: The string to search for
        candidates: List of strings to match against
        threshold: Minimum match score (0.0 to 1.0), default 0.7
        limit: Maximum number of results to return

    Returns:
        List of (match, confidence) tuples above threshold, sorted by confidence

    Raises:
        MatchingError: If threshold is outside 0.0-1.0

    Example:
        >>> match_string("kingston blak", ["Kingston Black", "Dabinett"])
        [("Kingston Black", 0.96)]
    """
    if not 0.0 <= threshold <= 1.0:
        raise MatchingError(f"Threshold must be between 0 and 1, got {threshold}")

    if not candidates:
        return []

    if not query or not query.strip():
        return []

    results = process.extract(
        query,
        candidates,
        scorer=fuzz.token_sort_ratio,
        processor=str.lower,
        limit=limit,
    )

    return [
        (match, score / 100)
        for match, score, _ in results
        if score / 100 >= threshold
    ]


def match_objects(
    query: str,
    candidates: list[T],
    key: Callable[[T], str],
    threshold: float = 0.7,
    limit: int = 5,
) -> list[tuple[T, float]]:
    """
    Match a query string against objects using a key function.

    Args:
        query: The string to search for
        candidates: List of objects to match against
        key: Function to extract the string to match from each object
        threshold: Minimum match score (0.0 to 1.0)
        limit: Maximum number of results to return

    Returns:
        List of (object, confidence) tuples above threshold
    """
    if not candidates:
        return []

    if not query or not query.strip():
        return []

    # Several objects may share a key string
    string_to_objs: dict[str, list[T]] = {}
    for obj in candidates:
        string_to_objs.setdefault(key(obj), []).append(obj)

    string_matches = match_string(
        query,
        list(string_to_objs.keys()),
        threshold,
        limit,
    )

    results: list[tuple[T, float]] = []
    for match_str, confidence in string_matches:
        for obj in string_to_objs[match_str]:
            results.append((obj, confidence))
            if len(results) >= limit:
                return results

    return results


def best_match(
    query: str,
    candidates: list[str],
    threshold: float = 0.7,
) -> tuple[str, float] | None:
    """Single best match above threshold, or None."""
    matches = match_string(query, candidates, threshold, limit=1)
    return matches[0] if matches else None


def best_match_object(
    query: str,
    candidates: list[T],
    key: Callable[[T], str],
    threshold: float = 0.7,
) -> tuple[T, float] | None:
    """Single best matching object above threshold, or None."""
    matches = match_objects(query, candidates, key, threshold, limit=1)
    return matches[0] if matches else None


# Common apple variety spellings and synonyms
VARIETY_ALIASES: dict[str, list[str]] = {
    # Bittersweets
    "dabinett": ["dabinet", "dabbinett"],
    "yarlington mill": ["yarlington"],
    "chisel jersey": ["chisel"],
    "harry masters jersey": ["harry masters", "hmj"],
    "ellis bitter": ["ellis"],
    "somerset redstreak": ["redstreak"],
    "binet rouge": ["binet"],
    "muscadet de dieppe": ["muscadet"],
    # Bittersharps
    "kingston black": ["kingston", "black taunton"],
    "foxwhelp": ["fox whelp"],
    "stoke red": ["stoke"],
    "porter's perfection": ["porters perfection", "porter perfection"],
    # Sharps
    "brown's apple": ["browns apple", "browns", "brown apple"],
    "bramley": ["bramley's seedling", "bramleys seedling", "bramley seedling"],
    "granny smith": ["granny"],
    "northern spy": ["spy"],
    "golden russet": ["russet", "golden russett"],
    "esopus spitzenburg": ["spitzenburg", "spitz"],
    "newtown pippin": ["albemarle pippin", "pippin"],
    # Sweets
    "sweet coppin": ["coppin"],
    "golden delicious": ["golden", "yellow delicious"],
    "gala": ["royal gala"],
    "honeycrisp": ["honey crisp"],
    "wickson": ["wickson crab", "wickson crabapple"],
}


def _alias_lookup(name_lower: str) -> str | None:
    if name_lower in VARIETY_ALIASES:
        return name_lower
    for canonical, aliases in VARIETY_ALIASES.items():
        if name_lower in (a.lower() for a in aliases):
            return canonical
    return None


def normalise_variety_name(name: str) -> str:
    """
    Normalise a variety name to a canonical form.

    Args:
        name: The variety name to normalise

    Returns:
        Canonical lower-case name, or the cleaned input if no alias is known

    Example:
        >>> normalise_variety_name("Bramley's Seedling")
        "bramley"
    """
    name_lower = " ".join(name.lower().split())
    return _alias_lookup(name_lower) or name_lower


def find_canonical_variety(
    name: str,
    threshold: float = 0.85,
) -> str | None:
    """
    Try to find a canonical variety name using fuzzy matching.

    Searches both canonical names and their aliases for the best match.

    Args:
        name: The variety name to look up
        threshold: Minimum match score (higher for stricter matching)

    Returns:
        Canonical name if a good match is found, None otherwise
    """
    name_lower = " ".join(name.lower().split())

    exact = _alias_lookup(name_lower)
    if exact:
        return exact

    # (searchable_name, canonical)
    all_names: dict[str, str] = {}
    for canonical, aliases in VARIETY_ALIASES.items():
        all_names[canonical] = canonical
        for alias in aliases:
            all_names.setdefault(alias.lower(), canonical)

    matches = match_string(name_lower, list(all_names), threshold, limit=1)
    if matches:
        return all_names[matches[0][0]]

    return None


def suggest_variety_names(query: str, limit: int = 5) -> list[str]:
    """Suggest canonical variety names for autocomplete."""
    if not query or not query.strip():
        return []

    matches = match_string(query, list(VARIETY_ALIASES), threshold=0.4, limit=limit)
    return [name for name, _ in matches]


def search_inventory(
    query: str,
    rows: list[ConsolidatedInventoryRow],
    threshold: float = 0.6,
    limit: int = 10,
) -> list[tuple[ConsolidatedInventoryRow, float]]:
    """
    Fuzzy search over consolidated inventory rows.

    Matches against the material key, and against the canonical variety
    name so aliases such as "Bramley's Seedling" find "Bramley" rows.

    Args:
        query: Search text
        rows: Consolidated inventory rows
        threshold: Minimum match score (0.0 to 1.0)
        limit: Maximum number of rows to return

    Returns:
        (row, confidence) tuples, best first
    """
    if not query or not query.strip():
        return []

    direct = match_objects(query, rows, lambda r: r.material_key, threshold, len(rows))
    canonical_query = normalise_variety_name(query)
    via_alias = match_objects(
        canonical_query,
        rows,
        lambda r: normalise_variety_name(r.material_key),
        threshold,
        len(rows),
    )

    best: dict[int, tuple[ConsolidatedInventoryRow, float]] = {}
    for row, confidence in [*direct, *via_alias]:
        current = best.get(id(row))
        if current is None or confidence > current[1]:
            best[id(row)] = (row, confidence)

    ranked = sorted(best.values(), key=lambda pair: (-pair[1], pair[0].material_key))
    return ranked[:limit]
