"""Name normalization and provider-hit acceptance rules.

Every comparison between a query name and a stored or provider-supplied name
goes through normalize_name, so local duplicate detection and provider hit
filtering agree on what "the same name" means.
"""

import re
import unicodedata
from collections.abc import Iterable

from rapidfuzz import fuzz

# =============================================================================
# Unicode Normalization
# =============================================================================


def strip_diacritics(text: str) -> str:
    """Remove diacritical marks from text, preserving base characters.

    Uses NFKD normalization to decompose characters, then filters out
    combining marks. For example: "Björk" -> "Bjork", "Zoé" -> "Zoe".
    """
    nfkd = unicodedata.normalize("NFKD", text)
    return "".join(c for c in nfkd if not unicodedata.combining(c))


PUNCTUATION = ".,;:!?'\"`´‘’“”()[]{}<>*#~^|\\/_-–—&+@"
"""Characters removed before comparing names."""

_PUNCTUATION_RE = re.compile("[" + re.escape(PUNCTUATION) + "]")


def normalize_name(text: str | None) -> str:
    """Canonicalize a free-text name for comparison.

    Strips diacritics, lowercases, removes PUNCTUATION and collapses internal
    whitespace. Returns empty string for None or empty input.

    Examples: "Björk" -> "bjork", "AC/DC" -> "acdc", "  Sigur  Rós " -> "sigur ros".
    """
    if not text:
        return ""
    lowered = strip_diacritics(text).lower()
    # Slashes and dots join letters ("AC/DC", "R.E.M."), everything else separates words
    joined = re.sub(r"(?<=\w)[/.](?=\w)", "", lowered)
    spaced = _PUNCTUATION_RE.sub(" ", joined)
    return " ".join(spaced.split())


def name_keys(name: str | None, alternate_names: Iterable[str] = ()) -> list[str]:
    """Normalized keys for a name and its alternates, primary first, without duplicates."""
    keys: list[str] = []
    for candidate in [name, *alternate_names]:
        key = normalize_name(candidate)
        if key and key not in keys:
            keys.append(key)
    return keys


# =============================================================================
# Exact-match queries
# =============================================================================

_QUOTE_PAIRS = {'"': '"', "'": "'", "“": "”", "‘": "’"}


def parse_exact(text: str) -> tuple[str, bool]:
    """Detect an explicitly quoted query.

    Args:
        text: Raw query text, e.g. '"Diana Ross"'

    Returns:
        Tuple of (unquoted text, exact flag)
    """
    stripped = text.strip()
    if len(stripped) >= 2 and _QUOTE_PAIRS.get(stripped[0]) == stripped[-1]:
        inner = stripped[1:-1].strip()
        if inner:
            return inner, True
    return stripped, False


# =============================================================================
# Stopwords
# =============================================================================

STOPWORDS = frozenset(
    {
        # Articles
        "the",
        "a",
        "an",
        "le",
        "la",
        "los",
        "die",
        # Conjunctions/prepositions
        "and",
        "with",
        "of",
        "feat",
        "featuring",
        "ft",
        "vs",
    }
)
"""Words that never count as meaningful overlap between two names."""

SIMILARITY_THRESHOLD = 85
"""Minimum rapidfuzz ratio (0-100) accepted as overlap when no significant word is shared."""


def significant_words(normalized: str) -> set[str]:
    """Words of a normalized name that carry meaning."""
    return {w for w in normalized.split() if w not in STOPWORDS}


# =============================================================================
# Provider hit acceptance
# =============================================================================


def accept_hit(
    query_name: str,
    hit_name: str | None,
    alternate_names: Iterable[str] = (),
    exact: bool = False,
) -> bool:
    """Decide whether a provider hit answers the query.

    Exact queries accept only a hit whose normalized name, or one of its
    normalized alternate names, equals the normalized query: "Diana Ross" does
    not accept "Diana Ross & The Supremes". Other queries reject only hits
    with no meaningful overlap: no shared significant word and a similarity
    below SIMILARITY_THRESHOLD.

    Args:
        query_name: Name the caller searched for
        hit_name: Primary name returned by the provider
        alternate_names: Alternate names returned by the provider
        exact: True when the caller requested an exact match

    Returns:
        True if the hit should be used as evidence
    """
    query = normalize_name(query_name)
    hit = normalize_name(hit_name)
    if not query or not hit:
        return False

    if exact:
        return query in name_keys(hit_name, alternate_names)

    if query == hit:
        return True

    query_words = significant_words(query) or set(query.split())
    hit_words = significant_words(hit) or set(hit.split())
    if query_words & hit_words:
        return True

    return fuzz.ratio(query, hit) >= SIMILARITY_THRESHOLD


# =============================================================================
# Compilation Detection
# =============================================================================

COMPILATION_KEYWORDS = frozenset(
    {
        "various",
        "soundtrack",
        "compilation",
        "v/a",
        "v.a.",
    }
)
"""Keywords indicating a compilation/soundtrack album (case-insensitive substring match)."""


def is_compilation_artist(artist: str | None) -> bool:
    """Check if an artist name indicates a compilation/soundtrack album.

    Args:
        artist: Artist name to check

    Returns:
        True if artist contains compilation keywords (various, soundtrack, etc.)
    """
    if not artist:
        return False
    artist_lower = artist.lower()
    return any(keyword in artist_lower for keyword in COMPILATION_KEYWORDS)
