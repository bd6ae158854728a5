"""Edit-distance helpers backing query spelling correction.

Allowed edit distance grows with word length:
- 1-2 chars: no correction
- 3-5 chars: 1 edit
- 6+ chars: 2 edits
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping


def levenshtein_distance(s1: str, s2: str, max_distance: int | None = None) -> int:
    """Calculate the Levenshtein (edit) distance between two strings.

    Args:
        s1: First string.
        s2: Second string.
        max_distance: If provided, return max_distance+1 early when
            distance is guaranteed to exceed this threshold.

    Returns:
        The minimum number of single-character edits (insertions,
        deletions, substitutions) needed to change s1 into s2.
        If max_distance is set and exceeded, returns max_distance+1.

    Examples:
        >>> levenshtein_distance("kitten", "sitting")
        3
        >>> levenshtein_distance("", "abc")
        3
    """
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    if len(s1) > len(s2):
        s1, s2 = s2, s1

    m, n = len(s1), len(s2)

    if max_distance is not None and abs(m - n) > max_distance:
        return max_distance + 1

    prev_row = list(range(m + 1))
    curr_row = [0] * (m + 1)

    for j in range(1, n + 1):
        curr_row[0] = j
        row_min = curr_row[0]
        for i in range(1, m + 1):
            cost = 0 if s1[i - 1] == s2[j - 1] else 1
            curr_row[i] = min(
                prev_row[i] + 1,  # deletion
                curr_row[i - 1] + 1,  # insertion
                prev_row[i - 1] + cost,  # substitution
            )
            row_min = min(row_min, curr_row[i])

        if max_distance is not None and row_min > max_distance:
            return max_distance + 1

        prev_row, curr_row = curr_row, prev_row

    return prev_row[m]


def get_max_edit_distance(term_length: int) -> int:
    """Return the maximum edit distance allowed for a word of this length."""
    if term_length <= 2:
        return 0
    if term_length <= 5:
        return 1
    return 2


def find_fuzzy_matches(
    query_term: str,
    vocabulary: Iterable[str],
    max_distance: int | None = None,
) -> list[tuple[str, int]]:
    """Find vocabulary words within the allowed edit distance of a word.

    Returns:
        (word, distance) tuples, closest first, then alphabetical.
    """
    query_lower = query_term.lower()
    if not query_lower:
        return []

    if max_distance is None:
        max_distance = get_max_edit_distance(len(query_lower))

    matches: list[tuple[str, int]] = []
    for term in vocabulary:
        term_lower = term.lower()
        if abs(len(query_lower) - len(term_lower)) > max_distance:
            continue
        distance = levenshtein_distance(query_lower, term_lower, max_distance)
        if distance <= max_distance:
            matches.append((term, distance))

    matches.sort(key=lambda x: (x[1], x[0].lower()))
    return matches


def suggest_spelling(word: str, spellings: Mapping[str, int]) -> str | None:
    """Return the best replacement for a word missing from the spelling table.

    Candidates are ranked by edit distance, then by how often they were
    recorded at index time. Words already in the table have no suggestion.
    """
    lowered = word.lower()
    if not spellings or lowered in spellings:
        return None
    matches = [(term, distance) for term, distance in find_fuzzy_matches(lowered, spellings) if distance > 0]
    if not matches:
        return None
    best_term, _ = min(matches, key=lambda match: (match[1], -spellings[match[0]], match[0]))
    return best_term
