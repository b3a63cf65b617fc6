"""Lexical string similarity for fuzzy entity matching.

Bigram Jaccard coefficient over a normalized form of each string. Only
ASCII letters and digits survive normalization, so spacing, punctuation
and case never affect the score.
"""

import re

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_for_similarity(text: str) -> str:
    """Lowercase and drop every character that is not an ASCII letter or digit."""
    return _NON_ALNUM.sub("", text.lower())


def _bigrams(text: str) -> set[str]:
    return {text[i : i + 2] for i in range(len(text) - 1)}


def string_similarity(a: str, b: str) -> float:
    """Score two strings in [0, 1] by bigram overlap.

    Examples:
        >>> string_similarity("Berlin Wall", "berlin-wall")
        1.0
        >>> string_similarity("abc", "xyz")
        0.0
    """
    s1 = normalize_for_similarity(a)
    s2 = normalize_for_similarity(b)

    if not s1 and not s2:
        # Nothing left to compare: only an exact original match counts
        return 1.0 if a == b else 0.0
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    set1 = _bigrams(s1)
    set2 = _bigrams(s2)
    if not set1 or not set2:
        return 0.0

    return len(set1 & set2) / len(set1 | set2)
