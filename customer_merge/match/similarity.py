"""
String similarity comparators for CustomerMerge.

All comparators are case-insensitive, ignore surrounding whitespace, and
return a score in [0.0, 1.0] where identical strings score 1.0.
"""

import logging
import re
from collections import Counter
from typing import Callable, Dict

from thefuzz import fuzz
from Levenshtein import distance as levenshtein_distance
from jellyfish import jaro_winkler_similarity

from customer_merge.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

Comparator = Callable[[str, str], float]

_WHITESPACE = re.compile(r"\s+")


def dice_coefficient(first: str, second: str) -> float:
    """
    Sørensen-Dice coefficient over character bigrams.

    Whitespace is ignored. Strings shorter than two characters share no
    bigrams, so they only score 1.0 when identical.

    Args:
        first: First string
        second: Second string

    Returns:
        Similarity between 0.0 and 1.0
    """
    first = _WHITESPACE.sub("", first)
    second = _WHITESPACE.sub("", second)

    if first == second:
        return 1.0
    if len(first) < 2 or len(second) < 2:
        return 0.0

    first_bigrams = Counter(first[i:i + 2] for i in range(len(first) - 1))

    intersection = 0
    for i in range(len(second) - 1):
        bigram = second[i:i + 2]
        if first_bigrams[bigram] > 0:
            first_bigrams[bigram] -= 1
            intersection += 1

    return (2.0 * intersection) / (len(first) + len(second) - 2)


def fuzz_ratio_similarity(first: str, second: str) -> float:
    """Indel ratio from thefuzz, scaled to [0, 1]."""
    return fuzz.ratio(first, second) / 100.0


def levenshtein_similarity(first: str, second: str) -> float:
    """One minus the edit distance normalized by the longer string."""
    longest = max(len(first), len(second))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(first, second) / longest


_COMPARATORS: Dict[str, Comparator] = {
    "dice": dice_coefficient,
    "ratio": fuzz_ratio_similarity,
    "jaro_winkler": jaro_winkler_similarity,
    "levenshtein": levenshtein_similarity,
}


def get_comparator(method: str = "dice") -> Comparator:
    """
    Build a normalized comparator for the given method.

    Args:
        method: One of ``dice``, ``ratio``, ``jaro_winkler``, ``levenshtein``

    Returns:
        Callable scoring two raw strings

    Raises:
        ConfigurationError: If the method is unknown
    """
    try:
        scorer = _COMPARATORS[method]
    except KeyError:
        raise ConfigurationError(f"Unknown similarity method: {method}") from None

    def compare(first: str, second: str) -> float:
        first = (first or "").lower().strip()
        second = (second or "").lower().strip()
        if first == second:
            return 1.0
        if not first or not second:
            return 0.0
        return float(scorer(first, second))

    compare.__name__ = f"{method}_similarity"
    return compare
