"""Text and symptom similarity used by duplicate and recurrence detection."""
from typing import Iterable, Optional

TITLE_WEIGHT = 0.7
SYMPTOM_WEIGHT = 0.3


def normalize_title(value: Optional[str]) -> str:
    return " ".join((value or "").lower().split())


def levenshtein_distance(a: str, b: str) -> int:
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (char_a != char_b),
                )
            )
        previous = current
    return previous[-1]


def edit_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1 - levenshtein_distance(a, b) / longest


def token_containment(a: str, b: str) -> float:
    """Share of the smaller word set found in the other title, scaled by size.

    "motor no arranca" is contained in "motor no arranca correctamente" even
    though their edit distance is large. The share is weighted by how much of
    the longer title the shorter one covers, so a single word such as "motor"
    does not match every title that mentions it.
    """
    tokens_a, tokens_b = set(a.split()), set(b.split())
    if not tokens_a or not tokens_b:
        return 0.0
    smaller, larger = (tokens_a, tokens_b) if len(tokens_a) <= len(tokens_b) else (tokens_b, tokens_a)
    contained = len(smaller & larger) / len(smaller)
    return contained * len(smaller) / len(larger)


def title_similarity(title_a: Optional[str], title_b: Optional[str]) -> float:
    a, b = normalize_title(title_a), normalize_title(title_b)
    return max(edit_similarity(a, b), token_containment(a, b))


def jaccard(a: Iterable, b: Iterable) -> float:
    set_a, set_b = set(a), set(b)
    if not set_a and not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def similarity(
    title_a: Optional[str],
    title_b: Optional[str],
    symptoms_a: Optional[Iterable[int]] = None,
    symptoms_b: Optional[Iterable[int]] = None,
) -> int:
    """Score two failure reports from 0 to 100.

    Titles weigh 70% and symptom sets 30%. When neither report lists symptoms
    there is nothing to compare on that axis and the title decides alone.
    """
    symptoms_a = set(symptoms_a or [])
    symptoms_b = set(symptoms_b or [])
    title_score = title_similarity(title_a, title_b)
    if not symptoms_a and not symptoms_b:
        return round(100 * title_score)
    return round(100 * (TITLE_WEIGHT * title_score + SYMPTOM_WEIGHT * jaccard(symptoms_a, symptoms_b)))
