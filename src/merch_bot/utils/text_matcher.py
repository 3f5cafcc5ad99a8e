"""
Fuzzy product name matching.

Rules are applied per target name in synonym order:
    1. exact normalized equality            -> 1.0
    2. containment in either direction      -> 0.9
    3. >= 70% of significant target words   -> 0.8
    4. bigram similarity >= threshold (best across all targets), capped below containment
"""

import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

_NON_ALNUM = re.compile(r'[^a-z0-9]+')

CONTAINMENT_SCORE = 0.9
REVERSE_CONTAINMENT_SCORE = 0.85
SIMILARITY_CAP = 0.89
TOKEN_OVERLAP_SCORE = 0.8
TOKEN_OVERLAP_RATIO = 0.7
MIN_SIGNIFICANT_WORD = 3


@dataclass(frozen=True)
class MatchResult:
    matched: bool
    score: float
    matched_name: str


@dataclass(frozen=True)
class MatchCandidate:
    """A listing label scored against the requested names, kept for diagnostics"""
    label: str
    score: float
    matched_against: str
    index: int = -1


def normalize(text: str) -> str:
    """Lower-case, turn non-alphanumerics into spaces, collapse whitespace"""
    if not text:
        return ''
    return _NON_ALNUM.sub(' ', text.lower()).strip()


def _bigrams(text: str) -> Counter:
    return Counter(text[i:i + 2] for i in range(len(text) - 1))


def similarity(first: str, second: str) -> float:
    """Dice coefficient over character bigrams, whitespace ignored"""
    a = re.sub(r'\s+', '', first)
    b = re.sub(r'\s+', '', second)
    if a == b:
        return 1.0 if a else 0.0
    if len(a) < 2 or len(b) < 2:
        return 0.0
    overlap = sum((_bigrams(a) & _bigrams(b)).values())
    return 2.0 * overlap / (len(a) + len(b) - 2)


def _token_overlap(candidate: str, target: str) -> float:
    words = [w for w in target.split() if len(w) >= MIN_SIGNIFICANT_WORD]
    if not words:
        return 0.0
    candidate_words = candidate.split()
    hits = sum(1 for w in words if any(w in cw for cw in candidate_words))
    return hits / len(words)


def match(candidate: str, targets: Sequence[str], threshold: float = 0.5) -> MatchResult:
    """
    Decide whether a listing label matches any of the requested names.

    Args:
        candidate: Label found on the page
        targets: Requested names, most preferred first
        threshold: Minimum similarity for the fallback rule

    Returns:
        MatchResult; matched_name is the target that decided the match
    """
    normalized = normalize(candidate)
    best_score = 0.0
    best_name = targets[0] if targets else ''

    if not normalized:
        return MatchResult(False, 0.0, best_name)

    for target in targets:
        wanted = normalize(target)
        if not wanted:
            continue

        if normalized == wanted:
            return MatchResult(True, 1.0, target)

        if wanted in normalized or normalized in wanted:
            return MatchResult(True, CONTAINMENT_SCORE, target)

        if _token_overlap(normalized, wanted) >= TOKEN_OVERLAP_RATIO:
            return MatchResult(True, TOKEN_OVERLAP_SCORE, target)

        score = min(similarity(normalized, wanted), SIMILARITY_CAP)
        if score > best_score:
            best_score = score
            best_name = target

    return MatchResult(best_score >= threshold, best_score, best_name)


def best_score(candidate: str, targets: Iterable[str]) -> Tuple[float, str]:
    """Highest score across all targets, used only to rank diagnostics"""
    normalized = normalize(candidate)
    targets = list(targets)
    best = 0.0
    best_name = targets[0] if targets else ''

    for target in targets:
        wanted = normalize(target)
        if not wanted or not normalized:
            continue
        if normalized == wanted:
            return 1.0, target
        if wanted in normalized:
            score = CONTAINMENT_SCORE
        elif normalized in wanted:
            score = REVERSE_CONTAINMENT_SCORE
        else:
            score = similarity(normalized, wanted)
        if score > best:
            best, best_name = score, target

    return best, best_name


def rank_candidates(candidates: Iterable[MatchCandidate], top_n: int = 5) -> List[MatchCandidate]:
    return sorted(candidates, key=lambda c: c.score, reverse=True)[:top_n]
