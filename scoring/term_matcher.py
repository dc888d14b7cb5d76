"""
DDx Coach | Term Matcher (Deterministic Code)
================================================
Decides whether a free-text diagnosis and an answer-key entry name the same thing.

Matching Rules:
  - normalize(): lowercase + trim only. No stemming, no punctuation stripping.
  - Exact tier: normalized text looked up in the alias index (canonical names + aliases)
  - Fuzzy tier: one normalized string contains the other (substring, either direction)
  - Fuzzy is a lower-confidence heuristic ("MI" sits inside many words), so callers
    only try it after exact lookup fails and record it apart from exact hits
  - Alias collisions: first-registered entry in answer-key order wins; collisions
    are reported by find_alias_collisions() and logged, never rejected
"""

import logging
from dataclasses import dataclass

from config import LOGGER_NAME

EXACT = "exact"
FUZZY = "fuzzy"

logger = logging.getLogger(LOGGER_NAME)


@dataclass(frozen=True)
class TermMatch:
    """One resolved match. distance_hint is the length gap for fuzzy matches, None for exact."""
    canonical: str
    kind: str
    distance_hint: int | None = None

    @property
    def is_exact(self) -> bool:
        return self.kind == EXACT


def normalize(s) -> str:
    """Lowercase and trim. Non-strings (None) normalize to the empty string."""
    if not isinstance(s, str):
        return ""
    return s.lower().strip()


def entry_terms(entry: dict) -> list:
    """Canonical name followed by aliases, in registration order."""
    return [entry.get("diagnosis", "")] + list(entry.get("aliases") or [])


def find_alias_collisions(answer_key: list) -> list:
    """
    List every normalized term claimed by more than one answer-key entry.

    Returns:
        [{"term", "kept", "shadowed"}] where "kept" is the canonical name that wins
        (first in answer-key order) and "shadowed" the one that loses.
    """
    owner = {}
    collisions = []
    for entry in answer_key or []:
        canonical = entry.get("diagnosis", "")
        for term in entry_terms(entry):
            key = normalize(term)
            if not key:
                continue
            if key in owner and owner[key] != canonical:
                collisions.append({"term": key, "kept": owner[key], "shadowed": canonical})
            else:
                owner.setdefault(key, canonical)
    return collisions


def build_alias_index(answer_key: list) -> dict:
    """
    Map normalized canonical name / alias → canonical diagnosis name.
    First entry processed wins a contested term; each collision is logged.
    """
    index = {}
    for entry in answer_key or []:
        canonical = entry.get("diagnosis", "")
        for term in entry_terms(entry):
            key = normalize(term)
            if key and key not in index:
                index[key] = canonical

    for c in find_alias_collisions(answer_key):
        logger.warning(
            f"Alias collision: '{c['term']}' -> '{c['kept']}' (shadows '{c['shadowed']}')"
        )
    return index


def match(candidate: str, alias_index: dict) -> str | None:
    """Exact lookup only. Returns the canonical name or None."""
    key = normalize(candidate)
    if not key:
        return None
    return alias_index.get(key)


def is_fuzzy_match(a: str, b: str) -> bool:
    """Substring containment in either direction. Empty strings never match."""
    na, nb = normalize(a), normalize(b)
    if not na or not nb:
        return False
    return na in nb or nb in na


def fuzzy_match_entry(candidate: str, entry: dict) -> TermMatch | None:
    """
    Fuzzy-match a candidate against one answer-key entry (canonical name + aliases).
    The closest term by length gap is kept; ties go to the earlier term.
    """
    key = normalize(candidate)
    best = None
    for term in entry_terms(entry):
        if not is_fuzzy_match(key, term):
            continue
        gap = abs(len(key) - len(normalize(term)))
        if best is None or gap < best:
            best = gap
    if best is None:
        return None
    return TermMatch(canonical=entry.get("diagnosis", ""), kind=FUZZY, distance_hint=best)


def same_diagnosis(candidate: str, reference: str) -> bool:
    """Loose equality used where no answer key exists: equal, or either contains the other."""
    return is_fuzzy_match(candidate, reference)
