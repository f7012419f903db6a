from __future__ import annotations
"""Keyword based priority classifier.

``classify`` is a pure function over an explicit ``KeywordSets``; critical
keywords always win over high keywords, anything else is NORMAL. LOW is only
ever set by hand.
"""
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Tuple

from ems.config import settings
from ems.constants.roles import PRIORITY_CRITICAL, PRIORITY_HIGH, PRIORITY_NORMAL


@dataclass(frozen=True)
class KeywordSets:
    critical: Tuple[str, ...]
    high: Tuple[str, ...]

    @classmethod
    def build(cls, critical: Iterable[str], high: Iterable[str]) -> 'KeywordSets':
        def _norm(words):
            return tuple(w.strip().casefold() for w in words if w and w.strip())
        return cls(_norm(critical), _norm(high))


def default_keywords() -> KeywordSets:
    return KeywordSets.build(settings.critical_keywords(), settings.high_keywords())


def keywords_for(config, fallback: Optional[KeywordSets] = None) -> KeywordSets:
    """Keyword sets tuned through the system config, falling back to the defaults per list."""
    base = fallback or default_keywords()
    overrides = getattr(config, 'priority_keywords', None) or {}
    critical = overrides.get('critical') or base.critical
    high = overrides.get('high') or base.high
    return KeywordSets.build(critical, high)


def match(text: str, keywords: KeywordSets) -> Tuple[str, Optional[str]]:
    """Return (priority, matched keyword)."""
    haystack = (text or '').casefold()
    for word in keywords.critical:
        if word in haystack:
            return PRIORITY_CRITICAL, word
    for word in keywords.high:
        if word in haystack:
            return PRIORITY_HIGH, word
    return PRIORITY_NORMAL, None


def classify(text: str, keywords: Optional[KeywordSets] = None) -> str:
    return match(text, keywords or default_keywords())[0]


def text_of(values: Mapping[str, Any]) -> str:
    """Concatenate every string-valued entry of a form value map."""
    return ' '.join(v for v in values.values() if isinstance(v, str))


@dataclass(frozen=True)
class Assessment:
    priority: str
    keyword: Optional[str]
    alert: bool


class PriorityMonitor:
    """Re-classifies an editing session on every change.

    ``alert`` is raised only the first time the session reaches CRITICAL.
    """

    def __init__(self, keywords: Optional[KeywordSets] = None):
        self.keywords = keywords or default_keywords()
        self.priority = PRIORITY_NORMAL
        self.keyword: Optional[str] = None
        self._alerted = False

    def observe(self, values: Mapping[str, Any]) -> Assessment:
        priority, keyword = match(text_of(values), self.keywords)
        alert = priority == PRIORITY_CRITICAL and not self._alerted
        if alert:
            self._alerted = True
        self.priority, self.keyword = priority, keyword
        return Assessment(priority, keyword, alert)


__all__ = ['KeywordSets', 'default_keywords', 'keywords_for', 'classify', 'match', 'text_of', 'Assessment', 'PriorityMonitor']
