"""Keyword heuristic that names the concrete problems a review mentions.

The drafting context carries ``issues`` so a generated reply addresses
"WiFi connectivity" instead of apologising in general terms. Anything that
implements ``IssueExtractor`` can replace the keyword table.
"""
from __future__ import annotations

import re
from typing import Protocol, Sequence

GENERIC_ISSUE_PHRASE = "the concerns you raised about your stay"

# (topic, keywords) in reporting order. Keywords match whole words or phrases.
ISSUE_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("WiFi connectivity", ("wifi", "wi-fi", "internet")),
    ("breakfast service", ("breakfast",)),
    ("room service timing", ("room service",)),
    ("room cleanliness", ("dirty", "clean", "cleaning", "unclean", "cleanliness")),
    ("air conditioning", ("air condition", "air conditioning", "air conditioner", "aircon")),
    ("staff service", ("staff", "service")),
    ("water pressure", ("shower", "water pressure", "pressure")),
    ("noise levels", ("noise", "noisy", "loud", "music")),
    ("check-in process", ("check-in", "check in", "checkin")),
    ("parking facilities", ("parking",)),
    ("pool facilities", ("pool",)),
    ("restaurant service", ("restaurant", "food")),
    ("booking system", ("booking", "reservation")),
    ("water temperature safety", ("hot water", "scalded", "scalding")),
)


class IssueExtractor(Protocol):
    def extract(self, text: str) -> list[str]: ...


class KeywordIssueExtractor:
    """Whole-word table lookup, case-insensitive, reported in table order.

    A hit that sits inside a longer hit of another topic does not count, so
    "room service" reports room service timing and not staff service.
    """

    def __init__(self, table: Sequence[tuple[str, Sequence[str]]] = ISSUE_KEYWORDS):
        self._patterns = [
            (topic, re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")s?\b", re.IGNORECASE))
            for topic, keywords in table
        ]

    def extract(self, text: str) -> list[str]:
        body = text or ""
        hits = [(topic, m.span()) for topic, pattern in self._patterns for m in pattern.finditer(body)]
        found: list[str] = []
        for topic, span in hits:
            if topic not in found and not _inside_longer_hit(topic, span, hits):
                found.append(topic)
        return [topic for topic, _ in self._patterns if topic in found]


def _inside_longer_hit(topic: str, span: tuple[int, int], hits: Sequence[tuple[str, tuple[int, int]]]) -> bool:
    start, end = span
    return any(
        other != topic and o_start <= start and end <= o_end and o_end - o_start > end - start
        for other, (o_start, o_end) in hits
    )


def describe_issues(issues: Sequence[str]) -> str:
    """Human phrase for a reply: "WiFi connectivity and breakfast service"."""
    if not issues:
        return GENERIC_ISSUE_PHRASE
    if len(issues) == 1:
        return issues[0]
    return ", ".join(issues[:-1]) + f" and {issues[-1]}"
