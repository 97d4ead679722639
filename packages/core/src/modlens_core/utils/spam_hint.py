"""Cheap pre-classification spam signal for the pending queue listing.

Only a UI hint: it never feeds the moderation decision.
"""

from __future__ import annotations

SPAM_PHRASES = ("check out my site", "great blog", "nice post", "visit my website")


def spam_indicators(author: str, content: str) -> list[str]:
    """Return the names of the spam indicators present in a comment."""
    found = []
    if content.count("http") > 2:
        found.append("links")
    if len(content) > 20 and content == content.upper():
        found.append("all_caps")
    lowered = content.lower()
    found.extend(f"phrase:{p}" for p in SPAM_PHRASES if p in lowered)
    if len(author) > 50:
        found.append("long_author")
    return found


def is_spam_candidate(author: str, content: str) -> bool:
    return len(spam_indicators(author, content)) >= 2
