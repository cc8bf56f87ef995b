"""Term extraction shared by indexing and query parsing.

Documents and queries must go through the same function so that their terms
compare equal. The index records term presence per document, so the result is
a set rather than a token stream.
"""

from __future__ import annotations

import re


TermSet = frozenset[str]

MIN_TERM_LENGTH = 3

_TERM_PATTERN = re.compile(r"[a-z]+")


def is_term(fragment: str) -> bool:
    """Return True when ``fragment`` is a valid index term (``[a-z]{3,}``)."""
    return len(fragment) >= MIN_TERM_LENGTH and _TERM_PATTERN.fullmatch(fragment) is not None


def tokenize(text: str | None) -> TermSet:
    """Lowercase, split on whitespace and keep purely alphabetic fragments.

    Fragments containing digits, punctuation or non-ASCII letters are dropped
    whole rather than cleaned, and fragments shorter than three characters are
    ignored. No stemming or stop-word removal is applied.
    """
    if not text:
        return frozenset()
    terms: set[str] = set()
    for fragment in text.lower().split():
        fragment = fragment.strip()
        if is_term(fragment):
            terms.add(fragment)
    return frozenset(terms)


def tokenize_query(text: str | None) -> list[str]:
    """Tokenize query text and return terms in a stable (sorted) order."""
    return sorted(tokenize(text))
