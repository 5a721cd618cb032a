"""Text normalization and tokenization helpers."""

import re

from ..config import FORBIDDEN_LEARNING_KEYWORDS, STOP_WORDS

_WORD_RE = re.compile(r"\b\w+\b")
_SIGNIFICANT_SPLIT_RE = re.compile(r"[\s,.\-]+")
_NON_ALPHA_RE = re.compile(r"[^a-zA-Z]")
_ALPHA_RE = re.compile(r"^[a-zA-Z]+$")


def normalize(text: str | None) -> str:
    """Lowercase a possibly missing text field."""
    return (text or "").lower()


def split_labels(job_labels: str | None) -> tuple[str, ...]:
    """Split a comma-separated label string into trimmed, lowercased labels."""
    if not job_labels:
        return ()
    labels = (label.strip().lower() for label in job_labels.split(","))
    return tuple(label for label in labels if label)


def word_tokens(text: str, min_length: int = 3) -> list[str]:
    """Lowercased ``\\w+`` tokens at least ``min_length`` characters long."""
    return [w for w in _WORD_RE.findall(text.lower()) if len(w) >= min_length]


def significant_terms(text: str) -> list[str]:
    """Alphabetic words longer than two characters.

    The text is split on whitespace, commas, dots and hyphens; non-letters are
    stripped from each piece.

    Args:
        text: Text to tokenize

    Returns:
        Words in order of appearance (duplicates kept)

    """
    terms = []
    for piece in _SIGNIFICANT_SPLIT_RE.split(text):
        if len(piece) <= 2:
            continue
        word = _NON_ALPHA_RE.sub("", piece)
        if len(word) > 2:
            terms.append(word)
    return terms


def is_valid_keyword(word: str) -> bool:
    """Check whether a single word may be learned as a keyword."""
    lowered = word.lower()
    return (
        len(word) > 3
        and bool(_ALPHA_RE.match(word))
        and lowered not in STOP_WORDS
        and lowered not in FORBIDDEN_LEARNING_KEYWORDS
    )


def is_valid_phrase(phrase: str) -> bool:
    """Check whether a two-word phrase may be learned."""
    words = phrase.split()
    if len(words) != 2:
        return False
    return (
        all(is_valid_keyword(w) for w in words)
        and phrase.lower() not in FORBIDDEN_LEARNING_KEYWORDS
    )


def consecutive_pairs(words: list[str]) -> list[tuple[str, str]]:
    return [(words[i], words[i + 1]) for i in range(len(words) - 1)]


def substring_match(left: str, right: str) -> bool:
    """True if either string contains the other."""
    return left in right or right in left
