"""
Spam / Quality Filter

Pure predicates applied before clustering so low-quality posts never
become opportunities:
- Phrase blocklist over title + excerpt
- Shouting detection (long all-caps titles)
- Special-character density in the title
"""

import logging
from typing import Iterable, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

SPAM_PHRASES = (
    "giveaway",
    "free crypto",
    "dm me",
    "click link in bio",
    "onlyfans",
    "get rich quick",
)

SHOUTING_MIN_LENGTH = 20
SPECIAL_CHARS = frozenset("!?$%&*")
SPECIAL_CHAR_RATIO = 0.15

T = TypeVar("T")


def is_spam(title: str, raw_excerpt: Optional[str] = None) -> bool:
    """
    Decide whether a signal is spam.

    Args:
        title: Post title
        raw_excerpt: Optional body text

    Returns:
        True when any rule trips
    """
    title = title or ""
    text = f"{title.lower()} {(raw_excerpt or '').lower()}"

    if any(phrase in text for phrase in SPAM_PHRASES):
        return True

    # "SHORT" or "NASA" are fine; long shouted titles are not
    if len(title) > SHOUTING_MIN_LENGTH and title == title.upper() and title != title.lower():
        return True

    if title:
        special = sum(1 for ch in title if ch in SPECIAL_CHARS)
        if special / len(title) > SPECIAL_CHAR_RATIO:
            return True

    return False


def filter_spam(signals: Iterable[T], get_text=None) -> Tuple[List[T], List[T]]:
    """
    Split signals into (kept, rejected).

    Args:
        signals: Objects with `title` / `raw_excerpt` attributes
        get_text: Optional accessor returning (title, excerpt)
    """
    kept: List[T] = []
    rejected: List[T] = []

    for signal in signals:
        if get_text:
            title, excerpt = get_text(signal)
        else:
            title, excerpt = signal.title, getattr(signal, "raw_excerpt", None)

        if is_spam(title, excerpt):
            rejected.append(signal)
        else:
            kept.append(signal)

    if rejected:
        logger.info(f"Spam filter rejected {len(rejected)} of {len(kept) + len(rejected)} signals")

    return kept, rejected
