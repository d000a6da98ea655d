"""Splits long text into post-sized chunks for a reply thread."""

import re

MAX_POST_LENGTH = 300
ELLIPSIS = "..."
CONTENT_BUDGET = MAX_POST_LENGTH - len(ELLIPSIS)

# Horizontal whitespace only; line breaks stay inside words
WORD_SEPARATOR_RE = re.compile(r"[^\S\n]+")


def _cut_oversized(chunks: list[str], current: str) -> str:
    # Only a single word longer than the budget can get here
    while len(current) > CONTENT_BUDGET:
        chunks.append(current[:CONTENT_BUDGET] + ELLIPSIS)
        current = ELLIPSIS + current[CONTENT_BUDGET:]
    return current


def chunk_text(text: str) -> list[str]:
    """Split text into chunks of at most 300 characters.

    Words are separated on runs of spaces and tabs, so line breaks inside the
    text survive. A chunk that is cut short ends with "..." and the next one
    starts with "..." directly followed by the next word. A single word too
    long for a chunk is cut mid-word the same way.

    Args:
        text: Text to split

    Returns:
        Ordered list of chunks; an empty or blank text yields ``[""]``
    """
    words = [word for word in WORD_SEPARATOR_RE.split(text) if word]
    if not words:
        return [""]

    chunks = []
    current = _cut_oversized(chunks, words[0])
    for word in words[1:]:
        if len(current) + 1 + len(word) > CONTENT_BUDGET:
            chunks.append(current + ELLIPSIS)
            current = ELLIPSIS + word
        else:
            current += " " + word
        current = _cut_oversized(chunks, current)

    chunks.append(current)
    return chunks
