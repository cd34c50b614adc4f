"""Text segmentation for indexing.

Splits normalized document text into overlapping, type-classified fragments.
Cuts prefer natural breaks: paragraph end, then sentence end, then a space.
"""

import re

from pydantic import BaseModel

from shared.models.document import ChunkType

CHUNK_SIZE = 500          # characters per fragment
OVERLAP_RATIO = 0.2       # default overlap as share of CHUNK_SIZE

_MULTI_NEWLINE = re.compile(r"\n{3,}")
_TITLE_LINE = re.compile(r"^[A-Z\u00C0-\u024F].{0,50}$", re.MULTILINE)
_NUMBERED_LINE = re.compile(r"^\d+\.", re.MULTILINE)
_SENTENCE_BREAKS = (". ", ".\n", "! ", "!\n", "? ", "?\n")


class Segment(BaseModel):
    content: str
    index: int
    chunk_type: ChunkType


def normalize(text: str) -> str:
    return _MULTI_NEWLINE.sub("\n\n", text or "").strip()


def classify(content: str) -> ChunkType:
    """Classify a fragment; first match wins."""
    if content.startswith("#") or _TITLE_LINE.search(content):
        return ChunkType.TITLE
    if "- " in content or "• " in content or _NUMBERED_LINE.search(content):
        return ChunkType.LIST
    if "```" in content or "  " in content:
        return ChunkType.CODE
    return ChunkType.PARAGRAPH


def find_natural_break(text: str, start: int, end: int) -> int:
    """Return the cut position for the window [start, end)."""
    window = text[start:end]
    size = len(window)

    paragraph = window.rfind("\n\n")
    if paragraph > size * 0.5:
        return start + paragraph + 2

    best = -1
    for marker in _SENTENCE_BREAKS:
        idx = window.rfind(marker)
        if idx > best and idx > size * 0.3:
            best = idx
    if best > 0:
        return start + best + 2

    space = window.rfind(" ")
    if space > size * 0.5:
        return start + space + 1

    return end


def segment(text: str, chunk_size: int = CHUNK_SIZE, overlap: int | None = None) -> list[Segment]:
    """Split text into overlapping fragments.

    Args:
        text (str): Raw document text.
        chunk_size (int): Maximum fragment length in characters.
        overlap (int | None): Characters shared by consecutive windows.
            Defaults to round(0.2 * chunk_size).

    Returns:
        list[Segment]: Fragments with contiguous indices starting at 0.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap is None:
        overlap = round(chunk_size * OVERLAP_RATIO)

    cleaned = normalize(text)
    if not cleaned:
        return []
    if len(cleaned) <= chunk_size:
        return [Segment(content=cleaned, index=0, chunk_type=ChunkType.PARAGRAPH)]

    segments: list[Segment] = []
    length = len(cleaned)
    start = 0
    while start < length:
        end = start + chunk_size
        if end < length:
            cut = find_natural_break(cleaned, start, end)
            if cut > start:
                end = cut
        else:
            end = length

        content = cleaned[start:end].strip()
        if content:
            segments.append(Segment(content=content, index=len(segments), chunk_type=classify(content)))

        if end >= length:
            break

        previous_start, start = start, end - overlap
        # overlap would not move the window forward
        if start <= previous_start:
            start = end

    return segments
