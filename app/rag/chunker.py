"""Paragraph-first text chunking"""

from typing import List
import logging
import re

logger = logging.getLogger(__name__)

PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
# A sentence runs up to a terminator and keeps the whitespace after it
SENTENCE = re.compile(r".+?(?:[。！？.!?]\s*|$)", re.S)

PARAGRAPH_JOINER = "\n\n"
OVERFLOW_RATIO = 1.2
RESPLIT_RATIO = 1.5


def _join(buffer: str, paragraph: str) -> str:
    return buffer + PARAGRAPH_JOINER + paragraph if buffer else paragraph


def _accumulate_paragraphs(paragraphs: List[str], min_size: int, max_size: int) -> List[str]:
    chunks = []
    current = ""

    for paragraph in paragraphs:
        if len(current) + len(paragraph) + 1 <= max_size:
            current = _join(current, paragraph)
        elif len(current) >= min_size:
            chunks.append(current)
            current = paragraph
        elif len(current) + len(paragraph) + 1 <= max_size * OVERFLOW_RATIO:
            # Small buffer: take the overflow rather than emit a tiny chunk
            current = _join(current, paragraph)
        else:
            if current:
                chunks.append(current)
            current = paragraph

    if current:
        chunks.append(current)

    return chunks


def _split_sentences(chunk: str, max_size: int) -> List[str]:
    pieces = []
    current = ""

    for sentence in SENTENCE.findall(chunk):
        if len(current) + len(sentence) + 1 <= max_size:
            current += sentence
        else:
            if current.strip():
                pieces.append(current.rstrip())
            current = sentence

    if current.strip():
        pieces.append(current.rstrip())

    return pieces


def chunk_text(text: str, min_size: int = 500, max_size: int = 800) -> List[str]:
    """
    Split text into ordered, bounded chunks

    Paragraphs (blank-line separated) are accumulated greedily up to
    ``max_size`` characters; a buffer still below ``min_size`` may overflow
    by 20%. Anything longer than 1.5x ``max_size`` afterwards is re-split at
    sentence boundaries. Chunk text is never rewritten.

    Args:
        text: Raw document text
        min_size: Preferred minimum chunk length
        max_size: Target maximum chunk length

    Returns:
        List of chunks in source order; ``[text[:max_size]]`` when nothing
        else can be produced
    """
    paragraphs = [p.strip() for p in PARAGRAPH_BREAK.split(text or "")]
    paragraphs = [p for p in paragraphs if p]

    chunks = []
    for chunk in _accumulate_paragraphs(paragraphs, min_size, max_size):
        if len(chunk) <= max_size * RESPLIT_RATIO:
            chunks.append(chunk)
        else:
            chunks.extend(_split_sentences(chunk, max_size))

    if not chunks:
        return [(text or "")[:max_size]]

    logger.debug(f"Split {len(text)} chars into {len(chunks)} chunks (min: {min_size}, max: {max_size})")
    return chunks
