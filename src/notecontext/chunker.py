from __future__ import annotations

import re
from typing import List

PARAGRAPH_SEPARATOR = "\n\n"
SENTENCE_SEPARATOR = " "

_SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+")


def chunk_text(text: str, chunk_size: int = 1000, chunk_overlap: int = 200) -> List[str]:
    """Split *text* into overlapping chunks of at most ``chunk_size`` characters.

    Text is packed paragraph by paragraph (paragraphs are separated by a blank
    line). When the next paragraph does not fit, the current chunk is emitted
    and the next one starts with the trailing whole paragraphs of the emitted
    chunk that fit in ``chunk_overlap`` characters. Paragraphs longer than
    ``chunk_size`` are packed sentence by sentence instead; there the overlap
    is the plain trailing ``chunk_overlap`` characters of the emitted chunk.

    A single sentence longer than ``chunk_size`` is never split, so such a
    chunk may exceed the limit. The result only depends on the arguments.
    """

    if chunk_size <= 0:
        raise ValueError("chunk_size must be a positive integer")
    if chunk_overlap < 0:
        raise ValueError("chunk_overlap must be a non-negative integer")
    if len(text) <= chunk_size:
        return [text]

    chunks: List[str] = []
    buffer: List[str] = []

    for paragraph in _split_paragraphs(text):
        if buffer and _joined_length(buffer, paragraph) > chunk_size:
            flushed = PARAGRAPH_SEPARATOR.join(buffer)
            chunks.append(flushed)
            buffer = _paragraph_overlap(buffer, min(chunk_overlap, len(flushed)))
            if len(paragraph) <= chunk_size:
                while buffer and _joined_length(buffer, paragraph) > chunk_size:
                    buffer.pop(0)

        if len(paragraph) > chunk_size:
            seed = PARAGRAPH_SEPARATOR.join(buffer)
            buffer = [_pack_sentences(paragraph, seed, chunk_size, chunk_overlap, chunks)]
        else:
            buffer.append(paragraph)

    final = PARAGRAPH_SEPARATOR.join(buffer).strip()
    if final:
        chunks.append(final)
    return chunks


def _split_paragraphs(text: str) -> List[str]:
    paragraphs = [part.strip() for part in text.split(PARAGRAPH_SEPARATOR)]
    return [part for part in paragraphs if part]


def _split_sentences(paragraph: str) -> List[str]:
    sentences = [part.strip() for part in _SENTENCE_BOUNDARY_RE.split(paragraph)]
    return [part for part in sentences if part]


def _joined_length(parts: List[str], extra: str) -> int:
    if not parts:
        return len(extra)
    return sum(len(part) for part in parts) + len(PARAGRAPH_SEPARATOR) * len(parts) + len(extra)


def _paragraph_overlap(parts: List[str], budget: int) -> List[str]:
    """Return the trailing whole paragraphs of *parts* that fit in *budget*."""

    overlap: List[str] = []
    used = 0
    for part in reversed(parts):
        needed = len(part) + (len(PARAGRAPH_SEPARATOR) if overlap else 0)
        if used + needed > budget:
            break
        overlap.insert(0, part)
        used += needed
    return overlap


def _seed(tail: str, piece: str, chunk_size: int) -> str:
    """Prefix *piece* with as much of the end of *tail* as still fits."""

    if not tail:
        return piece
    room = chunk_size - len(piece) - len(SENTENCE_SEPARATOR)
    if room <= 0:
        return piece
    if len(tail) > room:
        tail = tail[-room:].lstrip()
    return f"{tail}{SENTENCE_SEPARATOR}{piece}" if tail else piece


def _pack_sentences(
    paragraph: str,
    seed: str,
    chunk_size: int,
    chunk_overlap: int,
    chunks: List[str],
) -> str:
    """Emit full sentence windows into *chunks* and return the open remainder."""

    window = seed
    has_new_text = False
    for sentence in _split_sentences(paragraph):
        if has_new_text and len(window) + len(SENTENCE_SEPARATOR) + len(sentence) > chunk_size:
            chunks.append(window)
            tail = window[-min(chunk_overlap, len(window)):].lstrip() if chunk_overlap else ""
            window = _seed(tail, sentence, chunk_size)
        elif has_new_text:
            window = f"{window}{SENTENCE_SEPARATOR}{sentence}"
        else:
            window = _seed(window, sentence, chunk_size)
        has_new_text = True
    return window


__all__ = ["chunk_text"]
