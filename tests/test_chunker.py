from __future__ import annotations

import pytest

from notecontext.chunker import chunk_text


def test_short_text_is_returned_as_single_chunk() -> None:
    assert chunk_text("Short note.", 1000, 200) == ["Short note."]


def test_empty_text_yields_one_empty_chunk() -> None:
    assert chunk_text("", 1000, 200) == [""]


def test_text_of_exactly_chunk_size_is_not_split() -> None:
    text = "x" * 50
    assert chunk_text(text, 50, 10) == [text]


def test_paragraphs_are_packed_without_overlap_when_none_fit() -> None:
    assert chunk_text("A\n\nB\n\nC", 3, 1) == ["A", "B", "C"]


def test_trailing_paragraph_is_carried_into_next_chunk() -> None:
    paragraphs = [letter * 10 for letter in "abcd"]
    text = "\n\n".join(paragraphs)

    chunks = chunk_text(text, 25, 12)

    assert chunks == [
        "aaaaaaaaaa\n\nbbbbbbbbbb",
        "bbbbbbbbbb\n\ncccccccccc",
        "cccccccccc\n\ndddddddddd",
    ]


def test_long_paragraph_is_split_on_sentence_boundaries() -> None:
    text = "One two three. Four five six. Seven eight nine. Ten eleven twelve."

    chunks = chunk_text(text, 35, 5)

    assert chunks == [
        "One two three. Four five six.",
        "six. Seven eight nine.",
        "nine. Ten eleven twelve.",
    ]
    for previous, current in zip(chunks, chunks[1:]):
        assert any(current.startswith(previous[-n:]) for n in range(1, 6))


def test_chunks_respect_size_when_sentences_fit() -> None:
    sentences = [f"Sentence number {index} ends here." for index in range(40)]
    text = "\n\n".join(" ".join(sentences[i : i + 4]) for i in range(0, 40, 4))

    chunks = chunk_text(text, 200, 40)

    assert len(chunks) > 1
    assert all(0 < len(chunk) <= 200 for chunk in chunks)


def test_chunks_cover_all_paragraphs_in_order() -> None:
    paragraphs = [f"Paragraph {index} " + "word " * 20 for index in range(12)]
    text = "\n\n".join(paragraphs)

    chunks = chunk_text(text, 300, 60)
    joined = "\n\n".join(chunks)

    positions = [joined.index(f"Paragraph {index} ") for index in range(12)]
    assert positions == sorted(positions)


def test_unsplittable_sentence_may_exceed_chunk_size() -> None:
    text = "short.\n\n" + "y" * 80

    chunks = chunk_text(text, 30, 5)

    assert any(len(chunk) > 30 for chunk in chunks)
    assert chunks[-1].endswith("y" * 80)


def test_chunking_is_deterministic() -> None:
    text = "\n\n".join(f"Block {index}. " * 15 for index in range(10))
    assert chunk_text(text, 250, 50) == chunk_text(text, 250, 50)


@pytest.mark.parametrize(
    ("size", "overlap"),
    [(0, 0), (-5, 0), (100, -1)],
)
def test_invalid_arguments_raise(size: int, overlap: int) -> None:
    with pytest.raises(ValueError):
        chunk_text("anything", size, overlap)
