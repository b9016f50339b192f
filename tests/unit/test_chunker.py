"""Test paragraph-first chunking"""

from app.rag.chunker import chunk_text


def _sentences(count, length=100):
    """Sentences of exactly ``length`` chars, joined by single spaces"""
    return " ".join("x" * (length - 1) + "." for _ in range(count))


def test_short_text_is_single_chunk():
    assert chunk_text("Hello world.") == ["Hello world."]


def test_empty_text_falls_back_to_prefix():
    assert chunk_text("") == [""]
    assert chunk_text("   ") == ["   "]


def test_paragraphs_accumulate_until_max():
    """Test greedy accumulation flushes once the buffer reached min_size"""
    p1, p2, p3 = "a" * 300, "b" * 300, "c" * 300
    text = f"{p1}\n\n{p2}\n\n{p3}"

    chunks = chunk_text(text, min_size=500, max_size=800)

    assert chunks == [f"{p1}\n\n{p2}", p3]


def test_small_buffer_may_overflow_by_twenty_percent():
    p1, p2 = "a" * 400, "b" * 500

    chunks = chunk_text(f"{p1}\n\n{p2}", min_size=500, max_size=800)

    assert chunks == [f"{p1}\n\n{p2}"]
    assert len(chunks[0]) <= 800 * 1.2


def test_small_buffer_flushes_beyond_overflow_allowance():
    p1, p2 = "a" * 400, "b" * 700

    chunks = chunk_text(f"{p1}\n\n{p2}", min_size=500, max_size=800)

    assert chunks == [p1, p2]


def test_short_cjk_text_is_returned_unchanged():
    assert chunk_text("短文本") == ["短文本"]


def test_two_short_paragraphs_share_a_chunk_with_defaults():
    p1, p2 = "a" * 400, "b" * 400

    assert chunk_text(f"{p1}\n\n{p2}") == [f"{p1}\n\n{p2}"]


def test_two_long_paragraphs_are_separate_chunks_with_defaults():
    p1, p2 = "a" * 600, "b" * 600

    assert chunk_text(f"{p1}\n\n{p2}") == [p1, p2]


def test_blank_lines_with_whitespace_split_paragraphs():
    chunks = chunk_text("first\n   \n\nsecond", min_size=1, max_size=5)

    assert chunks == ["first", "second"]


def test_long_paragraph_is_resplit_at_sentences():
    paragraph = _sentences(20)
    assert len(paragraph) > 800 * 1.5

    chunks = chunk_text(paragraph, min_size=500, max_size=800)

    assert len(chunks) > 1
    assert all(len(c) <= 800 for c in chunks)
    # Sentence pieces are verbatim and only lose the separating space
    assert " ".join(chunks) == paragraph


def test_cjk_sentence_terminators():
    sentence = "这是一个测试句子" * 10 + "。"
    paragraph = sentence * 20

    chunks = chunk_text(paragraph, min_size=100, max_size=200)

    assert len(chunks) > 1
    assert "".join(chunks) == paragraph
    assert all(c.endswith("。") for c in chunks)


def test_unsplittable_paragraph_is_kept_whole():
    text = "a" * 2000

    assert chunk_text(text) == [text]


def test_chunks_are_verbatim_and_in_source_order():
    paragraphs = [f"Paragraph {i}. " + "word " * 60 for i in range(12)]
    paragraphs = [p.strip() for p in paragraphs]
    text = "\n\n".join(paragraphs)

    chunks = chunk_text(text, min_size=500, max_size=800)

    offset = 0
    for chunk in chunks:
        index = text.find(chunk, offset)
        assert index >= offset
        offset = index + len(chunk)
    assert "".join(c.replace("\n\n", "") for c in chunks) == "".join(paragraphs)
