"""Test topic summaries"""

import pytest

from app.exceptions import EmptyChunkSetError, LLMServiceError, TopicNotFoundError
from app.models.summary import Summary
from app.rag.llm_gateway import LLMResult
from app.services.summary_service import SummaryService


def test_summary_is_upserted(db, mock_gateway, make_document, make_topic):
    doc = make_document(["first part", "second part"])
    topic = make_topic("parts", doc.chunks)
    mock_gateway.call_llm.side_effect = [
        LLMResult(content="Old summary", model="m", provider="builtin"),
        LLMResult(content="New summary", model="m", provider="builtin"),
    ]
    service = SummaryService(mock_gateway)

    service.generate_summary(db, topic.id)
    summary = service.generate_summary(db, topic.id)

    assert summary.summary_text == "New summary"
    assert db.query(Summary).count() == 1
    messages = mock_gateway.call_llm.call_args.args[0]
    assert "first part" in messages[1]["content"]
    assert mock_gateway.call_llm.call_args.kwargs["task_type"] == "summarize"


def test_missing_topic(db, mock_gateway):
    with pytest.raises(TopicNotFoundError):
        SummaryService(mock_gateway).generate_summary(db, 77)


def test_topic_without_chunks(db, mock_gateway, make_topic):
    topic = make_topic("empty", [])

    with pytest.raises(EmptyChunkSetError):
        SummaryService(mock_gateway).generate_summary(db, topic.id)


def test_llm_errors_propagate(db, mock_gateway, make_document, make_topic):
    doc = make_document(["text"])
    topic = make_topic("t", doc.chunks)
    mock_gateway.call_llm.side_effect = LLMServiceError("unauthorized", "The API key is invalid")

    with pytest.raises(LLMServiceError):
        SummaryService(mock_gateway).generate_summary(db, topic.id)

    assert db.query(Summary).count() == 0
