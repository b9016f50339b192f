"""Topic summaries"""

from datetime import datetime
from typing import Optional
import logging

from sqlalchemy.orm import Session

from app.exceptions import EmptyChunkSetError
from app.models.summary import Summary
from app.rag.llm_gateway import LLMGateway
from app.services.topic_service import get_topic_chunks, TopicService

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = """You are a summarization assistant. Summarize the following fragments about the topic "{label}".
Requirements:
- 200-500 words, in the language of the fragments
- Cover the main points of all fragments, without repetition
- Do not add information that is not in the fragments"""

FRAGMENT_SEPARATOR = "\n\n---\n\n"


class SummaryService:
    def __init__(self, gateway: LLMGateway):
        self.gateway = gateway

    def get_summary(self, db: Session, topic_id: int) -> Optional[Summary]:
        return db.query(Summary).filter(Summary.topic_id == topic_id).first()

    def generate_summary(self, db: Session, topic_id: int, project_id: Optional[int] = None) -> Summary:
        """
        Summarize all chunks of a topic and store the result

        An existing summary for the topic is overwritten.

        Raises:
            TopicNotFoundError: Unknown topic
            EmptyChunkSetError: Topic has no chunks in scope
            LLMServiceError: The LLM call failed
        """
        topic = TopicService(self.gateway).get_topic(db, topic_id)

        chunks = get_topic_chunks(db, topic_id, project_id)
        if not chunks:
            raise EmptyChunkSetError(f"No chunks found for topic {topic_id}")

        result = self.gateway.call_llm(
            [
                {"role": "system", "content": SUMMARY_PROMPT.format(label=topic.label)},
                {"role": "user", "content": FRAGMENT_SEPARATOR.join(c.content for c in chunks)},
            ],
            task_type="summarize"
        )

        summary = self.get_summary(db, topic_id)
        if summary:
            summary.summary_text = result.content
            summary.generated_at = datetime.utcnow()
        else:
            summary = Summary(topic_id=topic_id, summary_text=result.content)
            db.add(summary)

        db.commit()
        db.refresh(summary)

        logger.info(f"Generated summary for topic {topic_id} from {len(chunks)} chunks")
        return summary
