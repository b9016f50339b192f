"""Batch-oriented semantic merging of a topic's chunks"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import json
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.exceptions import CortexException, EmptyChunkSetError, StaleMergeError
from app.models.chunk import Chunk
from app.models.merged_chunk import MergedChunk
from app.models.topic import Topic
from app.rag.config import rag_config
from app.rag.llm_gateway import LLMGateway
from app.rag.structured import SchemaError
from app.schemas.llm import MergeGrouping
from app.services.topic_service import get_topic_chunks, TopicService

logger = logging.getLogger(__name__)

CONTENT_SEPARATOR = "\n\n"

MERGE_PROMPT = """You are a text organization assistant. You receive several text fragments about the topic "{label}", each tagged with its chunk ID.
Group fragments that continue or complement each other into coherent merged segments.

Rules:
- Keep the original wording. Do not paraphrase, summarize, translate or add text; only join fragments and drop exact duplicate sentences.
- Join fragments in a natural reading order, separated by a blank line.
- A fragment whose subject diverges from the others goes into its own single-fragment group.
- Every chunk ID must appear in exactly one group; do not invent IDs.
- Reply in JSON: {{"groups": [{{"chunk_ids": [1, 2], "content": "merged text"}}]}}"""


@dataclass
class MergeResult:
    """Outcome of one merge run"""
    merged_count: int
    original_count: int
    fallback_batches: int = 0


def plan_batches(total: int, batch_min: int = 5, batch_max: int = 8) -> List[int]:
    """
    Batch sizes for merging ``total`` chunks in order

    Takes ``batch_max`` at a time. When slightly more than one batch remains
    (``batch_max < remaining < 2 * batch_min``) and a full batch would leave
    fewer than ``batch_min`` behind, the remainder is halved instead.
    """
    sizes = []
    remaining = total

    while remaining > 0:
        size = min(batch_max, remaining)
        if batch_max < remaining < 2 * batch_min and remaining - size < batch_min:
            size = (remaining + 1) // 2
        sizes.append(size)
        remaining -= size

    return sizes


def split_batches(chunks: Sequence[Chunk], batch_min: int, batch_max: int) -> List[List[Chunk]]:
    batches = []
    start = 0
    for size in plan_batches(len(chunks), batch_min, batch_max):
        batches.append(list(chunks[start:start + size]))
        start += size
    return batches


def fallback_group(batch: Sequence[Chunk]) -> Tuple[List[int], str]:
    """Whole batch as one group, contents concatenated verbatim"""
    return [c.id for c in batch], CONTENT_SEPARATOR.join(c.content for c in batch)


def validate_grouping(grouping: MergeGrouping, batch: Sequence[Chunk]) -> Optional[List[Tuple[List[int], str]]]:
    """
    Check that the groups partition the batch exactly

    Returns:
        ``(chunk_ids, content)`` pairs, or None when an ID is unknown,
        repeated, or missing
    """
    by_id = {c.id: c for c in batch}
    seen = set()
    groups = []

    for group in grouping.groups:
        if not group.chunk_ids:
            return None
        for chunk_id in group.chunk_ids:
            if chunk_id not in by_id or chunk_id in seen:
                return None
            seen.add(chunk_id)

        content = group.content.strip()
        if not content:
            content = CONTENT_SEPARATOR.join(by_id[i].content for i in group.chunk_ids)
        groups.append((list(group.chunk_ids), content))

    if seen != set(by_id):
        return None
    return groups


def in_scope(query, project_id: Optional[int]):
    """Restrict a MergedChunk query to one scope; unscoped rows have a NULL project"""
    if project_id is None:
        return query.filter(MergedChunk.project_id.is_(None))
    return query.filter(MergedChunk.project_id == project_id)


class MergeService:
    """Re-aggregates a topic's chunks into merged chunks"""

    def __init__(
        self,
        gateway: LLMGateway,
        batch_min: Optional[int] = None,
        batch_max: Optional[int] = None
    ):
        self.gateway = gateway
        self.batch_min = batch_min or rag_config.merge_batch_min
        self.batch_max = batch_max or rag_config.merge_batch_max

    def _group_batch(self, topic: Topic, batch: Sequence[Chunk]) -> Optional[List[Tuple[List[int], str]]]:
        fragments = [
            {"chunk_id": c.id, "content": c.content}
            for c in batch
        ]
        decoded = self.gateway.call_structured(
            [
                {"role": "system", "content": MERGE_PROMPT.format(label=topic.label)},
                {"role": "user", "content": json.dumps(fragments, ensure_ascii=False)},
            ],
            MergeGrouping,
            task_type="chunk_merge",
            schema_name="chunk_merge"
        )
        if isinstance(decoded, SchemaError):
            logger.warning(f"Merge output for topic {topic.id} rejected: {decoded.reason}")
            return None

        groups = validate_grouping(decoded.value, batch)
        if groups is None:
            logger.warning(f"Merge groups for topic {topic.id} do not partition the batch {[c.id for c in batch]}")
        return groups

    def _persist(
        self,
        db: Session,
        topic_id: int,
        project_id: Optional[int],
        generation: int,
        groups: List[Tuple[List[int], str]]
    ) -> None:
        # Compare-and-bump: a concurrent merge that committed first wins
        bumped = db.execute(
            update(Topic)
            .where(Topic.id == topic_id, Topic.merge_generation == generation)
            .values(merge_generation=generation + 1)
        )
        if bumped.rowcount == 0:
            db.rollback()
            raise StaleMergeError(f"Topic {topic_id} was merged concurrently; this run was discarded")

        in_scope(
            db.query(MergedChunk).filter(MergedChunk.topic_id == topic_id), project_id
        ).delete(synchronize_session=False)

        db.add_all([
            MergedChunk(
                topic_id=topic_id,
                project_id=project_id,
                content=content,
                source_chunk_ids=chunk_ids,
                position=position
            )
            for position, (chunk_ids, content) in enumerate(groups)
        ])
        db.commit()

    def merge_topic_chunks(self, db: Session, topic_id: int, project_id: Optional[int] = None) -> MergeResult:
        """
        Recompute the merged chunks of a topic

        Batches are sent to the LLM one after another; a batch whose LLM call
        fails or returns an unusable grouping is merged by plain
        concatenation. Previous merged chunks of the same scope (the project,
        or the unscoped rows when no project is given) are replaced atomically.

        Raises:
            TopicNotFoundError: Unknown topic
            EmptyChunkSetError: Topic has no chunks in scope
            StaleMergeError: Another merge of this topic committed meanwhile
        """
        topic = TopicService(self.gateway).get_topic(db, topic_id)
        generation = topic.merge_generation or 0

        chunks = get_topic_chunks(db, topic_id, project_id)
        if not chunks:
            raise EmptyChunkSetError(f"No chunks found for topic {topic_id}")

        batches = split_batches(chunks, self.batch_min, self.batch_max)
        logger.info(f"Merging {len(chunks)} chunks of topic {topic_id} in {len(batches)} batches")

        groups: List[Tuple[List[int], str]] = []
        fallback_batches = 0

        for index, batch in enumerate(batches, 1):
            try:
                batch_groups = self._group_batch(topic, batch)
            except CortexException as e:
                logger.warning(f"Merge batch {index}/{len(batches)} of topic {topic_id} failed: {e}")
                batch_groups = None

            if batch_groups is None:
                fallback_batches += 1
                batch_groups = [fallback_group(batch)]

            groups.extend(batch_groups)

        self._persist(db, topic_id, project_id, generation, groups)

        logger.info(
            f"Topic {topic_id}: {len(chunks)} chunks merged into {len(groups)} "
            f"({fallback_batches} fallback batches)"
        )
        return MergeResult(
            merged_count=len(groups),
            original_count=len(chunks),
            fallback_batches=fallback_batches
        )

    def list_merged_chunks(self, db: Session, topic_id: int, project_id: Optional[int] = None) -> List[MergedChunk]:
        query = in_scope(db.query(MergedChunk).filter(MergedChunk.topic_id == topic_id), project_id)
        return query.order_by(MergedChunk.position).all()

    def has_merged(self, db: Session, topic_id: int, project_id: Optional[int] = None) -> bool:
        query = in_scope(db.query(MergedChunk.id).filter(MergedChunk.topic_id == topic_id), project_id)
        return query.first() is not None
