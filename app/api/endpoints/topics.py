"""Topic, merge and summary API endpoints"""

from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging

from app.api.deps import get_llm_gateway
from app.api.errors import to_http_exception
from app.database.session import get_db
from app.exceptions import CortexException
from app.rag.llm_gateway import LLMGateway
from app.schemas.topic import (
    ChunkTopicsResponse,
    MergedChunkListResponse,
    MergeStatusResponse,
    MergeResponse,
    SummaryResponse,
    TopicListResponse,
)
from app.services.merge_service import MergeService
from app.services.summary_service import SummaryService
from app.services.topic_service import TopicService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/topics", response_model=TopicListResponse)
def list_topics(
    project_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    gateway: LLMGateway = Depends(get_llm_gateway)
):
    """
    List topics with their chunk counts

    - **project_id**: Only count chunks of this project
    """
    items = TopicService(gateway).list_topics(db, project_id=project_id)
    return TopicListResponse(items=items, total=len(items))


@router.post("/chunks/{chunk_id}/extract-topics", response_model=ChunkTopicsResponse)
def extract_chunk_topics(
    chunk_id: int,
    db: Session = Depends(get_db),
    gateway: LLMGateway = Depends(get_llm_gateway)
):
    try:
        topics = TopicService(gateway).extract_chunk_topics(db, chunk_id)
        return ChunkTopicsResponse(chunk_id=chunk_id, topics=topics)
    except CortexException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error extracting topics for chunk {chunk_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to extract topics")


@router.post("/topics/{topic_id}/merge", response_model=MergeResponse)
def merge_topic(
    topic_id: int,
    project_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    gateway: LLMGateway = Depends(get_llm_gateway)
):
    """
    Recompute the merged chunks of a topic

    Replaces earlier merged chunks of the same scope: the given project, or
    the unscoped merge when no project is given.
    Returns 409 when a concurrent merge of the same topic committed first.
    """
    try:
        result = MergeService(gateway).merge_topic_chunks(db, topic_id, project_id=project_id)
        return MergeResponse(
            success=True,
            topic_id=topic_id,
            merged_count=result.merged_count,
            original_count=result.original_count,
            fallback_batches=result.fallback_batches
        )
    except CortexException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error merging topic {topic_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to merge topic chunks")


@router.get("/topics/{topic_id}/merged-chunks", response_model=MergedChunkListResponse)
def list_merged_chunks(
    topic_id: int,
    project_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    gateway: LLMGateway = Depends(get_llm_gateway)
):
    try:
        TopicService(gateway).get_topic(db, topic_id)
        items = MergeService(gateway).list_merged_chunks(db, topic_id, project_id=project_id)
        return MergedChunkListResponse(topic_id=topic_id, items=items)
    except CortexException as e:
        raise to_http_exception(e)


@router.get("/topics/{topic_id}/merge-status", response_model=MergeStatusResponse)
def merge_status(
    topic_id: int,
    project_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    gateway: LLMGateway = Depends(get_llm_gateway)
):
    """Whether merged chunks exist for the topic in the given scope"""
    try:
        TopicService(gateway).get_topic(db, topic_id)
        has_merged = MergeService(gateway).has_merged(db, topic_id, project_id=project_id)
        return MergeStatusResponse(topic_id=topic_id, project_id=project_id, has_merged=has_merged)
    except CortexException as e:
        raise to_http_exception(e)


@router.post("/topics/{topic_id}/summary", response_model=SummaryResponse)
def generate_topic_summary(
    topic_id: int,
    project_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    gateway: LLMGateway = Depends(get_llm_gateway)
):
    """Generate (or regenerate) the summary of a topic"""
    try:
        return SummaryService(gateway).generate_summary(db, topic_id, project_id=project_id)
    except CortexException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error summarizing topic {topic_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to generate summary")


@router.get("/topics/{topic_id}/summary", response_model=SummaryResponse)
def get_topic_summary(
    topic_id: int,
    db: Session = Depends(get_db),
    gateway: LLMGateway = Depends(get_llm_gateway)
):
    summary = SummaryService(gateway).get_summary(db, topic_id)
    if not summary:
        raise HTTPException(status_code=404, detail=f"No summary for topic {topic_id}")
    return summary
