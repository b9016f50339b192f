"""Structured output models requested from the LLM"""

from pydantic import BaseModel, ConfigDict
from typing import List


class ExtractedTopic(BaseModel):
    model_config = ConfigDict(extra="forbid")

    label: str
    relevance: float


class TopicExtraction(BaseModel):
    """1-2 core topics of a chunk"""
    model_config = ConfigDict(extra="forbid")

    topics: List[ExtractedTopic]


class MergeGroup(BaseModel):
    model_config = ConfigDict(extra="forbid")

    chunk_ids: List[int]
    content: str


class MergeGrouping(BaseModel):
    """Coherent groups formed from one batch of chunks"""
    model_config = ConfigDict(extra="forbid")

    groups: List[MergeGroup]


class ExploreSynthesis(BaseModel):
    """Answer synthesized from retrieved chunks"""
    model_config = ConfigDict(extra="forbid")

    title: str
    summary: str
