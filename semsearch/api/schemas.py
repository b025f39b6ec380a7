"""
Request and response models for the search HTTP API.
"""

from pydantic import BaseModel, field_validator
from typing import List, Optional


class TextQueryRequest(BaseModel):
    text: str
    limit: Optional[int] = None

    @field_validator('text')
    @classmethod
    def text_must_be_single_line(cls, v):
        if "\n" in v:
            raise ValueError('text must be a single line')
        return v

    @field_validator('limit')
    @classmethod
    def limit_must_be_positive(cls, v):
        if v is not None and v < 1:
            raise ValueError('limit must be >= 1')
        return v


class SubmitResponse(BaseModel):
    accepted: bool
    channel: str


class SearchResponse(BaseModel):
    items: List[str]
    count: int


class ResultsResponse(BaseModel):
    items: List[str]
    ready_to_show: bool
    ready_to_search: bool


class HealthResponse(BaseModel):
    status: str
    version: str
    ready_to_show: bool
    ready_to_search: bool
    items: int
    dimensions: int
    catalog_consistent: bool
    bootstrap_errors: List[str] = []
