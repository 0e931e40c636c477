"""Pydantic schemas for API request/response models."""

from .analyze import AnalyzeOptions, AnalyzeRequest, ScreenPayload
from .jobs import JobList, JobResponse

__all__ = [
    'AnalyzeOptions',
    'AnalyzeRequest',
    'ScreenPayload',
    'JobList',
    'JobResponse',
]
