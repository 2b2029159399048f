"""
Schemas Package
===============
Pydantic models for API request/response validation.

Usage:
    from schemas import DocumentInfo, ErrorResponse
"""

from schemas.analysis import (
    # Request
    DocumentInfo,

    # Response
    ErrorResponse,
    AnalyzerStatus,
)


__all__ = [
    "DocumentInfo",
    "ErrorResponse",
    "AnalyzerStatus",
]
