"""
Analysis Schemas (Pydantic Models)
==================================
Request/Response models for the document analyzer endpoint.

Covers:
    - Document submission (drive item + extraction instructions)
    - Error payloads
    - Service status
"""

from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional, Dict, Any


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class DocumentInfo(BaseModel):
    """
    Document submitted for analysis.

    Accepts camelCase (``driveItemId``) or snake_case (``drive_item_id``) keys.
    """

    drive_id: str = Field(..., min_length=1, description="Drive (document library) ID")
    drive_item_id: str = Field(..., min_length=1, description="Drive item ID of the document")
    user_prompt: str = Field(..., description="Free-text extraction instructions")
    expected_json_schema: str = Field(
        ...,
        min_length=1,
        description="JSON schema the extracted data should follow (passed to the agent verbatim)"
    )

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=False,
        json_schema_extra={
            "example": {
                "driveId": "b!Xy12abc",
                "driveItemId": "01ABCDEF2GHIJKL",
                "userPrompt": "Document Type: Invoice. Extract all invoice information from the attached document",
                "expectedJsonSchema": "{\"type\": \"object\", \"properties\": {\"invoiceNumber\": {\"type\": \"string\"}}}"
            }
        }
    )


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class ErrorResponse(BaseModel):
    """Error payload returned by the analyzer endpoint"""

    detail: str = Field(..., description="Human readable error message")
    error_kind: Optional[str] = Field(None, description="Tagged error kind")
    call_id: Optional[str] = Field(None, description="Analysis call correlation ID")


class AnalyzerStatus(BaseModel):
    """Service status for health checks"""

    status: str
    agent: Dict[str, Any] = Field(default_factory=dict)
