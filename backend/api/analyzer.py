"""
Document Analyzer API Router
============================
Accepts a drive item reference plus extraction instructions, downloads the
document from the file store and returns the agent's JSON.

Endpoints:
    POST   /documentanalyzer          - Analyze a drive document
    GET    /documentanalyzer/status   - Analyzer/agent status

Status codes:
    200  JSON text produced by the agent
    204  The agent finished without producing text
    404  The source document does not exist in the file store
    502  A backend call failed during analysis
    504  The agent run did not finish before the deadline
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import Response
import logging

from schemas.analysis import DocumentInfo, ErrorResponse, AnalyzerStatus
from services.document_service import DocumentService
from services.errors import AnalysisTimeoutError, BackendError
from services.graph_client import FileStore

logger = logging.getLogger(__name__)

# =============================================================================
# ROUTER INSTANCE
# =============================================================================

router = APIRouter()


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_document_service(request: Request) -> DocumentService:
    """The DocumentService created during application startup."""
    service = getattr(request.app.state, "document_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Document analysis service is not available"
        )
    return service


def get_file_store(request: Request) -> FileStore:
    """The file store client created during application startup."""
    file_store = getattr(request.app.state, "file_store", None)
    if file_store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="File store is not available"
        )
    return file_store


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post(
    "",
    summary="Analyze a document",
    responses={
        200: {"description": "Extracted JSON", "content": {"application/json": {}}},
        204: {"description": "The agent produced no output"},
        404: {"model": ErrorResponse, "description": "Document not found"},
        502: {"model": ErrorResponse, "description": "Document analysis failed"},
        504: {"model": ErrorResponse, "description": "Document analysis timed out"},
    },
)
async def submit_document(
    document_info: DocumentInfo,
    service: DocumentService = Depends(get_document_service),
    file_store: FileStore = Depends(get_file_store),
):
    """
    Download the drive item and extract data according to ``expectedJsonSchema``.

    The response body is the agent's reply verbatim; it is not validated
    against the schema.
    """
    logger.info("Document submitted for analysis.")
    logger.debug(f"DriveId: {document_info.drive_id}, DriveItemId: {document_info.drive_item_id}")
    logger.debug(f"UserPrompt: {document_info.user_prompt}")
    logger.debug(f"ExpectedJsonSchema: {document_info.expected_json_schema}")

    try:
        item = await file_store.get_metadata(document_info.drive_id, document_info.drive_item_id)
        content = await file_store.get_content(document_info.drive_id, document_info.drive_item_id)

        result = await service.analyze_document(
            document_bytes=content,
            document_mime_type=item.mime_type,
            expected_json_schema=document_info.expected_json_schema,
            user_instructions=document_info.user_prompt,
        )

    except AnalysisTimeoutError as e:
        logger.error(f"Document analysis timed out: {e}")
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="Document analysis timed out."
        )

    except BackendError as e:
        logger.error(f"A {e.kind.value} error from {e.service} occurred while processing the document: {e}")
        if e.is_source_not_found:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="The specified document was not found."
            )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Document analysis failed."
        )

    logger.debug(f"Analysis Result: {result}")
    logger.info("Document processing completed.")

    if result is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return Response(content=result, media_type="application/json")


@router.get(
    "/status",
    response_model=AnalyzerStatus,
    summary="Analyzer status",
)
async def analyzer_status(service: DocumentService = Depends(get_document_service)):
    """Current agent handle and polling configuration."""
    service_status = service.get_status()
    return AnalyzerStatus(status=service_status["status"], agent=service_status["agent"])
