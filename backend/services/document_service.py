"""
Document Service - LangGraph Analysis Workflow
===============================================
Orchestrates one document analysis against the shared extraction agent:

    upload file -> enable tools -> thread -> message -> run -> poll -> extract

The uploaded file is deleted on every exit path. Upload and thread creation
are retried only on failures the backend cannot have acted on (429, 503, a
failed connect); run creation never is, so a thread gets at most one run.

Usage:
    service = DocumentService(backend, agents)
    result_json = await service.analyze(AnalysisRequest(...))
"""

from typing import Any, Dict, Optional
import logging
import time

# LangGraph Functional API imports
from langgraph.func import entrypoint, task
from langgraph.types import RetryPolicy

from services.agent_backend import (
    AgentBackend,
    AnalysisRequest,
    DOCUMENT_INSPECTION_TOOL,
    MessageAttachment,
    RunStatus,
    Thread,
    UploadedFile,
)
from services.agent_manager import AgentLifecycleManager, new_short_id
from services.conversation import ConversationDriver, build_extraction_prompt
from services.errors import AnalyzerError, is_transient_error
from services.file_handler import EphemeralFileHandler
from services.result_extractor import fetch_result
from utils.file_manager import FileManager, file_manager

from config import settings

logger = logging.getLogger(__name__)


# =============================================================================
# LANGGRAPH TASKS - Retry-safe Steps
# =============================================================================

# Retried only when the backend cannot have created anything: 429, 503 or a
# failed connect. A read timeout may hide a stored file, so it fails immediately.
transient_retry_policy = RetryPolicy(
    max_attempts=settings.RETRY_MAX_ATTEMPTS,
    initial_interval=settings.RETRY_INITIAL_INTERVAL,
    backoff_factor=2.0,
    jitter=False,
    retry_on=is_transient_error,
)


@task(retry_policy=transient_retry_policy)
async def upload_document_task(
    files: EphemeralFileHandler,
    data: bytes,
    filename: str,
    call_id: str
) -> UploadedFile:
    """Upload the document bytes as an agent input file."""
    return await files.upload(data, filename, call_id=call_id)


@task(retry_policy=transient_retry_policy)
async def create_thread_task(driver: ConversationDriver, call_id: str) -> Thread:
    """Create the per-call conversation thread."""
    return await driver.create_thread(call_id=call_id)


# =============================================================================
# MAIN ANALYSIS WORKFLOW - LangGraph Entrypoint
# =============================================================================

@entrypoint()
async def analysis_workflow(inputs: Dict[str, Any]) -> Dict[str, Any]:
    """
    Run one analysis call.

    Args:
        inputs: Dictionary with:
            - service: the DocumentService owning the agent and backend
            - request: AnalysisRequest
            - call_id: correlation id for logs

    Returns:
        Dictionary with ``result`` (str or None), ``run_id`` and ``run_status``
    """
    service: "DocumentService" = inputs["service"]
    request: AnalysisRequest = inputs["request"]
    call_id: str = inputs["call_id"]

    start_time = time.time()
    step = "upload"
    logger.info(
        f"{call_id} : Starting document analysis "
        f"({request.mime_type}, {len(request.document_bytes)} bytes)"
    )

    try:
        filename = service.filenames.upload_filename(request.mime_type, call_id)
        uploaded = await upload_document_task(service.files, request.document_bytes, filename, call_id)

        async with service.files.scoped(uploaded, call_id=call_id):
            step = "update_tools"
            tools = [DOCUMENT_INSPECTION_TOOL]
            agent = await service.driver.update_agent_tools(tools, call_id=call_id)

            step = "create_thread"
            thread = await create_thread_task(service.driver, call_id)

            try:
                step = "post_message"
                prompt = build_extraction_prompt(
                    request.mime_type,
                    request.expected_json_schema,
                    request.user_instructions,
                )
                attachment = MessageAttachment(file_id=uploaded.id, tools=tuple(tools))
                await service.driver.post_message(thread, prompt, [attachment], call_id=call_id)

                step = "create_run"
                run = await service.driver.start_run(thread, agent, call_id=call_id)

                step = "poll_run"
                run = await service.driver.poll_until_terminal(thread, run, call_id=call_id)
                if run.status != RunStatus.COMPLETED.value:
                    logger.warning(f"{call_id} : Run {run.id} ended with status {run.status}")

                step = "extract_result"
                result = await fetch_result(service.backend, thread, call_id=call_id)
            finally:
                if service.delete_threads:
                    await service.driver.delete_thread(thread, call_id=call_id)

    except AnalyzerError as e:
        e.with_context(call_id, step)
        logger.error(f"{call_id} : Error during document analysis at step '{step}': {e}")
        raise
    except Exception as e:
        logger.exception(f"{call_id} : Unexpected error during document analysis at step '{step}': {e}")
        raise

    elapsed_ms = int((time.time() - start_time) * 1000)
    logger.info(f"{call_id} : Document analysis completed in {elapsed_ms}ms")
    return {
        "result": result,
        "run_id": run.id,
        "run_status": run.status,
    }


# =============================================================================
# DOCUMENT SERVICE CLASS - Public API
# =============================================================================

class DocumentService:
    """
    High-level analysis service used by the API layer.

    One instance per application; it shares the lifecycle-managed agent
    across concurrent calls.

    Usage:
        service = DocumentService(backend, agents)
        text = await service.analyze_document(data, "application/pdf", schema, "extract invoice data")
    """

    def __init__(
        self,
        backend: AgentBackend,
        agents: AgentLifecycleManager,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
        max_polls: Optional[int] = None,
        delete_threads: Optional[bool] = None,
        filenames: Optional[FileManager] = None,
    ):
        self.backend = backend
        self.agents = agents
        self.files = EphemeralFileHandler(backend)
        self.driver = ConversationDriver(
            backend,
            agents,
            poll_interval=settings.poll_interval_seconds if poll_interval is None else poll_interval,
            timeout=settings.RUN_TIMEOUT_SECONDS if timeout is None else timeout,
            max_polls=settings.RUN_MAX_POLLS if max_polls is None else max_polls,
        )
        self.delete_threads = settings.DELETE_THREADS if delete_threads is None else delete_threads
        self.filenames = filenames or file_manager

    async def analyze(self, request: AnalysisRequest) -> Optional[str]:
        """
        Analyze one document and return the agent's JSON text.

        Returns:
            The last agent text, or None when the agent produced none

        Raises:
            BackendError: a remote call failed (file already cleaned up)
            AnalysisTimeoutError: the run did not finish in time
        """
        call_id = new_short_id()
        output = await analysis_workflow.ainvoke(
            {"service": self, "request": request, "call_id": call_id}
        )
        return output["result"]

    async def analyze_document(
        self,
        document_bytes: bytes,
        document_mime_type: str,
        expected_json_schema: str,
        user_instructions: str,
    ) -> Optional[str]:
        return await self.analyze(
            AnalysisRequest(
                document_bytes=document_bytes,
                mime_type=document_mime_type,
                expected_json_schema=expected_json_schema,
                user_instructions=user_instructions,
            )
        )

    def get_status(self) -> Dict[str, Any]:
        """Get service status for health checks."""
        return {
            "service": "DocumentService",
            "status": "ready" if self.agents.is_initialized else "not_initialized",
            "agent": self.agents.get_status(),
            "poll_interval_seconds": self.driver.poll_interval,
            "run_timeout_seconds": self.driver.timeout,
            "delete_threads": self.delete_threads,
        }


__all__ = [
    "DocumentService",
    "analysis_workflow",
    "upload_document_task",
    "create_thread_task",
]
