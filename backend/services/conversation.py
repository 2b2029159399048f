"""
Conversation Driver
===================
Thread, message and run handling for one analysis call.

Run state machine (terminal vocabulary is backend-defined):

    queued -> in_progress -> {completed, failed, cancelled, expired, ...}

The driver stops polling as soon as the status leaves {queued, in_progress}
and leaves the judgment of *which* terminal state was reached to the caller.
"""

from typing import Optional, Sequence
import asyncio
import logging

from services.agent_backend import (
    AgentBackend,
    AgentHandle,
    Message,
    MessageAttachment,
    MessageRole,
    Run,
    Thread,
    ToolDefinition,
)
from services.agent_manager import AgentLifecycleManager
from services.errors import AnalysisTimeoutError

logger = logging.getLogger(__name__)


DEFAULT_POLL_INTERVAL = 0.5

EXTRACTION_PROMPT_TEMPLATE = """The attached document is of type: {mime_type}

Extract all key information in json according to this schema: {expected_json_schema}

Here are some additional user's instructions to help: {user_instructions}"""


def build_extraction_prompt(mime_type: str, expected_json_schema: str, user_instructions: str) -> str:
    """User message text. The schema and instructions are passed through verbatim."""
    return EXTRACTION_PROMPT_TEMPLATE.format(
        mime_type=mime_type,
        expected_json_schema=expected_json_schema,
        user_instructions=user_instructions,
    )


class ConversationDriver:
    """
    Drives one thread through message -> run -> terminal status.

    Args:
        backend: Agent backend
        agents: Lifecycle manager of the shared agent
        poll_interval: Seconds between run status fetches
        timeout: Seconds a run may stay active before AnalysisTimeoutError
        max_polls: Optional upper bound on status fetches
    """

    def __init__(
        self,
        backend: AgentBackend,
        agents: AgentLifecycleManager,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: Optional[float] = None,
        max_polls: Optional[int] = None,
    ):
        self._backend = backend
        self._agents = agents
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.max_polls = max_polls

    async def update_agent_tools(
        self,
        tools: Sequence[ToolDefinition],
        call_id: Optional[str] = None,
    ) -> AgentHandle:
        return await self._agents.ensure_tools(tools, call_id=call_id)

    async def create_thread(self, call_id: Optional[str] = None) -> Thread:
        thread = await self._backend.create_thread()
        logger.info(f"{call_id} : Created thread. Thread ID: {thread.id}")
        return thread

    async def post_message(
        self,
        thread: Thread,
        text: str,
        attachments: Sequence[MessageAttachment] = (),
        call_id: Optional[str] = None,
    ) -> Message:
        message = await self._backend.create_message(
            thread.id,
            MessageRole.USER,
            text,
            attachments=list(attachments),
        )
        logger.info(
            f"{call_id} : Created message with {len(attachments)} attachment(s) in thread ID: {thread.id}"
        )
        return message

    async def start_run(self, thread: Thread, agent: AgentHandle, call_id: Optional[str] = None) -> Run:
        run = await self._backend.create_run(thread.id, agent.id)
        logger.info(f"{call_id} : Started run {run.id} on thread {thread.id} (status: {run.status})")
        return run

    async def poll_until_terminal(
        self,
        thread: Thread,
        run: Run,
        deadline: Optional[float] = None,
        call_id: Optional[str] = None,
    ) -> Run:
        """
        Poll the run until it leaves {queued, in_progress}.

        Each iteration sleeps ``poll_interval`` and then fetches the status
        once, so the status is always fetched at least once.

        Args:
            deadline: Absolute event-loop time after which polling gives up.
                Defaults to now + ``timeout`` when a timeout is configured.

        Raises:
            AnalysisTimeoutError: deadline or ``max_polls`` exceeded
        """
        loop = asyncio.get_running_loop()
        if deadline is None and self.timeout is not None:
            deadline = loop.time() + self.timeout

        polls = 0
        while True:
            await asyncio.sleep(self.poll_interval)
            run = await self._backend.get_run(thread.id, run.id)
            polls += 1
            logger.debug(f"{call_id} : Run {run.id} poll {polls}: {run.status}")

            if not run.is_active:
                logger.info(f"{call_id} : Run completed with status: {run.status} after {polls} poll(s)")
                return run

            if self.max_polls is not None and polls >= self.max_polls:
                await self._cancel_quietly(thread, run, call_id)
                raise AnalysisTimeoutError(
                    f"Run {run.id} still {run.status} after {polls} polls",
                    run_id=run.id,
                    polls=polls,
                )

            if deadline is not None and loop.time() >= deadline:
                await self._cancel_quietly(thread, run, call_id)
                raise AnalysisTimeoutError(
                    f"Run {run.id} still {run.status} when the deadline passed",
                    run_id=run.id,
                    polls=polls,
                )

    async def _cancel_quietly(self, thread: Thread, run: Run, call_id: Optional[str]) -> None:
        try:
            await self._backend.cancel_run(thread.id, run.id)
            logger.warning(f"{call_id} : Cancelled run {run.id}")
        except Exception as e:
            logger.warning(f"{call_id} : Could not cancel run {run.id}: {e}")

    async def delete_thread(self, thread: Thread, call_id: Optional[str] = None) -> None:
        """Best-effort thread removal."""
        try:
            await self._backend.delete_thread(thread.id)
            logger.info(f"{call_id} : Deleted thread with ID: {thread.id}")
        except Exception as e:
            logger.warning(f"{call_id} : Failed to delete thread {thread.id}: {e}")
