"""
Agent Backend Contract
======================
Data types and the async interface the analysis workflow expects from an
LLM agent backend (agents, files, threads, messages, runs).

The concrete HTTP implementation lives in ``services.foundry_client``; tests
substitute an in-memory stub.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable


# =============================================================================
# ENUMS
# =============================================================================

class MessageRole(str, Enum):
    """Author of a thread message"""
    USER = "user"
    AGENT = "assistant"


class RunStatus(str, Enum):
    """Lifecycle states reported for a run"""
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"
    FAILED = "failed"
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    EXPIRED = "expired"


ACTIVE_RUN_STATUSES = frozenset({RunStatus.QUEUED.value, RunStatus.IN_PROGRESS.value})

FILE_PURPOSE_AGENTS = "assistants"
CODE_INTERPRETER = "code_interpreter"


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class ToolDefinition:
    """A capability enabled on an agent or a message attachment."""
    type: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type}


DOCUMENT_INSPECTION_TOOL = ToolDefinition(type=CODE_INTERPRETER)


@dataclass
class AgentHandle:
    """The long-lived extraction agent owned by one service instance."""
    id: str
    name: str
    model: str
    tools: List[ToolDefinition] = field(default_factory=list)
    instructions: Optional[str] = None
    temperature: Optional[float] = None

    def has_tools(self, tools: Sequence[ToolDefinition]) -> bool:
        return set(tools) <= set(self.tools)


@dataclass(frozen=True)
class UploadedFile:
    id: str
    filename: str
    purpose: str = FILE_PURPOSE_AGENTS
    size: int = 0


@dataclass(frozen=True)
class Thread:
    id: str


@dataclass(frozen=True)
class MessageAttachment:
    file_id: str
    tools: Sequence[ToolDefinition] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"file_id": self.file_id, "tools": [t.to_dict() for t in self.tools]}


@dataclass(frozen=True)
class MessageContent:
    """One content part of a message: ``text`` or a file-backed part."""
    type: str
    text: Optional[str] = None
    file_id: Optional[str] = None

    @property
    def is_text(self) -> bool:
        return self.type == "text" and self.text is not None


@dataclass(frozen=True)
class Message:
    id: str
    thread_id: str
    role: str
    content: Sequence[MessageContent] = ()
    created_at: Optional[datetime] = None
    attachments: Sequence[MessageAttachment] = ()

    @property
    def is_agent(self) -> bool:
        return self.role == MessageRole.AGENT.value


@dataclass(frozen=True)
class Run:
    id: str
    thread_id: str
    agent_id: str
    status: str

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_RUN_STATUSES


@dataclass(frozen=True)
class AnalysisRequest:
    """Input of one analysis call. Owned by the caller."""
    document_bytes: bytes
    mime_type: str
    expected_json_schema: str
    user_instructions: str


# =============================================================================
# BACKEND PROTOCOL
# =============================================================================

@runtime_checkable
class AgentBackend(Protocol):
    """
    Async operations the workflow needs from the agent service.

    Every method raises ``services.errors.BackendError`` on failure.
    """

    async def create_agent(
        self,
        model: str,
        name: str,
        instructions: str,
        temperature: Optional[float] = None,
        tools: Sequence[ToolDefinition] = (),
    ) -> AgentHandle: ...

    async def update_agent_tools(self, agent_id: str, tools: Sequence[ToolDefinition]) -> AgentHandle: ...

    async def delete_agent(self, agent_id: str) -> None: ...

    async def list_agents(self) -> List[AgentHandle]: ...

    async def upload_file(self, data: bytes, filename: str, purpose: str = FILE_PURPOSE_AGENTS) -> UploadedFile: ...

    async def delete_file(self, file_id: str) -> None: ...

    async def list_files(self) -> List[UploadedFile]: ...

    async def create_thread(self) -> Thread: ...

    async def delete_thread(self, thread_id: str) -> None: ...

    async def create_message(
        self,
        thread_id: str,
        role: MessageRole,
        text: str,
        attachments: Sequence[MessageAttachment] = (),
    ) -> Message: ...

    async def create_run(self, thread_id: str, agent_id: str) -> Run: ...

    async def get_run(self, thread_id: str, run_id: str) -> Run: ...

    async def cancel_run(self, thread_id: str, run_id: str) -> Run: ...

    async def list_messages(self, thread_id: str, order: str = "asc") -> List[Message]: ...
