"""
Shared test fixtures: an in-memory agent backend that records every call,
and an in-memory file store.
"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from services.agent_backend import (
    AgentHandle,
    FILE_PURPOSE_AGENTS,
    Message,
    MessageContent,
    MessageRole,
    Run,
    RunStatus,
    Thread,
    UploadedFile,
)
from services.agent_manager import AgentLifecycleManager
from services.document_service import DocumentService
from services.errors import BackendError, ErrorKind, SERVICE_FILE_STORE
from services.graph_client import DriveItem


INVOICE_JSON = '{"invoiceNumber": "INV-001", "total": 120.5}'


def agent_message(text: str, thread_id: str = "thread_1", index: int = 0) -> Message:
    return Message(
        id=f"msg_agent_{index}",
        thread_id=thread_id,
        role=MessageRole.AGENT.value,
        content=(MessageContent(type="text", text=text),),
        created_at=datetime(2024, 1, 1, 12, 0, index, tzinfo=timezone.utc),
    )


def user_message(text: str, thread_id: str = "thread_1", index: int = 0) -> Message:
    return Message(
        id=f"msg_user_{index}",
        thread_id=thread_id,
        role=MessageRole.USER.value,
        content=(MessageContent(type="text", text=text),),
        created_at=datetime(2024, 1, 1, 12, 0, index, tzinfo=timezone.utc),
    )


class StubAgentBackend:
    """
    Recording ``AgentBackend``.

    ``run_statuses`` is consumed one entry per ``get_run``; the last entry
    repeats. ``fail(method, exc, times)`` makes the next ``times`` calls of
    ``method`` raise ``exc`` (every call when ``times`` is None).
    """

    def __init__(
        self,
        run_statuses: Sequence[str] = (RunStatus.COMPLETED.value,),
        messages: Optional[List[Message]] = None,
    ):
        self.run_statuses = list(run_statuses)
        self.messages = messages if messages is not None else [agent_message(INVOICE_JSON)]
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.agents: Dict[str, AgentHandle] = {}
        self.files: Dict[str, UploadedFile] = {}
        self.uploaded_data: Dict[str, bytes] = {}
        self.posted: List[Dict[str, Any]] = []
        self._failures: Dict[str, List[Any]] = {}
        self._counter = defaultdict(int)
        self._poll_index = 0
        self.closed = False

    # --- test helpers ---

    def fail(self, method: str, exc: Exception, times: Optional[int] = None) -> None:
        self._failures[method] = [exc, times]

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def args(self, method: str) -> List[Dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == method]

    def _record(self, method: str, **kwargs: Any) -> None:
        self.calls.append((method, kwargs))
        failure = self._failures.get(method)
        if failure is None:
            return
        exc, times = failure
        if times is not None:
            if times <= 0:
                return
            failure[1] = times - 1
        raise exc

    def _next_id(self, prefix: str) -> str:
        self._counter[prefix] += 1
        return f"{prefix}_{self._counter[prefix]}"

    # --- agents ---

    async def create_agent(self, model, name, instructions, temperature=None, tools=()):
        self._record("create_agent", model=model, name=name, instructions=instructions, temperature=temperature)
        handle = AgentHandle(
            id=self._next_id("asst"),
            name=name,
            model=model,
            tools=list(tools),
            instructions=instructions,
            temperature=temperature,
        )
        self.agents[handle.id] = handle
        return handle

    async def update_agent_tools(self, agent_id, tools):
        self._record("update_agent_tools", agent_id=agent_id, tools=list(tools))
        current = self.agents[agent_id]
        handle = AgentHandle(
            id=current.id,
            name=current.name,
            model=current.model,
            tools=list(tools),
            instructions=current.instructions,
            temperature=current.temperature,
        )
        self.agents[agent_id] = handle
        return handle

    async def delete_agent(self, agent_id):
        self._record("delete_agent", agent_id=agent_id)
        self.agents.pop(agent_id, None)

    async def list_agents(self):
        self._record("list_agents")
        return list(self.agents.values())

    # --- files ---

    async def upload_file(self, data, filename, purpose=FILE_PURPOSE_AGENTS):
        self._record("upload_file", filename=filename, purpose=purpose, size=len(data))
        uploaded = UploadedFile(id=self._next_id("file"), filename=filename, purpose=purpose, size=len(data))
        self.files[uploaded.id] = uploaded
        self.uploaded_data[uploaded.id] = data
        return uploaded

    async def delete_file(self, file_id):
        self._record("delete_file", file_id=file_id)
        self.files.pop(file_id, None)

    async def list_files(self):
        self._record("list_files")
        return list(self.files.values())

    # --- threads, messages, runs ---

    async def create_thread(self):
        self._record("create_thread")
        return Thread(id=self._next_id("thread"))

    async def delete_thread(self, thread_id):
        self._record("delete_thread", thread_id=thread_id)

    async def create_message(self, thread_id, role, text, attachments=()):
        self._record("create_message", thread_id=thread_id, role=role, text=text, attachments=list(attachments))
        self.posted.append({"thread_id": thread_id, "role": role, "text": text, "attachments": list(attachments)})
        return Message(
            id=self._next_id("msg"),
            thread_id=thread_id,
            role=MessageRole(role).value,
            content=(MessageContent(type="text", text=text),),
            attachments=tuple(attachments),
        )

    async def create_run(self, thread_id, agent_id):
        self._record("create_run", thread_id=thread_id, agent_id=agent_id)
        return Run(id=self._next_id("run"), thread_id=thread_id, agent_id=agent_id, status=RunStatus.QUEUED.value)

    async def get_run(self, thread_id, run_id):
        self._record("get_run", thread_id=thread_id, run_id=run_id)
        index = min(self._poll_index, len(self.run_statuses) - 1)
        self._poll_index += 1
        return Run(id=run_id, thread_id=thread_id, agent_id="", status=self.run_statuses[index])

    async def cancel_run(self, thread_id, run_id):
        self._record("cancel_run", thread_id=thread_id, run_id=run_id)
        return Run(id=run_id, thread_id=thread_id, agent_id="", status=RunStatus.CANCELLING.value)

    async def list_messages(self, thread_id, order="asc"):
        self._record("list_messages", thread_id=thread_id, order=order)
        return list(self.messages)

    async def aclose(self):
        self.closed = True


class StubFileStore:
    """In-memory ``FileStore`` keyed by (drive_id, item_id)."""

    def __init__(self):
        self.items: Dict[Tuple[str, str], Tuple[DriveItem, bytes]] = {}
        self.closed = False

    def add(self, drive_id: str, item_id: str, content: bytes, mime_type: str = "application/pdf") -> DriveItem:
        item = DriveItem(drive_id=drive_id, item_id=item_id, name=f"{item_id}.pdf", mime_type=mime_type, size=len(content))
        self.items[(drive_id, item_id)] = (item, content)
        return item

    def _lookup(self, drive_id: str, item_id: str) -> Tuple[DriveItem, bytes]:
        try:
            return self.items[(drive_id, item_id)]
        except KeyError:
            raise BackendError(
                f"Item {item_id} not found in drive {drive_id}",
                kind=ErrorKind.NOT_FOUND,
                service=SERVICE_FILE_STORE,
                status_code=404,
            )

    async def get_metadata(self, drive_id: str, item_id: str) -> DriveItem:
        return self._lookup(drive_id, item_id)[0]

    async def get_content(self, drive_id: str, item_id: str) -> bytes:
        return self._lookup(drive_id, item_id)[1]

    async def aclose(self) -> None:
        self.closed = True


# --- Fixtures ---

@pytest.fixture
def backend() -> StubAgentBackend:
    return StubAgentBackend()


@pytest.fixture
def file_store() -> StubFileStore:
    return StubFileStore()


@pytest.fixture
async def agents(backend: StubAgentBackend) -> AgentLifecycleManager:
    manager = AgentLifecycleManager(backend, instance_id="inst0001")
    await manager.initialize("gpt-4.1", "You extract data from documents.")
    return manager


@pytest.fixture
def make_service(backend: StubAgentBackend, agents: AgentLifecycleManager):
    """DocumentService factory with no polling delay."""

    def _make(**overrides: Any) -> DocumentService:
        options = {"poll_interval": 0, "timeout": 5.0, "delete_threads": True}
        options.update(overrides)
        return DocumentService(backend, agents, **options)

    return _make

