"""
Foundry Agents Client
=====================
httpx implementation of ``AgentBackend`` for the Azure AI Foundry
persistent-agents REST API (assistants, files, threads, messages, runs).

Every HTTP failure is raised as a ``BackendError`` tagged with an
``ErrorKind`` derived from the status code or the transport failure.

Usage:
    async with FoundryAgentsClient(endpoint, token_provider=tokens) as client:
        agent = await client.create_agent("gpt-4.1", "document-agent-1", prompt, temperature=0.0)
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence
import logging

import httpx

from services.agent_backend import (
    AgentHandle,
    FILE_PURPOSE_AGENTS,
    Message,
    MessageAttachment,
    MessageContent,
    MessageRole,
    Run,
    Thread,
    ToolDefinition,
    UploadedFile,
)
from services.errors import BackendError, SERVICE_AGENTS, error_kind_for_status, error_kind_for_transport

logger = logging.getLogger(__name__)


DEFAULT_API_VERSION = "v1"
PAGE_SIZE = 100


class TokenProvider(Protocol):
    async def get_token(self, scope: str) -> str: ...


# =============================================================================
# RESPONSE PARSING
# =============================================================================

def parse_agent(payload: Dict[str, Any]) -> AgentHandle:
    return AgentHandle(
        id=payload["id"],
        name=payload.get("name") or "",
        model=payload.get("model") or "",
        tools=[ToolDefinition(type=t["type"]) for t in payload.get("tools") or []],
        instructions=payload.get("instructions"),
        temperature=payload.get("temperature"),
    )


def parse_file(payload: Dict[str, Any]) -> UploadedFile:
    return UploadedFile(
        id=payload["id"],
        filename=payload.get("filename") or "",
        purpose=payload.get("purpose") or FILE_PURPOSE_AGENTS,
        size=payload.get("bytes") or 0,
    )


def parse_run(payload: Dict[str, Any]) -> Run:
    return Run(
        id=payload["id"],
        thread_id=payload.get("thread_id") or "",
        agent_id=payload.get("assistant_id") or "",
        status=payload.get("status") or "",
    )


def parse_content(part: Dict[str, Any]) -> MessageContent:
    """Text parts carry ``text.value``; file-backed parts carry a file id."""
    part_type = part.get("type", "")
    if part_type == "text":
        text = part.get("text") or {}
        value = text.get("value") if isinstance(text, dict) else text
        return MessageContent(type="text", text=value)

    body = part.get(part_type) or {}
    file_id = body.get("file_id") if isinstance(body, dict) else None
    return MessageContent(type=part_type, file_id=file_id)


def parse_message(payload: Dict[str, Any]) -> Message:
    created = payload.get("created_at")
    created_at = datetime.fromtimestamp(created, tz=timezone.utc) if created else None
    attachments = [
        MessageAttachment(
            file_id=a["file_id"],
            tools=tuple(ToolDefinition(type=t["type"]) for t in a.get("tools") or []),
        )
        for a in payload.get("attachments") or []
    ]
    return Message(
        id=payload["id"],
        thread_id=payload.get("thread_id") or "",
        role=payload.get("role") or "",
        content=tuple(parse_content(p) for p in payload.get("content") or []),
        created_at=created_at,
        attachments=tuple(attachments),
    )


# =============================================================================
# CLIENT
# =============================================================================

class FoundryAgentsClient:
    """
    Async client for the agents data plane of a Foundry project.

    Args:
        endpoint: Project endpoint, e.g. https://<resource>.services.ai.azure.com/api/projects/<project>
        token_provider: Object with ``async get_token(scope)``; None sends no Authorization header
        scope: OAuth scope for the agents service
        api_version: ``api-version`` query parameter
        client: Optional pre-built httpx.AsyncClient (tests use MockTransport)
    """

    def __init__(
        self,
        endpoint: str,
        token_provider: Optional[TokenProvider] = None,
        scope: str = "https://ai.azure.com/.default",
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.api_version = api_version
        self._scope = scope
        self._tokens = token_provider
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.endpoint,
            timeout=httpx.Timeout(timeout, connect=10.0),
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "FoundryAgentsClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    async def _headers(self) -> Dict[str, str]:
        if self._tokens is None:
            return {}
        token = await self._tokens.get_token(self._scope)
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        query = {"api-version": self.api_version}
        if params:
            query.update({k: v for k, v in params.items() if v is not None})

        try:
            response = await self._client.request(
                method,
                path,
                json=json,
                params=query,
                headers=await self._headers(),
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise BackendError(
                f"{method} {path} failed: {e}",
                kind=error_kind_for_transport(e),
                service=SERVICE_AGENTS,
            ) from e

        if response.status_code >= 400:
            raise BackendError(
                f"{method} {path} returned {response.status_code}: {response.text}",
                kind=error_kind_for_status(response.status_code),
                service=SERVICE_AGENTS,
                status_code=response.status_code,
            )

        if not response.content:
            return {}
        return response.json()

    async def _list(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Collect every page of a list endpoint."""
        items: List[Dict[str, Any]] = []
        after = None
        while True:
            page_params = dict(params or {})
            page_params["limit"] = PAGE_SIZE
            page_params["after"] = after
            page = await self._request("GET", path, params=page_params)
            data = page.get("data") or []
            items.extend(data)
            if not page.get("has_more") or not data:
                return items
            after = page.get("last_id") or data[-1]["id"]

    # =========================================================================
    # AGENTS
    # =========================================================================

    async def create_agent(
        self,
        model: str,
        name: str,
        instructions: str,
        temperature: Optional[float] = None,
        tools: Sequence[ToolDefinition] = (),
    ) -> AgentHandle:
        body: Dict[str, Any] = {
            "model": model,
            "name": name,
            "instructions": instructions,
            "tools": [t.to_dict() for t in tools],
        }
        if temperature is not None:
            body["temperature"] = temperature
        return parse_agent(await self._request("POST", "/assistants", json=body))

    async def update_agent_tools(self, agent_id: str, tools: Sequence[ToolDefinition]) -> AgentHandle:
        body = {"tools": [t.to_dict() for t in tools]}
        return parse_agent(await self._request("POST", f"/assistants/{agent_id}", json=body))

    async def delete_agent(self, agent_id: str) -> None:
        await self._request("DELETE", f"/assistants/{agent_id}")

    async def list_agents(self) -> List[AgentHandle]:
        return [parse_agent(a) for a in await self._list("/assistants")]

    # =========================================================================
    # FILES
    # =========================================================================

    async def upload_file(self, data: bytes, filename: str, purpose: str = FILE_PURPOSE_AGENTS) -> UploadedFile:
        payload = await self._request(
            "POST",
            "/files",
            files={"file": (filename, data)},
            data={"purpose": purpose},
        )
        return parse_file(payload)

    async def delete_file(self, file_id: str) -> None:
        await self._request("DELETE", f"/files/{file_id}")

    async def list_files(self) -> List[UploadedFile]:
        return [parse_file(f) for f in await self._list("/files")]

    # =========================================================================
    # THREADS & MESSAGES
    # =========================================================================

    async def create_thread(self) -> Thread:
        payload = await self._request("POST", "/threads", json={})
        return Thread(id=payload["id"])

    async def delete_thread(self, thread_id: str) -> None:
        await self._request("DELETE", f"/threads/{thread_id}")

    async def create_message(
        self,
        thread_id: str,
        role: MessageRole,
        text: str,
        attachments: Sequence[MessageAttachment] = (),
    ) -> Message:
        body: Dict[str, Any] = {
            "role": MessageRole(role).value,
            "content": text,
        }
        if attachments:
            body["attachments"] = [a.to_dict() for a in attachments]
        return parse_message(await self._request("POST", f"/threads/{thread_id}/messages", json=body))

    async def list_messages(self, thread_id: str, order: str = "asc") -> List[Message]:
        data = await self._list(f"/threads/{thread_id}/messages", params={"order": order})
        return [parse_message(m) for m in data]

    # =========================================================================
    # RUNS
    # =========================================================================

    async def create_run(self, thread_id: str, agent_id: str) -> Run:
        payload = await self._request("POST", f"/threads/{thread_id}/runs", json={"assistant_id": agent_id})
        return parse_run(payload)

    async def get_run(self, thread_id: str, run_id: str) -> Run:
        return parse_run(await self._request("GET", f"/threads/{thread_id}/runs/{run_id}"))

    async def cancel_run(self, thread_id: str, run_id: str) -> Run:
        return parse_run(await self._request("POST", f"/threads/{thread_id}/runs/{run_id}/cancel"))
