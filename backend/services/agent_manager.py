"""
Agent Lifecycle Manager
=======================
Owns the single long-lived extraction agent of a service instance.

The agent is created once at application startup (zero temperature, fixed
system prompt) and deleted at shutdown. Concurrent analysis calls share it;
tool-set updates are serialized and skipped when the agent already carries
the requested tools.

Usage:
    manager = AgentLifecycleManager(backend)
    await manager.initialize(settings.FOUNDRY_DEPLOYMENT_NAME, load_prompt(path))
    ...
    await manager.teardown()
"""

from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union
from uuid import uuid4
import asyncio
import logging

from services.agent_backend import AgentBackend, AgentHandle, ToolDefinition
from services.errors import ConfigurationError

logger = logging.getLogger(__name__)


AGENT_NAME_PREFIX = "document-agent-"
AGENT_TEMPERATURE = 0.0


def new_short_id() -> str:
    """Short random identifier used for instance and call correlation."""
    return str(uuid4())[:8]


def load_prompt(path: Union[str, Path]) -> str:
    """Read a prompt resource, raising ConfigurationError when it is missing."""
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Prompt file not found: {path}")
    return path.read_text(encoding="utf-8")


class AgentLifecycleManager:
    """Creates, updates and deletes the instance-wide agent."""

    def __init__(self, backend: AgentBackend, instance_id: Optional[str] = None):
        self._backend = backend
        self.instance_id = instance_id or new_short_id()
        self._handle: Optional[AgentHandle] = None
        self._tools_lock = asyncio.Lock()

    @property
    def handle(self) -> AgentHandle:
        if self._handle is None:
            raise RuntimeError("Agent has not been initialized")
        return self._handle

    @property
    def is_initialized(self) -> bool:
        return self._handle is not None

    @property
    def agent_name(self) -> str:
        return f"{AGENT_NAME_PREFIX}{self.instance_id}"

    async def initialize(self, model_name: str, instructions: str) -> AgentHandle:
        """Create the agent. Not re-entrant: a second call returns the existing handle."""
        if self._handle is not None:
            return self._handle

        if not model_name:
            raise ConfigurationError("Deployment name is not configured")
        if not instructions:
            raise ConfigurationError("Agent instructions are empty")

        self._handle = await self._backend.create_agent(
            model=model_name,
            name=self.agent_name,
            instructions=instructions,
            temperature=AGENT_TEMPERATURE,
        )
        logger.info(
            f"{self.instance_id} : Created agent. Agent ID: {self._handle.id}, "
            f"Name: {self._handle.name}, Model: {model_name}"
        )
        return self._handle

    async def ensure_tools(self, tools: Sequence[ToolDefinition], call_id: Optional[str] = None) -> AgentHandle:
        """
        Make sure the shared agent has ``tools`` enabled.

        Updates are serialized across concurrent calls, and no backend call is
        made when the tools are already present.
        """
        prefix = call_id or self.instance_id
        async with self._tools_lock:
            handle = self.handle
            if handle.has_tools(tools):
                logger.debug(f"{prefix} : Agent {handle.id} already has tools {[t.type for t in tools]}")
                return handle

            merged = list(handle.tools) + [t for t in tools if t not in handle.tools]
            self._handle = await self._backend.update_agent_tools(handle.id, merged)
            logger.info(
                f"{prefix} : Updated agent tools {[t.type for t in merged]}. Agent ID: {self._handle.id}"
            )
            return self._handle

    async def teardown(self) -> None:
        """Delete the agent. Failures are logged and never raised."""
        if self._handle is None:
            return

        agent_id = self._handle.id
        try:
            await self._backend.delete_agent(agent_id)
            logger.info(f"{self.instance_id} : Deleted agent with ID: {agent_id}")
        except Exception as e:
            logger.error(f"{self.instance_id} : Error deleting agent {agent_id} during shutdown: {e}")
        finally:
            self._handle = None

    def get_status(self) -> Dict[str, Any]:
        """Status information for health checks."""
        handle = self._handle
        return {
            "instance_id": self.instance_id,
            "initialized": handle is not None,
            "agent_id": handle.id if handle else None,
            "agent_name": handle.name if handle else None,
            "model": handle.model if handle else None,
            "tools": [t.type for t in handle.tools] if handle else [],
        }
