"""
Result Extractor
================
Selects the extraction payload from a finished thread: the last text part
written by the agent, scanning messages in ascending chronological order.

The text is returned as-is. It is not validated against the caller's schema.
"""

from typing import Iterable, Optional
import logging

from services.agent_backend import AgentBackend, Message, Thread

logger = logging.getLogger(__name__)


def extract_result(messages: Iterable[Message], call_id: Optional[str] = None) -> Optional[str]:
    """Last agent-authored text in ``messages``, or None when the agent never replied."""
    result = None
    for message in messages:
        created = message.created_at.strftime("%Y-%m-%d %H:%M:%S") if message.created_at else "-"
        logger.debug(f"{call_id} : Thread message created at {created} - {message.role}")
        for content in message.content:
            if not content.is_text:
                continue
            logger.debug(f"{call_id} : {content.text}")
            if message.is_agent:
                result = content.text
    return result


async def fetch_result(backend: AgentBackend, thread: Thread, call_id: Optional[str] = None) -> Optional[str]:
    """List the thread in ascending order and extract the result."""
    messages = await backend.list_messages(thread.id, order="asc")
    result = extract_result(messages, call_id=call_id)
    if result is None:
        logger.warning(f"{call_id} : No agent text found in {len(messages)} message(s)")
    return result
