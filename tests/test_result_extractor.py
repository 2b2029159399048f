import pytest

from conftest import StubAgentBackend, agent_message, user_message
from services.agent_backend import Message, MessageContent, MessageRole, Thread
from services.result_extractor import extract_result, fetch_result

pytestmark = pytest.mark.unit


def test_last_agent_text_wins():
    messages = [
        user_message("Extract the invoice", index=0),
        agent_message('{"draft": true}', index=1),
        user_message("Be precise", index=2),
        agent_message('{"final": true}', index=3),
    ]

    assert extract_result(messages) == '{"final": true}'


def test_no_agent_text_returns_none():
    messages = [user_message("Extract the invoice")]

    assert extract_result(messages) is None
    assert extract_result([]) is None


def test_non_text_parts_are_ignored():
    image_only = Message(
        id="msg_img",
        thread_id="thread_1",
        role=MessageRole.AGENT.value,
        content=(MessageContent(type="image_file", file_id="file_img"),),
    )
    messages = [agent_message('{"a": 1}', index=0), image_only]

    assert extract_result(messages) == '{"a": 1}'


def test_last_text_part_of_a_multi_part_message():
    message = Message(
        id="msg_multi",
        thread_id="thread_1",
        role=MessageRole.AGENT.value,
        content=(
            MessageContent(type="text", text="Looking at the file..."),
            MessageContent(type="image_file", file_id="file_chart"),
            MessageContent(type="text", text='{"total": 10}'),
        ),
    )

    assert extract_result([message]) == '{"total": 10}'


def test_text_is_returned_verbatim():
    raw = '```json\n{"not": "validated"}\n```'

    assert extract_result([agent_message(raw)]) == raw


@pytest.mark.asyncio
async def test_fetch_result_lists_in_ascending_order():
    backend = StubAgentBackend(messages=[agent_message("first", index=0), agent_message("second", index=1)])

    result = await fetch_result(backend, Thread(id="thread_9"), call_id="c1")

    assert result == "second"
    assert backend.args("list_messages") == [{"thread_id": "thread_9", "order": "asc"}]
