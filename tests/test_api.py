import asyncio

from fastapi.testclient import TestClient
import pytest

from conftest import INVOICE_JSON, StubAgentBackend, StubFileStore, user_message
import main
from main import app
from services.agent_backend import RunStatus
from services.agent_manager import AgentLifecycleManager
from services.document_service import DocumentService
from services.errors import BackendError, ConfigurationError, ErrorKind

pytestmark = pytest.mark.unit


ANALYZER_URL = "/api/documentanalyzer"

PAYLOAD = {
    "driveId": "drive_1",
    "driveItemId": "item_1",
    "userPrompt": "Document Type: Invoice. Extract all invoice information from the attached document",
    "expectedJsonSchema": '{"type": "object", "properties": {"invoiceNumber": {"type": "string"}}}',
}


class StubTokens:
    def __init__(self):
        self.closed = False

    async def get_token(self, scope: str) -> str:
        return "token"

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def stub_backend() -> StubAgentBackend:
    return StubAgentBackend()


@pytest.fixture
def stub_store() -> StubFileStore:
    store = StubFileStore()
    store.add("drive_1", "item_1", b"%PDF-1.7\n\x00")
    return store


@pytest.fixture
def client(stub_backend, stub_store):
    """TestClient without lifespan; app state is wired to the stubs."""
    agents = AgentLifecycleManager(stub_backend, instance_id="apitest1")
    asyncio.run(agents.initialize("gpt-4.1", "system prompt"))

    app.state.agents = agents
    app.state.document_service = DocumentService(stub_backend, agents, poll_interval=0, timeout=5.0, max_polls=3)
    app.state.file_store = stub_store
    yield TestClient(app)
    app.state.document_service = None
    app.state.file_store = None


def test_analyze_returns_agent_json(client, stub_backend):
    response = client.post(ANALYZER_URL, json=PAYLOAD)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    assert response.text == INVOICE_JSON
    assert stub_backend.count("delete_file") == 1


def test_snake_case_body_is_accepted(client):
    body = {
        "drive_id": "drive_1",
        "drive_item_id": "item_1",
        "user_prompt": "Extract",
        "expected_json_schema": "{}",
    }

    response = client.post(ANALYZER_URL, json=body)

    assert response.status_code == 200


def test_empty_result_is_no_content(client, stub_backend):
    stub_backend.messages = [user_message("prompt")]

    response = client.post(ANALYZER_URL, json=PAYLOAD)

    assert response.status_code == 204
    assert response.content == b""


def test_missing_document_is_404(client, stub_backend):
    response = client.post(ANALYZER_URL, json={**PAYLOAD, "driveItemId": "missing"})

    assert response.status_code == 404
    assert response.json()["detail"] == "The specified document was not found."
    assert stub_backend.count("upload_file") == 0


def test_agent_not_found_is_502_not_404(client, stub_backend):
    stub_backend.fail("create_run", BackendError("thread not found", kind=ErrorKind.NOT_FOUND, status_code=404))

    response = client.post(ANALYZER_URL, json=PAYLOAD)

    assert response.status_code == 502
    assert response.json()["detail"] == "Document analysis failed."
    assert stub_backend.count("delete_file") == 1


def test_run_timeout_is_504(client, stub_backend):
    stub_backend.run_statuses = [RunStatus.IN_PROGRESS.value]

    response = client.post(ANALYZER_URL, json=PAYLOAD)

    assert response.status_code == 504
    assert stub_backend.count("cancel_run") == 1
    assert stub_backend.count("delete_file") == 1


def test_validation_error_is_422(client):
    response = client.post(ANALYZER_URL, json={"driveId": "drive_1"})

    assert response.status_code == 422
    fields = {error["field"] for error in response.json()["errors"]}
    assert any("driveItemId" in field for field in fields)


def test_unexpected_error_is_500(stub_backend, stub_store):
    class BrokenStore(StubFileStore):
        async def get_metadata(self, drive_id, item_id):
            raise RuntimeError("disk on fire")

    agents = AgentLifecycleManager(stub_backend)
    asyncio.run(agents.initialize("gpt-4.1", "system prompt"))
    app.state.document_service = DocumentService(stub_backend, agents, poll_interval=0)
    app.state.file_store = BrokenStore()
    try:
        response = TestClient(app, raise_server_exceptions=False).post(ANALYZER_URL, json=PAYLOAD)
    finally:
        app.state.document_service = None
        app.state.file_store = None

    assert response.status_code == 500
    assert response.json()["detail"] == "An unknown error occurred while processing the document."


def test_service_unavailable_without_startup():
    app.state.document_service = None
    app.state.file_store = None

    response = TestClient(app).post(ANALYZER_URL, json=PAYLOAD)

    assert response.status_code == 503


def test_status_and_health(client):
    status = client.get(f"{ANALYZER_URL}/status").json()
    health = client.get("/health").json()

    assert status["status"] == "ready"
    assert status["agent"]["agent_name"] == "document-agent-apitest1"
    assert health["status"] == "healthy"
    assert health["checks"]["agent"]["initialized"] is True


def test_lifespan_creates_and_deletes_agent(monkeypatch):
    backend = StubAgentBackend()
    store = StubFileStore()
    tokens = StubTokens()
    monkeypatch.setattr(main.settings, "FOUNDRY_DEPLOYMENT_NAME", "gpt-4.1")
    monkeypatch.setattr(main, "create_token_provider", lambda settings: tokens)
    monkeypatch.setattr(main, "create_agent_backend", lambda settings, t: backend)
    monkeypatch.setattr(main, "create_file_store", lambda settings, t: store)

    with TestClient(app) as test_client:
        health = test_client.get("/health").json()
        [created] = backend.args("create_agent")

    assert health["checks"]["agent"]["initialized"] is True
    assert created["name"].startswith("document-agent-")
    assert created["temperature"] == 0.0
    assert backend.count("delete_agent") == 1
    assert backend.closed and store.closed and tokens.closed
    assert app.state.document_service is None


def test_lifespan_fails_fast_without_configuration(monkeypatch):
    def missing(settings):
        raise ConfigurationError("FOUNDRY_ENDPOINT is not configured.")

    monkeypatch.setattr(main, "create_token_provider", lambda settings: StubTokens())
    monkeypatch.setattr(main, "create_agent_backend", lambda settings, t: missing(settings))

    with pytest.raises(ConfigurationError):
        with TestClient(app):
            pass


def test_lifespan_closes_clients_when_agent_creation_fails(monkeypatch):
    backend = StubAgentBackend()
    backend.fail("create_agent", BackendError("forbidden", kind=ErrorKind.AUTH, status_code=403))
    store = StubFileStore()
    tokens = StubTokens()
    monkeypatch.setattr(main.settings, "FOUNDRY_DEPLOYMENT_NAME", "gpt-4.1")
    monkeypatch.setattr(main, "create_token_provider", lambda settings: tokens)
    monkeypatch.setattr(main, "create_agent_backend", lambda settings, t: backend)
    monkeypatch.setattr(main, "create_file_store", lambda settings, t: store)

    with pytest.raises(BackendError):
        with TestClient(app):
            pass

    assert backend.closed and store.closed and tokens.closed
