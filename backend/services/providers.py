"""
Service Providers
=================
Builds the remote clients from settings. Missing configuration raises
``ConfigurationError`` at startup instead of failing on the first request.
"""

from typing import Optional
import logging

from config import Settings
from services.errors import ConfigurationError
from services.foundry_client import FoundryAgentsClient
from services.graph_client import GraphDriveClient
from utils.auth import ClientCredentialTokenProvider

logger = logging.getLogger(__name__)


def require(value: Optional[str], name: str) -> str:
    """Return a required setting or raise ConfigurationError."""
    if not value:
        raise ConfigurationError(f"{name} is not configured.")
    return value


def create_token_provider(settings: Settings) -> ClientCredentialTokenProvider:
    require(settings.AZURE_TENANT_ID, "AZURE_TENANT_ID")
    return ClientCredentialTokenProvider(
        token_url=settings.token_endpoint,
        client_id=require(settings.AZURE_CLIENT_ID, "AZURE_CLIENT_ID"),
        client_secret=require(settings.AZURE_CLIENT_SECRET, "AZURE_CLIENT_SECRET"),
    )


def create_agent_backend(settings: Settings, tokens: ClientCredentialTokenProvider) -> FoundryAgentsClient:
    endpoint = require(settings.FOUNDRY_ENDPOINT, "FOUNDRY_ENDPOINT")
    require(settings.FOUNDRY_DEPLOYMENT_NAME, "FOUNDRY_DEPLOYMENT_NAME")
    logger.info(f"Agents endpoint: {endpoint} (api-version {settings.FOUNDRY_API_VERSION})")
    return FoundryAgentsClient(
        endpoint,
        token_provider=tokens,
        scope=settings.FOUNDRY_SCOPE,
        api_version=settings.FOUNDRY_API_VERSION,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )


def create_file_store(settings: Settings, tokens: ClientCredentialTokenProvider) -> GraphDriveClient:
    return GraphDriveClient(
        token_provider=tokens,
        base_url=settings.GRAPH_BASE_URL,
        scope=settings.GRAPH_SCOPE,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
