"""
Analyzer Errors
===============
Error taxonomy shared by the analysis workflow and the HTTP boundary.

Callers branch on the tagged ``kind`` / ``service`` fields rather than on
concrete exception classes:

    except BackendError as e:
        if e.kind is ErrorKind.NOT_FOUND and e.service == SERVICE_FILE_STORE:
            ...
"""

from enum import Enum
from typing import Optional

import httpx


SERVICE_AGENTS = "agents"
SERVICE_FILE_STORE = "file_store"
SERVICE_IDENTITY = "identity"

# Status codes that guarantee the request was not processed; None is a
# connection that never reached the server
RETRY_SAFE_STATUS_CODES = (None, 429, 503)


class ErrorKind(str, Enum):
    """Classification of a remote-call failure"""
    NOT_FOUND = "not_found"
    AUTH = "auth"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    REJECTED = "rejected"
    UNEXPECTED = "unexpected"


class AnalyzerError(Exception):
    """Base class for every error raised by the analyzer."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.call_id: Optional[str] = None
        self.step: Optional[str] = None

    def with_context(self, call_id: str, step: str) -> "AnalyzerError":
        """Attach the analysis call that raised this error. First context wins."""
        if self.call_id is None:
            self.call_id = call_id
            self.step = step
        return self

    def __str__(self) -> str:
        if self.call_id:
            return f"[{self.call_id}:{self.step}] {self.message}"
        return self.message


class ConfigurationError(AnalyzerError):
    """A required startup resource (prompt, endpoint, deployment, credential) is missing."""


class BackendError(AnalyzerError):
    """A call to a remote service failed."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNEXPECTED,
        service: str = SERVICE_AGENTS,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.service = service
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        return self.kind in (ErrorKind.TRANSIENT, ErrorKind.RATE_LIMITED)

    @property
    def is_source_not_found(self) -> bool:
        """True when the source document itself is missing from the file store."""
        return self.kind is ErrorKind.NOT_FOUND and self.service == SERVICE_FILE_STORE


class AnalysisTimeoutError(AnalyzerError, TimeoutError):
    """The agent run did not reach a terminal status before the deadline."""

    def __init__(self, message: str, run_id: Optional[str] = None, polls: int = 0):
        super().__init__(message)
        self.run_id = run_id
        self.polls = polls


def error_kind_for_status(status_code: int) -> ErrorKind:
    """Map an HTTP status code to an ErrorKind."""
    if status_code == 404:
        return ErrorKind.NOT_FOUND
    if status_code in (401, 403):
        return ErrorKind.AUTH
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code >= 500:
        return ErrorKind.TRANSIENT
    return ErrorKind.REJECTED


def error_kind_for_transport(exc: httpx.HTTPError) -> ErrorKind:
    """
    Map a transport failure to an ErrorKind.

    Only failures raised before the request reached the server are TRANSIENT.
    Read timeouts and dropped connections leave the outcome unknown.
    """
    if isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)):
        return ErrorKind.TRANSIENT
    return ErrorKind.UNEXPECTED


def is_transient_error(exc: BaseException) -> bool:
    """
    Retry predicate for resource-creating workflow steps.

    True only when the server did not act on the request: throttled (429),
    unavailable (503) or never reached.
    """
    if not isinstance(exc, BackendError):
        return False
    if exc.kind is ErrorKind.RATE_LIMITED:
        return True
    return exc.kind is ErrorKind.TRANSIENT and exc.status_code in RETRY_SAFE_STATUS_CODES
