"""Custom exceptions for Clio."""


class ClioError(Exception):
    """Base exception for all Clio errors."""

    pass


class ConfigurationError(ClioError):
    """Configuration loading or validation error."""

    pass


class UpstreamGenerationError(ClioError):
    """LLM or embedding call failed or returned unusable output."""

    pass


class SessionNotFoundError(ClioError):
    """No session is registered under the given id."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class BackendError(ClioError):
    """Vector store read or write failed.

    Carries the backend name and the operation so callers can tell which
    store failed without parsing the message.
    """

    def __init__(self, backend: str, operation: str, message: str):
        super().__init__(f"[{backend}] {operation} failed: {message}")
        self.backend = backend
        self.operation = operation
