from typing import Optional


class GraphitiMemoryError(Exception):
    """Base error for the memory adapter"""


class ConfigurationError(GraphitiMemoryError):
    """Adapter was constructed with missing or invalid configuration"""


class RemoteUnavailableError(GraphitiMemoryError):
    """Memory service could not be reached or answered with an unusable response.

    Covers transport failures (timeouts, DNS, connection resets) as well as
    protocol failures (non-2xx status, malformed JSON, unexpected schema).
    """

    def __init__(self, message: str, endpoint: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code


class EndpointNotFoundError(RemoteUnavailableError):
    """Memory service does not expose the requested endpoint (HTTP 404)"""

    def __init__(self, endpoint: str):
        super().__init__(f"Endpoint not found: {endpoint}", endpoint=endpoint, status_code=404)


class BufferUnavailableError(GraphitiMemoryError):
    """Short-term buffer could not be read or written"""
