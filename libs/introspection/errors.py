"""Error taxonomy for the introspection boundary.

``GatewayError`` covers everything the network layer can report and always
carries an HTTP-like status code. ``SchemaMismatch`` means the backend answered
but the body matches none of the known wire shapes. ``NotFound`` means the
requested result is absent from both the session cache and the backend store.
"""

from typing import Iterable, Optional, Tuple


class IntrospectionError(Exception):
    """Base class for all adapter errors."""


class GatewayError(IntrospectionError):
    """Uniform failure raised by the request gateway."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, message={self.message!r})"


class TransportFailure(GatewayError):
    """Connection-level failure with no interpretable response."""


class BackendFailure(GatewayError):
    """Non-success response from the backend."""


class SchemaMismatch(IntrospectionError):
    """Raw payload matches none of the known wire schemas."""

    def __init__(self, message: str, payload_keys: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.message = message
        self.payload_keys: Tuple[str, ...] = tuple(sorted(payload_keys or ()))


class NotFound(IntrospectionError):
    """Requested result id is unknown to the cache and the backend."""

    def __init__(self, result_id: str):
        super().__init__(f"Analysis {result_id} not found")
        self.result_id = result_id
