"""HMC REST API client package.

Provides the session-authenticated connection to the HMC and the HTTP
transport underneath it. Response decoding is handled by the parser and
schema modules.

Exports:
    Connection: HMC client with session handling and endpoint helpers.
    HttpxTransport: Default transport based on httpx.
    Transport: Interface of transports.
    TransportResponse: Status, headers and body returned by a transport.
    DEFAULT_TIMEOUT: Default HTTP request timeout.
"""

from .connection import Connection
from .transport import DEFAULT_TIMEOUT, HttpxTransport, Transport, TransportResponse

__all__ = [
    "DEFAULT_TIMEOUT",
    "Connection",
    "HttpxTransport",
    "Transport",
    "TransportResponse",
]
