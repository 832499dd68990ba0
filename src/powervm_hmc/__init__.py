"""PowerVM HMC REST client.

Client library for the HMC REST API that maps K2 feeds and entries to typed
objects, runs asynchronous HMC jobs, and updates resources using ETag-based
optimistic concurrency.

Exports:
    Connection: Session-authenticated client for one HMC.
    Job: Asynchronous HMC operation.
    HmcError: Base class of all errors raised by the library.
"""

from .errors import HmcError
from .hmcrestapi import Connection
from .job import Job

__version__ = "0.1.0"

__all__ = [
    "Connection",
    "HmcError",
    "Job",
]
