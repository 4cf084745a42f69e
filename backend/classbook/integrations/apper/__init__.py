from .errors import (
    RecordError, BackendFailureError, RecordNotFoundError,
    PartialBatchFailureError, RecordTransportError, RecordErrorHandler
)
from .http_client import ApperClient
from .memory_client import InMemoryRecordClient

__all__ = [
    "RecordError",
    "BackendFailureError",
    "RecordNotFoundError",
    "PartialBatchFailureError",
    "RecordTransportError",
    "RecordErrorHandler",
    "ApperClient",
    "InMemoryRecordClient"
]
