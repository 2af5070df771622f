"""
Transport package

RequestPipeline classifies responses; RequestExecutor performs the I/O.
"""

from laikatest.transport.executor import HttpxRequestExecutor, RequestExecutor, TransportResponse
from laikatest.transport.pipeline import RequestPipeline

__all__ = [
    "HttpxRequestExecutor",
    "RequestExecutor",
    "RequestPipeline",
    "TransportResponse",
]
