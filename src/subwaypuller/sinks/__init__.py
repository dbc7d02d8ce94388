"""Batched writers that persist a schedule snapshot to storage backends."""

from .base import BatchedSinkWriter, chunked
from .dynamodb import DynamoDBSinkWriter
from .postgres import PostgresSinkWriter
from .s3 import S3SinkWriter

__all__ = [
    "BatchedSinkWriter",
    "DynamoDBSinkWriter",
    "PostgresSinkWriter",
    "S3SinkWriter",
    "chunked",
]
