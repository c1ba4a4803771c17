"""
Storage backends for flow events, cycles and user settings.
"""
from .base import Repository
from .memory import InMemoryRepository
from .dynamo import DynamoRepository

__all__ = ["Repository", "InMemoryRepository", "DynamoRepository"]
