"""Utility modules."""

from .audit_logger import AuditRecorder
from .storage import CashOnHandBook, JsonFileStore, MemoryStore

__all__ = ["AuditRecorder", "CashOnHandBook", "JsonFileStore", "MemoryStore"]
