"""
Error types raised by the CustomerMerge engine.
"""

from typing import Any, Dict, List, Optional

class CustomerMergeError(Exception):
    """Base class for all engine errors."""

class ConfigurationError(CustomerMergeError):
    """Configuration values are missing or out of range."""

class RequestValidationError(CustomerMergeError):
    """A merge request does not have the expected shape."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []

class RecordNotFoundError(CustomerMergeError):
    """A referenced record does not exist in the record store."""

    def __init__(self, internal_id: int, role: str = "Customer"):
        super().__init__(f"{role} record not found: {internal_id}")
        self.internal_id = internal_id

class PrimaryNotFoundError(RecordNotFoundError):
    """The primary record of a merge does not exist; nothing was modified."""

    def __init__(self, internal_id: int):
        super().__init__(internal_id, role="Primary")

class InvalidTransitionError(CustomerMergeError):
    """A record cannot move from its current status to the requested one."""

    def __init__(self, internal_id: int, current: str, target: str):
        super().__init__(
            f"Record {internal_id} cannot transition from '{current}' to '{target}'"
        )
        self.internal_id = internal_id
        self.current = current
        self.target = target
