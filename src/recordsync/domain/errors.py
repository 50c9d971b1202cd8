"""Error taxonomy for the change pipeline.

Missing dependencies are not errors; they are reported through
``Resolution.missing`` and answered with dependency requests.
"""

from __future__ import annotations


class RecordSyncError(RuntimeError):
    """Base class for pipeline errors."""


class TransportError(RecordSyncError):
    """Raised by adapters when a send, publish or cache call could not complete."""


class PublishError(RecordSyncError):
    """Raised when an aggregate could not be handed to downstream targets."""


class UnknownRecordTypeError(PublishError, LookupError):
    """Raised when no publish handler is registered for a record type."""

    def __init__(self, record_type: str) -> None:
        super().__init__(f"No publish handler registered for record type '{record_type}'")
        self.record_type = record_type


class WrongRecordFamilyError(TypeError):
    """Raised when an orchestrator is handed a record from another family.

    This signals a wiring defect and is allowed to propagate.
    """

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"Invalid record type '{actual}', expected '{expected}'")
        self.expected = expected
        self.actual = actual
