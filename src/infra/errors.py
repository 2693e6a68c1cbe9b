"""Error taxonomy for cluster bootstrap operations.

Every error surfaced to the user carries a short remediation hint in
``details`` that is distinct from the underlying message, and a ``kind``
that tells callers how the failure should be treated.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of bootstrap failures."""

    INPUT_VALIDATION = "input_validation"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    TIMEOUT = "timeout"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"  # e.g. chart repo unreachable
    DECRYPTION_FAILURE = "decryption_failure"
    UNCLASSIFIED = "unclassified"


class BootstrapError(Exception):
    """Raised when a bootstrap operation fails.

    Attributes:
        message: What went wrong
        details: Remediation hint shown to the user
        kind: Failure classification
    """

    def __init__(
        self,
        message: str,
        details: str | None = None,
        kind: ErrorKind = ErrorKind.UNCLASSIFIED,
    ):
        self.message = message
        self.details = details
        self.kind = kind
        super().__init__(message)
