"""Error types and sanitization utilities to prevent information leakage."""

from __future__ import annotations

import re

from kubernetes.client.exceptions import ApiException

# Patterns that might expose kubeconfig credentials
SENSITIVE_PATTERNS = [
    r"(client-key-data)[:\s]+[A-Za-z0-9/+=]+",
    r"(client-certificate-data)[:\s]+[A-Za-z0-9/+=]+",
    r"(certificate-authority-data)[:\s]+[A-Za-z0-9/+=]+",
    r"(bearer)\s+[A-Za-z0-9\-_\.=]+",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "token",
    "password",
    "kubeconfig",
    "client-key",
}


class ConfigurationError(ValueError):
    """Raised when the operator configuration is invalid."""


class CleanupError(Exception):
    """Raised when one or more deletions of a cleanup pass failed.

    Every deletion is attempted before this is raised, so ``deleted`` counts
    the objects that are gone and ``errors`` holds one entry per failure.
    """

    def __init__(self, deleted: int, errors: list[Exception]):
        self.deleted = deleted
        self.errors = list(errors)
        super().__init__(f"cleanup had {len(self.errors)} error(s), deleted={deleted}")

    @property
    def failed(self) -> int:
        return len(self.errors)


class NameCollisionError(Exception):
    """Raised when the derived RSIP name is already owned by another Secret."""

    def __init__(self, name: str, owner: tuple[str, str], requester: tuple[str, str]):
        self.name = name
        self.owner = owner
        self.requester = requester
        super().__init__(
            f"ResourceSetInputProvider {name} already mirrors Secret "
            f"{owner[0]}/{owner[1]}, refusing to adopt it for {requester[0]}/{requester[1]}"
        )


def is_not_found(error: Exception) -> bool:
    """Return True if the error is a Kubernetes 404."""
    return isinstance(error, ApiException) and error.status == 404


def is_conflict(error: Exception) -> bool:
    """Return True if the error is an optimistic-concurrency conflict (409)."""
    return isinstance(error, ApiException) and error.status == 409


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, r"\1 [REDACTED]", sanitized, flags=re.IGNORECASE)

    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"{re.escape(field)}[:=\s]+([^\s,;\)]+)",
            rf"{field}: [REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: Exception) -> str:
    """Sanitize exception message.

    ApiException carries the full response body; only the status line is kept.
    """
    if isinstance(error, ApiException):
        return sanitize_error_message(f"({error.status}) Reason: {error.reason}")
    return sanitize_error_message(str(error))
