"""Utility functions for the Flux Cluster Generator operator."""

from .diff import labels_equal, specs_equal
from .errors import (
    CleanupError,
    ConfigurationError,
    NameCollisionError,
    sanitize_error_message,
    sanitize_exception,
)
from .events import emit_event
from .namespaces import NamespaceAllowSet
from .naming import sanitize_dns1123, target_name_for, to_camel
from .rate_limit import call_with_rate_limit_retry, rate_limit_k8s, retry_delay
from .selectors import LabelSelector, SelectorParseError, parse_selector

__all__ = [
    "labels_equal",
    "specs_equal",
    "CleanupError",
    "ConfigurationError",
    "NameCollisionError",
    "sanitize_error_message",
    "sanitize_exception",
    "emit_event",
    "NamespaceAllowSet",
    "sanitize_dns1123",
    "target_name_for",
    "to_camel",
    "call_with_rate_limit_retry",
    "rate_limit_k8s",
    "retry_delay",
    "LabelSelector",
    "SelectorParseError",
    "parse_selector",
]
