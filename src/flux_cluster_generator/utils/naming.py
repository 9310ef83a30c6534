"""Name and label derivation for mirrored ResourceSetInputProviders.

All functions here are pure and deterministic.
"""

from __future__ import annotations

import re
from typing import Iterable, Mapping

from ..constants import (
    DNS1123_LABEL_MAX_LENGTH,
    PLACEHOLDER_ID,
    PLACEHOLDER_KEY,
    PROJECT_NAMESPACE_PREFIX,
)

_INVALID_DNS_CHARS = re.compile(r"[^a-z0-9-]")
_KEY_SEPARATORS = re.compile(r"[-_./:]")
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def sanitize_dns1123(value: str) -> str:
    """Coerce a string into a valid DNS-1123 label.

    Lowercases, maps every character outside ``[a-z0-9-]`` to ``-``, trims
    dashes and truncates to 63 characters. Returns ``"id"`` when nothing is left.
    """
    out = _INVALID_DNS_CHARS.sub("-", value.lower()).strip("-")
    out = out[:DNS1123_LABEL_MAX_LENGTH].rstrip("-")
    return out or PLACEHOLDER_ID


def project_from_namespace(namespace: str) -> str:
    """Derive the project from a ``p-<project>`` namespace, else ``""``."""
    if namespace.startswith(PROJECT_NAMESPACE_PREFIX) and len(namespace) > len(PROJECT_NAMESPACE_PREFIX):
        return namespace[len(PROJECT_NAMESPACE_PREFIX):]
    return ""


def cluster_name_for(labels: Mapping[str, str], secret_name: str, label_key: str) -> str:
    """Cluster identifier from ``label_key``, falling back to the Secret name."""
    return sanitize_dns1123(labels.get(label_key) or secret_name)


def project_for(labels: Mapping[str, str], namespace: str, label_key: str) -> str:
    """Project identifier from ``label_key`` or the namespace convention; may be empty."""
    project = (labels.get(label_key) or "").strip()
    if not project:
        project = project_from_namespace(namespace)
    return sanitize_dns1123(project) if project else ""


def target_name_for(prefix: str, project: str, cluster_name: str) -> str:
    """``<prefix>[<project>-]<cluster>``."""
    name = prefix
    if project:
        name += project + "-"
    return name + cluster_name


def to_camel(key: str) -> str:
    """Convert a label key into a defaultValues key.

    ``flux-app/podinfo`` -> ``fluxAppPodinfo``, ``team-name`` -> ``teamName``,
    ``env.region`` -> ``envRegion``.
    """
    parts = [part for part in _KEY_SEPARATORS.split(key) if part]
    if not parts:
        return PLACEHOLDER_KEY
    camel = parts[0].lower() + "".join(part[:1].upper() + part[1:].lower() for part in parts[1:])
    return _NON_ALNUM.sub("", camel) or PLACEHOLDER_KEY


def has_any_prefix(prefixes: Iterable[str], key: str) -> bool:
    """Whether ``key`` starts with any non-blank prefix."""
    for prefix in prefixes:
        prefix = prefix.strip()
        if prefix and key.startswith(prefix):
            return True
    return False
