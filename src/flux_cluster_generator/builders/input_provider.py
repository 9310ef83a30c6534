"""Builder for desired ResourceSetInputProvider state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from ..config import OperatorConfig
from ..constants import (
    FIELD_NAME,
    FIELD_PROJECT,
    FIELD_SECRET_KEY,
    FIELD_SECRET_NAME,
    FIELD_SECRET_NAMESPACE,
    IDENTITY_LABELS,
    KIND_RSIP,
    LABEL_CLUSTER_NAME,
    LABEL_MANAGED,
    LABEL_PROJECT,
    LABEL_SECRET_KEY,
    LABEL_SECRET_NAME,
    LABEL_SECRET_NAMESPACE,
    RESERVED_FIELDS,
    RSIP_API_VERSION,
    RSIP_TYPE_STATIC,
)
from ..utils.namespaces import NamespaceAllowSet
from ..utils.naming import (
    cluster_name_for,
    has_any_prefix,
    project_for,
    target_name_for,
    to_camel,
)
from ..utils.selectors import LabelSelector


@dataclass(frozen=True)
class InputProviderSpec:
    """The ``spec`` of a Static ResourceSetInputProvider."""

    default_values: dict[str, str] = field(default_factory=dict)
    type: str = RSIP_TYPE_STATIC

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "defaultValues": dict(self.default_values)}


@dataclass(frozen=True)
class DesiredInputProvider:
    """Complete desired state of one mirrored ResourceSetInputProvider."""

    namespace: str
    name: str
    labels: dict[str, str]
    spec: InputProviderSpec
    source_namespace: str
    source_name: str

    @property
    def back_reference(self) -> tuple[str, str]:
        return (self.source_namespace, self.source_name)

    def to_body(self) -> dict[str, Any]:
        return {
            "apiVersion": RSIP_API_VERSION,
            "kind": KIND_RSIP,
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                "labels": dict(self.labels),
            },
            "spec": self.spec.to_dict(),
        }


def back_reference_of(labels: Mapping[str, str] | None) -> tuple[str, str] | None:
    """Return ``(secret namespace, secret name)`` from RSIP labels, or None if either is missing."""
    labels = labels or {}
    namespace = labels.get(LABEL_SECRET_NAMESPACE)
    name = labels.get(LABEL_SECRET_NAME)
    if not namespace or not name:
        return None
    return (namespace, name)


def is_eligible(
    meta: Mapping[str, Any],
    allowed_namespaces: NamespaceAllowSet,
    selector: LabelSelector,
    watch_namespaces: Iterable[str] = (),
) -> bool:
    """Decide whether a Secret should be mirrored.

    Args:
        meta: Secret metadata (namespace and labels are read)
        allowed_namespaces: Namespaces currently matching the namespace selector
        selector: Source Secret label selector
        watch_namespaces: Optional explicit namespace allowlist; empty allows all
    """
    namespace = meta.get("namespace") or ""
    watch = set(watch_namespaces)
    if watch and namespace not in watch:
        return False
    if not allowed_namespaces.has(namespace):
        return False
    return selector.matches(meta.get("labels") or {})


def copied_labels(labels: Mapping[str, str], config: OperatorConfig) -> dict[str, str]:
    """Labels projected from the Secret onto the RSIP.

    Exact keys are copied first and prefix matches after, so the prefix copy
    wins when both select the same key. Identity labels are never copied.
    """
    copied: dict[str, str] = {}
    for key in config.copy_label_keys:
        if key in labels:
            copied[key] = labels[key]
    for key, value in labels.items():
        if has_any_prefix(config.copy_label_prefixes, key):
            copied[key] = value
    return {key: value for key, value in copied.items() if key not in IDENTITY_LABELS}


def build_desired_input_provider(
    secret: Mapping[str, Any],
    config: OperatorConfig,
) -> DesiredInputProvider | None:
    """Compute the desired RSIP for a Secret.

    Args:
        secret: Secret body (``metadata`` and ``data`` are read)
        config: Operator configuration

    Returns:
        The desired state, or None when the Secret lacks the configured data key
        and must be skipped without touching any existing RSIP
    """
    meta = secret.get("metadata") or {}
    data = secret.get("data") or {}
    if config.secret_key not in data:
        return None

    namespace = meta.get("namespace") or ""
    name = meta.get("name") or ""
    labels = meta.get("labels") or {}

    cluster_name = cluster_name_for(labels, name, config.cluster_name_label_key)
    project = project_for(labels, namespace, config.project_label_key)

    rsip_labels = {
        LABEL_MANAGED: "true",
        LABEL_SECRET_NAMESPACE: namespace,
        LABEL_SECRET_NAME: name,
        LABEL_SECRET_KEY: config.secret_key,
        LABEL_CLUSTER_NAME: cluster_name,
        LABEL_PROJECT: project,
    }
    projected = copied_labels(labels, config)
    rsip_labels.update(projected)

    default_values = {
        FIELD_NAME: cluster_name,
        FIELD_PROJECT: project,
        FIELD_SECRET_NAME: name,
        FIELD_SECRET_KEY: config.secret_key,
        FIELD_SECRET_NAMESPACE: namespace,
    }
    for key in sorted(projected):
        camel = to_camel(key)
        if camel not in RESERVED_FIELDS:
            default_values[camel] = projected[key]

    return DesiredInputProvider(
        namespace=config.rsip_namespace,
        name=target_name_for(config.rsip_name_prefix, project, cluster_name),
        labels=rsip_labels,
        spec=InputProviderSpec(default_values=default_values),
        source_namespace=namespace,
        source_name=name,
    )
