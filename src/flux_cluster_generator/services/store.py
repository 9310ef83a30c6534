"""Object store over the Kubernetes API.

Every read here goes straight to the API server; nothing is served from a
watch cache, so "not found" answers are authoritative at the time of the call.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Protocol

from kubernetes import client, config

from .. import metrics
from ..constants import FIELD_MANAGER, RSIP_GROUP, RSIP_PLURAL, RSIP_VERSION
from ..utils.errors import is_not_found
from ..utils.rate_limit import call_with_rate_limit_retry
from ..utils.selectors import selector_from_labels


class ObjectStore(Protocol):
    """Operations the reconcilers need from the cluster."""

    namespace: str

    def get_input_provider(self, name: str) -> dict[str, Any] | None:
        """Return the RSIP in the target namespace, or None if it does not exist."""
        ...

    def list_input_providers(self, labels: dict[str, str] | None = None) -> list[dict[str, Any]]:
        """List RSIPs in the target namespace, optionally filtered by exact labels."""
        ...

    def create_input_provider(self, body: dict[str, Any]) -> dict[str, Any]:
        """Create an RSIP in the target namespace."""
        ...

    def replace_input_provider(self, name: str, body: dict[str, Any]) -> dict[str, Any]:
        """Replace an RSIP; the body's resourceVersion guards against lost updates."""
        ...

    def delete_input_provider(self, name: str) -> bool:
        """Delete an RSIP; returns False if it was already gone."""
        ...

    def secret_exists(self, namespace: str, name: str) -> bool:
        """Check whether a Secret exists."""
        ...

    def list_namespaces(self) -> list[tuple[str, dict[str, str]]]:
        """List all namespaces as ``(name, labels)`` pairs."""
        ...


class KubernetesStore:
    """ObjectStore backed by the official Kubernetes client."""

    def __init__(
        self,
        core_api: client.CoreV1Api,
        custom_api: client.CustomObjectsApi,
        namespace: str,
        request_timeout: float | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            core_api: Client for Secrets and Namespaces
            custom_api: Client for ResourceSetInputProviders
            namespace: Target namespace holding the RSIPs
            request_timeout: Per-request timeout in seconds
        """
        self.core_api = core_api
        self.custom_api = custom_api
        self.namespace = namespace
        self.request_timeout = request_timeout

    def _call(self, operation: str, func: Callable[..., Any], **kwargs: Any) -> Any:
        if self.request_timeout is not None:
            kwargs.setdefault("_request_timeout", self.request_timeout)
        start_time = time.time()
        try:
            result = call_with_rate_limit_retry(func, **kwargs)
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
            return result
        except Exception as e:
            result = "not_found" if is_not_found(e) else "error"
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result=result).inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)

    def _rsip_kwargs(self) -> dict[str, Any]:
        return {
            "group": RSIP_GROUP,
            "version": RSIP_VERSION,
            "namespace": self.namespace,
            "plural": RSIP_PLURAL,
        }

    def get_input_provider(self, name: str) -> dict[str, Any] | None:
        try:
            return self._call(
                "get_rsip",
                self.custom_api.get_namespaced_custom_object,
                name=name,
                **self._rsip_kwargs(),
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise

    def list_input_providers(self, labels: dict[str, str] | None = None) -> list[dict[str, Any]]:
        kwargs = self._rsip_kwargs()
        if labels:
            kwargs["label_selector"] = selector_from_labels(labels)
        response = self._call("list_rsip", self.custom_api.list_namespaced_custom_object, **kwargs)
        return list(response.get("items") or [])

    def create_input_provider(self, body: dict[str, Any]) -> dict[str, Any]:
        return self._call(
            "create_rsip",
            self.custom_api.create_namespaced_custom_object,
            body=body,
            field_manager=FIELD_MANAGER,
            **self._rsip_kwargs(),
        )

    def replace_input_provider(self, name: str, body: dict[str, Any]) -> dict[str, Any]:
        return self._call(
            "replace_rsip",
            self.custom_api.replace_namespaced_custom_object,
            name=name,
            body=body,
            field_manager=FIELD_MANAGER,
            **self._rsip_kwargs(),
        )

    def delete_input_provider(self, name: str) -> bool:
        try:
            self._call(
                "delete_rsip",
                self.custom_api.delete_namespaced_custom_object,
                name=name,
                **self._rsip_kwargs(),
            )
            return True
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return False
            raise

    def secret_exists(self, namespace: str, name: str) -> bool:
        try:
            self._call(
                "get_secret",
                self.core_api.read_namespaced_secret,
                name=name,
                namespace=namespace,
            )
            return True
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return False
            raise

    def list_namespaces(self) -> list[tuple[str, dict[str, str]]]:
        response = self._call("list_namespaces", self.core_api.list_namespace)
        return [(ns.metadata.name, dict(ns.metadata.labels or {})) for ns in response.items]


def load_kube_config() -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


def create_store(namespace: str, request_timeout: float | None = None) -> KubernetesStore:
    """Create a KubernetesStore using the ambient cluster configuration.

    Args:
        namespace: Target namespace holding the RSIPs
        request_timeout: Per-request timeout in seconds

    Returns:
        Configured store
    """
    load_kube_config()
    return KubernetesStore(client.CoreV1Api(), client.CustomObjectsApi(), namespace, request_timeout)
