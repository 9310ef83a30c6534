"""Shared fixtures for unit tests."""

from __future__ import annotations

import copy
from typing import Any
from unittest.mock import patch

import pytest
from kubernetes.client.exceptions import ApiException

from flux_cluster_generator.config import OperatorConfig
from flux_cluster_generator.utils.namespaces import NamespaceAllowSet
from flux_cluster_generator.utils.selectors import parse_selector

TARGET_NAMESPACE = "flux-apps"


class FakeStore:
    """In-memory ObjectStore recording every write."""

    def __init__(self, namespace: str = TARGET_NAMESPACE):
        self.namespace = namespace
        self.rsips: dict[str, dict[str, Any]] = {}
        self.secrets: set[tuple[str, str]] = set()
        self.namespaces: list[tuple[str, dict[str, str]]] = []
        self.writes: list[tuple[str, str]] = []
        self.fail_delete: set[str] = set()
        self.fail_exists: set[tuple[str, str]] = set()
        self._version = 0

    def _bump(self, body: dict[str, Any]) -> dict[str, Any]:
        self._version += 1
        body.setdefault("metadata", {})["resourceVersion"] = str(self._version)
        return body

    def get_input_provider(self, name: str) -> dict[str, Any] | None:
        rsip = self.rsips.get(name)
        return copy.deepcopy(rsip) if rsip is not None else None

    def list_input_providers(self, labels: dict[str, str] | None = None) -> list[dict[str, Any]]:
        items = []
        for rsip in self.rsips.values():
            current = rsip["metadata"].get("labels") or {}
            if all(current.get(k) == v for k, v in (labels or {}).items()):
                items.append(copy.deepcopy(rsip))
        return items

    def create_input_provider(self, body: dict[str, Any]) -> dict[str, Any]:
        name = body["metadata"]["name"]
        if name in self.rsips:
            raise ApiException(status=409, reason="AlreadyExists")
        self.writes.append(("create", name))
        self.rsips[name] = self._bump(copy.deepcopy(body))
        return copy.deepcopy(self.rsips[name])

    def replace_input_provider(self, name: str, body: dict[str, Any]) -> dict[str, Any]:
        current = self.rsips.get(name)
        if current is None:
            raise ApiException(status=404, reason="Not Found")
        if body["metadata"].get("resourceVersion") != current["metadata"]["resourceVersion"]:
            raise ApiException(status=409, reason="Conflict")
        self.writes.append(("replace", name))
        self.rsips[name] = self._bump(copy.deepcopy(body))
        return copy.deepcopy(self.rsips[name])

    def delete_input_provider(self, name: str) -> bool:
        if name in self.fail_delete:
            raise ApiException(status=500, reason="Internal Server Error")
        if name not in self.rsips:
            return False
        self.writes.append(("delete", name))
        del self.rsips[name]
        return True

    def secret_exists(self, namespace: str, name: str) -> bool:
        if (namespace, name) in self.fail_exists:
            raise ApiException(status=503, reason="Service Unavailable")
        return (namespace, name) in self.secrets

    def list_namespaces(self) -> list[tuple[str, dict[str, str]]]:
        return list(self.namespaces)


def make_secret(
    namespace: str = "apps",
    name: str = "c1",
    labels: dict[str, str] | None = None,
    data_keys: tuple[str, ...] = ("config",),
) -> dict[str, Any]:
    """Build a Secret body as delivered by the watch."""
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"namespace": namespace, "name": name, "labels": dict(labels or {})},
        "data": {key: "YXBpVmVyc2lvbjogdjE=" for key in data_keys},
    }


def make_rsip(
    name: str,
    secret_namespace: str | None = None,
    secret_name: str | None = None,
    namespace: str = TARGET_NAMESPACE,
) -> dict[str, Any]:
    """Build a stored RSIP, optionally carrying a back-reference."""
    labels: dict[str, str] = {}
    if secret_namespace is not None:
        labels["mirror.fluxcd.io/secretNS"] = secret_namespace
    if secret_name is not None:
        labels["mirror.fluxcd.io/secretName"] = secret_name
    return {
        "apiVersion": "fluxcd.controlplane.io/v1",
        "kind": "ResourceSetInputProvider",
        "metadata": {"name": name, "namespace": namespace, "labels": labels, "resourceVersion": "1"},
        "spec": {"type": "Static", "defaultValues": {}},
    }


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def allowed() -> NamespaceAllowSet:
    return NamespaceAllowSet(["apps", "p-team1"])


@pytest.fixture
def config() -> OperatorConfig:
    return OperatorConfig(
        rsip_namespace=TARGET_NAMESPACE,
        label_selector=parse_selector("type=cluster"),
        copy_label_keys=("env",),
    )


@pytest.fixture(autouse=True)
def mock_kopf_event():
    """Events are posted through kopf's queue, which needs a running operator."""
    with patch("flux_cluster_generator.utils.events.kopf.event") as mock_event:
        yield mock_event
