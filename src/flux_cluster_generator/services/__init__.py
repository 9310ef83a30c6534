"""Cluster access services."""

from .store import KubernetesStore, ObjectStore, create_store

__all__ = ["KubernetesStore", "ObjectStore", "create_store"]
