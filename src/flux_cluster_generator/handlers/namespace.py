"""Namespace watcher keeping the namespace allow-set current."""

from __future__ import annotations

from typing import Any, Mapping

import kopf

from .. import metrics
from ..constants import KIND_NAMESPACE
from ..services.store import ObjectStore
from ..utils.namespaces import NamespaceAllowSet
from ..utils.selectors import LabelSelector
from .base import BaseHandler

EVENT_DELETED = "DELETED"


class NamespaceHandler(BaseHandler):
    """Sole writer of the namespace allow-set."""

    def __init__(self, allowed: NamespaceAllowSet, selector: LabelSelector):
        """Initialize namespace handler.

        Args:
            allowed: Allow-set shared with the Secret filter
            selector: Namespace label selector
        """
        super().__init__(KIND_NAMESPACE)
        self.allowed = allowed
        self.selector = selector

    def seed(self, store: ObjectStore) -> int:
        """Fill the allow-set from a direct namespace listing.

        Runs before any Secret is reconciled so the first wave of events is not
        filtered against an empty set.

        Returns:
            Number of allowed namespaces
        """
        matching = [name for name, labels in store.list_namespaces() if self.selector.matches(labels)]
        self.allowed.replace(matching)
        metrics.allowed_namespaces.set(len(self.allowed))
        self.log_info(
            {"name": "*"},
            "seeded allowed namespaces",
            event="seed",
            reason="Seeded",
            count=len(matching),
            namespaces=sorted(self.allowed.snapshot()),
            selector=str(self.selector),
        )
        return len(matching)

    def observe(self, event_type: str | None, name: str, labels: Mapping[str, str] | None) -> bool:
        """Apply one namespace watch event.

        Args:
            event_type: Watch event type; None for the initial listing
            name: Namespace name
            labels: Namespace labels

        Returns:
            Whether the namespace is allowed afterwards
        """
        if event_type == EVENT_DELETED:
            self.allowed.delete(name)
            allowed = False
        elif self.selector.matches(labels or {}):
            self.allowed.add(name)
            allowed = True
        else:
            self.allowed.delete(name)
            allowed = False
        metrics.allowed_namespaces.set(len(self.allowed))
        self.log_debug({"name": name}, "namespace observed", event="observe", allowed=allowed, type=event_type)
        return allowed


@kopf.on.event("", "v1", "namespaces")
def handle_namespace_event(
    type: str | None,
    name: str,
    labels: Mapping[str, str],
    **kwargs: Any,
) -> None:
    """Keep the allow-set in sync with namespace events."""
    from ..runtime import runtime

    if runtime.namespace_handler is None:
        return
    runtime.namespace_handler.observe(type, name, labels)
