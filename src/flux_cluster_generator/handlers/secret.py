"""Handler mirroring kubeconfig Secrets into ResourceSetInputProviders."""

from __future__ import annotations

import copy
from typing import Any, Mapping

import kopf

from .. import metrics
from ..builders.input_provider import (
    DesiredInputProvider,
    back_reference_of,
    build_desired_input_provider,
    is_eligible,
)
from ..config import OperatorConfig
from ..constants import (
    CONFLICT_RETRY_DELAY,
    KIND_SECRET,
    LABEL_SECRET_NAME,
    LABEL_SECRET_NAMESPACE,
)
from ..services.store import ObjectStore
from ..tracing import add_span_attribute, trace_span
from ..utils.diff import labels_equal, specs_equal
from ..utils.errors import CleanupError, NameCollisionError, is_conflict, sanitize_exception
from ..utils.events import (
    emit_rsip_conflict,
    emit_rsip_create_failed,
    emit_rsip_created,
    emit_rsip_update_failed,
    emit_rsip_updated,
)
from ..utils.namespaces import NamespaceAllowSet
from ..utils.rate_limit import retry_delay
from .base import BaseHandler

RESULT_CREATED = "created"
RESULT_UPDATED = "updated"
RESULT_UNCHANGED = "unchanged"
RESULT_SKIPPED = "skipped"
RESULT_CLEANED = "cleaned"


class SecretMirrorHandler(BaseHandler):
    """Keeps one ResourceSetInputProvider per eligible Secret."""

    def __init__(self, config: OperatorConfig, allowed: NamespaceAllowSet, store: ObjectStore):
        """Initialize Secret handler.

        Args:
            config: Operator configuration
            allowed: Namespace allow-set (read only here)
            store: Cluster access
        """
        super().__init__(KIND_SECRET)
        self.config = config
        self.allowed = allowed
        self.store = store

    def is_in_scope(self, meta: Mapping[str, Any]) -> bool:
        return is_eligible(meta, self.allowed, self.config.label_selector, self.config.watch_namespaces)

    def is_watched(self, meta: Mapping[str, Any]) -> bool:
        """Whether the Secret's namespace is in the explicit allowlist (if any)."""
        watch = self.config.watch_namespaces
        return not watch or meta.get("namespace") in watch

    def reconcile(self, body: Mapping[str, Any]) -> str:
        """Bring the RSIP for one Secret in line with the Secret's current state.

        Args:
            body: Secret body

        Returns:
            One of ``created``, ``updated``, ``unchanged``, ``skipped`` or ``cleaned``
        """
        meta = body.get("metadata") or {}
        namespace = meta.get("namespace", "")
        name = meta.get("name", "")

        with trace_span("reconcile_secret", kind=KIND_SECRET, attributes={"secret": f"{namespace}/{name}"}):
            if not self.allowed.has(namespace) or not self.is_watched(meta):
                self.log_debug(meta, "namespace not in allowlist; ensuring cleanup", reason="NamespaceNotAllowed")
                self.ensure_absence(namespace, name)
                return RESULT_CLEANED
            if not self.config.label_selector.matches(meta.get("labels") or {}):
                self.log_debug(
                    meta,
                    "secret does not match label selector; ensuring cleanup",
                    reason="SelectorMismatch",
                    selector=str(self.config.label_selector),
                )
                self.ensure_absence(namespace, name)
                return RESULT_CLEANED

            desired = build_desired_input_provider(body, self.config)
            if desired is None:
                self.log_info(
                    meta,
                    "secret missing kubeconfig key; skipping",
                    event="skip",
                    reason="MissingKey",
                    key=self.config.secret_key,
                )
                return RESULT_SKIPPED

            add_span_attribute("rsip.name", desired.name)
            return self.apply(desired, body)

    def apply(self, desired: DesiredInputProvider, body: Mapping[str, Any]) -> str:
        """Converge the RSIP to ``desired`` and drop any other RSIP for the same Secret.

        A changed name label renames the RSIP; the one created under the old
        name is deleted once the new one is in place.

        Raises:
            NameCollisionError: If the RSIP mirrors a different Secret
            CleanupError: If a stale RSIP could not be deleted
        """
        result = self._write(desired, body)
        self.prune_stale(desired)
        return result

    def prune_stale(self, desired: DesiredInputProvider) -> int:
        """Delete RSIPs carrying ``desired``'s back-reference under another name."""
        namespace, name = desired.back_reference
        rsips = self.store.list_input_providers({LABEL_SECRET_NAMESPACE: namespace, LABEL_SECRET_NAME: name})
        stale = [rsip for rsip in rsips if (rsip.get("metadata") or {}).get("name") != desired.name]
        if not stale:
            return 0
        meta = {"namespace": namespace, "name": name}
        with trace_span("prune_stale_rsips", kind=KIND_SECRET, attributes={"rsip.name": desired.name}):
            return self._delete_input_providers(meta, stale)

    def _write(self, desired: DesiredInputProvider, body: Mapping[str, Any]) -> str:
        meta = body.get("metadata") or {}
        with trace_span("apply_rsip", kind=KIND_SECRET, attributes={"rsip.name": desired.name}):
            existing = self.store.get_input_provider(desired.name)
            if existing is None:
                try:
                    self.store.create_input_provider(desired.to_body())
                except Exception as e:
                    metrics.rsip_operations_total.labels(operation="create", result="failed").inc()
                    emit_rsip_create_failed(body, desired.namespace, desired.name, sanitize_exception(e))
                    self.log_error(meta, "create RSIP failed", error=e, reason="CreateFailed", rsip=desired.name)
                    raise
                metrics.rsip_operations_total.labels(operation="create", result="success").inc()
                emit_rsip_created(body, desired.namespace, desired.name)
                self.log_info(meta, "created RSIP", event="create", reason="Created", rsip=desired.name)
                return RESULT_CREATED

            current_meta = existing.get("metadata") or {}
            owner = back_reference_of(current_meta.get("labels"))
            if owner is not None and owner != desired.back_reference:
                raise NameCollisionError(desired.name, owner, desired.back_reference)

            updated = copy.deepcopy(existing)
            changed = False
            if not labels_equal(current_meta.get("labels"), desired.labels):
                metrics.drift_detected_total.labels(field="labels").inc()
                updated.setdefault("metadata", {})["labels"] = dict(desired.labels)
                changed = True
            desired_spec = desired.spec.to_dict()
            if not specs_equal(existing.get("spec") or {}, desired_spec):
                metrics.drift_detected_total.labels(field="spec").inc()
                updated["spec"] = desired_spec
                changed = True

            if not changed:
                metrics.rsip_operations_total.labels(operation="noop", result="success").inc()
                self.log_debug(meta, "RSIP up-to-date", reason="UpToDate", rsip=desired.name)
                return RESULT_UNCHANGED

            try:
                self.store.replace_input_provider(desired.name, updated)
            except Exception as e:
                metrics.rsip_operations_total.labels(operation="update", result="failed").inc()
                if not is_conflict(e):
                    emit_rsip_update_failed(body, desired.namespace, desired.name, sanitize_exception(e))
                self.log_error(meta, "update RSIP failed", error=e, reason="UpdateFailed", rsip=desired.name)
                raise
            metrics.rsip_operations_total.labels(operation="update", result="success").inc()
            emit_rsip_updated(body, desired.namespace, desired.name)
            self.log_info(meta, "updated RSIP", event="update", reason="Updated", rsip=desired.name)
            return RESULT_UPDATED

    def ensure_absence(self, namespace: str, name: str) -> int:
        """Delete every RSIP whose back-reference points at the given Secret.

        Looks RSIPs up by label rather than by derived name, so an RSIP created
        under an older name is still found.

        Returns:
            Number of RSIPs deleted

        Raises:
            CleanupError: If any deletion failed (after attempting all of them)
        """
        meta = {"namespace": namespace, "name": name}
        with trace_span("ensure_rsip_absence", kind=KIND_SECRET, attributes={"secret": f"{namespace}/{name}"}):
            rsips = self.store.list_input_providers(
                {LABEL_SECRET_NAMESPACE: namespace, LABEL_SECRET_NAME: name}
            )
            if not rsips:
                self.log_debug(meta, "no RSIPs to delete for secret", reason="NothingToDelete")
                return 0
            return self._delete_input_providers(meta, rsips)

    def _delete_input_providers(self, meta: Mapping[str, Any], rsips: list[dict[str, Any]]) -> int:
        """Delete each RSIP, attempting all of them before raising CleanupError."""
        deleted = 0
        errors: list[Exception] = []
        for rsip in rsips:
            rsip_name = (rsip.get("metadata") or {}).get("name", "")
            try:
                self.store.delete_input_provider(rsip_name)
            except Exception as e:
                errors.append(e)
                metrics.rsip_operations_total.labels(operation="delete", result="failed").inc()
                self.log_error(meta, "delete RSIP failed", error=e, reason="DeleteFailed", rsip=rsip_name)
                continue
            deleted += 1
            metrics.rsip_operations_total.labels(operation="delete", result="success").inc()
            self.log_info(meta, "deleted RSIP", event="delete", reason="Deleted", rsip=rsip_name)

        if deleted:
            self.log_info(meta, "deleted RSIPs for secret", event="delete", reason="Deleted", count=deleted)
        if errors:
            raise CleanupError(deleted, errors)
        return deleted


def _handler() -> SecretMirrorHandler | None:
    from ..runtime import runtime

    return runtime.secret_handler


def secret_in_scope(body: Mapping[str, Any], old: Mapping[str, Any] | None = None, **_: Any) -> bool:
    """Delivery filter: eligible now, or eligible before this change.

    Letting through the change that makes a Secret ineligible is what triggers
    the cleanup of its RSIP.
    """
    handler = _handler()
    if handler is None:
        return False
    meta = body.get("metadata") or {}
    if handler.is_in_scope(meta):
        return True
    if old is None:
        return False
    # kopf's diff-base essence keeps labels but not the namespace
    previous = {
        "namespace": meta.get("namespace"),
        "labels": (old.get("metadata") or {}).get("labels") or {},
    }
    return handler.is_in_scope(previous)


def secret_deleted(type: str | None, body: Mapping[str, Any], **_: Any) -> bool:
    """Delivery filter for Secret deletions within the watched namespaces."""
    handler = _handler()
    if handler is None or type != "DELETED":
        return False
    return handler.is_watched(body.get("metadata") or {})


@kopf.on.create("", "v1", "secrets", when=secret_in_scope)
@kopf.on.update("", "v1", "secrets", when=secret_in_scope)
@kopf.on.resume("", "v1", "secrets", when=secret_in_scope)
def handle_secret(
    body: kopf.Body,
    meta: kopf.Meta,
    retry: int,
    **kwargs: Any,
) -> None:
    """Handle Secret reconciliation."""
    handler = _handler()
    if handler is None:
        raise kopf.TemporaryError("operator is not configured yet", delay=5)
    try:
        handler.reconcile_with_metrics(meta, lambda: handler.reconcile(body))
    except NameCollisionError as e:
        emit_rsip_conflict(body, str(e))
        raise kopf.TemporaryError(str(e), delay=CONFLICT_RETRY_DELAY) from e
    except Exception as e:
        raise kopf.TemporaryError(sanitize_exception(e), delay=retry_delay(retry)) from e


@kopf.on.event("", "v1", "secrets", when=secret_deleted)
def handle_secret_deleted(
    namespace: str,
    name: str,
    meta: kopf.Meta,
    **kwargs: Any,
) -> None:
    """Remove the RSIPs of a deleted Secret.

    Watch events are not retried; a failed cleanup is picked up by the orphan sweep.
    """
    handler = _handler()
    if handler is None:
        return
    try:
        handler.reconcile_with_metrics(meta, lambda: handler.ensure_absence(namespace, name))
    except CleanupError:
        # counted and logged per RSIP; the sweep retries
        return
