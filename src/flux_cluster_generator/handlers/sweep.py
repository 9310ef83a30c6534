"""Periodic garbage collection of orphaned ResourceSetInputProviders."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

from .. import metrics
from ..builders.input_provider import back_reference_of
from ..constants import KIND_RSIP, SWEEP_INTERVAL_SECONDS
from ..logging import log_controller_event
from ..services.store import ObjectStore
from ..tracing import trace_span
from ..utils.errors import sanitize_exception

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """Outcome of one sweep."""

    scanned: int = 0
    skipped: int = 0
    kept: int = 0
    deleted: int = 0
    errors: int = 0


class OrphanSweeper:
    """Deletes RSIPs whose back-referenced Secret no longer exists.

    Independent of watch events, so it catches deletions missed while the
    operator was down. A Secret whose existence cannot be confirmed either way
    is never treated as gone.
    """

    def __init__(self, store: ObjectStore, interval: float = SWEEP_INTERVAL_SECONDS):
        self.store = store
        self.interval = interval

    def sweep(self) -> SweepResult:
        """Run one full pass over the target namespace.

        Raises:
            ApiException: If the RSIPs cannot be listed
        """
        result = SweepResult()
        with trace_span("orphan_sweep", kind=KIND_RSIP, attributes={"rsip.namespace": self.store.namespace}):
            for rsip in self.store.list_input_providers():
                result.scanned += 1
                metadata = rsip.get("metadata") or {}
                rsip_name = metadata.get("name", "")
                ref = back_reference_of(metadata.get("labels"))
                if ref is None:
                    # not managed by us
                    result.skipped += 1
                    continue

                secret_ns, secret_name = ref
                try:
                    exists = self.store.secret_exists(secret_ns, secret_name)
                except Exception as e:
                    result.errors += 1
                    log_controller_event(
                        logger,
                        "gc",
                        "secret existence check failed",
                        level=logging.ERROR,
                        rsip=rsip_name,
                        secret=f"{secret_ns}/{secret_name}",
                        error=sanitize_exception(e),
                    )
                    continue
                if exists:
                    result.kept += 1
                    continue

                try:
                    self.store.delete_input_provider(rsip_name)
                except Exception as e:
                    result.errors += 1
                    metrics.rsip_operations_total.labels(operation="delete", result="failed").inc()
                    log_controller_event(
                        logger,
                        "gc",
                        "failed deleting orphan RSIP",
                        level=logging.ERROR,
                        rsip=rsip_name,
                        error=sanitize_exception(e),
                    )
                    continue

                result.deleted += 1
                metrics.rsip_operations_total.labels(operation="delete", result="success").inc()
                metrics.sweep_deleted_total.inc()
                log_controller_event(
                    logger,
                    "gc",
                    "deleted orphan RSIP",
                    rsip=rsip_name,
                    secret=f"{secret_ns}/{secret_name}",
                )

        if result.deleted:
            log_controller_event(
                logger,
                "gc",
                "orphan RSIP sweep complete",
                namespace=self.store.namespace,
                deleted=result.deleted,
            )
        return result

    def run(self, stop_event: threading.Event) -> None:
        """Sweep now, then every ``interval`` seconds until ``stop_event`` is set."""
        initial = True
        while not stop_event.is_set():
            start_time = time.time()
            try:
                self.sweep()
                metrics.sweep_runs_total.labels(result="success").inc()
            except Exception as e:
                metrics.sweep_runs_total.labels(result="error").inc()
                log_controller_event(
                    logger,
                    "gc",
                    "initial GC sweep failed" if initial else "periodic GC sweep failed",
                    level=logging.ERROR,
                    error=sanitize_exception(e),
                )
            finally:
                metrics.sweep_duration_seconds.observe(time.time() - start_time)
            initial = False
            stop_event.wait(self.interval)
