"""Main entry point for the Flux Cluster Generator operator."""

from __future__ import annotations

import logging
from typing import Any

import kopf

from . import handlers  # noqa: F401
from . import health
from . import logging as structured_logging
from .config import load_config
from .constants import CONTROLLER_NAME, KOPF_ANNOTATION_PREFIX
from .runtime import runtime
from .services.store import create_store
from .tracing import initialize_tracing
from .utils.errors import ConfigurationError, sanitize_exception
from .utils.persistence import KeysOnlyDiffBaseStorage

logger = logging.getLogger(__name__)

_metrics_server: Any = None


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    global _metrics_server

    # Set up structured JSON logging
    structured_logging.setup_structured_logging()

    try:
        config = load_config()
    except ConfigurationError as e:
        raise kopf.PermanentError(f"invalid configuration: {e}") from e

    # Keep kopf state in our own annotations; no status writes on Secrets
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(prefix=KOPF_ANNOTATION_PREFIX)
    settings.persistence.diffbase_storage = KeysOnlyDiffBaseStorage(prefix=KOPF_ANNOTATION_PREFIX)

    settings.posting.level = logging.WARNING
    settings.networking.request_timeout = 30.0
    settings.networking.connect_timeout = config.cache_sync_timeout
    settings.execution.max_workers = config.max_concurrent_reconciles

    initialize_tracing(CONTROLLER_NAME)

    store = create_store(config.rsip_namespace, request_timeout=config.cache_sync_timeout)
    runtime.configure(config, store)

    # Secrets must never be filtered against an empty allow-set
    try:
        runtime.namespace_handler.seed(store)
    except Exception as e:
        raise kopf.TemporaryError(f"seeding allowed namespaces failed: {sanitize_exception(e)}", delay=5) from e

    if _metrics_server is None:
        _metrics_server = health.start_metrics_server(config.metrics_port)
    runtime.start_sweeper()
    health.mark_ready()

    structured_logging.log_controller_event(
        logger,
        "startup",
        "operator configured",
        rsip_namespace=config.rsip_namespace,
        label_selector=str(config.label_selector),
        namespace_selector=str(config.namespace_selector),
        watch_namespaces=list(config.watch_namespaces),
        max_workers=config.max_concurrent_reconciles,
    )


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    """Stop background work before the operator exits."""
    health.mark_not_ready()
    runtime.stop_sweeper()
    structured_logging.log_controller_event(logger, "shutdown", "operator stopped")


def run() -> None:
    """Run the operator across all namespaces."""
    kopf.run(clusterwide=True)


if __name__ == "__main__":
    run()
