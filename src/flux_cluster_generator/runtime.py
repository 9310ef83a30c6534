"""Process-wide wiring shared by the kopf handlers."""

from __future__ import annotations

import threading

from .config import OperatorConfig
from .handlers.namespace import NamespaceHandler
from .handlers.secret import SecretMirrorHandler
from .handlers.sweep import OrphanSweeper
from .services.store import ObjectStore
from .utils.namespaces import NamespaceAllowSet


class OperatorRuntime:
    """Holds the configuration, the allow-set and the handlers built from them.

    The allow-set is created once and injected into the namespace handler (its
    only writer) and the Secret handler (a reader).
    """

    def __init__(self) -> None:
        self.allowed_namespaces = NamespaceAllowSet()
        self.config: OperatorConfig | None = None
        self.store: ObjectStore | None = None
        self.namespace_handler: NamespaceHandler | None = None
        self.secret_handler: SecretMirrorHandler | None = None
        self.sweeper: OrphanSweeper | None = None
        self._stop_event = threading.Event()
        self._sweep_thread: threading.Thread | None = None

    @property
    def configured(self) -> bool:
        return self.secret_handler is not None

    def configure(self, config: OperatorConfig, store: ObjectStore) -> None:
        self.config = config
        self.store = store
        self.namespace_handler = NamespaceHandler(self.allowed_namespaces, config.namespace_selector)
        self.secret_handler = SecretMirrorHandler(config, self.allowed_namespaces, store)
        self.sweeper = OrphanSweeper(store, interval=config.sweep_interval)

    def start_sweeper(self) -> None:
        if self.sweeper is None:
            raise RuntimeError("runtime is not configured")
        if self._sweep_thread is not None and self._sweep_thread.is_alive():
            return
        self._stop_event.clear()
        self._sweep_thread = threading.Thread(
            target=self.sweeper.run,
            args=(self._stop_event,),
            name="orphan-sweep",
            daemon=True,
        )
        self._sweep_thread.start()

    def stop_sweeper(self, timeout: float | None = 10.0) -> None:
        self._stop_event.set()
        if self._sweep_thread is not None:
            self._sweep_thread.join(timeout)
            self._sweep_thread = None


runtime = OperatorRuntime()
