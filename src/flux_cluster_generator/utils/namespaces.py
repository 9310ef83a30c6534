"""Namespace allow-set shared between the namespace watcher and the Secret filter."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterable, Iterator


class ReadWriteLock:
    """Many concurrent readers or one writer.

    Waiting writers block new readers, so a steady stream of reads cannot
    starve the namespace watcher.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class NamespaceAllowSet:
    """Set of namespace names currently matching the namespace selector.

    Consistency is eventual: the set follows namespace watch events, so a
    reader may briefly see a namespace that was just relabelled or removed.
    Decisions taken on a stale answer are corrected by the next reconciliation
    of the affected Secret.
    """

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._lock = ReadWriteLock()
        self._names: set[str] = set(names)

    def has(self, name: str) -> bool:
        with self._lock.read():
            return name in self._names

    def add(self, name: str) -> None:
        with self._lock.write():
            self._names.add(name)

    def delete(self, name: str) -> None:
        with self._lock.write():
            self._names.discard(name)

    def replace(self, names: Iterable[str]) -> None:
        """Swap the whole content in one write, used for startup seeding."""
        fresh = set(names)
        with self._lock.write():
            self._names = fresh

    def snapshot(self) -> frozenset[str]:
        with self._lock.read():
            return frozenset(self._names)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._names)
