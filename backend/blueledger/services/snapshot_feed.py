"""
Live tenant-scoped snapshots.

subscribe() returns a lazy, unbounded iterator: the first item is the current
snapshot of a company's collection, then one fresh snapshot per committed
change announced through publish(). Services publish only after commit, so a
subscriber never sees a rolled-back state.

This module does NOT:
- diff snapshots
- sort for display beyond the loader's own ordering
- hold any record state between notifications
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Iterator

logger = logging.getLogger("blueledger.feed")

PRODUCTS = "products"
MESSAGES = "messages"
WORKERS = "workers"

Loader = Callable[..., list[dict]]


@dataclass(frozen=True)
class Snapshot:
    company_id: str
    collection: str
    sequence: int
    items: list[dict]


class SnapshotFeed:
    def __init__(self):
        self._cond = threading.Condition()
        self._versions: dict[tuple[str, str], int] = defaultdict(int)
        self._loaders: dict[str, Loader] = {}

    def register(self, collection: str, loader: Loader) -> None:
        """Register the tenant-scoped query that produces a collection snapshot."""
        self._loaders[collection] = loader

    def publish(self, company_id: str, collection: str) -> None:
        with self._cond:
            self._versions[(company_id, collection)] += 1
            version = self._versions[(company_id, collection)]
            self._cond.notify_all()
        logger.debug("change published: %s/%s v%d", company_id, collection, version)

    def version(self, company_id: str, collection: str) -> int:
        with self._cond:
            return self._versions[(company_id, collection)]

    def subscribe(
        self,
        company_id: str,
        collection: str,
        *,
        heartbeat: float | None = None,
        filters: dict | None = None,
    ) -> Iterator[Snapshot | None]:
        """
        Yield snapshots for one company's collection until the consumer stops.

        With heartbeat set, None is yielded whenever that many seconds pass
        without a change, so a streaming response can emit a keep-alive.
        filters are passed to the loader as keyword arguments on every load.
        """
        loader = self._loaders.get(collection)
        if loader is None:
            raise KeyError(f"unknown collection {collection!r}")
        return self._stream(company_id, collection, loader, heartbeat, filters or {})

    def _stream(self, company_id, collection, loader, heartbeat, filters):
        key = (company_id, collection)
        with self._cond:
            seen = self._versions[key]
        sequence = 0
        yield Snapshot(company_id, collection, sequence, loader(company_id, **filters))

        while True:
            with self._cond:
                changed = self._cond.wait_for(lambda: self._versions[key] != seen, timeout=heartbeat)
                if changed:
                    seen = self._versions[key]
            if not changed:
                yield None
                continue
            sequence += 1
            yield Snapshot(company_id, collection, sequence, loader(company_id, **filters))
