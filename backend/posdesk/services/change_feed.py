# Overview: In-process push notifications of collection snapshots.

"""
Change Feed

Each collection (products, sales, invoices) can be observed per user. A
subscriber registers a callback and receives the full, freshly loaded
snapshot of its collection after every committed write that touched it.
There is no diffing and no ordering guarantee across collections.

Subscriptions must be released with `unsubscribe()` when the consumer goes
away; the SSE route does this when the HTTP response is closed.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Callable

from flask import current_app

logger = logging.getLogger(__name__)

COLLECTIONS = ("products", "sales", "invoices")

Snapshot = list[dict]
SnapshotLoader = Callable[[int], Snapshot]


class UnknownCollectionError(KeyError):
    """Raised when subscribing to a collection that has no loader."""


@dataclass
class Subscription:
    id: int
    collection: str
    user_id: int
    callback: Callable[[Snapshot], None]
    feed: "ChangeFeed" = field(repr=False)
    active: bool = True

    def unsubscribe(self) -> None:
        self.feed.unsubscribe(self.id)


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._loaders: dict[str, SnapshotLoader] = {}
        self._subscriptions: dict[int, Subscription] = {}
        self._next_id = 1

    def register_loader(self, collection: str, loader: SnapshotLoader) -> None:
        with self._lock:
            self._loaders[collection] = loader

    def _loader_for(self, collection: str) -> SnapshotLoader:
        loader = self._loaders.get(collection)
        if loader is None:
            raise UnknownCollectionError(collection)
        return loader

    def snapshot(self, collection: str, user_id: int) -> Snapshot:
        return self._loader_for(collection)(user_id)

    def subscribe(self, collection: str, user_id: int, callback: Callable[[Snapshot], None]) -> Subscription:
        self._loader_for(collection)
        with self._lock:
            sub = Subscription(
                id=self._next_id,
                collection=collection,
                user_id=user_id,
                callback=callback,
                feed=self,
            )
            self._next_id += 1
            self._subscriptions[sub.id] = sub
        return sub

    def unsubscribe(self, subscription_id: int) -> bool:
        with self._lock:
            sub = self._subscriptions.pop(subscription_id, None)
        if sub is None:
            return False
        sub.active = False
        return True

    def subscriber_count(self, collection: str | None = None) -> int:
        with self._lock:
            return sum(
                1 for s in self._subscriptions.values()
                if collection is None or s.collection == collection
            )

    def publish(self, collection: str, user_id: int) -> int:
        """
        Load the snapshot once and hand it to every subscriber of
        (collection, user_id). Returns the number of callbacks invoked.
        """
        with self._lock:
            targets = [
                s for s in self._subscriptions.values()
                if s.collection == collection and s.user_id == user_id
            ]
        if not targets:
            return 0

        snapshot = self.snapshot(collection, user_id)
        delivered = 0
        for sub in targets:
            if not sub.active:
                continue
            try:
                sub.callback(snapshot)
                delivered += 1
            except Exception:
                logger.exception("Change feed subscriber %s failed", sub.id)
        return delivered


class QueueSubscriber:
    """
    Bridges a subscription to a blocking consumer (the SSE generator).

    The queue is bounded; when the consumer lags, the oldest pending
    snapshot is dropped since every snapshot is complete on its own.
    """

    def __init__(self, maxsize: int = 8):
        self.queue: queue.Queue = queue.Queue(maxsize=maxsize)

    def __call__(self, snapshot: Snapshot) -> None:
        while True:
            try:
                self.queue.put_nowait(snapshot)
                return
            except queue.Full:
                try:
                    self.queue.get_nowait()
                except queue.Empty:
                    pass

    def get(self, timeout: float) -> Snapshot | None:
        try:
            return self.queue.get(timeout=timeout)
        except queue.Empty:
            return None


def get_change_feed() -> ChangeFeed:
    return current_app.extensions["posdesk.change_feed"]


def publish_changes(user_id: int, *collections: str) -> None:
    """
    Notify subscribers after a commit. The write has already succeeded, so a
    failing snapshot load is logged rather than raised to the caller.
    """
    feed = get_change_feed()
    for collection in collections:
        try:
            feed.publish(collection, user_id)
        except Exception:
            logger.exception("Failed to publish %s snapshot for user %s", collection, user_id)
