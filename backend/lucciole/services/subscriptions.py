# Overview: Observer feeds that push collection snapshots to subscribers.

from __future__ import annotations

import threading
from typing import Callable

from flask import current_app

Snapshot = list
Listener = Callable[[Snapshot], None]

_ITEM_FEED_KEY = "lucciole.item_feed"


class CollectionFeed:
    """
    Live read of one collection.

    subscribe() delivers the current snapshot immediately, then again every
    time publish() is called after a committed write. Returns an unsubscribe
    callable. Snapshots are plain dicts, detached from the session.
    """

    def __init__(self, name: str, loader: Callable[[], Snapshot]):
        self.name = name
        self._loader = loader
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(callback)
        self._deliver(callback, self._loader())

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def publish(self) -> int:
        with self._lock:
            listeners = list(self._listeners)
        if not listeners:
            return 0
        snapshot = self._loader()
        for callback in listeners:
            self._deliver(callback, snapshot)
        return len(listeners)

    def _deliver(self, callback: Listener, snapshot: Snapshot) -> None:
        try:
            callback(list(snapshot))
        except Exception:
            current_app.logger.exception("Subscriber of %s feed failed", self.name)


def _load_items() -> Snapshot:
    from ..extensions import db
    from ..models import Item

    items = db.session.query(Item).order_by(Item.id.asc()).all()
    return [item.to_dict(include_prices=True) for item in items]


def init_item_feed(app) -> CollectionFeed:
    feed = CollectionFeed("inventory", _load_items)
    app.extensions[_ITEM_FEED_KEY] = feed
    return feed


def get_item_feed() -> CollectionFeed:
    return current_app.extensions[_ITEM_FEED_KEY]


def notify_item_change() -> None:
    get_item_feed().publish()
