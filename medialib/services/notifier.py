"""Fan-out of domain events to observers.

Events are invalidation hints: observers should re-fetch the record from the
database rather than trust ``record``. Delivery is best-effort and in-process;
the optional Redis sink publishes the same payload on a pub/sub channel.
"""
import json
import logging
import threading

import redis

log = logging.getLogger(__name__)

DB_CHANNEL = "db-on-transaction"
ACTIONS = ("create", "update", "destroy")


class RedisEventSink:
    def __init__(self, url, channel):
        self.redis = redis.from_url(url)
        self.channel = channel

    def __call__(self, channel, payload):
        self.redis.publish(self.channel, json.dumps({"channel": channel, "payload": payload}, default=str))


class Notifier:
    def __init__(self):
        self._observers = []
        self._lock = threading.Lock()

    def init_app(self, app):
        with self._lock:
            self._observers = [o for o in self._observers if not isinstance(o, RedisEventSink)]
        if (app.config.get("EVENT_SINK") or "local").lower() == "redis":
            self.subscribe(RedisEventSink(app.config["REDIS_URL"], app.config.get("EVENT_CHANNEL", "medialib.events")))

    def subscribe(self, observer):
        """Register ``observer(channel, payload)``; returns it for use as a decorator."""
        with self._lock:
            self._observers.append(observer)
        return observer

    def unsubscribe(self, observer):
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def emit(self, channel, payload):
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(channel, payload)
            except Exception:
                log.exception("event observer %r failed on %s", observer, channel)

    def notify(self, model, id, action, record=None):
        if action not in ACTIONS:
            raise ValueError(f"unknown action {action!r}")
        self.emit(DB_CHANNEL, {"model": model, "id": id, "action": action, "record": record})

    def error(self, message):
        self.emit("on-notification", {"type": "error", "message": message})
