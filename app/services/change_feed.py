"""
Change feed over committed writes.

Session hooks record which rows of the watched tables were inserted, updated or
deleted; after the transaction commits, one event per row is published on Redis
pub/sub. Readers open a Subscription for as long as their view lives (the ticket
event stream holds one per HTTP connection) and must close it when done.

Channels:
    feed:<table>            every change of the table
    feed:<table>:<key>      changes scoped to one parent (e.g. messages of one ticket)
"""
import json
import logging
from typing import Iterator, Optional

from sqlalchemy import event
from sqlalchemy.orm import Session

from app.config import settings

logger = logging.getLogger(__name__)

WATCHED_TABLES = {
    "tickets",
    "chat_messages",
    "pending_whatsapp_messages",
    "payment_settings",
    "whatsapp_settings",
    "special_coupons_settings",
}

# Column that scopes a row to a parent channel
SCOPE_COLUMNS = {
    "chat_messages": "ticket_id",
    "tickets": "id",
}

_PENDING_KEY = "change_feed_pending"
_registered = False


def channel_name(table: str, key=None) -> str:
    return f"feed:{table}" if key is None else f"feed:{table}:{key}"


def _record(session: Session, obj, op: str) -> None:
    table = getattr(obj, "__tablename__", None)
    if table not in WATCHED_TABLES:
        return
    scope_column = SCOPE_COLUMNS.get(table)
    scope = getattr(obj, scope_column, None) if scope_column else None
    session.info.setdefault(_PENDING_KEY, []).append(
        {"collection": table, "id": getattr(obj, "id", None), "op": op, "scope": scope}
    )


def record_change(session: Session, table: str, row_id, op: str = "modified", scope=None) -> None:
    """Record a change made through a bulk UPDATE, which the ORM hooks do not see."""
    if table in WATCHED_TABLES:
        session.info.setdefault(_PENDING_KEY, []).append(
            {"collection": table, "id": row_id, "op": op, "scope": scope}
        )


def _after_flush(session: Session, flush_context) -> None:
    for obj in session.new:
        _record(session, obj, "added")
    for obj in session.dirty:
        if session.is_modified(obj, include_collections=False):
            _record(session, obj, "modified")
    for obj in session.deleted:
        _record(session, obj, "removed")


def _after_commit(session: Session) -> None:
    changes = session.info.pop(_PENDING_KEY, [])
    if changes:
        publish(changes)


def _after_rollback(session: Session) -> None:
    session.info.pop(_PENDING_KEY, None)


def publish(changes: list) -> None:
    """Publish change events. Failures are logged; they never break the write path."""
    try:
        from app.redis_client import get_redis_client
        redis = get_redis_client()
        for change in changes:
            payload = json.dumps(change)
            redis.publish(channel_name(change["collection"]), payload)
            if change.get("scope") is not None:
                redis.publish(channel_name(change["collection"], change["scope"]), payload)
    except Exception as e:
        logger.warning("Change feed publish failed: %s", e)


def register_listeners() -> None:
    """Attach the session hooks once per process (no-op when the feed is disabled)."""
    global _registered
    if _registered or not settings.change_feed_enabled:
        return
    event.listen(Session, "after_flush", _after_flush)
    event.listen(Session, "after_commit", _after_commit)
    event.listen(Session, "after_rollback", _after_rollback)
    _registered = True


class Subscription:
    """A live listener on one or more feed channels. Close it when the view goes away."""

    def __init__(self, *channels: str):
        from app.redis_client import get_redis_client
        self._pubsub = get_redis_client().pubsub(ignore_subscribe_messages=True)
        self._pubsub.subscribe(*channels)
        self.closed = False

    def get(self, timeout: float = 1.0) -> Optional[dict]:
        """Next change event, or None if nothing arrived within timeout."""
        message = self._pubsub.get_message(timeout=timeout)
        if not message or message.get("type") != "message":
            return None
        return json.loads(message["data"])

    def __iter__(self) -> Iterator[Optional[dict]]:
        while not self.closed:
            yield self.get()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._pubsub.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def subscribe(table: str, key=None) -> Subscription:
    return Subscription(channel_name(table, key))
