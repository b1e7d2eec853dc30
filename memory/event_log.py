"""Append-only log of user interaction events."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import IntegrityError

from core.errors import StoreUnavailable
from memory.schemas import TrackableEventRecord
from memory.stores.sql_store import SQLStore, as_utc
from memory.types.events import TrackableEvent, parse_payload

logger = logging.getLogger("ax.event_log")


class EventLog(ABC):
    """Per-user ordered event storage.

    Events are never updated. Retention pruning is the only way rows leave
    the log.
    """

    @abstractmethod
    def append(self, user_id: str, event: TrackableEvent) -> TrackableEvent:
        raise NotImplementedError

    @abstractmethod
    def query(
        self,
        user_id: str,
        *,
        types: Iterable[str] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[TrackableEvent]:
        """Events in timestamp order; ``limit`` keeps the most recent ones."""
        raise NotImplementedError

    @abstractmethod
    def prune(
        self,
        user_id: str,
        *,
        now: datetime,
        max_age_days: int = 90,
        max_events: int = 1000,
    ) -> int:
        """Drop events older than ``max_age_days`` then cap the count. Returns rows removed."""
        raise NotImplementedError

    def extend(self, user_id: str, events: Iterable[TrackableEvent]) -> int:
        count = 0
        for event in events:
            self.append(user_id, event)
            count += 1
        return count


def _sort_key(event: TrackableEvent) -> tuple[datetime, str]:
    return (event.timestamp, event.id)


class InMemoryEventLog(EventLog):
    """Process-local log used by tests and ephemeral runs."""

    def __init__(self) -> None:
        self._events: dict[str, list[TrackableEvent]] = {}

    def append(self, user_id: str, event: TrackableEvent) -> TrackableEvent:
        bucket = self._events.setdefault(user_id, [])
        if any(existing.id == event.id for existing in bucket):
            raise ValueError(f"Duplicate event id {event.id}")
        bucket.append(event)
        bucket.sort(key=_sort_key)
        return event

    def query(
        self,
        user_id: str,
        *,
        types: Iterable[str] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[TrackableEvent]:
        wanted = set(types) if types is not None else None
        rows = [
            event
            for event in self._events.get(user_id, [])
            if (wanted is None or event.type in wanted)
            and (since is None or event.timestamp >= as_utc(since))
            and (until is None or event.timestamp <= as_utc(until))
        ]
        if limit is not None:
            rows = rows[-limit:] if limit > 0 else []
        return rows

    def prune(
        self,
        user_id: str,
        *,
        now: datetime,
        max_age_days: int = 90,
        max_events: int = 1000,
    ) -> int:
        bucket = self._events.get(user_id, [])
        cutoff = as_utc(now) - timedelta(days=max_age_days)
        kept = [event for event in bucket if event.timestamp >= cutoff]
        if len(kept) > max_events:
            kept = kept[len(kept) - max_events:]
        removed = len(bucket) - len(kept)
        self._events[user_id] = kept
        return removed


class SQLEventLog(EventLog):
    """SQLite-backed event log."""

    def __init__(self, sql_store: SQLStore) -> None:
        self.sql_store = sql_store
        self.sql_store.create_all()

    def append(self, user_id: str, event: TrackableEvent) -> TrackableEvent:
        record = TrackableEventRecord(
            event_id=event.id,
            user_id=user_id,
            event_type=event.type,
            timestamp=event.timestamp,
            session_id=event.session_id,
            payload=event.payload.model_dump(mode="json"),
            schema_version=event.schema_version,
        )
        try:
            with self.sql_store.session() as sess:
                sess.add(record)
        except StoreUnavailable as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise ValueError(f"Duplicate event id {event.id}") from exc
            raise
        logger.debug("Appended %s for %s", event.type, user_id)
        return event

    def query(
        self,
        user_id: str,
        *,
        types: Iterable[str] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[TrackableEvent]:
        with self.sql_store.session() as sess:
            query = sess.query(TrackableEventRecord).filter(TrackableEventRecord.user_id == user_id)
            if types is not None:
                query = query.filter(TrackableEventRecord.event_type.in_(list(types)))
            if since is not None:
                query = query.filter(TrackableEventRecord.timestamp >= as_utc(since))
            if until is not None:
                query = query.filter(TrackableEventRecord.timestamp <= as_utc(until))
            query = query.order_by(
                TrackableEventRecord.timestamp.desc(), TrackableEventRecord.event_id.desc()
            )
            if limit is not None:
                query = query.limit(max(limit, 0))
            rows = query.all()
            events = [self._record_to_event(row) for row in rows]
        events.reverse()
        return events

    def prune(
        self,
        user_id: str,
        *,
        now: datetime,
        max_age_days: int = 90,
        max_events: int = 1000,
    ) -> int:
        cutoff = as_utc(now) - timedelta(days=max_age_days)
        with self.sql_store.session() as sess:
            removed = (
                sess.query(TrackableEventRecord)
                .filter(
                    TrackableEventRecord.user_id == user_id,
                    TrackableEventRecord.timestamp < cutoff,
                )
                .delete(synchronize_session=False)
            )
            overflow_ids = [
                row_id
                for (row_id,) in sess.query(TrackableEventRecord.id)
                .filter(TrackableEventRecord.user_id == user_id)
                .order_by(TrackableEventRecord.timestamp.desc(), TrackableEventRecord.event_id.desc())
                .offset(max_events)
                .all()
            ]
            if overflow_ids:
                removed += (
                    sess.query(TrackableEventRecord)
                    .filter(TrackableEventRecord.id.in_(overflow_ids))
                    .delete(synchronize_session=False)
                )
        if removed:
            logger.info("Pruned %d events for %s", removed, user_id)
        return removed

    @staticmethod
    def _record_to_event(row: TrackableEventRecord) -> TrackableEvent:
        return TrackableEvent(
            id=row.event_id,
            timestamp=as_utc(row.timestamp) or datetime.now(UTC),
            session_id=row.session_id,
            payload=parse_payload(row.payload),
            schema_version=row.schema_version,
        )
