"""Scoped, append-only working memory for the agent."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime, timedelta

from core.engine_config import ScratchpadConfig
from memory.schemas import ScratchpadEntryRecord
from memory.scope import normalize_scope
from memory.stores.sql_store import SQLStore, as_utc
from memory.types.scratchpad import (
    ScratchpadEntry,
    ScratchpadKind,
    ScratchpadSummary,
    summarize_entries,
)

logger = logging.getLogger("ax.scratchpad")


class ScratchpadStore:
    """Per-user scratchpad over SQLite.

    Writes always insert a new row. The only mutation is setting
    ``consumed_at``, and only once.
    """

    def __init__(
        self,
        sql_store: SQLStore,
        user_id: str,
        config: ScratchpadConfig | None = None,
    ) -> None:
        self.sql_store = sql_store
        self.sql_store.create_all()
        self.user_id = user_id
        self.config = config or ScratchpadConfig()

    def write(
        self,
        scope: str,
        kind: ScratchpadKind | str,
        content: str,
        *,
        confidence: float = 0.5,
        source: str = "agent",
        priority: int = 0,
        expires_at: datetime | None = None,
        now: datetime | None = None,
    ) -> ScratchpadEntry:
        """Append an entry; observations expire after the configured TTL by default."""
        kind_value = ScratchpadKind(kind)
        if not content.strip():
            raise ValueError("Scratchpad content must not be empty.")
        created_at = as_utc(now) if now is not None else datetime.now(UTC)
        if (
            expires_at is None
            and kind_value is ScratchpadKind.OBSERVATION
            and self.config.observation_ttl_days is not None
        ):
            expires_at = created_at + timedelta(days=self.config.observation_ttl_days)
        record = ScratchpadEntryRecord(
            entry_id=uuid.uuid4().hex,
            user_id=self.user_id,
            scope=normalize_scope(scope),
            kind=kind_value.value,
            content=content,
            created_at=created_at,
            confidence=max(0.0, min(1.0, confidence)),
            source=source,
            priority=priority,
            expires_at=as_utc(expires_at) if expires_at is not None else None,
        )
        with self.sql_store.session() as sess:
            sess.add(record)
            sess.flush()
            entry = self._record_to_entry(record)
        logger.debug("Scratchpad write %s in %s", entry.kind.value, entry.scope)
        return entry

    def read(
        self,
        scope: str,
        kind: ScratchpadKind | str | None = None,
        *,
        include_consumed: bool = False,
        include_expired: bool = False,
        now: datetime | None = None,
    ) -> list[ScratchpadEntry]:
        """Entries for exactly one scope, newest first."""
        current = as_utc(now) if now is not None else datetime.now(UTC)
        with self.sql_store.session() as sess:
            query = sess.query(ScratchpadEntryRecord).filter(
                ScratchpadEntryRecord.user_id == self.user_id,
                ScratchpadEntryRecord.scope == normalize_scope(scope),
            )
            if kind is not None:
                query = query.filter(ScratchpadEntryRecord.kind == ScratchpadKind(kind).value)
            if not include_consumed:
                query = query.filter(ScratchpadEntryRecord.consumed_at.is_(None))
            rows = query.order_by(
                ScratchpadEntryRecord.created_at.desc(), ScratchpadEntryRecord.id.desc()
            ).all()
            entries = [self._record_to_entry(row) for row in rows]
        if not include_expired:
            entries = [entry for entry in entries if not entry.is_expired(current)]
        return entries

    def read_all(self, *, now: datetime | None = None) -> list[ScratchpadEntry]:
        """Live entries across every scope, newest first."""
        current = as_utc(now) if now is not None else datetime.now(UTC)
        with self.sql_store.session() as sess:
            rows = (
                sess.query(ScratchpadEntryRecord)
                .filter(
                    ScratchpadEntryRecord.user_id == self.user_id,
                    ScratchpadEntryRecord.consumed_at.is_(None),
                )
                .order_by(ScratchpadEntryRecord.created_at.desc(), ScratchpadEntryRecord.id.desc())
                .all()
            )
            entries = [self._record_to_entry(row) for row in rows]
        return [entry for entry in entries if not entry.is_expired(current)]

    def consume(self, entry_id: str, *, now: datetime | None = None) -> ScratchpadEntry:
        """Mark an entry consumed. A second call keeps the first timestamp."""
        with self.sql_store.session() as sess:
            row = (
                sess.query(ScratchpadEntryRecord)
                .filter(
                    ScratchpadEntryRecord.user_id == self.user_id,
                    ScratchpadEntryRecord.entry_id == entry_id,
                )
                .one_or_none()
            )
            if row is None:
                raise KeyError(entry_id)
            if row.consumed_at is None:
                row.consumed_at = as_utc(now) if now is not None else datetime.now(UTC)
                sess.flush()
            entry = self._record_to_entry(row)
        return entry

    def summary(self, *, now: datetime | None = None) -> ScratchpadSummary:
        """Counts of live entries by kind plus the most recent observations."""
        return summarize_entries(self.read_all(now=now), self.config.summary_recent)

    @staticmethod
    def _record_to_entry(row: ScratchpadEntryRecord) -> ScratchpadEntry:
        return ScratchpadEntry(
            id=row.entry_id,
            scope=row.scope,
            kind=ScratchpadKind(row.kind),
            content=row.content,
            created_at=as_utc(row.created_at),
            consumed_at=as_utc(row.consumed_at),
            confidence=row.confidence,
            source=row.source,
            priority=row.priority,
            expires_at=as_utc(row.expires_at),
        )