"""
webhooks/store.py -- SQLAlchemy Core persistence for received webhooks.

Pattern: Repository + Data Mapper. Payloads are stored as JSON text.
webhook_id carries a UNIQUE index so a redelivered webhook is recorded once;
NULL ids (deliveries without the header) are never deduplicated.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.db import dump_json, load_json, now_iso, page_offset
from webhooks.models import WebhookEvent

_metadata = MetaData()

_events = Table(
    "webhook_events",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("topic", String(100), nullable=False, index=True),
    Column("shop_domain", String(255)),
    Column("webhook_id", String(100), unique=True),
    Column("resource_id", String(255)),
    Column("payload", Text, nullable=False),
    Column("received_at", String(40), nullable=False),
)


class WebhookEventStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine)

    def record(self, event: WebhookEvent) -> tuple[WebhookEvent, bool]:
        """Insert event. Returns (stored_event, created).

        created is False when an event with the same webhook_id already
        exists; the existing row is returned instead.
        """
        if event.webhook_id:
            existing = self.get_by_webhook_id(event.webhook_id)
            if existing is not None:
                return existing, False
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _events.insert().values(
                        topic=event.topic,
                        shop_domain=event.shop_domain,
                        webhook_id=event.webhook_id,
                        resource_id=event.resource_id,
                        payload=dump_json(event.payload if event.payload is not None else {}),
                        received_at=now_iso(),
                    )
                )
                conn.commit()
                event_id = result.inserted_primary_key[0]
        except IntegrityError:
            # Lost a race against a concurrent delivery of the same webhook_id.
            existing = self.get_by_webhook_id(event.webhook_id) if event.webhook_id else None
            if existing is None:
                raise
            return existing, False
        return self.get(event_id), True

    def get(self, event_id: int) -> WebhookEvent | None:
        with self.engine.connect() as conn:
            row = conn.execute(_events.select().where(_events.c.id == event_id)).fetchone()
        return _row_to_event(row) if row is not None else None

    def get_by_webhook_id(self, webhook_id: str) -> WebhookEvent | None:
        with self.engine.connect() as conn:
            row = conn.execute(_events.select().where(_events.c.webhook_id == webhook_id)).fetchone()
        return _row_to_event(row) if row is not None else None

    def list_events(self, topic: str | None = None, page: int = 1, limit: int = 20) -> tuple[list[WebhookEvent], int]:
        """Return (events, total), newest first."""
        query = _events.select()
        count_query = select(func.count()).select_from(_events)
        if topic:
            query = query.where(_events.c.topic == topic)
            count_query = count_query.where(_events.c.topic == topic)
        with self.engine.connect() as conn:
            total = conn.execute(count_query).scalar() or 0
            rows = conn.execute(
                query.order_by(_events.c.id.desc()).offset(page_offset(page, limit)).limit(limit)
            ).fetchall()
        return [_row_to_event(r) for r in rows], total


def _row_to_event(row) -> WebhookEvent:
    return WebhookEvent(
        id=row.id,
        topic=row.topic,
        shop_domain=row.shop_domain,
        webhook_id=row.webhook_id,
        resource_id=row.resource_id,
        payload=load_json(row.payload, default={}),
        received_at=row.received_at,
    )
