"""
Processed webhook event tracking (DB-backed, survives restarts).
"""

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from cyberhub.infrastructure.db.models.webhook_event import ProcessedWebhookEvent


class WebhookEventRepository:
    """Idempotency ledger for Stripe webhook deliveries."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def is_processed(self, event_id: str) -> bool:
        """Check if a webhook event has already been processed."""
        result = await self._session.execute(
            select(ProcessedWebhookEvent.event_id).where(
                ProcessedWebhookEvent.event_id == event_id
            )
        )
        return result.scalar_one_or_none() is not None

    async def mark_processed(self, event_id: str, event_type: str) -> None:
        """Record a processed webhook event; repeated marks are no-ops."""
        stmt = (
            pg_insert(ProcessedWebhookEvent)
            .values(event_id=event_id, event_type=event_type)
            .on_conflict_do_nothing(index_elements=["event_id"])
        )
        await self._session.execute(stmt)
