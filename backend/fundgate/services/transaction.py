"""Per-campaign units of work.

Every mutating ledger operation runs inside ``campaign_transaction``: the
campaign's lock is held for the whole operation (settlement call included),
all writes share one database transaction, and any exception rolls that
transaction back before it propagates.  Notifications recorded during the
operation are persisted with it and published only after commit.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession

from fundgate.core.metrics import operations_rejected_total
from fundgate.models.event import Event, EventType
from fundgate.services.errors import FundingError
from fundgate.services.event_service import persist_event, publish_events

logger = logging.getLogger(__name__)


class CampaignLocks:
    """Registry of one ``asyncio.Lock`` per campaign id.

    A campaign's lock only lives while some operation holds or waits for it,
    so requests against unknown ids leave nothing behind.  Campaign creation
    uses its own lock so dense ids are allocated one at a time.
    """

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}
        self._create_lock: asyncio.Lock | None = None

    @asynccontextmanager
    async def hold(self, campaign_id: int) -> AsyncIterator[None]:
        lock = self._locks.get(campaign_id)
        if lock is None:
            lock = self._locks[campaign_id] = asyncio.Lock()
        self._users[campaign_id] = self._users.get(campaign_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[campaign_id] -= 1
            if not self._users[campaign_id]:
                del self._users[campaign_id]
                del self._locks[campaign_id]

    def for_creation(self) -> asyncio.Lock:
        if self._create_lock is None:
            self._create_lock = asyncio.Lock()
        return self._create_lock

    def __len__(self) -> int:
        return len(self._locks)

    def reset(self) -> None:
        self._locks.clear()
        self._users.clear()
        self._create_lock = None


campaign_locks = CampaignLocks()


class CampaignTransaction:
    def __init__(self, db: AsyncSession, operation: str, caller: str | None) -> None:
        self.db = db
        self.operation = operation
        self.caller = caller
        self.events: list[Event] = []

    async def emit(self, event_type: EventType, campaign_id: int, payload: dict) -> None:
        event = await persist_event(self.db, event_type, campaign_id, payload, caller=self.caller)
        self.events.append(event)


@asynccontextmanager
async def campaign_transaction(
    db: AsyncSession,
    operation: str,
    campaign_id: int | None = None,
    caller: str | None = None,
) -> AsyncIterator[CampaignTransaction]:
    """Serialise and atomically apply one operation on a campaign.

    Pass ``campaign_id=None`` for campaign creation.
    """
    if campaign_id is None:
        lock = campaign_locks.for_creation()
    else:
        lock = campaign_locks.hold(campaign_id)

    async with lock:
        tx = CampaignTransaction(db, operation, caller)
        try:
            yield tx
            await db.commit()
        except FundingError as exc:
            await db.rollback()
            operations_rejected_total.labels(operation=operation, code=exc.code).inc()
            logger.info(
                "%s rejected: %s",
                operation,
                exc.detail,
                extra={"campaign_id": campaign_id, "caller": caller, "code": exc.code},
            )
            raise
        except Exception:
            await db.rollback()
            logger.exception("%s failed", operation, extra={"campaign_id": campaign_id})
            raise

    await publish_events(tx.events)
