from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fundgate.models.event import Event, EventType
from fundgate.services.event_bus import event_bus


async def persist_event(
    db: AsyncSession,
    event_type: EventType,
    campaign_id: int,
    payload: dict,
    caller: str | None = None,
) -> Event:
    event = Event(
        type=event_type,
        campaign_id=campaign_id,
        caller=caller,
        payload=payload,
    )
    db.add(event)
    await db.flush()
    return event


async def publish_events(events: list[Event]) -> None:
    """Fan committed events out to live subscribers, oldest first."""
    for event in events:
        await event_bus.publish(event.type, event.payload, campaign_id=event.campaign_id)


async def get_events(
    db: AsyncSession,
    campaign_id: int | None = None,
    event_type: EventType | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Event]:
    query = select(Event)
    if campaign_id is not None:
        query = query.where(Event.campaign_id == campaign_id)
    if event_type:
        query = query.where(Event.type == event_type)

    query = query.order_by(Event.id).offset(offset).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())
