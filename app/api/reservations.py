"""Reservation API endpoints"""

import asyncio
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, WebSocket, status
from kombu.exceptions import OperationalError as BrokerError
from redis.exceptions import RedisError
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from app.config import settings
from app.database import get_db, get_session_factory
from app.models.profile import Profile
from app.models.reservation import (
    Reservation,
    ReservationAction,
    ReservationStatus,
    TRANSITIONS,
    can_transition,
)
from app.models.user import User
from app.ratelimit import limiter
from app.realtime import ReservationHub, change_event, get_hub
from app.schemas.reservation import (
    ReservationCreate,
    ReservationResponse,
    ReservationListResponse,
    ReservationSnapshot,
    ReservationStats,
)
from app.validation import ReservationValidationError, clean_reservation, local_today
from app.api.auth import (
    get_current_active_user,
    get_optional_user,
    get_profile,
    is_admin,
    user_from_token,
)
from app.api.site_settings import load_reservation_slots

router = APIRouter()
logger = structlog.get_logger()


async def _get_reservation(reservation_id: UUID, db: AsyncSession) -> Reservation:
    result = await db.execute(select(Reservation).where(Reservation.id == reservation_id))
    reservation = result.scalar_one_or_none()

    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")

    return reservation


async def _broadcast(hub: ReservationHub, event: dict) -> None:
    """Tell live listeners about a change that is already committed"""
    try:
        await hub.publish(event)
    except (RedisError, RuntimeError) as e:
        logger.warning("Failed to publish reservation change", error=str(e), **event)


async def _enqueue_notifications(
    reservation: Reservation,
    db: AsyncSession,
    hub: ReservationHub,
) -> None:
    """Fire the notification trigger once for a newly created reservation"""
    from app.jobs.celery_app import celery_app

    try:
        celery_app.send_task("send_reservation_emails", args=[str(reservation.id)])
    except BrokerError as e:
        logger.error(
            "Failed to queue reservation notifications",
            reservation_id=str(reservation.id),
            error=str(e),
        )
        reservation.email_error = f"Notification could not be queued: {e}"
        reservation.email_error_timestamp = datetime.utcnow()
        await db.commit()
        await _broadcast(hub, change_event("updated", reservation.id))


@router.post("", response_model=ReservationResponse, status_code=201)
@limiter.limit(settings.reservation_rate_limit)
async def create_reservation(
    request: Request,
    reservation_data: ReservationCreate,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    hub: ReservationHub = Depends(get_hub),
):
    """Submit a reservation request; always starts as pending"""
    slots = await load_reservation_slots(db)
    try:
        fields = clean_reservation(reservation_data.model_dump(), slots=slots)
    except ReservationValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)

    reservation = Reservation(
        **fields,
        status=ReservationStatus.PENDING,
        user_id=current_user.id if current_user else None,
    )
    db.add(reservation)
    await db.flush()

    if current_user:
        profile = await get_profile(current_user, db)
        if profile is not None:
            profile.reservations = [*(profile.reservations or []), str(reservation.id)]

    await db.commit()
    await db.refresh(reservation)

    logger.info(
        "Reservation created",
        reservation_id=str(reservation.id),
        reservation_date=reservation.reservation_date.isoformat(),
        party_size=reservation.party_size,
    )

    await _enqueue_notifications(reservation, db, hub)
    await _broadcast(hub, change_event("created", reservation.id))

    return reservation


@router.get("", response_model=ReservationListResponse)
async def list_reservations(
    status: Optional[ReservationStatus] = None,
    reservation_date: Optional[date] = Query(None, alias="date"),
    q: Optional[str] = None,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """List reservations, newest first"""
    query = select(Reservation)

    if status:
        query = query.where(Reservation.status == status)

    if reservation_date:
        query = query.where(Reservation.reservation_date == reservation_date)

    if q:
        search_text = func.lower(Reservation.customer_name + " " + Reservation.customer_phone)
        query = query.where(search_text.contains(q.lower(), autoescape=True))

    result = await db.execute(query.order_by(Reservation.created_at.desc()))
    reservations = result.scalars().all()

    return ReservationListResponse(items=reservations, total=len(reservations))


@router.get("/stats", response_model=ReservationStats)
async def reservation_stats(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Counters for the dashboard header"""
    async def count(*conditions) -> int:
        result = await db.execute(select(func.count(Reservation.id)).where(*conditions))
        return result.scalar() or 0

    return ReservationStats(
        today=await count(Reservation.reservation_date == local_today()),
        pending=await count(Reservation.status == ReservationStatus.PENDING),
        confirmed=await count(Reservation.status == ReservationStatus.CONFIRMED),
        total=await count(),
    )


async def build_snapshot(session_factory: async_sessionmaker) -> dict:
    """Full collection, newest first, as sent to live subscribers"""
    async with session_factory() as db:
        result = await db.execute(select(Reservation).order_by(Reservation.created_at.desc()))
        reservations = result.scalars().all()
        snapshot = ReservationSnapshot(
            reservations=[ReservationResponse.model_validate(r) for r in reservations]
        )
    return snapshot.model_dump(mode="json")


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # inbound frames of either kind are ignored
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/live")
async def live_reservations(
    websocket: WebSocket,
    token: Optional[str] = None,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    hub: ReservationHub = Depends(get_hub),
):
    """Push the full reservation list on connect and after every change"""
    async with session_factory() as db:
        user = await user_from_token(token, db)

    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    logger.info("Live reservations subscriber connected", uid=str(user.id))

    async with hub.subscribe() as queue:
        disconnect = asyncio.create_task(_wait_for_disconnect(websocket))
        try:
            await websocket.send_json(await build_snapshot(session_factory))
            while True:
                change = asyncio.create_task(queue.get())
                done, _ = await asyncio.wait(
                    {change, disconnect}, return_when=asyncio.FIRST_COMPLETED
                )
                if disconnect in done:
                    change.cancel()
                    break
                # collapse a burst of changes into one snapshot
                while not queue.empty():
                    queue.get_nowait()
                await websocket.send_json(await build_snapshot(session_factory))
        finally:
            disconnect.cancel()

    logger.info("Live reservations subscriber disconnected", uid=str(user.id))


@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Get reservation details"""
    return await _get_reservation(reservation_id, db)


async def _transition(
    reservation_id: UUID,
    action: ReservationAction,
    current_user: User,
    db: AsyncSession,
    hub: ReservationHub,
) -> Reservation:
    reservation = await _get_reservation(reservation_id, db)
    admin = await is_admin(current_user, db)
    owner = reservation.user_id is not None and reservation.user_id == current_user.id

    # owners may cancel their own booking; only staff confirm
    if not admin and not (owner and action == ReservationAction.CANCEL):
        raise HTTPException(status_code=403, detail="Insufficient permissions")

    if not can_transition(reservation.status, action):
        raise HTTPException(
            status_code=409,
            detail=f"Cannot {action.value} a {ReservationStatus(reservation.status).value} reservation",
        )

    previous = reservation.status
    reservation.status = TRANSITIONS[action]
    reservation.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(reservation)

    logger.info(
        "Reservation status changed",
        reservation_id=str(reservation.id),
        previous=ReservationStatus(previous).value,
        status=reservation.status.value,
        uid=str(current_user.id),
    )
    await _broadcast(hub, change_event("updated", reservation.id))
    return reservation


@router.post("/{reservation_id}/confirm", response_model=ReservationResponse)
async def confirm_reservation(
    reservation_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    hub: ReservationHub = Depends(get_hub),
):
    """Confirm a pending reservation"""
    return await _transition(reservation_id, ReservationAction.CONFIRM, current_user, db, hub)


@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
async def cancel_reservation(
    reservation_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    hub: ReservationHub = Depends(get_hub),
):
    """Cancel a reservation that is not already cancelled"""
    return await _transition(reservation_id, ReservationAction.CANCEL, current_user, db, hub)


@router.delete("/{reservation_id}", status_code=204)
async def delete_reservation(
    reservation_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    hub: ReservationHub = Depends(get_hub),
):
    """Permanently remove a reservation"""
    reservation = await _get_reservation(reservation_id, db)
    owner = reservation.user_id is not None and reservation.user_id == current_user.id

    if not owner and not await is_admin(current_user, db):
        raise HTTPException(status_code=403, detail="Insufficient permissions")

    if reservation.user_id is not None:
        profile = await db.get(Profile, reservation.user_id)
        if profile is not None and profile.reservations:
            profile.reservations = [r for r in profile.reservations if r != str(reservation_id)]

    await db.delete(reservation)
    await db.commit()

    logger.info("Reservation deleted", reservation_id=str(reservation_id), uid=str(current_user.id))
    await _broadcast(hub, change_event("deleted", reservation_id))
