"""Public site settings endpoints"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.config import settings
from app.database import get_db
from app.models.site_setting import SiteSetting, RESERVATION_SLOTS_KEY
from app.models.user import User
from app.schemas.settings import SiteSettingsResponse, ReservationSlotsUpdate
from app.api.auth import require_admin

router = APIRouter()
logger = structlog.get_logger()


async def load_reservation_slots(db: AsyncSession) -> List[str]:
    """Stored slot list, falling back to the configured default"""
    result = await db.execute(
        select(SiteSetting).where(SiteSetting.key == RESERVATION_SLOTS_KEY)
    )
    setting = result.scalar_one_or_none()
    if setting is None or not setting.value_json:
        return settings.reservation_slots_list
    return list(setting.value_json)


async def _settings_response(db: AsyncSession) -> SiteSettingsResponse:
    return SiteSettingsResponse(
        restaurant_name=settings.restaurant_name,
        restaurant_phone=settings.restaurant_phone,
        restaurant_address=settings.restaurant_address,
        reservation_slots=await load_reservation_slots(db),
        reservation_max_advance_months=settings.reservation_max_advance_months,
    )


@router.get("", response_model=SiteSettingsResponse)
async def get_site_settings(db: AsyncSession = Depends(get_db)):
    """Public settings, including the offered reservation slots"""
    return await _settings_response(db)


@router.put("/reservation_slots", response_model=SiteSettingsResponse)
async def update_reservation_slots(
    slots_data: ReservationSlotsUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Replace the offered reservation slots (admin only)"""
    result = await db.execute(
        select(SiteSetting).where(SiteSetting.key == RESERVATION_SLOTS_KEY)
    )
    setting = result.scalar_one_or_none()

    if setting is None:
        setting = SiteSetting(key=RESERVATION_SLOTS_KEY, value_json=slots_data.reservation_slots)
        db.add(setting)
    else:
        setting.value_json = slots_data.reservation_slots

    await db.commit()
    logger.info(
        "Reservation slots updated",
        uid=str(current_user.id),
        slots=slots_data.reservation_slots,
    )
    return await _settings_response(db)
