# backend/tutorslots/routes/slots.py
"""Bookable slot listing for a tutor. Public: no actor required."""

from datetime import date
import logging

from fastapi import APIRouter, Depends, Query

from ..api.dependencies import get_slot_generator
from ..schemas.booking import DaySlotsResponse, SlotResponse, TutorSlotsResponse
from ..services.slot_generator import MAX_RANGE_DAYS, SlotGenerator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tutors/{tutor_id}/slots", tags=["slots"])


@router.get("", response_model=TutorSlotsResponse)
def get_tutor_slots(
    tutor_id: str,
    on_date: date = Query(..., alias="date", description="First date, in the tutor's timezone"),
    days: int = Query(1, ge=1, le=MAX_RANGE_DAYS),
    include_unavailable: bool = Query(False),
    generator: SlotGenerator = Depends(get_slot_generator),
) -> TutorSlotsResponse:
    """
    Derive slots for ``days`` consecutive dates.

    Booked slots are omitted unless ``include_unavailable`` is set, in which
    case they are returned with ``available=false``.
    """
    by_date = generator.generate_range(
        tutor_id,
        on_date,
        days=days,
        include_unavailable=include_unavailable,
    )
    return TutorSlotsResponse(
        tutor_id=tutor_id,
        days=[
            DaySlotsResponse(
                date=day.isoformat(),
                slots=[SlotResponse.model_validate(slot) for slot in slots],
            )
            for day, slots in sorted(by_date.items())
        ],
    )
