# pyright: reportMissingTypeStubs=false
"""
Doctor schedule management API endpoints.

Doctors publish their working window for today or for upcoming days; each
save expands the window into a slot grid.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from auth.dependencies import UserContext, require_doctor
from core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from core.database import get_db
from core.errors import NotFound
from models import Schedule
from services.availability_service import AvailabilityService
from services.schedule_service import ScheduleService
from utils.datetime_utils import clinic_today
from api.responses import (
    BulkScheduleResponse, ScheduleExistsResponse, ScheduleHistoryResponse,
    ScheduleListResponse, ScheduleResponse
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request Models =====

class ScheduleWindowRequest(BaseModel):
    """Working window for one day."""
    start_time: str  # Format: "HH:MM"
    end_time: str  # Format: "HH:MM"
    total_slots: Optional[int] = None
    slot_duration: Optional[int] = None  # Minutes, used when total_slots is omitted


class BulkScheduleRequest(BaseModel):
    schedules: List[Dict[str, Any]]

    @field_validator('schedules')
    @classmethod
    def validate_schedules(cls, v: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not v:
            raise ValueError('Schedules array is required and cannot be empty')
        return v


def _to_response(schedule: Schedule) -> ScheduleResponse:
    return ScheduleResponse(**AvailabilityService.annotate_schedule(schedule))


# ===== Today =====

@router.get("/today", summary="Get today's schedule", response_model=ScheduleResponse)
async def get_today_schedule(
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_doctor)
) -> ScheduleResponse:
    schedule = ScheduleService.get_schedule(db, current_user.user_id, clinic_today(), active_only=False)
    if schedule is None:
        raise NotFound("No schedule found for today")
    return _to_response(schedule)


@router.put("/today", summary="Save today's schedule", response_model=ScheduleResponse)
async def save_today_schedule(
    request: ScheduleWindowRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_doctor)
) -> ScheduleResponse:
    """
    Create or replace today's schedule.

    Saving twice replaces the first window; the day never has two schedules.
    """
    schedule = ScheduleService.upsert_schedule(
        db,
        current_user.user_id,
        clinic_today(),
        request.start_time,
        request.end_time,
        total_slots=request.total_slots,
        slot_duration=request.slot_duration,
    )
    return _to_response(schedule)


@router.delete("/today", summary="Delete today's schedule")
async def delete_today_schedule(
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_doctor)
) -> Dict[str, Any]:
    schedule = ScheduleService.delete_schedule(db, current_user.user_id, clinic_today())
    return {"message": "Schedule deleted successfully", "schedule_id": schedule.id}


# ===== Upcoming days =====

@router.get("/upcoming", summary="List schedules from today onwards", response_model=ScheduleListResponse)
async def list_upcoming_schedules(
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_doctor)
) -> ScheduleListResponse:
    schedules = ScheduleService.list_upcoming(db, current_user.user_id)
    return ScheduleListResponse(
        schedules=[_to_response(schedule) for schedule in schedules],
        count=len(schedules),
    )


@router.post("/upcoming", summary="Save several upcoming days", response_model=BulkScheduleResponse)
async def save_upcoming_schedules(
    request: BulkScheduleRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_doctor)
) -> BulkScheduleResponse:
    """
    Save a batch of upcoming schedules.

    Entries are validated and saved independently; the response lists the
    saved schedules and a per-entry error for each rejected one.
    """
    try:
        result = ScheduleService.save_upcoming_bulk(db, current_user.user_id, request.schedules)
        return BulkScheduleResponse(
            saved_schedules=[_to_response(schedule) for schedule in result["saved_schedules"]],
            errors=result["errors"],
            success_count=result["success_count"],
            error_count=result["error_count"],
        )
    except (HTTPException, ValueError):
        raise
    except Exception as e:
        logger.exception(f"Failed to save upcoming schedules for doctor {current_user.user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save schedules"
        )


@router.get("/history", summary="Schedule history", response_model=ScheduleHistoryResponse)
async def get_schedule_history(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_doctor)
) -> ScheduleHistoryResponse:
    schedules, pagination = ScheduleService.list_history(db, current_user.user_id, page=page, limit=limit)
    return ScheduleHistoryResponse(
        schedules=[_to_response(schedule) for schedule in schedules],
        pagination=pagination,
    )


@router.get("/exists", summary="Check which dates already have a schedule", response_model=ScheduleExistsResponse)
async def check_schedules_exist(
    dates: str = Query(..., description="Comma-separated YYYY-MM-DD dates"),
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_doctor)
) -> ScheduleExistsResponse:
    existing = ScheduleService.check_exists(db, current_user.user_id, dates.split(","))
    return ScheduleExistsResponse(schedule_exists=existing)


@router.delete("/id/{schedule_id}", summary="Delete a schedule by id")
async def delete_schedule_by_id(
    schedule_id: int,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_doctor)
) -> Dict[str, Any]:
    schedule = ScheduleService.delete_schedule_by_id(db, current_user.user_id, schedule_id)
    return {"message": "Schedule deleted successfully", "schedule_id": schedule.id}


# ===== One specific day =====

@router.get("/{date}", summary="Get the schedule for a date", response_model=ScheduleResponse)
async def get_schedule_for_date(
    date: str,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_doctor)
) -> ScheduleResponse:
    schedule = ScheduleService.get_schedule(db, current_user.user_id, date, active_only=False)
    if schedule is None:
        raise NotFound("No schedule found for this date")
    return _to_response(schedule)


@router.put("/{date}", summary="Save the schedule for a date", response_model=ScheduleResponse)
async def save_schedule_for_date(
    date: str,
    request: ScheduleWindowRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_doctor)
) -> ScheduleResponse:
    """Create or replace the schedule of today or a future date."""
    schedule = ScheduleService.upsert_schedule(
        db,
        current_user.user_id,
        date,
        request.start_time,
        request.end_time,
        total_slots=request.total_slots,
        slot_duration=request.slot_duration,
    )
    return _to_response(schedule)


@router.delete("/{date}", summary="Delete the schedule for a date")
async def delete_schedule_for_date(
    date: str,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_doctor)
) -> Dict[str, Any]:
    schedule = ScheduleService.delete_schedule(db, current_user.user_id, date)
    return {"message": "Schedule deleted successfully", "schedule_id": schedule.id}
