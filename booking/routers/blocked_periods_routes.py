# booking/routers/blocked_periods_routes.py

from datetime import date, time
from typing import List, Optional

from fastapi import APIRouter, Depends

from booking.blocked_periods import BlockedPeriodIndex, BlockedPeriodManager
from booking.config import settings
from booking.core import Interval
from booking.deps import get_blocked_period_index, get_blocked_period_manager, to_http_error
from booking.errors import BookingError
from booking.schemas import (
    BlockedPeriodCreate,
    BlockedPeriodPublic,
    BlockedPeriodUpdate,
    DateBlockedCheck,
    DateBlocksResponse,
    OverlapCheck,
    OverlapResponse,
    PeriodBlocksResponse,
    WorkingHoursResponse,
)

router = APIRouter(
    tags=["blocked-periods"],
)


@router.get("/blocked-periods", response_model=List[BlockedPeriodPublic])
def list_blocked_periods(
    limit: int = 100,
    offset: int = 0,
    manager: BlockedPeriodManager = Depends(get_blocked_period_manager),
):
    return manager.list(limit=limit, offset=offset)


@router.post("/blocked-periods", response_model=BlockedPeriodPublic, status_code=201)
def create_blocked_period(
    data: BlockedPeriodCreate,
    manager: BlockedPeriodManager = Depends(get_blocked_period_manager),
):
    try:
        return manager.create(data)
    except BookingError as exc:
        raise to_http_error(exc)


@router.post("/blocked-periods/check-overlaps", response_model=OverlapResponse)
def check_overlaps(
    payload: OverlapCheck,
    index: BlockedPeriodIndex = Depends(get_blocked_period_index),
):
    try:
        overlapping = index.overlapping(Interval(payload.start, payload.end), exclude_id=payload.exclude_id)
    except BookingError as exc:
        raise to_http_error(exc)

    return OverlapResponse(
        has_overlaps=bool(overlapping),
        count=len(overlapping),
        overlapping_periods=[BlockedPeriodPublic.model_validate(p) for p in overlapping],
    )


@router.get("/blocked-periods/for-date", response_model=DateBlocksResponse)
def blocked_periods_for_date(
    date: date,
    index: BlockedPeriodIndex = Depends(get_blocked_period_index),
):
    periods = index.periods_for_date(date)
    return DateBlocksResponse(
        date=date,
        count=len(periods),
        is_blocked=bool(periods),
        is_entirely_blocked=index.is_date_fully_blocked(date),
        blocked_periods=[BlockedPeriodPublic.model_validate(p) for p in periods],
    )


@router.get("/blocked-periods/for-period", response_model=PeriodBlocksResponse)
def blocked_periods_for_period(
    start_date: date,
    end_date: date,
    index: BlockedPeriodIndex = Depends(get_blocked_period_index),
):
    try:
        periods = index.periods_for_range(start_date, end_date)
    except BookingError as exc:
        raise to_http_error(exc)

    return PeriodBlocksResponse(
        start_date=start_date,
        end_date=end_date,
        count=len(periods),
        blocked_periods=[BlockedPeriodPublic.model_validate(p) for p in periods],
    )


@router.get("/blocked-periods/check-date", response_model=DateBlockedCheck)
def check_date(
    date: date,
    check_entire_day: bool = False,
    index: BlockedPeriodIndex = Depends(get_blocked_period_index),
):
    entirely = index.is_date_fully_blocked(date)
    touched = index.is_date_touched(date)

    return DateBlockedCheck(
        date=date,
        check_type="entire_day" if check_entire_day else "any_period",
        is_blocked=entirely if check_entire_day else touched,
        is_entirely_blocked=entirely,
        has_any_blocks=touched,
    )


@router.get("/blocked-periods/check-working-hours", response_model=WorkingHoursResponse)
def check_working_hours(
    date: date,
    work_start: Optional[time] = None,
    work_end: Optional[time] = None,
    index: BlockedPeriodIndex = Depends(get_blocked_period_index),
):
    work_start = work_start or settings.WORK_DAY_START
    work_end = work_end or settings.WORK_DAY_END

    try:
        periods = index.blocking_working_hours(date, work_start, work_end)
    except BookingError as exc:
        raise to_http_error(exc)

    return WorkingHoursResponse(
        date=date,
        work_start=work_start,
        work_end=work_end,
        is_blocked=bool(periods),
        blocking_periods=[BlockedPeriodPublic.model_validate(p) for p in periods],
    )


@router.get("/blocked-periods/{blocked_period_id}", response_model=BlockedPeriodPublic)
def get_blocked_period(
    blocked_period_id: int,
    manager: BlockedPeriodManager = Depends(get_blocked_period_manager),
):
    try:
        return manager.get(blocked_period_id)
    except BookingError as exc:
        raise to_http_error(exc)


@router.put("/blocked-periods/{blocked_period_id}", response_model=BlockedPeriodPublic)
def update_blocked_period(
    blocked_period_id: int,
    changes: BlockedPeriodUpdate,
    manager: BlockedPeriodManager = Depends(get_blocked_period_manager),
):
    try:
        return manager.update(blocked_period_id, changes)
    except BookingError as exc:
        raise to_http_error(exc)


@router.delete("/blocked-periods/{blocked_period_id}", status_code=204)
def delete_blocked_period(
    blocked_period_id: int,
    manager: BlockedPeriodManager = Depends(get_blocked_period_manager),
):
    try:
        manager.delete(blocked_period_id)
    except BookingError as exc:
        raise to_http_error(exc)
