# booking/routers/appointments_routes.py

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError

from booking.availability import AvailabilityEngine
from booking.core import Interval
from booking.deps import get_availability_engine, get_lifecycle, to_http_error
from booking.errors import BookingError
from booking.lifecycle import AppointmentLifecycle
from booking.repositories import ConflictRecord
from booking.schemas import (
    AppointmentCreate,
    AppointmentPublic,
    AppointmentStatus,
    AppointmentUpdate,
    AvailabilityCheck,
    AvailabilityResponse,
    BlockedPeriodPublic,
    ConflictCounts,
    ConflictPublic,
    ConflictsQuery,
    ConflictsResponse,
    CustomerRef,
    ServiceRef,
)

router = APIRouter(
    tags=["appointments"],
)


@router.post("/appointments", response_model=AppointmentPublic, status_code=201)
def create_appointment(
    appt: AppointmentCreate,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    try:
        return lifecycle.create(appt)
    except BookingError as exc:
        raise to_http_error(exc)
    except IntegrityError:
        lifecycle.appointments.rollback()
        raise HTTPException(status_code=409, detail="Appointment could not be stored")


@router.get("/appointments", response_model=List[AppointmentPublic])
def list_appointments(
    provider_id: Optional[int] = None,
    customer_id: Optional[int] = None,
    status: Optional[AppointmentStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = 100,
    offset: int = 0,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    if (start_date is None) != (end_date is None):
        raise HTTPException(status_code=422, detail="start_date and end_date must be given together")
    if start_date is not None and end_date < start_date:
        raise HTTPException(status_code=422, detail="end_date cannot be before start_date")

    return lifecycle.list(
        provider_id=provider_id,
        customer_id=customer_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )


@router.post("/appointments/check-availability", response_model=AvailabilityResponse)
def check_availability(
    payload: AvailabilityCheck,
    engine: AvailabilityEngine = Depends(get_availability_engine),
):
    try:
        interval = Interval(payload.start, payload.end)
    except BookingError as exc:
        raise to_http_error(exc)

    result = engine.check_availability(
        payload.provider_id,
        payload.service_id,
        interval,
        payload.exclude_appointment_id,
    )

    return AvailabilityResponse(
        available=result.available,
        conflicts=ConflictCounts(
            same_service=result.same_service_conflicts,
            other_services=result.other_service_conflicts,
            total=result.total_conflicts,
        ),
        attendants_number=result.attendants_number,
        blocking_periods=[BlockedPeriodPublic.model_validate(p) for p in result.blocking_periods],
    )


@router.post("/appointments/conflicts", response_model=ConflictsResponse)
def get_conflicts(
    payload: ConflictsQuery,
    engine: AvailabilityEngine = Depends(get_availability_engine),
):
    try:
        interval = Interval(payload.start, payload.end)
    except BookingError as exc:
        raise to_http_error(exc)

    records = engine.get_conflicting_appointments(
        payload.provider_id,
        interval,
        payload.exclude_appointment_id,
    )

    return ConflictsResponse(
        conflict_count=len(records),
        has_conflicts=bool(records),
        conflicts=[_conflict_public(record) for record in records],
    )


@router.get("/appointments/{appt_id}", response_model=AppointmentPublic)
def get_appointment(
    appt_id: int,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    try:
        return lifecycle.get(appt_id)
    except BookingError as exc:
        raise to_http_error(exc)


@router.put("/appointments/{appt_id}", response_model=AppointmentPublic)
def update_appointment(
    appt_id: int,
    changes: AppointmentUpdate,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    try:
        return lifecycle.update(appt_id, changes)
    except BookingError as exc:
        raise to_http_error(exc)


@router.delete("/appointments/{appt_id}", status_code=204)
def delete_appointment(
    appt_id: int,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    try:
        lifecycle.delete(appt_id)
    except BookingError as exc:
        raise to_http_error(exc)


@router.patch("/appointments/{appt_id}/confirm", response_model=AppointmentPublic)
def confirm_appointment(
    appt_id: int,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    try:
        return lifecycle.confirm(appt_id)
    except BookingError as exc:
        raise to_http_error(exc)


@router.patch("/appointments/{appt_id}/cancel", response_model=AppointmentPublic)
def cancel_appointment(
    appt_id: int,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    try:
        return lifecycle.cancel(appt_id)
    except BookingError as exc:
        raise to_http_error(exc)


@router.patch("/appointments/{appt_id}/complete", response_model=AppointmentPublic)
def complete_appointment(
    appt_id: int,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    try:
        return lifecycle.complete(appt_id)
    except BookingError as exc:
        raise to_http_error(exc)


def _conflict_public(record: ConflictRecord) -> ConflictPublic:
    appt = record.appointment
    service = record.service
    customer = record.customer

    return ConflictPublic(
        id=appt.id,
        start=appt.start,
        end=appt.end,
        time_range=appt.time_range,
        status=appt.status,
        is_unavailability=appt.is_unavailability,
        service=ServiceRef(id=service.id, name=service.name) if service else ServiceRef(),
        customer=CustomerRef(id=customer.id, name=customer.full_name) if customer else CustomerRef(),
    )
