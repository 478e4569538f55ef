# booking/deps.py

from fastapi import Depends, HTTPException
from sqlmodel import Session

from booking.availability import AvailabilityEngine
from booking.blocked_periods import BlockedPeriodIndex, BlockedPeriodManager
from booking.config import settings
from booking.db import get_session
from booking.errors import (
    BlockedPeriodOverlapError,
    BookingError,
    ConflictError,
    ExhaustionError,
    NotFoundError,
    StateTransitionError,
)
from booking.lifecycle import AppointmentLifecycle
from booking.locking import WriteLocks
from booking.repositories import (
    SqlAppointmentStore,
    SqlBlockedPeriodStore,
    SqlServiceCatalog,
    SqlUserDirectory,
)

# shared by every request in this process
write_locks = WriteLocks()


def get_blocked_period_index(session: Session = Depends(get_session)) -> BlockedPeriodIndex:
    return BlockedPeriodIndex(SqlBlockedPeriodStore(session))


def get_blocked_period_manager(session: Session = Depends(get_session)) -> BlockedPeriodManager:
    return BlockedPeriodManager(SqlBlockedPeriodStore(session), write_locks)


def build_engine(session: Session) -> AvailabilityEngine:
    return AvailabilityEngine(
        SqlAppointmentStore(session),
        BlockedPeriodIndex(SqlBlockedPeriodStore(session)),
        SqlServiceCatalog(session),
    )


def get_availability_engine(session: Session = Depends(get_session)) -> AvailabilityEngine:
    return build_engine(session)


def get_lifecycle(session: Session = Depends(get_session)) -> AppointmentLifecycle:
    return AppointmentLifecycle(
        appointments=SqlAppointmentStore(session),
        users=SqlUserDirectory(session),
        services=SqlServiceCatalog(session),
        engine=build_engine(session),
        locks=write_locks,
        settings=settings,
    )


def to_http_error(exc: BookingError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=exc.message)

    if isinstance(exc, BlockedPeriodOverlapError):
        return HTTPException(
            status_code=409,
            detail={
                "message": exc.message,
                "overlapping_periods": [{"id": p.id, "name": p.name} for p in exc.overlapping],
            },
        )

    if isinstance(exc, ConflictError):
        detail = {"message": exc.message}
        result = exc.result
        if result is not None:
            detail["conflicts"] = {
                "same_service": result.same_service_conflicts,
                "other_services": result.other_service_conflicts,
                "total": result.total_conflicts,
            }
            detail["blocking_periods"] = [{"id": p.id, "name": p.name} for p in result.blocking_periods]
        return HTTPException(status_code=409, detail=detail)

    if isinstance(exc, StateTransitionError):
        return HTTPException(status_code=409, detail=exc.message)

    if isinstance(exc, ExhaustionError):
        return HTTPException(status_code=503, detail=exc.message)

    # ValidationError, InvalidReferenceError
    return HTTPException(status_code=422, detail=exc.message)
