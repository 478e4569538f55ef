# booking/repositories.py

"""
Data access for the booking engine.

The engine only talks to the protocols declared here; the ``Sql*`` classes are
the SQLModel implementations used by the API. All of them share the request's
session, so the lock taken by ``lock_provider`` lives as long as the write
that follows it.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Protocol

from sqlalchemy import func, text
from sqlmodel import Session, col, select

from booking.core import Interval, overlap_clause
from booking.models import Appointment, BlockedPeriod, Role, Service, User
from booking.schemas import AppointmentStatus


@dataclass
class ConflictRecord:
    appointment: Appointment
    service: Optional[Service] = None
    customer: Optional[User] = None


class AppointmentStore(Protocol):
    def get(self, appointment_id: int) -> Optional[Appointment]: ...
    def reload(self, appointment_id: int) -> Optional[Appointment]: ...
    def save(self, appointment: Appointment) -> Appointment: ...
    def delete(self, appointment: Appointment) -> None: ...
    def rollback(self) -> None: ...
    def hash_exists(self, value: str) -> bool: ...
    def lock_provider(self, provider_id: int) -> None: ...

    def count_overlapping(
        self,
        provider_id: int,
        interval: Interval,
        *,
        service_id: Optional[int] = None,
        other_than_service_id: Optional[int] = None,
        exclude_id: Optional[int] = None,
    ) -> int: ...

    def conflicting(
        self, provider_id: int, interval: Interval, exclude_id: Optional[int] = None
    ) -> List[ConflictRecord]: ...

    def list(self, **filters) -> List[Appointment]: ...


class BlockedPeriodStore(Protocol):
    def get(self, blocked_period_id: int) -> Optional[BlockedPeriod]: ...
    def save(self, blocked_period: BlockedPeriod) -> BlockedPeriod: ...
    def delete(self, blocked_period: BlockedPeriod) -> None: ...
    def rollback(self) -> None: ...
    def lock_for_write(self) -> None: ...
    def list(self, limit: int = 100, offset: int = 0) -> List[BlockedPeriod]: ...
    def overlapping(self, interval: Interval, exclude_id: Optional[int] = None) -> List[BlockedPeriod]: ...
    def covering(self, interval: Interval) -> List[BlockedPeriod]: ...


class UserDirectory(Protocol):
    def exists(self, user_id: int) -> bool: ...
    def has_role(self, user_id: int, slug: str) -> bool: ...


class ServiceCatalog(Protocol):
    def get(self, service_id: int) -> Optional[Service]: ...
    def exists(self, service_id: int) -> bool: ...
    def attendants_number(self, service_id: int) -> Optional[int]: ...


class SqlAppointmentStore:
    def __init__(self, session: Session):
        self.session = session

    def get(self, appointment_id: int) -> Optional[Appointment]:
        return self.session.get(Appointment, appointment_id)

    def reload(self, appointment_id: int) -> Optional[Appointment]:
        # bypass the identity map so the row reflects what other sessions committed
        return self.session.get(Appointment, appointment_id, populate_existing=True)

    def save(self, appointment: Appointment) -> Appointment:
        self.session.add(appointment)
        self.session.commit()
        self.session.refresh(appointment)
        return appointment

    def delete(self, appointment: Appointment) -> None:
        self.session.delete(appointment)
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def hash_exists(self, value: str) -> bool:
        return self.session.exec(select(Appointment.id).where(Appointment.hash == value)).first() is not None

    def lock_provider(self, provider_id: int) -> None:
        # SELECT ... FOR UPDATE on the provider row; a no-op on SQLite
        self.session.exec(select(User.id).where(User.id == provider_id).with_for_update()).first()

    def count_overlapping(
        self,
        provider_id: int,
        interval: Interval,
        *,
        service_id: Optional[int] = None,
        other_than_service_id: Optional[int] = None,
        exclude_id: Optional[int] = None,
    ) -> int:
        stmt = (
            select(func.count())
            .select_from(Appointment)
            .where(Appointment.provider_id == provider_id)
            .where(col(Appointment.is_unavailability).is_(False))
            .where(Appointment.status != AppointmentStatus.cancelled)
            .where(overlap_clause(col(Appointment.start), col(Appointment.end), interval))
        )
        if service_id is not None:
            stmt = stmt.where(Appointment.service_id == service_id)
        if other_than_service_id is not None:
            stmt = stmt.where(Appointment.service_id != other_than_service_id)
        if exclude_id is not None:
            stmt = stmt.where(Appointment.id != exclude_id)
        return self.session.exec(stmt).one()

    def conflicting(
        self, provider_id: int, interval: Interval, exclude_id: Optional[int] = None
    ) -> List[ConflictRecord]:
        stmt = (
            select(Appointment, Service, User)
            .join(Service, col(Appointment.service_id) == col(Service.id), isouter=True)
            .join(User, col(Appointment.customer_id) == col(User.id), isouter=True)
            .where(Appointment.provider_id == provider_id)
            .where(overlap_clause(col(Appointment.start), col(Appointment.end), interval))
        )
        if exclude_id is not None:
            stmt = stmt.where(Appointment.id != exclude_id)
        stmt = stmt.order_by(col(Appointment.start), col(Appointment.id))

        return [
            ConflictRecord(appointment=appointment, service=service, customer=customer)
            for appointment, service, customer in self.session.exec(stmt).all()
        ]

    def list(
        self,
        *,
        provider_id: Optional[int] = None,
        customer_id: Optional[int] = None,
        status: Optional[AppointmentStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Appointment]:
        stmt = select(Appointment).where(col(Appointment.is_unavailability).is_(False))

        if provider_id is not None:
            stmt = stmt.where(Appointment.provider_id == provider_id)
        if customer_id is not None:
            stmt = stmt.where(Appointment.customer_id == customer_id)
        if status is not None:
            stmt = stmt.where(Appointment.status == status)
        if start_date is not None and end_date is not None:
            window = Interval(
                datetime.combine(start_date, time.min),
                datetime.combine(end_date, time.min) + timedelta(days=1),
            )
            stmt = stmt.where(overlap_clause(col(Appointment.start), col(Appointment.end), window))

        stmt = stmt.order_by(col(Appointment.start)).offset(offset).limit(limit)
        return list(self.session.exec(stmt).all())


class SqlBlockedPeriodStore:
    def __init__(self, session: Session):
        self.session = session

    def get(self, blocked_period_id: int) -> Optional[BlockedPeriod]:
        return self.session.get(BlockedPeriod, blocked_period_id)

    def save(self, blocked_period: BlockedPeriod) -> BlockedPeriod:
        self.session.add(blocked_period)
        self.session.commit()
        self.session.refresh(blocked_period)
        return blocked_period

    def delete(self, blocked_period: BlockedPeriod) -> None:
        self.session.delete(blocked_period)
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def lock_for_write(self) -> None:
        # held until commit/rollback; other dialects rely on WriteLocks alone,
        # i.e. a single process
        if self.session.get_bind().dialect.name == "postgresql":
            self.session.connection().execute(text(f"LOCK TABLE {BlockedPeriod.__tablename__} IN SHARE ROW EXCLUSIVE MODE"))

    def list(self, limit: int = 100, offset: int = 0) -> List[BlockedPeriod]:
        stmt = select(BlockedPeriod).order_by(col(BlockedPeriod.start)).offset(offset).limit(limit)
        return list(self.session.exec(stmt).all())

    def overlapping(self, interval: Interval, exclude_id: Optional[int] = None) -> List[BlockedPeriod]:
        stmt = select(BlockedPeriod).where(
            overlap_clause(col(BlockedPeriod.start), col(BlockedPeriod.end), interval)
        )
        if exclude_id is not None:
            stmt = stmt.where(BlockedPeriod.id != exclude_id)
        stmt = stmt.order_by(col(BlockedPeriod.start))
        return list(self.session.exec(stmt).all())

    def covering(self, interval: Interval) -> List[BlockedPeriod]:
        stmt = (
            select(BlockedPeriod)
            .where(BlockedPeriod.start <= interval.start)
            .where(BlockedPeriod.end >= interval.end)
            .order_by(col(BlockedPeriod.start))
        )
        return list(self.session.exec(stmt).all())


class SqlUserDirectory:
    def __init__(self, session: Session):
        self.session = session

    def exists(self, user_id: int) -> bool:
        return self.session.get(User, user_id) is not None

    def has_role(self, user_id: int, slug: str) -> bool:
        stmt = (
            select(User.id)
            .join(Role, col(User.role_id) == col(Role.id))
            .where(User.id == user_id)
            .where(Role.slug == slug)
        )
        return self.session.exec(stmt).first() is not None


class SqlServiceCatalog:
    def __init__(self, session: Session):
        self.session = session

    def get(self, service_id: int) -> Optional[Service]:
        return self.session.get(Service, service_id)

    def exists(self, service_id: int) -> bool:
        return self.get(service_id) is not None

    def attendants_number(self, service_id: int) -> Optional[int]:
        service = self.get(service_id)
        return service.attendants_number if service else None
