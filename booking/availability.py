# booking/availability.py

"""
Availability engine: the single answer to "can this provider/service/interval
be booked?".

A slot is available only when the provider has no overlapping regular
appointment (same service or any other) and no blocked period overlaps it.
The service's ``attendants_number`` is reported alongside the verdict but is
not used to allow concurrent bookings.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from booking.blocked_periods import BlockedPeriodIndex
from booking.capacity import CapacityCounter
from booking.core import Interval
from booking.models import BlockedPeriod
from booking.repositories import AppointmentStore, ConflictRecord, ServiceCatalog


@dataclass
class AvailabilityResult:
    available: bool
    same_service_conflicts: int
    other_service_conflicts: int
    blocking_periods: List[BlockedPeriod] = field(default_factory=list)
    attendants_number: Optional[int] = None

    @property
    def total_conflicts(self) -> int:
        return self.same_service_conflicts + self.other_service_conflicts

    @property
    def blocked(self) -> bool:
        return bool(self.blocking_periods)


class AvailabilityEngine:
    def __init__(
        self,
        appointments: AppointmentStore,
        blocked_periods: BlockedPeriodIndex,
        services: ServiceCatalog,
    ):
        self.appointments = appointments
        self.counter = CapacityCounter(appointments)
        self.blocked_periods = blocked_periods
        self.services = services

    def check_availability(
        self,
        provider_id: int,
        service_id: int,
        interval: Interval,
        exclude_appointment_id: Optional[int] = None,
    ) -> AvailabilityResult:
        same = self.counter.count_same_service(provider_id, service_id, interval, exclude_appointment_id)
        other = self.counter.count_other_services(provider_id, service_id, interval, exclude_appointment_id)
        blocking = self.blocked_periods.blocking_periods_for(interval)

        return AvailabilityResult(
            available=same == 0 and other == 0 and not blocking,
            same_service_conflicts=same,
            other_service_conflicts=other,
            blocking_periods=blocking,
            attendants_number=self.services.attendants_number(service_id),
        )

    def get_conflicting_appointments(
        self,
        provider_id: int,
        interval: Interval,
        exclude_appointment_id: Optional[int] = None,
    ) -> List[ConflictRecord]:
        """Every appointment of the provider overlapping ``interval``, sorted by start.

        Includes unavailability records and every status, so it can be larger
        than the counts behind the verdict.
        """
        return self.appointments.conflicting(provider_id, interval, exclude_id=exclude_appointment_id)
