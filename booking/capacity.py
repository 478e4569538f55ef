# booking/capacity.py

from typing import Optional

from booking.core import Interval
from booking.repositories import AppointmentStore


class CapacityCounter:
    """Counts a provider's bookings overlapping an interval, split by service.

    Only regular (non-unavailability), non-cancelled appointments count.
    Unknown provider or service ids simply give zero.
    """

    def __init__(self, appointments: AppointmentStore):
        self.appointments = appointments

    def count_same_service(
        self,
        provider_id: int,
        service_id: int,
        interval: Interval,
        exclude_id: Optional[int] = None,
    ) -> int:
        return self.appointments.count_overlapping(
            provider_id, interval, service_id=service_id, exclude_id=exclude_id
        )

    def count_other_services(
        self,
        provider_id: int,
        service_id: int,
        interval: Interval,
        exclude_id: Optional[int] = None,
    ) -> int:
        return self.appointments.count_overlapping(
            provider_id, interval, other_than_service_id=service_id, exclude_id=exclude_id
        )
