# booking/lifecycle.py

"""
Appointment lifecycle: creation, rescheduling, deletion and status changes.

Status flow::

    pending --confirm--> confirmed --complete--> completed
    pending|confirmed --cancel--> cancelled

``completed`` and ``cancelled`` are final. Unavailability records carry
``not_applicable`` and reject every transition.

The availability check and the write that follows it run while holding the
provider's write lock, so two racing bookings for one provider cannot both
pass the check. Updates, deletes and status changes re-read the appointment
after taking the lock, so they never act on a status another request has
already changed.
"""
import secrets
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional

from booking.availability import AvailabilityEngine, AvailabilityResult
from booking.config import Settings, settings as default_settings
from booking.core import Interval, utcnow
from booking.errors import (
    BookingError,
    ConflictError,
    ExhaustionError,
    InvalidReferenceError,
    NotFoundError,
    StateTransitionError,
    ValidationError,
)
from booking.locking import WriteLocks
from booking.log import get_logger
from booking.models import Appointment
from booking.repositories import AppointmentStore, ServiceCatalog, UserDirectory
from booking.schemas import AppointmentCreate, AppointmentStatus, AppointmentUpdate, RoleSlug

logger = get_logger(__name__)

TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.pending: frozenset({AppointmentStatus.confirmed, AppointmentStatus.cancelled}),
    AppointmentStatus.confirmed: frozenset({AppointmentStatus.completed, AppointmentStatus.cancelled}),
}

REFERENCE_FIELDS = ("provider_id", "customer_id", "service_id")

UPDATABLE_FIELDS = (
    "start",
    "end",
    "provider_id",
    "customer_id",
    "service_id",
    "location",
    "notes",
    "color",
    "google_calendar_id",
    "caldav_calendar_id",
)


@dataclass(frozen=True)
class HashPolicy:
    """Bounded retry for the appointment hash.

    ``max_attempts`` tokens of ``nbytes`` random bytes are tried; if all of
    them are taken, one longer token is tried, and if that is taken too the
    create fails with ExhaustionError.
    """

    max_attempts: int = 10
    nbytes: int = 16
    fallback_extra_bytes: int = 4

    @classmethod
    def from_settings(cls, settings: Settings) -> "HashPolicy":
        return cls(
            max_attempts=settings.HASH_MAX_ATTEMPTS,
            nbytes=settings.HASH_BYTES,
            fallback_extra_bytes=settings.HASH_FALLBACK_EXTRA_BYTES,
        )

    def generate(
        self,
        is_taken: Callable[[str], bool],
        token_hex: Callable[[int], str] = secrets.token_hex,
    ) -> str:
        for attempt in range(1, self.max_attempts + 1):
            candidate = token_hex(self.nbytes)
            if not is_taken(candidate):
                return candidate
            logger.warning("hash_collision", attempt=attempt)

        candidate = token_hex(self.nbytes + self.fallback_extra_bytes)
        if is_taken(candidate):
            raise ExhaustionError(
                f"Unable to generate unique appointment hash after {self.max_attempts} attempts."
            )
        return candidate


class AppointmentLifecycle:
    def __init__(
        self,
        appointments: AppointmentStore,
        users: UserDirectory,
        services: ServiceCatalog,
        engine: AvailabilityEngine,
        locks: WriteLocks,
        settings: Settings = default_settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.appointments = appointments
        self.users = users
        self.services = services
        self.engine = engine
        self.locks = locks
        self.settings = settings
        self.clock = clock
        self.hash_policy = HashPolicy.from_settings(settings)

    # --- Reads ---

    def get(self, appointment_id: int) -> Appointment:
        appointment = self.appointments.get(appointment_id)
        if appointment is None:
            raise NotFoundError(f"Appointment not found: {appointment_id}")
        return appointment

    def list(self, **filters) -> List[Appointment]:
        return self.appointments.list(**filters)

    # --- Writes ---

    def create(self, data: AppointmentCreate) -> Appointment:
        fields = data.model_dump()
        is_unavailability = data.is_unavailability
        if is_unavailability:
            # unavailability blocks belong to the provider alone
            fields["customer_id"] = None
            fields["service_id"] = None

        # 1) Required fields and interval
        self._require_fields(fields, is_unavailability)
        interval = self._resolve_interval(fields, is_unavailability)

        # 2) Referenced ids
        self._validate_references(fields, is_unavailability)

        provider_id = fields["provider_id"]
        with self.locks.providers(provider_id):
            try:
                self.appointments.lock_provider(provider_id)

                # 3) Availability
                if not is_unavailability:
                    self._ensure_available(provider_id, fields["service_id"], interval)

                # 4) Hash, 5) persist
                appointment = Appointment(
                    book_time=self.clock(),
                    start=interval.start,
                    end=interval.end,
                    location=fields["location"],
                    notes=fields["notes"],
                    hash=self.hash_policy.generate(self.appointments.hash_exists),
                    color=fields["color"] or self.settings.DEFAULT_APPOINTMENT_COLOR,
                    status=AppointmentStatus.not_applicable if is_unavailability else AppointmentStatus.pending,
                    is_unavailability=is_unavailability,
                    provider_id=provider_id,
                    customer_id=fields["customer_id"],
                    service_id=fields["service_id"],
                    google_calendar_id=fields["google_calendar_id"],
                    caldav_calendar_id=fields["caldav_calendar_id"],
                )
                appointment = self.appointments.save(appointment)
            except BookingError:
                self.appointments.rollback()
                raise

        logger.info(
            "appointment_created",
            appointment_id=appointment.id,
            provider_id=provider_id,
            service_id=appointment.service_id,
            is_unavailability=is_unavailability,
        )
        return appointment

    def update(self, appointment_id: int, changes: AppointmentUpdate) -> Appointment:
        changed = changes.model_dump(exclude_unset=True)

        with self._locked(appointment_id, changed.get("provider_id")) as appointment:
            is_unavailability = appointment.is_unavailability
            if is_unavailability and (changed.get("customer_id") or changed.get("service_id")):
                raise ValidationError("Unavailability records cannot have a customer or service.")

            fields = {name: getattr(appointment, name) for name in UPDATABLE_FIELDS}
            fields.update(changed)

            self._require_fields(fields, is_unavailability)
            interval = self._resolve_interval(fields, is_unavailability)
            self._validate_references(
                fields, is_unavailability, names=[name for name in REFERENCE_FIELDS if name in changed]
            )

            if not is_unavailability and appointment.status.is_active:
                self._ensure_available(
                    fields["provider_id"], fields["service_id"], interval, exclude_id=appointment.id
                )

            for name, value in fields.items():
                setattr(appointment, name, value)
            appointment.start = interval.start
            appointment.end = interval.end
            appointment = self.appointments.save(appointment)

        logger.info("appointment_updated", appointment_id=appointment.id, fields=sorted(changed))
        return appointment

    def delete(self, appointment_id: int) -> None:
        with self._locked(appointment_id) as appointment:
            self.appointments.delete(appointment)
        logger.info("appointment_deleted", appointment_id=appointment_id)

    # --- Status transitions ---

    def confirm(self, appointment_id: int) -> Appointment:
        return self._transition(appointment_id, AppointmentStatus.confirmed)

    def cancel(self, appointment_id: int) -> Appointment:
        return self._transition(appointment_id, AppointmentStatus.cancelled)

    def complete(self, appointment_id: int) -> Appointment:
        return self._transition(appointment_id, AppointmentStatus.completed)

    def _transition(self, appointment_id: int, target: AppointmentStatus) -> Appointment:
        with self._locked(appointment_id) as appointment:
            current = appointment.status
            if appointment.is_unavailability:
                raise StateTransitionError("Unavailability records have no status to change.")
            if target not in TRANSITIONS.get(current, frozenset()):
                raise StateTransitionError(_transition_message(current, target))
            if target is AppointmentStatus.completed and not appointment.is_past(self.clock()):
                raise StateTransitionError("Cannot complete an appointment that hasn't ended yet.")

            appointment.status = target
            appointment = self.appointments.save(appointment)

        logger.info(
            "appointment_status_changed",
            appointment_id=appointment.id,
            from_status=current.value,
            to_status=target.value,
        )
        return appointment

    @contextmanager
    def _locked(self, appointment_id: int, *extra_provider_ids: Optional[int]) -> Iterator[Appointment]:
        """Yield the appointment re-read while holding its provider's locks.

        Locks of ``extra_provider_ids`` (an update moving the appointment) are
        taken too. Reads made before the locks were acquired may be stale, so
        status and times are only trusted from the copy yielded here. Any
        BookingError raised inside the block rolls the transaction back.
        """
        while True:
            provider_id = self.get(appointment_id).provider_id
            provider_ids = sorted({provider_id, *(p for p in extra_provider_ids if p is not None)})

            with self.locks.providers(*provider_ids):
                try:
                    for pid in provider_ids:
                        self.appointments.lock_provider(pid)

                    appointment = self.appointments.reload(appointment_id)
                    if appointment is None:
                        raise NotFoundError(f"Appointment not found: {appointment_id}")
                    if appointment.provider_id != provider_id:
                        # moved to another provider while waiting; lock that one instead
                        self.appointments.rollback()
                        continue

                    yield appointment
                except BookingError:
                    self.appointments.rollback()
                    raise
                return

    # --- Validation ---

    def _require_fields(self, fields: dict, is_unavailability: bool) -> None:
        if not is_unavailability:
            if not fields.get("service_id"):
                raise ValidationError("Service is required for regular appointments.")
            if not fields.get("customer_id"):
                raise ValidationError("Customer is required for regular appointments.")

        if not fields.get("provider_id"):
            raise ValidationError("Provider is required for all appointments.")

        if self.settings.REQUIRE_NOTES and not (fields.get("notes") or "").strip():
            raise ValidationError("Notes are required.")

    def _resolve_interval(self, fields: dict, is_unavailability: bool) -> Interval:
        start, end = fields.get("start"), fields.get("end")
        if start is None:
            raise ValidationError("The appointment start date time is required.")

        if end is None:
            if is_unavailability:
                raise ValidationError("The appointment end date time is required.")
            service = self.services.get(fields["service_id"])
            if service is None:
                raise InvalidReferenceError(f"Appointment service id is invalid: {fields['service_id']}")
            end = service.calculate_end(start)

        interval = Interval(start, end)

        minimum = self.settings.MIN_APPOINTMENT_MINUTES
        if interval.minutes < minimum:
            raise ValidationError(f"The appointment duration cannot be less than {minimum} minutes.")
        return interval

    def _validate_references(
        self,
        fields: dict,
        is_unavailability: bool,
        names: Iterable[str] = REFERENCE_FIELDS,
    ) -> None:
        names = set(names)

        if "provider_id" in names:
            self._require_user(fields["provider_id"], RoleSlug.provider)

        if is_unavailability:
            return

        if "customer_id" in names:
            self._require_user(fields["customer_id"], RoleSlug.customer)

        if "service_id" in names and not self.services.exists(fields["service_id"]):
            raise InvalidReferenceError(f"Appointment service id is invalid: {fields['service_id']}")

    def _require_user(self, user_id: int, role: RoleSlug) -> None:
        if not self.users.exists(user_id):
            raise InvalidReferenceError(f"The appointment {role.value} ID was not found in the database: {user_id}")
        if not self.users.has_role(user_id, role.value):
            raise InvalidReferenceError(f"User {user_id} does not have the {role.value} role.")

    def _ensure_available(
        self,
        provider_id: int,
        service_id: int,
        interval: Interval,
        exclude_id: Optional[int] = None,
    ) -> AvailabilityResult:
        result = self.engine.check_availability(provider_id, service_id, interval, exclude_id)
        if not result.available:
            logger.info(
                "availability_conflict",
                provider_id=provider_id,
                service_id=service_id,
                same_service=result.same_service_conflicts,
                other_services=result.other_service_conflicts,
                blocked=result.blocked,
            )
            if result.blocked:
                message = "This time slot is not available. It falls within a blocked period."
            else:
                message = "This time slot is not available. The provider has conflicting appointments."
            raise ConflictError(message, result=result)
        return result


def _transition_message(current: AppointmentStatus, target: AppointmentStatus) -> str:
    if target is AppointmentStatus.cancelled:
        if current is AppointmentStatus.cancelled:
            return "Appointment is already cancelled."
        return f"Cannot cancel a {current.value} appointment."
    if target is AppointmentStatus.confirmed:
        return "Only pending appointments can be confirmed."
    return "Only confirmed appointments can be marked as completed."
