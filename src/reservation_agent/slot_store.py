"""In-memory availability and booking store."""

from __future__ import annotations

import secrets
import string
import threading
from typing import Mapping, Optional

import structlog

from .errors import SlotUnavailable
from .models import AlternateSlot, AvailabilityResult, Booking, BookingResult, SlotKey
from .seed import AvailabilityTable, default_availability
from .utils import clock_minutes, minutes_apart

LOGGER = structlog.get_logger(__name__)

ALTERNATE_WINDOW_MINUTES = 30
CONFIRMATION_PREFIX = "RES-"
CONFIRMATION_ALPHABET = string.ascii_uppercase + string.digits
CONFIRMATION_LENGTH = 9

MESSAGE_SLOT_AVAILABLE = "slot is available"
MESSAGE_NO_DATE = "no availability for this date"
MESSAGE_NEARBY_FOUND = "requested slot unavailable, nearby slots found"
MESSAGE_NOTHING_NEARBY = "no suitable slot within 30 minutes"


class SlotStore:
    """Per-date/time/party-size availability flags plus the booking log.

    ``reserve`` is an atomic check-and-set on a single key: each key has its own
    lock, so concurrent callers for the same slot are serialised while other
    slots stay independent. Flags only ever move from ``True`` to ``False``.
    """

    def __init__(self, availability: Optional[Mapping[str, Mapping[str, Mapping[int, bool]]]] = None):
        table = default_availability() if availability is None else availability
        self._availability: AvailabilityTable = {
            date: {
                time: {int(size): bool(flag) for size, flag in sizes.items()}
                for time, sizes in times.items()
            }
            for date, times in table.items()
        }
        self._bookings: list[Booking] = []
        self._issued_codes: set[str] = set()
        # The key set is fixed here; reserve never creates locks for unseeded slots.
        self._key_locks: dict[SlotKey, threading.Lock] = {
            SlotKey(date, time, size): threading.Lock()
            for date, times in self._availability.items()
            for time, sizes in times.items()
            for size in sizes
        }
        self._log_lock = threading.Lock()

    def dates(self) -> list[str]:
        """Seeded dates, in calendar order."""
        return sorted(self._availability)

    @property
    def bookings(self) -> tuple[Booking, ...]:
        """Snapshot of the booking log in commit order."""
        with self._log_lock:
            return tuple(self._bookings)

    def is_available(self, date: str, time: str, party_size: int) -> bool:
        return self._availability.get(date, {}).get(time, {}).get(party_size, False)

    def query_availability(self, date: str, time: str, party_size: int) -> AvailabilityResult:
        """Look up a slot and, when it is taken, nearby times on the same date."""
        day = self._availability.get(date)
        if not day:
            LOGGER.info("store.query.no_date", date=date)
            return AvailabilityResult(available=False, message=MESSAGE_NO_DATE)

        snapshot = {slot_time: sizes.get(party_size, False) for slot_time, sizes in list(day.items())}

        if snapshot.get(time, False):
            return AvailabilityResult(
                available=True,
                alternates=[AlternateSlot(time=time, available=True)],
                message=MESSAGE_SLOT_AVAILABLE,
            )

        candidates = sorted(
            (
                AlternateSlot(time=slot_time, available=flag)
                for slot_time, flag in snapshot.items()
                if minutes_apart(slot_time, time) <= ALTERNATE_WINDOW_MINUTES
            ),
            key=lambda slot: clock_minutes(slot.time),
        )
        open_candidates = [slot for slot in candidates if slot.available]

        LOGGER.info(
            "store.query.unavailable",
            date=date,
            time=time,
            party_size=party_size,
            candidates=len(candidates),
            open_candidates=len(open_candidates),
        )

        if open_candidates:
            return AvailabilityResult(
                available=False,
                alternates=open_candidates,
                message=MESSAGE_NEARBY_FOUND,
            )
        return AvailabilityResult(available=False, message=MESSAGE_NOTHING_NEARBY)

    def reserve(self, date: str, time: str, party_size: int) -> BookingResult:
        """Book a slot; raises ``SlotUnavailable`` if it is missing or taken."""
        lock = self._key_locks.get(SlotKey(date, time, party_size))
        if lock is None:
            LOGGER.info("store.reserve.unknown_slot", date=date, time=time, party_size=party_size)
            raise SlotUnavailable(date, time, party_size)

        with lock:
            sizes = self._availability.get(date, {}).get(time)
            if not sizes or not sizes.get(party_size, False):
                LOGGER.info("store.reserve.unavailable", date=date, time=time, party_size=party_size)
                raise SlotUnavailable(date, time, party_size)

            sizes[party_size] = False
            with self._log_lock:
                code = self._new_confirmation_code()
                self._bookings.append(Booking(date, time, party_size, code))

        LOGGER.info(
            "store.reserve.success",
            date=date,
            time=time,
            party_size=party_size,
            confirmation_code=code,
        )
        return BookingResult(success=True, confirmation_code=code, message="Booking successful.")

    def _new_confirmation_code(self) -> str:
        # Caller holds the log lock.
        while True:
            suffix = "".join(secrets.choice(CONFIRMATION_ALPHABET) for _ in range(CONFIRMATION_LENGTH))
            code = f"{CONFIRMATION_PREFIX}{suffix}"
            if code not in self._issued_codes:
                self._issued_codes.add(code)
                return code
