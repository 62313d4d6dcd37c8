"""
Contract tests shared by the in-memory and SQL booking stores.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, time

import pytest
from sqlalchemy.exc import OperationalError

from slotengine.adapters import sql_booking_store
from slotengine.adapters.sql_booking_store import SqlBookingStore, create_booking_engine, is_serialization_failure
from slotengine.domain.exceptions import AlreadyCancelled, SlotUnavailable
from slotengine.domain.models import BookingStatus

from conftest import MONDAY, make_booking


class TestReservation:
    """Tests for insert_confirmed."""

    def test_insert_and_read_back(self, booking_store):
        """A stored booking is readable by id and by token."""
        stored = booking_store.insert_confirmed(make_booking())

        assert stored.booking_id == "b1"
        assert stored.status == BookingStatus.CONFIRMED
        assert stored.created_at is not None
        assert booking_store.get("b1").start_time == time(10, 30)
        assert booking_store.get_by_token("token-b1").booking_id == "b1"

    def test_same_start_is_rejected(self, booking_store):
        """A second booking at the same start is already booked."""
        booking_store.insert_confirmed(make_booking("b1"))

        with pytest.raises(SlotUnavailable) as exc_info:
            booking_store.insert_confirmed(make_booking("b2"))

        assert exc_info.value.provider_id == "dr-meier"
        assert exc_info.value.start_time == time(10, 30)
        assert exc_info.value.reason == "already booked"
        assert booking_store.get("b2") is None

    def test_overlapping_session_is_rejected(self, booking_store):
        """A session overlapping a confirmed one is rejected."""
        booking_store.insert_confirmed(make_booking("b1", start="10:30", end="11:30"))

        with pytest.raises(SlotUnavailable, match="overlaps booking b1"):
            booking_store.insert_confirmed(make_booking("b2", start="11:00", end="12:00"))

    def test_adjacent_session_is_accepted(self, booking_store):
        """Back-to-back sessions do not conflict."""
        booking_store.insert_confirmed(make_booking("b1", start="10:30", end="11:30"))

        booking_store.insert_confirmed(make_booking("b2", start="11:30", end="12:30"))

        assert len(booking_store.list_confirmed("dr-meier", MONDAY, MONDAY)) == 2

    def test_other_provider_may_take_same_start(self, booking_store):
        """Slots are per provider."""
        booking_store.insert_confirmed(make_booking("b1"))

        booking_store.insert_confirmed(make_booking("b2", provider_id="dr-keller"))

        assert booking_store.get("b2").provider_id == "dr-keller"

    def test_cancelled_slot_can_be_reserved_again(self, booking_store):
        """Cancelled bookings release their slot."""
        booking_store.insert_confirmed(make_booking("b1"))
        assert booking_store.mark_cancelled("b1")

        booking_store.insert_confirmed(make_booking("b2"))

        assert [b.booking_id for b in booking_store.list_confirmed("dr-meier", MONDAY, MONDAY)] == ["b2"]

    def test_concurrent_requests_for_one_slot(self, booking_store):
        """Exactly one of many simultaneous reservations succeeds."""
        workers = 8
        barrier = threading.Barrier(workers)

        def attempt(index):
            barrier.wait()
            try:
                return booking_store.insert_confirmed(make_booking(f"race{index}"))
            except SlotUnavailable:
                return None

        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(attempt, range(workers)))

        winners = [r for r in results if r is not None]
        assert len(winners) == 1
        assert len(booking_store.list_confirmed("dr-meier", MONDAY, MONDAY)) == 1


class TestQueries:
    """Tests for list_confirmed and lookups."""

    def test_list_confirmed_filters_and_orders(self, booking_store):
        """Only confirmed bookings of the provider and range come back, in order."""
        booking_store.insert_confirmed(make_booking("late", start="15:00", end="16:00"))
        booking_store.insert_confirmed(make_booking("early", start="09:00", end="10:00"))
        booking_store.insert_confirmed(make_booking("next-day", day=date(2025, 12, 16)))
        booking_store.insert_confirmed(make_booking("outside", day=date(2025, 12, 30)))
        booking_store.insert_confirmed(make_booking("other", provider_id="dr-keller"))
        booking_store.insert_confirmed(make_booking("gone", start="12:00", end="13:00"))
        booking_store.mark_cancelled("gone")

        found = booking_store.list_confirmed("dr-meier", MONDAY, date(2025, 12, 16))

        assert [b.booking_id for b in found] == ["early", "late", "next-day"]

    def test_unknown_lookups_return_none(self, booking_store):
        """Missing ids and tokens give None."""
        assert booking_store.get("missing") is None
        assert booking_store.get_by_token("missing") is None


class TestCancellation:
    """Tests for mark_cancelled."""

    def test_second_cancellation_reports_false(self, booking_store):
        """Only the first cancellation changes the row."""
        booking_store.insert_confirmed(make_booking())

        assert booking_store.mark_cancelled("b1") is True
        assert booking_store.mark_cancelled("b1") is False
        assert booking_store.get("b1").status == BookingStatus.CANCELLED

    def test_unknown_booking_reports_false(self, booking_store):
        """Cancelling a missing booking changes nothing."""
        assert booking_store.mark_cancelled("missing") is False


class TestMove:
    """Tests for move."""

    def test_move_to_free_slot(self, booking_store):
        """A move keeps the booking id and token."""
        booking_store.insert_confirmed(make_booking())

        moved = booking_store.move("b1", date(2025, 12, 22), time(9, 0), time(10, 0))

        assert moved.date == date(2025, 12, 22)
        assert moved.start_time == time(9, 0)
        assert moved.cancellation_token == "token-b1"
        assert booking_store.list_confirmed("dr-meier", MONDAY, MONDAY) == []

    def test_move_within_own_slot_is_allowed(self, booking_store):
        """The booking does not conflict with itself."""
        booking_store.insert_confirmed(make_booking(start="10:30", end="11:30"))

        moved = booking_store.move("b1", MONDAY, time(11, 0), time(12, 0))

        assert moved.start_time == time(11, 0)

    def test_move_onto_taken_slot_is_rejected(self, booking_store):
        """A rejected move leaves the booking where it was."""
        booking_store.insert_confirmed(make_booking("b1", start="09:00", end="10:00"))
        booking_store.insert_confirmed(make_booking("b2", start="10:30", end="11:30"))

        with pytest.raises(SlotUnavailable):
            booking_store.move("b1", MONDAY, time(10, 30), time(11, 30))

        assert booking_store.get("b1").start_time == time(9, 0)

    def test_move_cancelled_booking_is_rejected(self, booking_store):
        """Cancelled bookings cannot be moved."""
        booking_store.insert_confirmed(make_booking())
        booking_store.mark_cancelled("b1")

        with pytest.raises(AlreadyCancelled):
            booking_store.move("b1", MONDAY, time(9, 0), time(10, 0))


class TestSqlEngine:
    """Tests for the engine setup."""

    def test_in_memory_database(self):
        """An in-memory SQLite database works end to end."""
        store = SqlBookingStore(create_booking_engine("sqlite://"))
        store.create_schema()
        store.insert_confirmed(make_booking())

        assert store.get("b1") is not None

    def test_file_database_persists_across_stores(self, tmp_path):
        """Stores sharing a file see each other's bookings."""
        url = f"sqlite:///{tmp_path / 'shared.db'}"
        SqlBookingStore.from_url(url).insert_confirmed(make_booking())

        assert SqlBookingStore.from_url(url).get("b1").booking_id == "b1"

    def test_other_databases_run_serializable(self, monkeypatch):
        """Non-SQLite engines are created with SERIALIZABLE isolation."""
        captured = {}
        monkeypatch.setattr(
            sql_booking_store, "create_engine", lambda url, **options: captured.update(options, url=url),
        )

        create_booking_engine("postgresql://clinic@localhost/bookings")

        assert captured["isolation_level"] == "SERIALIZABLE"


class _DriverError(Exception):
    def __init__(self, *args, pgcode=None):
        super().__init__(*args)
        self.pgcode = pgcode


def _operational_error(*args, pgcode=None):
    return OperationalError("INSERT INTO bookings", {}, _DriverError(*args, pgcode=pgcode))


class TestSerializationFailures:
    """Tests for losing a serializable race on databases without a write lock."""

    @pytest.mark.parametrize(
        "error",
        [
            _operational_error(pgcode="40001"),
            _operational_error(pgcode="40P01"),
            _operational_error(1213, "Deadlock found when trying to get lock"),
            _operational_error("could not serialize access due to read/write dependencies"),
        ],
    )
    def test_recognised_failures(self, error):
        """Serialization failures and deadlocks count as a lost race."""
        assert is_serialization_failure(error) is True

    def test_other_operational_errors(self):
        """Connection problems are not booking conflicts."""
        assert is_serialization_failure(_operational_error("server closed the connection unexpectedly")) is False

    def test_insert_reports_lost_race_as_unavailable(self, tmp_path, monkeypatch):
        """A serialization failure during reservation surfaces as SlotUnavailable."""
        store = SqlBookingStore.from_url(f"sqlite:///{tmp_path / 'race.db'}")

        def lose_race(*args, **kwargs):
            raise _operational_error(pgcode="40001")

        monkeypatch.setattr(store, "_reject_overlap", lose_race)

        with pytest.raises(SlotUnavailable, match="concurrent booking"):
            store.insert_confirmed(make_booking())

        assert store.get("b1") is None

    def test_move_reports_lost_race_as_unavailable(self, tmp_path, monkeypatch):
        """A serialization failure during a move leaves the booking in place."""
        store = SqlBookingStore.from_url(f"sqlite:///{tmp_path / 'race.db'}")
        store.insert_confirmed(make_booking())

        def lose_race(*args, **kwargs):
            raise _operational_error(pgcode="40001")

        monkeypatch.setattr(store, "_reject_overlap", lose_race)

        with pytest.raises(SlotUnavailable, match="concurrent booking"):
            store.move("b1", MONDAY, time(13, 30), time(14, 30))

        assert store.get("b1").start_time == time(10, 30)

    def test_other_operational_errors_propagate(self, tmp_path, monkeypatch):
        """Storage faults other than a lost race are not masked."""
        store = SqlBookingStore.from_url(f"sqlite:///{tmp_path / 'race.db'}")

        def disk_full(*args, **kwargs):
            raise _operational_error("database or disk is full")

        monkeypatch.setattr(store, "_reject_overlap", disk_full)

        with pytest.raises(OperationalError):
            store.insert_confirmed(make_booking())
