"""
SQLAlchemy-backed booking store.

The uniqueness guarantee lives in the database: a partial unique index on
``(provider_id, appointment_date, start_time)`` restricted to confirmed rows.
Reservation is a single insert against that index, so two concurrent
requests for the same slot cannot both commit.

Overlapping sessions with different start times are caught by a read
before the write. That read only holds under a write lock (SQLite
``BEGIN IMMEDIATE``) or ``SERIALIZABLE`` isolation on other databases,
where a losing transaction fails to serialize and is reported as
``SlotUnavailable``.
"""

from __future__ import annotations

import logging
from datetime import date, time
from typing import List, Optional

from sqlalchemy import Column, Date, DateTime, Index, String, create_engine, event, select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import func

from ..domain.exceptions import AlreadyCancelled, SlotUnavailable
from ..domain.interval_math import format_time, parse_time, ranges_overlap
from ..domain.models import Booking, BookingStatus

logger = logging.getLogger(__name__)

Base = declarative_base()

ACTIVE_STATUS = BookingStatus.CONFIRMED.value

# SQLSTATE for serialization failure and deadlock, MySQL deadlock and lock wait timeout
SERIALIZATION_SQLSTATES = ("40001", "40P01")
SERIALIZATION_MYSQL_CODES = (1213, 1205)


class BookingRecord(Base):
    """
    Persistent booking row.
    Times are stored as HH:MM strings in local business time.
    """
    __tablename__ = "bookings"

    id = Column(String(32), primary_key=True)
    provider_id = Column(String(64), nullable=False, index=True)
    appointment_date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    status = Column(String(16), nullable=False, default=ACTIVE_STATUS)
    cancellation_token = Column(String(128), nullable=False, unique=True)
    patient_name = Column(String(200), nullable=True)
    patient_email = Column(String(320), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index(
            "uq_bookings_confirmed_slot",
            "provider_id",
            "appointment_date",
            "start_time",
            unique=True,
            sqlite_where=text(f"status = '{ACTIVE_STATUS}'"),
            postgresql_where=text(f"status = '{ACTIVE_STATUS}'"),
        ),
    )

    @classmethod
    def from_domain(cls, booking: Booking) -> "BookingRecord":
        return cls(
            id=booking.booking_id,
            provider_id=booking.provider_id,
            appointment_date=booking.date,
            start_time=format_time(booking.start_time),
            end_time=format_time(booking.end_time),
            status=booking.status.value,
            cancellation_token=booking.cancellation_token,
            patient_name=booking.patient_name,
            patient_email=booking.patient_email,
        )

    def to_domain(self) -> Booking:
        return Booking(
            booking_id=self.id,
            provider_id=self.provider_id,
            date=self.appointment_date,
            start_time=parse_time(self.start_time),
            end_time=parse_time(self.end_time),
            cancellation_token=self.cancellation_token,
            status=BookingStatus(self.status),
            patient_name=self.patient_name,
            patient_email=self.patient_email,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def create_booking_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the booking store.

    SQLite transactions start with ``BEGIN IMMEDIATE`` so the overlap check
    and the insert run under the database write lock. In-memory SQLite
    shares one connection and is meant for single-threaded use. Other
    databases run ``SERIALIZABLE``.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_pre_ping=True, isolation_level="SERIALIZABLE")

    options = {"connect_args": {"check_same_thread": False}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    engine = create_engine(database_url, echo=echo, **options)

    @event.listens_for(engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        # pysqlite would otherwise emit a deferred BEGIN on its own
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(connection):
        connection.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def is_serialization_failure(exc: OperationalError) -> bool:
    """Whether the driver error means a concurrent transaction won the race."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code in SERIALIZATION_SQLSTATES:
        return True
    args = getattr(orig, "args", ())
    if args and args[0] in SERIALIZATION_MYSQL_CODES:
        return True
    message = str(exc).lower()
    return "could not serialize access" in message or "deadlock detected" in message


class SqlBookingStore:
    """Booking persistence on any SQLAlchemy-supported database."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str, create_schema: bool = True) -> "SqlBookingStore":
        store = cls(create_booking_engine(database_url))
        if create_schema:
            store.create_schema()
        return store

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    def insert_confirmed(self, booking: Booking) -> Booking:
        with self._session_factory() as session:
            record = BookingRecord.from_domain(booking)
            try:
                self._reject_overlap(
                    session, booking.provider_id, booking.date, booking.start_time, booking.end_time,
                )
                session.add(record)
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise SlotUnavailable(booking.provider_id, booking.date, booking.start_time) from exc
            except OperationalError as exc:
                session.rollback()
                if is_serialization_failure(exc):
                    raise SlotUnavailable(
                        booking.provider_id, booking.date, booking.start_time, reason="concurrent booking",
                    ) from exc
                raise

            session.refresh(record)
            return record.to_domain()

    def list_confirmed(self, provider_id: str, start_date: date, end_date: date) -> List[Booking]:
        query = (
            select(BookingRecord)
            .where(
                BookingRecord.provider_id == provider_id,
                BookingRecord.status == ACTIVE_STATUS,
                BookingRecord.appointment_date >= start_date,
                BookingRecord.appointment_date <= end_date,
            )
            .order_by(BookingRecord.appointment_date, BookingRecord.start_time)
        )
        with self._session_factory() as session:
            return [record.to_domain() for record in session.scalars(query)]

    def get(self, booking_id: str) -> Optional[Booking]:
        with self._session_factory() as session:
            record = session.get(BookingRecord, booking_id)
            return record.to_domain() if record is not None else None

    def get_by_token(self, token: str) -> Optional[Booking]:
        query = select(BookingRecord).where(BookingRecord.cancellation_token == token)
        with self._session_factory() as session:
            record = session.scalars(query).first()
            return record.to_domain() if record is not None else None

    def mark_cancelled(self, booking_id: str) -> bool:
        statement = (
            update(BookingRecord)
            .where(BookingRecord.id == booking_id, BookingRecord.status == ACTIVE_STATUS)
            .values(status=BookingStatus.CANCELLED.value, updated_at=func.now())
        )
        with self._session_factory() as session:
            result = session.execute(statement)
            session.commit()
            return result.rowcount == 1

    def move(self, booking_id: str, new_date: date, start_time: time, end_time: time) -> Booking:
        with self._session_factory() as session:
            record = session.get(BookingRecord, booking_id)
            if record is None or record.status != ACTIVE_STATUS:
                raise AlreadyCancelled(booking_id)

            provider_id = record.provider_id
            try:
                self._reject_overlap(
                    session, provider_id, new_date, start_time, end_time, exclude_id=booking_id,
                )
                record.appointment_date = new_date
                record.start_time = format_time(start_time)
                record.end_time = format_time(end_time)
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise SlotUnavailable(provider_id, new_date, start_time) from exc
            except OperationalError as exc:
                session.rollback()
                if is_serialization_failure(exc):
                    raise SlotUnavailable(provider_id, new_date, start_time, reason="concurrent booking") from exc
                raise

            session.refresh(record)
            return record.to_domain()

    @staticmethod
    def _reject_overlap(
        session: Session,
        provider_id: str,
        day: date,
        start_time: time,
        end_time: time,
        exclude_id: Optional[str] = None,
    ) -> None:
        """Reject a slot overlapping another confirmed booking of the same provider and day."""
        query = select(BookingRecord).where(
            BookingRecord.provider_id == provider_id,
            BookingRecord.appointment_date == day,
            BookingRecord.status == ACTIVE_STATUS,
        )
        for other in session.scalars(query):
            if other.id == exclude_id:
                continue
            if parse_time(other.start_time) == start_time:
                logger.debug("Slot %s %s already booked by %s", day, format_time(start_time), other.id)
                raise SlotUnavailable(provider_id, day, start_time)
            if ranges_overlap(start_time, end_time, parse_time(other.start_time), parse_time(other.end_time)):
                logger.debug("Slot %s %s overlaps booking %s", day, format_time(start_time), other.id)
                raise SlotUnavailable(provider_id, day, start_time, reason=f"overlaps booking {other.id}")
