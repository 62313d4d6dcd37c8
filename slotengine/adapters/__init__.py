"""
Adapters layer - Persistence and schedule sources.
"""

from .memory_booking_store import InMemoryBookingStore
from .provider_directory import ProviderDirectory
from .sql_booking_store import SqlBookingStore, create_booking_engine

__all__ = ["InMemoryBookingStore", "ProviderDirectory", "SqlBookingStore", "create_booking_engine"]
