"""
Booking Storage - booking documents plus a reference lookup index.

Layout:
    bookings/<booking_id>.json
    bookings/reference_index.json   (booking reference -> booking_id)
"""

import json
import logging
from typing import Dict, List, Optional

from pydantic import ValidationError

from ..models.booking import Booking
from .interface import StorageInterface
from .local_storage import LocalStorage

logger = logging.getLogger(__name__)


class BookingStorage:
    """Manages persistent storage of bookings."""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.bookings_dir = "bookings"
        self._reference_index_path = f"{self.bookings_dir}/reference_index.json"

    def _booking_path(self, booking_id: str) -> str:
        return f"{self.bookings_dir}/{booking_id}.json"

    async def _load_reference_index(self) -> Dict[str, str]:
        content = await self.storage.load(self._reference_index_path)
        if content is None:
            return {}
        try:
            return json.loads(content.decode('utf-8'))
        except ValueError:
            logger.error("Booking reference index is corrupt, treating as empty")
            return {}

    async def save_booking(self, booking: Booking) -> bool:
        """Write the booking and make sure its reference is indexed."""
        saved = await self.storage.save(
            self._booking_path(booking.booking_id),
            booking.model_dump_json(indent=2)
        )
        if not saved:
            return False

        index = await self._load_reference_index()
        if index.get(booking.booking_reference) != booking.booking_id:
            index[booking.booking_reference] = booking.booking_id
            await self.storage.save(self._reference_index_path, json.dumps(index, indent=2))
        return True

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        content = await self.storage.load(self._booking_path(booking_id))
        if content is None:
            return None
        try:
            return Booking.model_validate_json(content)
        except ValidationError as e:
            logger.error(f"Stored booking {booking_id} is invalid: {e}")
            return None

    async def reference_exists(self, reference: str) -> bool:
        index = await self._load_reference_index()
        return reference.upper() in index

    async def get_by_reference(self, reference: str) -> Optional[Booking]:
        index = await self._load_reference_index()
        booking_id = index.get(reference.upper())
        if booking_id is None:
            return None
        return await self.get_booking(booking_id)

    async def list_bookings(self) -> List[Booking]:
        bookings = []
        for path in await self.storage.list(self.bookings_dir, pattern="*.json"):
            if path.endswith("reference_index.json"):
                continue
            content = await self.storage.load(path)
            if content is None:
                continue
            try:
                bookings.append(Booking.model_validate_json(content))
            except ValidationError:
                logger.warning(f"Skipping invalid booking document {path}")
        return bookings

    async def list_user_bookings(self, user_id: str) -> List[Booking]:
        """A user's bookings, newest first."""
        bookings = [b for b in await self.list_bookings() if b.user_id == user_id]
        bookings.sort(key=lambda b: b.booking_date, reverse=True)
        return bookings


# Global booking storage instance
_booking_storage: Optional[BookingStorage] = None


def init_booking_storage(storage: Optional[StorageInterface] = None):
    global _booking_storage
    _booking_storage = BookingStorage(storage or LocalStorage())


def get_booking_storage() -> BookingStorage:
    if _booking_storage is None:
        raise RuntimeError("Booking storage not initialized. Call init_booking_storage() first.")
    return _booking_storage
