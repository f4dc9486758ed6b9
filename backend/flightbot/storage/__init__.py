"""Storage module - document store interface, local backend and repositories."""

from .interface import StorageInterface
from .local_storage import LocalStorage
from .user_storage import UserStorage, init_user_storage, get_user_storage
from .flight_storage import FlightStorage, init_flight_storage, get_flight_storage
from .booking_storage import BookingStorage, init_booking_storage, get_booking_storage
from .chat_storage import ChatStorage, init_chat_storage, get_chat_storage


def init_all_storage(storage: StorageInterface) -> None:
    """Point every repository at the same document store."""
    init_user_storage(storage)
    init_flight_storage(storage)
    init_booking_storage(storage)
    init_chat_storage(storage)


__all__ = [
    'StorageInterface', 'LocalStorage', 'init_all_storage',
    'UserStorage', 'init_user_storage', 'get_user_storage',
    'FlightStorage', 'init_flight_storage', 'get_flight_storage',
    'BookingStorage', 'init_booking_storage', 'get_booking_storage',
    'ChatStorage', 'init_chat_storage', 'get_chat_storage',
]
