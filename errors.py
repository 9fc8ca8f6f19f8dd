class HotelError(Exception):
    """Base class for front desk errors."""


class ValidationError(HotelError, ValueError):
    """Booking request rejected before any store access."""


class Underage(ValidationError):
    def __init__(self, age: int):
        super().__init__(f"Guest must be 18 or above to book a room (got {age})")
        self.age = age


class InvalidRoomNumber(HotelError, ValueError):
    def __init__(self, room_number):
        super().__init__(f"Room {room_number} does not follow the floor/suffix layout (suffix 1-8)")
        self.room_number = room_number


class StoreError(HotelError):
    """Failure reported by the record store."""


class PermissionDenied(StoreError):
    """The database refused access (missing grants or row level security policies)."""


class TransientStoreError(StoreError):
    pass
