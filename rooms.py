from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import NamedTuple, Optional

from errors import InvalidRoomNumber


MAX_FLOORS = 5
ROOMS_PER_FLOOR = 8


class Category(IntEnum):
    NON_AC = 1
    AC = 2
    BEACH_VIEW_NON_AC = 3
    BEACH_VIEW_AC = 4


@dataclass(frozen=True)
class CategoryInfo:
    id: Category
    name: str
    price: int
    description: str


ROOM_CATEGORIES = {
    Category.NON_AC: CategoryInfo(Category.NON_AC, "Non AC", 50, "Standard room, budget friendly."),
    Category.AC: CategoryInfo(Category.AC, "AC", 80, "Climate controlled comfort."),
    Category.BEACH_VIEW_NON_AC: CategoryInfo(Category.BEACH_VIEW_NON_AC, "Beach View Non AC", 100, "Stunning views, natural breeze."),
    Category.BEACH_VIEW_AC: CategoryInfo(Category.BEACH_VIEW_AC, "Beach View AC", 150, "Premium comfort with ocean views."),
}

# Room number suffix (number % 100) -> category, two rooms per category
SUFFIX_CATEGORIES = {
    1: Category.NON_AC,
    2: Category.NON_AC,
    3: Category.AC,
    4: Category.AC,
    5: Category.BEACH_VIEW_NON_AC,
    6: Category.BEACH_VIEW_NON_AC,
    7: Category.BEACH_VIEW_AC,
    8: Category.BEACH_VIEW_AC,
}


class RoomMeta(NamedTuple):
    floor: int
    category: Category


@dataclass
class Room:
    room_number: int
    floor: int
    category: Category
    is_available: bool = True
    leaving_date: Optional[datetime] = None

    @property
    def info(self) -> CategoryInfo:
        return ROOM_CATEGORIES[self.category]


def category_of(value) -> Category:
    """Coerce a category id (int or Category) to Category."""
    try:
        return Category(int(value))
    except (TypeError, ValueError):
        raise ValueError(f"Unknown room category: {value!r}") from None


def metadata_of(room_number: int) -> RoomMeta:
    """Derive floor and category from a room number.

    floor = room_number // 100, category from the last two digits.
    Numbers whose suffix is outside 1-8 (or that sit below floor 1) are
    not part of the layout and raise InvalidRoomNumber.
    """
    floor, remainder = divmod(int(room_number), 100)
    category = SUFFIX_CATEGORIES.get(remainder)
    if category is None or floor < 1:
        raise InvalidRoomNumber(room_number)
    return RoomMeta(floor, category)


def all_rooms(max_floors: int = MAX_FLOORS) -> list[Room]:
    """Full inventory, ascending by room number, every room vacant."""
    rooms = []
    for floor in range(1, max_floors + 1):
        for suffix in range(1, ROOMS_PER_FLOOR + 1):
            rooms.append(Room(
                room_number=floor * 100 + suffix,
                floor=floor,
                category=SUFFIX_CATEGORIES[suffix],
            ))
    return rooms
