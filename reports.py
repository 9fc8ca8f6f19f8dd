from dataclasses import dataclass
from io import BytesIO

import pandas as pd

from rooms import ROOM_CATEGORIES, ROOMS_PER_FLOOR


@dataclass
class HotelStats:
    total_rooms: int
    occupied_rooms: int
    revenue: int
    occupancy_rate: float


def format_date(value) -> str:
    if value is None or value == "" or value == "null":
        return "N/A"
    if isinstance(value, str):
        return value
    return value.strftime("%d %b %Y %H:%M")


def occupancy_stats(rooms) -> HotelStats:
    """Headline numbers for the dashboard. Revenue is one night of every occupied room."""
    total = len(rooms)
    occupied = [r for r in rooms if not r.is_available]
    revenue = sum(ROOM_CATEGORIES[r.category].price for r in occupied)
    rate = (len(occupied) / total) * 100 if total else 0.0
    return HotelStats(total, len(occupied), revenue, rate)


def category_breakdown(rooms) -> pd.DataFrame:
    rows = []
    for cat_id, info in ROOM_CATEGORIES.items():
        cat_rooms = [r for r in rooms if r.category == cat_id]
        occupied = len([r for r in cat_rooms if not r.is_available])
        rows.append({
            "Category": info.name,
            "Occupied": occupied,
            "Available": len(cat_rooms) - occupied,
        })
    return pd.DataFrame(rows, columns=["Category", "Occupied", "Available"]).set_index("Category")


def rooms_frame(rooms) -> pd.DataFrame:
    return pd.DataFrame([{
        "Room": r.room_number,
        "Floor": r.floor,
        "Category": ROOM_CATEGORIES[r.category].name,
        "Status": "Available" if r.is_available else "Occupied",
        "Leaving": format_date(r.leaving_date),
    } for r in rooms], columns=["Room", "Floor", "Category", "Status", "Leaving"])


def floor_grid(rooms) -> pd.DataFrame:
    """Floors as rows, room suffix 1-8 as columns, cell = 'Room - status'."""
    df = rooms_frame(rooms)
    if df.empty:
        return pd.DataFrame()
    df["Suffix"] = df["Room"] % 100
    df["Cell"] = df["Room"].astype(str) + " - " + df["Status"].str.upper()
    grid = df.pivot(index="Floor", columns="Suffix", values="Cell")
    grid = grid.reindex(columns=range(1, ROOMS_PER_FLOOR + 1)).fillna("")
    grid.columns = [f"x{s:02d}" for s in grid.columns]
    grid.index = [f"Floor {f}" for f in grid.index]
    return grid


def customers_frame(customers) -> pd.DataFrame:
    return pd.DataFrame([{
        "Guest Name": c.name,
        "Phone": c.phone_number,
        "Age": c.age,
        "Room": c.room_number,
        "Leaving": format_date(c.leaving_date),
        "Checked In": format_date(c.checked_in_at),
    } for c in customers], columns=["Guest Name", "Phone", "Age", "Room", "Leaving", "Checked In"])


def export_customers_excel(customers):
    if not customers:
        return None
    df = customers_frame(customers)
    output = BytesIO()
    with pd.ExcelWriter(output, engine="xlsxwriter") as writer:
        df.to_excel(writer, index=False, sheet_name="Customers")
    output.seek(0)
    return output
