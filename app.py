from datetime import date

import pandas as pd
import streamlit as st

import config
from booking import HotelService, NewCustomer
from errors import PermissionDenied, StoreError, ValidationError
from inventory import open_store
from migrate import POSTGRES_SETUP_SQL
from reports import (
    category_breakdown,
    customers_frame,
    export_customers_excel,
    floor_grid,
    occupancy_stats,
    rooms_frame,
)
from rooms import ROOM_CATEGORIES, Category


PAGES = ["Dashboard", "New Booking", "Room Status", "Customers", "Database Setup"]


# =========================
# Service wiring
# =========================

@st.cache_resource
def get_service() -> HotelService:
    """One store per server process; demo mode keeps its rooms until restart."""
    store = open_store(config.DATABASE_URL, config.MAX_FLOORS)
    return HotelService(store)


def validate_booking(name: str, phone: str, age) -> tuple[bool, str]:
    if not name or not name.strip():
        return False, "Guest name cannot be empty"
    phone = (phone or "").strip()
    if not phone.isdigit():
        return False, "Phone number must contain digits only"
    try:
        age = int(age)
    except (TypeError, ValueError):
        return False, "Age must be a whole number"
    if age < 18:
        return False, "You must be 18 or above to book a room."
    return True, ""


def load_rooms(service: HotelService):
    """Rooms for a page, or None after reporting the failure."""
    try:
        return service.list_rooms()
    except PermissionDenied:
        st.session_state["permission_error"] = True
        st.error("Database permissions missing. Open Database Setup and run the SQL script.")
    except StoreError as e:
        st.error(f"Failed to load data: {e}")
        st.caption(f"Retrying automatically in {config.REFRESH_SECONDS} seconds.")
    return None


# =========================
# Streamlit UI
# =========================

@st.fragment(run_every=config.REFRESH_SECONDS)
def page_dashboard():
    service = get_service()
    rooms = load_rooms(service)
    if rooms is None:
        return

    stats = occupancy_stats(rooms)
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total Rooms", stats.total_rooms)
    col2.metric("Guests In-House", stats.occupied_rooms)
    col3.metric("Daily Revenue", f"${stats.revenue}")
    col4.metric("Occupancy Rate", f"{stats.occupancy_rate:.1f}%")

    col_left, col_right = st.columns(2)
    with col_left:
        st.subheader("Occupancy by Category")
        st.bar_chart(category_breakdown(rooms), color=["#6366f1", "#e2e8f0"])
    with col_right:
        st.subheader("Room Status Overview")
        status = pd.DataFrame(
            {"Rooms": [stats.occupied_rooms, stats.total_rooms - stats.occupied_rooms]},
            index=["Occupied", "Available"],
        )
        st.bar_chart(status, horizontal=True)

    st.caption(f"Refreshed every {config.REFRESH_SECONDS} seconds; expired stays are released automatically.")


def page_booking():
    service = get_service()
    st.header("New Reservation")

    col_form, col_grid = st.columns([1, 2])
    with col_form:
        with st.form("booking_form", clear_on_submit=False):
            name = st.text_input("Guest Name", placeholder="John Doe")
            phone = st.text_input("Phone Number", placeholder="1234567890")
            age = st.number_input("Age", min_value=0, max_value=120, value=18, step=1)
            floor = st.selectbox("Preferred Floor", list(range(1, config.MAX_FLOORS + 1)),
                                 format_func=lambda f: f"Floor {f}")
            category = st.selectbox("Room Category", list(ROOM_CATEGORIES),
                                    format_func=lambda c: f"{ROOM_CATEGORIES[c].name} (${ROOM_CATEGORIES[c].price})")
            days = st.number_input("Duration (Days)", min_value=1, value=1, step=1)
            submitted = st.form_submit_button("Book Room", type="primary", use_container_width=True)

        if submitted:
            ok, msg = validate_booking(name, phone, age)
            if not ok:
                st.error(msg)
            else:
                customer = NewCustomer(name.strip(), phone.strip(), int(age), int(days))
                try:
                    room_no = service.allocate(customer, int(floor), Category(category))
                except ValidationError as e:
                    st.error(str(e))
                except PermissionDenied:
                    st.session_state["permission_error"] = True
                    st.error("Permissions missing. Please run the SQL in the Database Setup page.")
                except StoreError as e:
                    st.error(f"An error occurred during booking: {e}")
                else:
                    if room_no:
                        st.success(f"Room Assigned: {room_no}")
                    else:
                        st.warning("No rooms available for this floor and category. Please try another.")

        st.caption(ROOM_CATEGORIES[Category(category)].description)

    with col_grid:
        st.subheader("Quick Room Availability")
        room_grid()


@st.fragment(run_every=config.REFRESH_SECONDS)
def room_grid():
    rooms = load_rooms(get_service())
    if rooms is None:
        return
    if not rooms:
        st.info("No rooms yet (initialization should have seeded them).")
        return
    st.dataframe(floor_grid(rooms), use_container_width=True)


def page_room_status():
    st.header("Room Status")
    room_grid()

    rooms = load_rooms(get_service())
    if not rooms:
        return
    only_occupied = st.checkbox("Occupied only")
    df = rooms_frame(rooms)
    if only_occupied:
        df = df[df["Status"] == "Occupied"]
    st.dataframe(df, use_container_width=True, hide_index=True)
    st.caption(f"{len(df)} rooms")


def page_customers():
    service = get_service()
    st.header("Customers")
    try:
        customers = service.list_customers()
    except PermissionDenied:
        st.session_state["permission_error"] = True
        st.error("Database permissions missing. Open Database Setup and run the SQL script.")
        return
    except StoreError as e:
        st.error(f"Failed to load customers: {e}")
        return

    if not customers:
        st.info("No customers yet.")
        return

    df = customers_frame(customers)
    df.insert(0, "#", range(1, len(df) + 1))
    st.dataframe(df, use_container_width=True, hide_index=True)
    st.caption(f"{len(df)} bookings")

    excel_bytes = export_customers_excel(customers)
    if excel_bytes:
        st.download_button(
            "Download Customers Excel",
            data=excel_bytes,
            file_name=f"Customers-{date.today().isoformat()}.xlsx",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )


def page_setup():
    service = get_service()
    st.header("Database Configuration")
    if service.persistent:
        st.success(f"Status: Connected ({service.store.label})")
    else:
        st.warning("Status: Not configured (using local in-memory data)")
    st.write(
        "To persist data, point `HOTEL_DATABASE_URL` (environment or `.env`) at a PostgreSQL "
        "database, then run `python migrate.py` once to create the tables."
    )
    st.subheader("SQL Schema & Permissions")
    st.caption("Run this in your database SQL editor to create the tables and fix permission errors:")
    st.code(POSTGRES_SETUP_SQL, language="sql")

    if st.button("Retry initialization"):
        st.session_state["permission_error"] = False
        st.session_state.pop("initialized", None)
        st.rerun()


def initialize_once(service: HotelService):
    if st.session_state.get("initialized"):
        return
    try:
        service.initialize()
    except PermissionDenied:
        st.session_state["permission_error"] = True
    st.session_state["initialized"] = True


def main():
    st.set_page_config(
        page_title=f"{config.HOTEL_NAME} Hotel Manager",
        page_icon="🏨",
        layout="wide",
        initial_sidebar_state="expanded",
    )

    service = get_service()
    initialize_once(service)
    permission_error = st.session_state.get("permission_error", False)

    with st.sidebar:
        st.title(config.HOTEL_NAME)
        st.caption("HOTEL MANAGER")
        page = st.radio(
            "Navigate",
            PAGES,
            index=PAGES.index("Database Setup") if permission_error else 0,
        )
        st.markdown("---")
        if not service.persistent:
            st.markdown("**DEMO MODE**")
            st.caption("Running with local data. Configure HOTEL_DATABASE_URL to persist data.")
        st.caption(date.today().strftime("%A, %d %B %Y"))

    if permission_error:
        st.warning(
            "**Database Permissions Missing.** The tables exist, but the application cannot read or "
            "write them (row level security). Run the SQL script on the Database Setup page."
        )

    if page == "Dashboard":
        st.header("Dashboard")
        page_dashboard()
    elif page == "New Booking":
        page_booking()
    elif page == "Room Status":
        page_room_status()
    elif page == "Customers":
        page_customers()
    elif page == "Database Setup":
        page_setup()


if __name__ == "__main__":
    main()
