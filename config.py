import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        print(f"WARNING: {name}={raw!r} is not a whole number, using {default}")
        return default


HOTEL_NAME = os.getenv("HOTEL_NAME") or "Azure Horizon"

# Empty URL -> demo mode with the in-memory store
DATABASE_URL = os.getenv("HOTEL_DATABASE_URL", "").strip()

MAX_FLOORS = _int_env("HOTEL_MAX_FLOORS", 5)
REFRESH_SECONDS = _int_env("HOTEL_REFRESH_SECONDS", 60)
